import re
import unicodedata


TOKEN_SPLIT_RE = re.compile(r"[\s/]+")
HTML_TAG_RE = re.compile(r"<[^>]+>")
MAX_CONFIGURABLE_SKU = 64


def normalize_key(s: str) -> str:
    if not s:
        return ""
    return re.sub(r"[^a-z0-9]", "", s.lower())


def tokenize(s: str) -> list:
    if not s:
        return []
    return [t for t in TOKEN_SPLIT_RE.split(s.lower()) if t]


def slugify_for_handle(s: str) -> str:
    if not s:
        return ""
    s = unicodedata.normalize('NFKD', s)
    s = s.encode('ascii', 'ignore').decode('ascii')
    s = re.sub(r"[^a-zA-Z0-9]+", "-", s)
    s = s.strip('-').lower()
    return s


def search_hint(title: str) -> str:
    # "Adjust MyFlavor 40,000 Puffs - Strawberry" -> "adjust-myflavor"
    words = (title or "").split(" ")[:2]
    return re.sub(r"[^a-z0-9]+", "-", " ".join(words).lower())


def configurable_sku_from_handle(handle: str) -> str:
    return (handle or "").strip()[:MAX_CONFIGURABLE_SKU]


def strip_html(html: str) -> str:
    if not html:
        return ""
    text = HTML_TAG_RE.sub(" ", html)
    return re.sub(r"\s+", " ", text).strip()
