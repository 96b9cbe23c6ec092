from __future__ import annotations
import base64
import logging
import posixpath
from typing import Callable, Dict, List, Optional
from urllib.parse import urlparse

import requests

from .models import SourceImage, SourceProduct, SourceVariant


logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
}
IMAGE_ROLES = ["image", "small_image", "thumbnail"]


def image_filename(url: str) -> str:
    return posixpath.basename(urlparse(url or "").path)


def get_mime_type(url: str) -> Optional[str]:
    ext = posixpath.splitext(image_filename(url))[1].lower()
    return MIME_TYPES.get(ext)


def fetch_image_as_base64(url: str, session: Optional[requests.Session] = None, timeout: int = 30) -> Optional[str]:
    getter = session.get if session is not None else requests.get
    try:
        resp = getter(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Failed to fetch image %s: %s", url, e)
        return None
    return base64.b64encode(resp.content).decode("ascii")


def _entry(image: SourceImage, position: int, data: str, mime: str) -> Dict:
    return {
        "media_type": "image",
        "label": image.alt_text or "",
        "position": position,
        "disabled": False,
        "types": list(IMAGE_ROLES) if position == 0 else [],
        "content": {
            "base64_encoded_data": data,
            "type": mime,
            "name": image_filename(image.url),
        },
    }


def gallery_entries(images: List[SourceImage], fetch: Optional[Callable[[str], Optional[str]]]) -> List[Dict]:
    if fetch is None:
        return []
    entries: List[Dict] = []
    for img in images:
        mime = get_mime_type(img.url)
        if not mime:
            logger.info("Skipping unsupported image type: %s", img.url)
            continue
        data = fetch(img.url)
        if not data:
            continue
        entries.append(_entry(img, len(entries), data, mime))
    return entries


def product_gallery_entries(product: SourceProduct, fetch: Optional[Callable[[str], Optional[str]]]) -> List[Dict]:
    """Gallery for the configurable parent: product images not used by any variant."""
    variant_urls = {v.image.url for v in product.variants if v.image}
    images = [img for img in product.images if img.url not in variant_urls]
    return gallery_entries(images, fetch)


def variant_gallery_entries(variant: SourceVariant, fetch: Optional[Callable[[str], Optional[str]]]) -> List[Dict]:
    if variant.image is None:
        return []
    return gallery_entries([variant.image], fetch)
