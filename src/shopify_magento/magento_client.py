from __future__ import annotations
import json
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import quote

import requests

from .categories import build_category_forest
from .models import AttributeOption, CategoryNode, TargetAttributeDef


logger = logging.getLogger(__name__)

CANDIDATE_PAGE_SIZE = 50
CATEGORY_PAGE_SIZE = 500


@dataclass
class MagentoConfig:
    base_url: str
    token: str
    store_code: str = "default"

    @property
    def api_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/rest/{self.store_code}/V1"


def build_session(cfg: MagentoConfig) -> requests.Session:
    s = requests.Session()
    s.headers.update(
        {
            "Authorization": f"Bearer {cfg.token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "shopify-magento/1.0",
        }
    )
    return s


def _send(session: requests.Session, method: str, url: str, payload: Optional[Dict] = None, params: Optional[Dict] = None) -> requests.Response:
    backoff = 1.0
    while True:
        logger.debug("%s %s", method, url)
        if method == "GET":
            resp = session.get(url, params=params)
        elif method == "POST":
            resp = session.post(url, data=json.dumps(payload))
        else:
            resp = session.put(url, data=json.dumps(payload))
        if resp.status_code == 429:
            retry_after = float(resp.headers.get("Retry-After", backoff))
            time.sleep(retry_after)
            backoff = min(backoff * 2, 10.0)
            continue
        return resp


def _raise_for(resp: requests.Response) -> None:
    if resp.status_code < 400:
        return
    try:
        body = resp.json()
        detail = body.get("message") if isinstance(body, dict) else body
        params = body.get("parameters") if isinstance(body, dict) else None
        if isinstance(params, list) and detail:
            for i, p in enumerate(params, start=1):
                detail = detail.replace(f"%{i}", str(p))
        elif isinstance(params, dict) and detail:
            for k, p in params.items():
                detail = detail.replace(f"%{k}", str(p))
    except ValueError:
        detail = resp.text
    raise requests.HTTPError(f"{resp.status_code}: {detail}", response=resp)


def _get(session: requests.Session, cfg: MagentoConfig, path: str, params: Optional[Dict] = None):
    resp = _send(session, "GET", f"{cfg.api_url}/{path}", params=params)
    _raise_for(resp)
    return resp.json()


def _post(session: requests.Session, cfg: MagentoConfig, path: str, payload: Dict):
    resp = _send(session, "POST", f"{cfg.api_url}/{path}", payload)
    _raise_for(resp)
    return resp.json()


def _put(session: requests.Session, cfg: MagentoConfig, path: str, payload: Dict):
    resp = _send(session, "PUT", f"{cfg.api_url}/{path}", payload)
    _raise_for(resp)
    return resp.json()


def parse_attribute(raw: Dict) -> TargetAttributeDef:
    kind = (raw.get("frontend_input") or "text").lower()
    options = None
    if kind in ("select", "multiselect"):
        options = []
        for opt in raw.get("options") or []:
            value = str(opt.get("value") or "").strip()
            if not value:
                continue
            options.append(AttributeOption(label=str(opt.get("label") or "").strip(), value=value))
    attr_id = raw.get("attribute_id")
    return TargetAttributeDef(
        code=raw.get("attribute_code") or "",
        label=raw.get("default_frontend_label") or raw.get("frontend_label") or "",
        input_kind=kind,
        required=bool(raw.get("is_required")),
        options=options,
        attribute_id=int(attr_id) if attr_id not in (None, "") else None,
    )


def fetch_attribute_catalog(session: requests.Session, cfg: MagentoConfig, attribute_set_id: int = 4) -> List[TargetAttributeDef]:
    data = _get(session, cfg, f"products/attribute-sets/{attribute_set_id}/attributes")
    out = [parse_attribute(raw) for raw in data or [] if raw.get("attribute_code")]
    logger.info("Loaded %d attributes from set %s", len(out), attribute_set_id)
    return out


def fetch_category_list(session: requests.Session, cfg: MagentoConfig) -> List[Dict]:
    items: List[Dict] = []
    page = 1
    while True:
        data = _get(
            session,
            cfg,
            "categories/list",
            params={
                "searchCriteria[currentPage]": page,
                "searchCriteria[pageSize]": CATEGORY_PAGE_SIZE,
            },
        )
        batch = data.get("items") or []
        items.extend(batch)
        total = int(data.get("total_count") or 0)
        if not batch or len(items) >= total:
            return items
        page += 1


def fetch_existing_child_skus(session: requests.Session, cfg: MagentoConfig, configurable_sku: str) -> List[str]:
    resp = _send(session, "GET", f"{cfg.api_url}/configurable-products/{quote(configurable_sku, safe='')}/children")
    if resp.status_code == 404:
        return []
    _raise_for(resp)
    return [c.get("sku") for c in resp.json() or [] if c.get("sku")]


def search_configurable_candidates(session: requests.Session, cfg: MagentoConfig, hint: str) -> List[Dict]:
    hint = (hint or "").strip()
    if not hint:
        raise ValueError("Search term is required")
    params = {
        "searchCriteria[filterGroups][0][filters][0][field]": "url_key",
        "searchCriteria[filterGroups][0][filters][0][value]": f"{hint}%",
        "searchCriteria[filterGroups][0][filters][0][conditionType]": "like",
        "searchCriteria[filterGroups][1][filters][0][field]": "type_id",
        "searchCriteria[filterGroups][1][filters][0][value]": "configurable",
        "searchCriteria[filterGroups][1][filters][0][conditionType]": "eq",
        "searchCriteria[pageSize]": CANDIDATE_PAGE_SIZE,
    }
    data = _get(session, cfg, "products", params=params)
    out = []
    for item in data.get("items") or []:
        url_key = ""
        for ca in item.get("custom_attributes") or []:
            if ca.get("attribute_code") == "url_key":
                url_key = ca.get("value") or ""
        out.append({"sku": item.get("sku"), "name": item.get("name"), "url_key": url_key})
    return out


def get_attribute(session: requests.Session, cfg: MagentoConfig, code: str) -> Dict:
    return _get(session, cfg, f"products/attributes/{quote(code, safe='')}")


def _find_option(raw_attr: Dict, label: str) -> Optional[AttributeOption]:
    wanted = label.strip().lower()
    for opt in raw_attr.get("options") or []:
        value = str(opt.get("value") or "").strip()
        if value and str(opt.get("label") or "").strip().lower() == wanted:
            return AttributeOption(label=str(opt.get("label")).strip(), value=value)
    return None


def create_option_value(session: requests.Session, cfg: MagentoConfig, code: str, label: str) -> AttributeOption:
    label = (label or "").strip()
    if not label:
        raise ValueError("Option label is required")
    existing = _find_option(get_attribute(session, cfg, code), label)
    if existing:
        return existing
    _post(
        session,
        cfg,
        f"products/attributes/{quote(code, safe='')}/options",
        {"option": {"label": label, "sort_order": 0, "is_default": False, "store_labels": []}},
    )
    created = _find_option(get_attribute(session, cfg, code), label)
    if created is None:
        raise requests.HTTPError(f"Option {label} was not found on {code} after creation")
    logger.info("Created option %s=%s on %s", created.label, created.value, code)
    return created


def product_exists(session: requests.Session, cfg: MagentoConfig, sku: str) -> bool:
    resp = _send(session, "GET", f"{cfg.api_url}/products/{quote(sku, safe='')}")
    if resp.status_code == 404:
        return False
    _raise_for(resp)
    return True


def create_configurable_product(session: requests.Session, cfg: MagentoConfig, payload: Dict) -> Dict:
    product = payload["product"]
    sku = product["sku"]
    created = _post(session, cfg, "products", {"product": product})
    for opt in payload.get("options") or []:
        attr_id = opt.get("attribute_id")
        if attr_id is None:
            attr_id = get_attribute(session, cfg, opt["attribute_code"]).get("attribute_id")
        _post(
            session,
            cfg,
            f"configurable-products/{quote(sku, safe='')}/options",
            {
                "option": {
                    "attribute_id": str(attr_id),
                    "label": opt.get("label") or opt["attribute_code"],
                    "position": opt.get("position", 0),
                    "is_use_default": True,
                    "values": opt.get("values") or [],
                }
            },
        )
    return created


def upsert_variant(session: requests.Session, cfg: MagentoConfig, payload: Dict) -> Dict:
    product = payload["product"]
    sku = product["sku"]
    if product_exists(session, cfg, sku):
        saved = _put(session, cfg, f"products/{quote(sku, safe='')}", {"product": product})
    else:
        saved = _post(session, cfg, "products", {"product": product})
    parent = payload.get("configurable_sku")
    if parent:
        _post(session, cfg, f"configurable-products/{quote(parent, safe='')}/child", {"childSku": sku})
    return saved


class MagentoClient:
    """Target catalog backed by the Magento REST API."""

    def __init__(self, cfg: MagentoConfig, attribute_set_id: int = 4, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.attribute_set_id = attribute_set_id
        self.session = session or build_session(cfg)

    def fetch_attribute_catalog(self) -> List[TargetAttributeDef]:
        return fetch_attribute_catalog(self.session, self.cfg, self.attribute_set_id)

    def fetch_category_forest(self) -> List[CategoryNode]:
        return build_category_forest(fetch_category_list(self.session, self.cfg))

    def fetch_existing_child_skus(self, configurable_sku: str) -> List[str]:
        return fetch_existing_child_skus(self.session, self.cfg, configurable_sku)

    def search_configurable_candidates(self, hint: str) -> List[Dict]:
        return search_configurable_candidates(self.session, self.cfg, hint)

    def create_option_value(self, attribute_code: str, label: str) -> AttributeOption:
        return create_option_value(self.session, self.cfg, attribute_code, label)

    def submit_configurable_product(self, payload: Dict) -> Dict:
        return create_configurable_product(self.session, self.cfg, payload)

    def submit_variant(self, payload: Dict) -> Dict:
        return upsert_variant(self.session, self.cfg, payload)
