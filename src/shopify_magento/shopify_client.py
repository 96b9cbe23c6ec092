from __future__ import annotations
import json
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

import requests

from .models import SourceField, SourceImage, SourceProduct, SourceVariant


logger = logging.getLogger(__name__)


@dataclass
class ShopifyConfig:
    store: str
    token: str
    api_version: str = "2024-01"

    @property
    def graphql_url(self) -> str:
        return f"https://{self.store}/admin/api/{self.api_version}/graphql.json"


def build_session(cfg: ShopifyConfig) -> requests.Session:
    s = requests.Session()
    s.headers.update(
        {
            "X-Shopify-Access-Token": cfg.token,
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "shopify-magento/1.0",
        }
    )
    return s


def graphql(session: requests.Session, cfg: ShopifyConfig, query: str, variables: Dict) -> Dict:
    backoff = 1.0
    payload = {"query": query, "variables": variables}
    while True:
        logger.debug("POST %s", cfg.graphql_url)
        resp = session.post(cfg.graphql_url, data=json.dumps(payload))
        if resp.status_code == 429:
            retry_after = float(resp.headers.get("Retry-After", backoff))
            time.sleep(retry_after)
            backoff = min(backoff * 2, 10.0)
            continue
        if not resp.ok:
            try:
                detail = resp.json()
            except ValueError:
                detail = resp.text
            raise requests.HTTPError(f"{resp.status_code}: {detail}", response=resp)
        data = resp.json()
        if data.get("errors"):
            raise requests.HTTPError(f"GraphQL error: {data['errors']}")
        return data


SHOPIFY_PRODUCT_QUERY = (
    "query($q:String!){"
    " products(first:1, query:$q){"
    "  edges{ node{"
    "   id title descriptionHtml vendor productType handle status tags"
    "   images(first:50){ edges{ node{ id url altText } } }"
    "   variants(first:100){ edges{ node{"
    "    id sku title price inventoryQuantity"
    "    selectedOptions{ name value }"
    "    inventoryItem{ unitCost{ amount } }"
    "    image{ id url altText }"
    "   } } }"
    "  } }"
    " }"
    "}"
)

PRODUCT_CREATE_MUTATION = (
    "mutation productCreate($input:ProductInput!){"
    " productCreate(input:$input){"
    "  product{ id title }"
    "  userErrors{ field message }"
    " }"
    "}"
)


def _edges(conn: Optional[Dict]) -> List[Dict]:
    return [e.get("node") or {} for e in ((conn or {}).get("edges") or [])]


def _image(node: Optional[Dict]) -> Optional[SourceImage]:
    if not node or not node.get("url"):
        return None
    return SourceImage(id=str(node.get("id") or ""), url=node["url"], alt_text=node.get("altText"))


def parse_product(node: Dict) -> SourceProduct:
    variants = []
    for v in _edges(node.get("variants")):
        cost = ((v.get("inventoryItem") or {}).get("unitCost") or {}).get("amount")
        variants.append(
            SourceVariant(
                id=str(v.get("id") or ""),
                sku=(v.get("sku") or "").strip(),
                title=v.get("title") or "",
                price=str(v.get("price") or "0"),
                selected_options=[
                    SourceField(name=o.get("name") or "", value=o.get("value") or "")
                    for o in v.get("selectedOptions") or []
                ],
                inventory_quantity=int(v.get("inventoryQuantity") or 0),
                inventory_cost=float(cost or 0),
                image=_image(v.get("image")),
            )
        )
    images = [img for img in (_image(n) for n in _edges(node.get("images"))) if img]
    return SourceProduct(
        id=str(node.get("id") or ""),
        title=node.get("title") or "",
        description=node.get("descriptionHtml") or "",
        vendor=node.get("vendor") or "",
        product_type=node.get("productType") or "",
        handle=node.get("handle") or "",
        status=node.get("status") or "ACTIVE",
        tags=list(node.get("tags") or []),
        images=images,
        variants=variants,
    )


def fetch_product(session: requests.Session, cfg: ShopifyConfig, term: str) -> Optional[SourceProduct]:
    """First product matching a title/handle search, or None."""
    term = (term or "").strip()
    if not term:
        raise ValueError("Search term is required")
    data = graphql(session, cfg, SHOPIFY_PRODUCT_QUERY, {"q": term})
    nodes = _edges((data.get("data") or {}).get("products"))
    if not nodes:
        return None
    return parse_product(nodes[0])


def create_product(session: requests.Session, cfg: ShopifyConfig, product_input: Dict) -> str:
    data = graphql(session, cfg, PRODUCT_CREATE_MUTATION, {"input": product_input})
    result = (data.get("data") or {}).get("productCreate") or {}
    errors = result.get("userErrors") or []
    if errors:
        raise requests.HTTPError("; ".join(e.get("message") or str(e) for e in errors))
    product = result.get("product") or {}
    if not product.get("id"):
        raise requests.HTTPError("productCreate returned no product")
    return product["id"]


@dataclass
class StoreConfig:
    id: str
    name: str
    store_url: str

    @property
    def store(self) -> str:
        host = self.store_url.split("://", 1)[-1]
        return host.strip("/")


def parse_stores(raw: List[Dict]) -> List[StoreConfig]:
    out = []
    for s in raw or []:
        sid = str(s.get("id") or "").strip()
        url = str(s.get("storeUrl") or s.get("store_url") or "").strip()
        if not sid or not url:
            continue
        out.append(StoreConfig(id=sid, name=str(s.get("name") or sid), store_url=url))
    return out


class ShopifySource:
    """Primary Shopify store the catalog is migrated from."""

    def __init__(self, cfg: ShopifyConfig, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.session = session or build_session(cfg)

    def fetch_source_product(self, term: str) -> Optional[SourceProduct]:
        return fetch_product(self.session, self.cfg, term)


class ShopifyStoreClient:
    """Additional Shopify stores a migrated product can be published to.

    Only stores with an access token are offered.
    """

    def __init__(self, stores: List[StoreConfig], tokens: Dict[str, str], api_version: str = "2024-01"):
        self.stores = [s for s in stores if tokens.get(s.id)]
        self.tokens = tokens
        self.api_version = api_version

    def list_additional_stores(self) -> List[Dict]:
        return [{"id": s.id, "name": s.name, "url": s.store_url} for s in self.stores]

    def submit_to_additional_store(self, store_id: str, payload: Dict) -> str:
        store = next((s for s in self.stores if s.id == store_id), None)
        if store is None:
            raise ValueError(f"Unknown store: {store_id}")
        cfg = ShopifyConfig(store=store.store, token=self.tokens[store.id], api_version=self.api_version)
        return create_product(build_session(cfg), cfg, payload)
