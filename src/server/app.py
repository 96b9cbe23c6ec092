from __future__ import annotations
import logging
import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

import requests
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shopify_magento.categories import search_categories
from shopify_magento.images import fetch_image_as_base64
from shopify_magento.magento_client import MagentoClient, MagentoConfig
from shopify_magento.models import AttributeCatalog
from shopify_magento.session import ImportSession
from shopify_magento.shopify_client import ShopifyConfig, ShopifySource, ShopifyStoreClient, parse_stores
from shopify_magento.state import SetProductAttribute, SetProductValue, SetVariantAttribute, SetVariantValue
from shopify_magento.transform import PayloadOptions
from . import db
from . import settings as app_settings


logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parents[2]
DATA_DIR = Path(os.getenv("APP_DATA_DIR") or ROOT / "data")

app = FastAPI(title="Shopify → Magento API", version="0.1.0")
db.init_db(DATA_DIR / "app.sqlite3")
app_settings.init_settings(DATA_DIR / "settings.json")


SESSIONS: Dict[str, ImportSession] = {}


@app.exception_handler(ValueError)
def _value_error(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(requests.HTTPError)
def _upstream_error(request: Request, exc: requests.HTTPError):
    return JSONResponse(status_code=502, content={"detail": str(exc)})


def _settings() -> Dict:
    return app_settings.resolve(app_settings.get_settings())


# --- Collaborators (overridable in tests) ---

def get_target() -> MagentoClient:
    s = _settings()
    if not s["magento_base_url"] or not s["magento_access_token"]:
        raise HTTPException(500, "Magento credentials missing. Set them in settings or as environment variables.")
    cfg = MagentoConfig(
        base_url=s["magento_base_url"],
        token=s["magento_access_token"],
        store_code=s.get("magento_store_code") or "default",
    )
    return MagentoClient(cfg, attribute_set_id=int(s.get("attribute_set_id") or 4))


def get_source() -> ShopifySource:
    s = _settings()
    if not s["shopify_store"] or not s["shopify_access_token"]:
        raise HTTPException(500, "Shopify credentials missing. Set them in settings or as environment variables.")
    store = s["shopify_store"].replace("https://", "").strip("/")
    return ShopifySource(ShopifyConfig(store=store, token=s["shopify_access_token"], api_version=s["shopify_api_version"]))


def get_stores() -> ShopifyStoreClient:
    s = _settings()
    return ShopifyStoreClient(
        parse_stores(s.get("additional_stores") or []),
        {str(k): str(v) for k, v in (s.get("additional_store_tokens") or {}).items()},
        api_version=s["shopify_api_version"],
    )


def get_image_fetcher():
    return fetch_image_as_base64


def _session(session_id: str) -> ImportSession:
    sess = SESSIONS.get(session_id)
    if sess is None:
        raise HTTPException(404, "session not found")
    return sess


# --- Request bodies ---

class SessionCreate(BaseModel):
    term: str


class TargetChoice(BaseModel):
    sku: str = ""
    is_new: bool = False


class ProductEdit(BaseModel):
    field: str
    code: Optional[str] = None
    value: Optional[Union[str, List[str]]] = None
    label: Optional[str] = None


class VariantEdit(BaseModel):
    sku: str
    field: str
    code: Optional[str] = None
    value: Optional[Union[str, List[str]]] = None


class OptionCreate(BaseModel):
    session_id: str
    label: str


class PublishRequest(BaseModel):
    store_ids: List[str]


class SettingsUpdate(BaseModel):
    magento_base_url: Optional[str] = None
    magento_access_token: Optional[str] = None
    attribute_set_id: Optional[int] = None
    website_ids: Optional[List[int]] = None
    magento_tax_class_id: Optional[str] = None
    variant_delay: Optional[float] = None
    shopify_store: Optional[str] = None
    shopify_api_version: Optional[str] = None
    shopify_access_token: Optional[str] = None
    additional_stores: Optional[List[Dict]] = None
    additional_store_tokens: Optional[Dict[str, str]] = None


# --- Endpoints ---

@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/settings")
def get_app_settings() -> Dict:
    s = app_settings.get_settings()
    masked = dict(s)
    for key in ("magento_access_token", "shopify_access_token"):
        if masked.get(key):
            masked[key] = "***"
    masked["additional_store_tokens"] = {k: "***" for k in (s.get("additional_store_tokens") or {})}
    return masked


@app.post("/settings")
def update_app_settings(body: SettingsUpdate) -> Dict:
    cur = app_settings.get_settings()
    cur.update({k: v for k, v in body.model_dump().items() if v is not None})
    app_settings.save_settings(cur)
    return get_app_settings()


@app.get("/attributes")
def list_attributes(target=Depends(get_target)) -> List[Dict]:
    out = []
    for a in target.fetch_attribute_catalog():
        out.append(
            {
                "code": a.code,
                "label": a.label,
                "input_kind": a.input_kind,
                "required": a.required,
                "options": [{"label": o.label, "value": o.value} for o in a.options or []],
            }
        )
    return out


@app.get("/categories")
def list_categories(q: str = "", target=Depends(get_target)) -> List[Dict]:
    forest = target.fetch_category_forest()
    return [{"id": n.id, "label": n.full_path_label, "level": n.level} for n in search_categories(forest, q)]


@app.get("/stores")
def list_stores(stores=Depends(get_stores)) -> List[Dict]:
    return stores.list_additional_stores()


@app.post("/sessions")
def create_session(
    body: SessionCreate,
    source=Depends(get_source),
    target=Depends(get_target),
    stores=Depends(get_stores),
    fetch_image=Depends(get_image_fetcher),
) -> Dict:
    term = body.term.strip()
    if not term:
        raise HTTPException(400, "search term is required")
    product = source.fetch_source_product(term)
    if product is None:
        raise HTTPException(404, "product not found")
    s = _settings()
    sess = ImportSession(
        product,
        AttributeCatalog(target.fetch_attribute_catalog()),
        target.fetch_category_forest(),
        target,
        stores=stores,
        payload_options=PayloadOptions(
            attribute_set_id=int(s.get("attribute_set_id") or 4),
            website_ids=tuple(app_settings.website_ids(s)),
            tax_class_id=str(s.get("magento_tax_class_id") or "2"),
        ),
        variant_delay=float(s.get("variant_delay") or 0),
        fetch_image=fetch_image,
    )
    session_id = str(uuid.uuid4())
    SESSIONS[session_id] = sess
    logger.info("Session %s started for %s", session_id, product.title)
    return {"id": session_id, **sess.view()}


@app.get("/sessions/{session_id}")
def get_session(session_id: str) -> Dict:
    return {"id": session_id, **_session(session_id).view()}


@app.get("/sessions/{session_id}/candidates")
def session_candidates(session_id: str, hint: Optional[str] = None) -> List[Dict]:
    return _session(session_id).candidates(hint)


@app.post("/sessions/{session_id}/target")
def choose_target(session_id: str, body: TargetChoice) -> Dict:
    sess = _session(session_id)
    sess.advance_target(body.sku, body.is_new)
    return {"id": session_id, **sess.view()}


@app.post("/sessions/{session_id}/product-edits")
def product_edit(session_id: str, body: ProductEdit) -> Dict:
    sess = _session(session_id)
    if body.code is not None:
        sess.apply_product_edit(SetProductAttribute(body.field, body.code))
    elif body.value is not None:
        sess.apply_product_edit(SetProductValue(body.field, body.value, body.label))
    else:
        raise HTTPException(400, "either code or value is required")
    return {"id": session_id, **sess.view()}


@app.post("/sessions/{session_id}/variant-edits")
def variant_edit(session_id: str, body: VariantEdit) -> Dict:
    sess = _session(session_id)
    if body.code is not None:
        sess.apply_variant_edit(SetVariantAttribute(body.sku, body.field, body.code))
    elif body.value is not None:
        sess.apply_variant_edit(SetVariantValue(body.sku, body.field, body.value))
    else:
        raise HTTPException(400, "either code or value is required")
    return {"id": session_id, **sess.view()}


@app.post("/attributes/{code}/options")
def create_option(code: str, body: OptionCreate) -> Dict:
    option = _session(body.session_id).create_option(code, body.label)
    return {"label": option.label, "value": option.value}


@app.post("/sessions/{session_id}/submit")
def submit_session(session_id: str) -> Dict:
    sess = _session(session_id)
    outcome = sess.submit()
    rec = {
        "id": str(uuid.uuid4()),
        "session_id": session_id,
        "product_id": sess.state.product.id,
        "configurable_sku": outcome.configurable_sku,
        "status": "succeeded" if outcome.ok else "failed",
        "message": outcome.message,
        "imported": outcome.imported,
        "failed_sku": outcome.failed_sku,
        "created_at": datetime.utcnow().isoformat(),
    }
    db.add_import(rec)
    if outcome.ok:
        SESSIONS.pop(session_id, None)
    return {"import_id": rec["id"], **outcome.to_dict(), "phase": sess.phase.value}


@app.post("/sessions/{session_id}/publish")
def publish_session(session_id: str, body: PublishRequest) -> Dict:
    return _session(session_id).publish(body.store_ids).to_dict()


@app.delete("/sessions/{session_id}")
def cancel_session(session_id: str) -> Dict:
    sess = _session(session_id)
    sess.cancel()
    SESSIONS.pop(session_id, None)
    return {"id": session_id, "phase": sess.phase.value}


@app.get("/imports")
def list_imports() -> List[Dict]:
    return db.list_imports()


@app.get("/imports/{import_id}")
def get_import(import_id: str) -> Dict:
    rec = db.get_import(import_id)
    if not rec:
        raise HTTPException(404, "import not found")
    return rec
