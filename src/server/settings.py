from __future__ import annotations
import json
import logging
import os
from pathlib import Path
from typing import Dict, List


logger = logging.getLogger(__name__)

SETTINGS_PATH: Path | None = None


def init_settings(path: Path) -> None:
    global SETTINGS_PATH
    SETTINGS_PATH = path
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        save_settings(default_settings())


def default_settings() -> Dict:
    return {
        "magento_base_url": "",
        "magento_access_token": "",
        "magento_store_code": "default",
        "attribute_set_id": 4,
        "website_ids": [1, 2],
        "magento_tax_class_id": "2",
        "variant_delay": 0.5,
        "shopify_store": "",
        "shopify_api_version": "2024-01",
        "shopify_access_token": "",
        # Additional stores: [{id, name, storeUrl}] and {id: token}
        "additional_stores": [],
        "additional_store_tokens": {},
    }


def get_settings() -> Dict:
    assert SETTINGS_PATH is not None
    base = default_settings()
    try:
        data = json.loads(SETTINGS_PATH.read_text())
    except (OSError, ValueError) as e:
        logger.warning("Could not read %s: %s", SETTINGS_PATH, e)
        return base
    base.update(data or {})
    return base


def save_settings(data: Dict) -> None:
    assert SETTINGS_PATH is not None
    SETTINGS_PATH.write_text(json.dumps(data, indent=2))


def _env_json(name: str, default):
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Ignoring %s: not valid JSON", name)
        return default


def resolve(s: Dict) -> Dict:
    """Settings with credentials filled from the environment where the file leaves them blank."""
    out = dict(s)
    env_keys = {
        "magento_base_url": "MAGENTO_BASE_URL",
        "magento_access_token": "MAGENTO_ACCESS_TOKEN",
        "shopify_store": "SHOPIFY_STORE",
        "shopify_access_token": "SHOPIFY_ACCESS_TOKEN",
        "shopify_api_version": "SHOPIFY_API_VERSION",
    }
    for key, env in env_keys.items():
        out[key] = (str(out.get(key) or "") or os.getenv(env, "")).strip()
    if not out["shopify_api_version"]:
        out["shopify_api_version"] = "2024-01"
    if not out.get("additional_stores"):
        out["additional_stores"] = _env_json("ADDITIONAL_SHOPIFY_STORES", [])
    if not out.get("additional_store_tokens"):
        out["additional_store_tokens"] = _env_json("ADDITIONAL_SHOPIFY_TOKENS", {})
    return out


def website_ids(s: Dict) -> List[int]:
    return [int(x) for x in s.get("website_ids") or [1, 2]]
