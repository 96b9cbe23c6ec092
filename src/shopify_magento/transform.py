from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .images import product_gallery_entries, variant_gallery_entries
from .models import AttributeCatalog, Mapping, MappingSet, Multi, SourceProduct, SourceVariant
from .normalize import slugify_for_handle
from .state import MappingState


# Never offered as configurable (super) attributes
NON_CONFIGURABLE_CODES = (
    "manufacturer",
    "brand",
    "description",
    "name",
    "url_key",
    "price",
    "status",
    "visibility",
    "category_ids",
    "tax_class_id",
    "meta_keyword",
    "meta_title",
    "meta_description",
)

# Sent as top-level product fields, not custom_attributes
TOP_LEVEL_CODES = ("name", "sku", "price", "weight", "status", "visibility", "category_ids")

ImageFetcher = Optional[Callable[[str], Optional[str]]]


@dataclass
class PayloadOptions:
    attribute_set_id: int = 4
    website_ids: Tuple[int, ...] = (1, 2)
    configurable_website_ids: Tuple[int, ...] = (1,)
    tax_class_id: str = "2"


def _option_index(value: str):
    return int(value) if str(value).isdigit() else value


def _category_links(mset: MappingSet) -> List[Dict]:
    m = mset.get("category_ids")
    if m is None or not isinstance(m.target_value, Multi):
        return []
    links = []
    for cid in m.target_value.values:
        links.append({"position": 0, "category_id": str(cid)})
    return links


def _custom_attributes(mset: MappingSet) -> List[Dict]:
    out: List[Dict] = []
    seen = set()
    for _key, m in mset.items():
        code = m.target_code
        if not code or code in TOP_LEVEL_CODES or code in seen:
            continue
        if m.target_value.is_empty():
            continue
        seen.add(code)
        out.append({"attribute_code": code, "value": m.target_value.as_payload()})
    return out


def collect_configurable_attributes(state: MappingState, catalog: AttributeCatalog) -> List[Tuple[str, List[str]]]:
    """Option-backed attributes that differ per variant, with their values in first-seen order."""
    collected: Dict[str, List[str]] = {}
    for v in state.visible_variants:
        mset = state.variant_mappings.get(v.sku, {})
        for key, m in mset.items():
            if key in state.product_mappings or not m.target_code:
                continue
            if m.target_code in NON_CONFIGURABLE_CODES:
                continue
            attr = catalog.get(m.target_code)
            if attr is None:
                raise ValueError(f"Attribute {m.target_code} not found")
            if not attr.has_options or m.target_value.is_empty():
                continue
            values = collected.setdefault(attr.code, [])
            for val in m.target_value.as_payload() if isinstance(m.target_value, Multi) else [m.target_value.text]:
                if val not in values:
                    values.append(val)
    if not collected:
        raise ValueError(f"No configurable attributes found for {state.target_sku}")
    return list(collected.items())


def build_configurable_payload(
    state: MappingState,
    catalog: AttributeCatalog,
    options: Optional[PayloadOptions] = None,
    fetch_image: ImageFetcher = None,
) -> Dict:
    options = options or PayloadOptions()
    product = state.product
    product_set = state.product_mappings
    custom = [
        {"attribute_code": "url_key", "value": slugify_for_handle(product.handle or product.title)},
        {"attribute_code": "tax_class_id", "value": options.tax_class_id},
        {"attribute_code": "visibility", "value": "4"},
    ]
    custom.extend(_custom_attributes(product_set))
    payload = {
        "sku": state.target_sku,
        "name": product.title,
        "attribute_set_id": options.attribute_set_id,
        "type_id": "configurable",
        "price": 0,
        "status": 1,
        "visibility": 4,
        "weight": 0,
        "extension_attributes": {
            "stock_item": {"is_in_stock": True},
            "website_ids": list(options.configurable_website_ids),
            "category_links": _category_links(product_set),
        },
        "custom_attributes": custom,
        "media_gallery_entries": product_gallery_entries(product, fetch_image),
    }
    configurable_options = []
    for pos, (code, values) in enumerate(collect_configurable_attributes(state, catalog)):
        attr = catalog.get(code)
        configurable_options.append(
            {
                "attribute_code": code,
                "attribute_id": attr.attribute_id,
                "label": attr.label or code,
                "position": pos,
                "values": [{"value_index": _option_index(v)} for v in values],
            }
        )
    return {"product": payload, "options": configurable_options}


def variant_name(product: SourceProduct, variant: SourceVariant) -> str:
    if len(product.variants) > 1 and variant.title:
        return f"{product.title} - {variant.title}"
    return product.title


def _price(raw) -> float:
    try:
        return float(raw or 0)
    except (TypeError, ValueError):
        return 0.0


def build_variant_payload(
    state: MappingState,
    variant: SourceVariant,
    options: Optional[PayloadOptions] = None,
    fetch_image: ImageFetcher = None,
) -> Dict:
    options = options or PayloadOptions()
    sku = (variant.sku or "").strip()
    if not sku:
        raise ValueError("Invalid SKU: SKU cannot be empty")
    mset = state.variant_mappings.get(variant.sku, {})
    product = state.product
    custom = _custom_attributes(mset)
    if variant.inventory_cost and variant.inventory_cost > 0:
        custom.append({"attribute_code": "cost", "value": str(variant.inventory_cost)})
    custom.append({"attribute_code": "url_key", "value": slugify_for_handle(f"{product.handle}-{sku}")})
    qty = int(variant.inventory_quantity or 0)
    payload = {
        "sku": sku,
        "name": variant_name(product, variant),
        "attribute_set_id": options.attribute_set_id,
        "price": _price(variant.price),
        "status": 1,
        "visibility": 1,
        "type_id": "simple",
        "weight": 1.0,
        "extension_attributes": {
            "stock_item": {"qty": qty, "is_in_stock": qty > 0},
            "website_ids": list(options.website_ids),
            "category_links": _category_links(mset),
        },
        "custom_attributes": custom,
        "media_gallery_entries": variant_gallery_entries(variant, fetch_image),
    }
    return {"product": payload, "configurable_sku": state.target_sku}


def build_store_product_input(product: SourceProduct, variants: Optional[Sequence[SourceVariant]] = None) -> Dict:
    """ProductInput for the Shopify ``productCreate`` mutation on an additional store."""
    variants = list(product.variants if variants is None else variants)
    option_names: List[str] = []
    for v in variants:
        for sf in v.selected_options:
            if sf.name not in option_names:
                option_names.append(sf.name)
    out_variants = []
    for v in variants:
        values = {sf.name: sf.value for sf in v.selected_options}
        out_variants.append(
            {
                "sku": v.sku,
                "price": str(v.price or "0"),
                "options": [values.get(name, "") for name in option_names],
            }
        )
    return {
        "title": product.title,
        "descriptionHtml": product.description,
        "vendor": product.vendor,
        "productType": product.product_type,
        "tags": list(product.tags),
        "handle": product.handle,
        "options": option_names,
        "variants": out_variants,
    }


def describe_mapping(m: Mapping) -> str:
    value = m.target_value.as_payload()
    if isinstance(value, list):
        value = ", ".join(value)
    return f"{m.source_value!r} -> {m.target_code or '-'} = {value!r}"
