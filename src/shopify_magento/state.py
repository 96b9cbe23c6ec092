"""
Multi-variant mapping workflow.

The session state is an immutable value; every operator action is an edit
object fed through ``reduce(state, edit, ctx)`` which returns a new state.
Effects (fetching child SKUs, creating options, submitting) live in
``session.ImportSession``.
"""
from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple, Union

from .categories import match_categories
from .mapping import match_attribute, option_label, resolve_value_for_attribute
from .models import (
    AttributeCatalog,
    AttributeOption,
    CategoryNode,
    Mapping,
    MappingSet,
    Multi,
    Scalar,
    SourceProduct,
    SourceVariant,
    TargetAttributeDef,
    coerce_value,
)
from .normalize import configurable_sku_from_handle, strip_html


PRODUCT_FIELDS = ("manufacturer", "brand", "description", "category_ids")
SEO_FIELDS = ("meta_title", "meta_keyword", "meta_description")
MULTI_FIELDS = ("category_ids",)
LINKED_FIELDS = {"manufacturer": ("brand",)}
FIELD_ALIASES = {"vendor": "manufacturer"}
META_DESCRIPTION_MAX = 255


class Phase(str, Enum):
    SELECTING_TARGET = "selecting_target"
    MAPPING = "mapping"
    READY = "ready"
    SUBMITTED = "submitted"
    CANCELLED = "cancelled"


TERMINAL_PHASES = (Phase.SUBMITTED, Phase.CANCELLED)


@dataclass(frozen=True)
class SessionContext:
    catalog: AttributeCatalog
    forest: Tuple[CategoryNode, ...] = ()


@dataclass(frozen=True)
class MappingState:
    product: SourceProduct
    all_variants: Tuple[SourceVariant, ...]
    product_mappings: MappingSet
    variant_mappings: Dict[str, MappingSet]
    phase: Phase = Phase.SELECTING_TARGET
    target_sku: str = ""
    is_new: bool = False
    excluded: FrozenSet[str] = frozenset()
    unlinked: FrozenSet[str] = frozenset()

    @property
    def visible_variants(self) -> List[SourceVariant]:
        return [v for v in self.all_variants if v.sku not in self.excluded]

    @property
    def all_imported(self) -> bool:
        return bool(self.all_variants) and not self.visible_variants

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


# --- Edits ---

@dataclass(frozen=True)
class SetProductAttribute:
    field: str
    code: str


@dataclass(frozen=True)
class SetProductValue:
    field: str
    value: Union[str, Sequence[str]]
    label: Optional[str] = None


@dataclass(frozen=True)
class SetVariantAttribute:
    sku: str
    field: str
    code: str


@dataclass(frozen=True)
class SetVariantValue:
    sku: str
    field: str
    value: Union[str, Sequence[str]]


@dataclass(frozen=True)
class SetTarget:
    sku: str
    is_new: bool = False
    existing_child_skus: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AppendOption:
    code: str
    option: AttributeOption


@dataclass(frozen=True)
class Cancel:
    pass


@dataclass(frozen=True)
class MarkSubmitted:
    pass


Edit = Union[
    SetProductAttribute,
    SetProductValue,
    SetVariantAttribute,
    SetVariantValue,
    SetTarget,
    AppendOption,
    Cancel,
    MarkSubmitted,
]


# --- Initial state ---

def _is_multi(field_name: str, attr: Optional[TargetAttributeDef]) -> bool:
    return field_name in MULTI_FIELDS or (attr is not None and attr.is_multi)


def _product_mapping(field_name: str, source_value: str, catalog: AttributeCatalog) -> Mapping:
    attr = catalog.get(field_name)
    code = field_name if attr is not None else ""
    value = resolve_value_for_attribute(source_value, attr)
    return Mapping(source_value, code, coerce_value(value, _is_multi(field_name, attr)))


def build_product_mappings(product: SourceProduct, ctx: SessionContext) -> MappingSet:
    catalog = ctx.catalog
    out: MappingSet = {
        "manufacturer": _product_mapping("manufacturer", product.vendor, catalog),
        "brand": _product_mapping("brand", product.vendor, catalog),
        "description": _product_mapping("description", product.description, catalog),
        "category_ids": Mapping(
            product.product_type,
            "category_ids",
            Multi(tuple(match_categories(product.product_type, ctx.forest))),
        ),
    }
    seo_sources = {
        "meta_title": product.title,
        "meta_keyword": ", ".join(product.tags),
        "meta_description": strip_html(product.description)[:META_DESCRIPTION_MAX],
    }
    for code in SEO_FIELDS:
        if code in catalog:
            out[code] = _product_mapping(code, seo_sources[code], catalog)
    return out


def build_variant_mappings(product: SourceProduct, variant: SourceVariant, ctx: SessionContext) -> MappingSet:
    out: MappingSet = {
        "title": Mapping(product.title, "name", Scalar(product.title)),
    }
    for sf in variant.source_fields():
        match = match_attribute(sf.name, sf.value, ctx.catalog)
        attr = ctx.catalog.get(match.code)
        # Option-backed attributes only ever hold option values; no close option leaves them empty
        value = match.value if attr is not None and attr.has_options else match.value or sf.value
        out[sf.name] = Mapping(sf.value, match.code, coerce_value(value, _is_multi(sf.name, attr)))
    return out


def _fan_out(product_mappings: MappingSet, variant_mappings: Dict[str, MappingSet]) -> Dict[str, MappingSet]:
    out: Dict[str, MappingSet] = {}
    for sku, mset in variant_mappings.items():
        merged = {k: m for k, m in mset.items() if k not in product_mappings}
        merged.update(product_mappings)
        out[sku] = merged
    return out


def _settle(state: MappingState) -> MappingState:
    if state.is_terminal:
        return state
    if not state.target_sku:
        phase = Phase.SELECTING_TARGET
    elif state.visible_variants:
        phase = Phase.READY
    else:
        phase = Phase.MAPPING
    if phase == state.phase:
        return state
    return replace(state, phase=phase)


def init_session(
    product: SourceProduct,
    variants: Optional[Sequence[SourceVariant]],
    catalog: AttributeCatalog,
    forest: Sequence[CategoryNode] = (),
) -> MappingState:
    ctx = SessionContext(catalog, tuple(forest))
    all_variants = tuple(product.variants if variants is None else variants)
    product_mappings = build_product_mappings(product, ctx)
    variant_mappings = {v.sku: build_variant_mappings(product, v, ctx) for v in all_variants}
    return MappingState(
        product=product,
        all_variants=all_variants,
        product_mappings=product_mappings,
        variant_mappings=_fan_out(product_mappings, variant_mappings),
    )


# --- Reduction ---

def _product_field(state: MappingState, name: str) -> str:
    key = FIELD_ALIASES.get(name, name)
    if key not in state.product_mappings:
        raise ValueError(f"Unknown product field: {name}")
    return key


def _variant_set(state: MappingState, sku: str, name: str) -> MappingSet:
    if sku not in state.variant_mappings:
        raise ValueError(f"Unknown variant SKU: {sku}")
    if name in state.product_mappings or FIELD_ALIASES.get(name) in state.product_mappings:
        raise ValueError(f"{name} is a product-level field and must be edited on the product")
    mset = state.variant_mappings[sku]
    if name not in mset:
        raise ValueError(f"Unknown field {name} for variant {sku}")
    return mset


def _retarget(mapping: Mapping, field_name: str, code: str, catalog: AttributeCatalog) -> Mapping:
    attr = catalog.get(code)
    if code and attr is None and field_name not in MULTI_FIELDS:
        raise ValueError(f"Attribute {code} not found")
    value = resolve_value_for_attribute(mapping.source_value, attr)
    return Mapping(mapping.source_value, code, coerce_value(value, _is_multi(field_name, attr)))


def _revalue(mapping: Mapping, field_name: str, value, catalog: AttributeCatalog) -> Mapping:
    attr = catalog.get(mapping.target_code)
    return replace(mapping, target_value=coerce_value(value, _is_multi(field_name, attr)))


def _mirror(mappings: MappingSet, source_key: str, label: Optional[str], unlinked: FrozenSet[str], catalog: AttributeCatalog) -> None:
    src = mappings[source_key]
    if isinstance(src.target_value, Multi):
        text = src.target_value.values[0] if src.target_value.values else ""
    else:
        text = src.target_value.text
    if label is None:
        label = option_label(catalog.get(src.target_code), text)
    for linked in LINKED_FIELDS.get(source_key, ()):
        if linked in unlinked or linked not in mappings:
            continue
        dst = mappings[linked]
        attr = catalog.get(dst.target_code)
        value = resolve_value_for_attribute(label, attr) if label else ""
        mappings[linked] = replace(dst, target_value=coerce_value(value, _is_multi(linked, attr)))


def _apply_product(state: MappingState, edit, ctx: SessionContext) -> MappingState:
    key = _product_field(state, edit.field)
    mappings = dict(state.product_mappings)
    unlinked = state.unlinked
    label = None
    if isinstance(edit, SetProductAttribute):
        mappings[key] = _retarget(mappings[key], key, edit.code, ctx.catalog)
    else:
        mappings[key] = _revalue(mappings[key], key, edit.value, ctx.catalog)
        label = edit.label
    if any(key in linked for linked in LINKED_FIELDS.values()):
        unlinked = unlinked | {key}
    if key in LINKED_FIELDS:
        _mirror(mappings, key, label, unlinked, ctx.catalog)
    return replace(
        state,
        product_mappings=mappings,
        variant_mappings=_fan_out(mappings, state.variant_mappings),
        unlinked=unlinked,
    )


def _apply_variant(state: MappingState, edit, ctx: SessionContext) -> MappingState:
    mset = dict(_variant_set(state, edit.sku, edit.field))
    if isinstance(edit, SetVariantAttribute):
        mset[edit.field] = _retarget(mset[edit.field], edit.field, edit.code, ctx.catalog)
    else:
        mset[edit.field] = _revalue(mset[edit.field], edit.field, edit.value, ctx.catalog)
    variant_mappings = dict(state.variant_mappings)
    variant_mappings[edit.sku] = mset
    return replace(state, variant_mappings=variant_mappings)


def _apply_target(state: MappingState, edit: SetTarget) -> MappingState:
    sku = (edit.sku or "").strip()
    if not sku and edit.is_new:
        sku = configurable_sku_from_handle(state.product.handle)
    if not sku:
        raise ValueError("Invalid SKU: SKU cannot be empty")
    excluded = frozenset() if edit.is_new else frozenset(s for s in edit.existing_child_skus if s)
    return replace(state, target_sku=sku, is_new=edit.is_new, excluded=excluded)


def reduce(state: MappingState, edit: Edit, ctx: SessionContext) -> MappingState:
    """Apply one edit and return the next state. Invalid edits raise ValueError."""
    if state.is_terminal:
        raise ValueError(f"Session is {state.phase.value}; no further changes allowed")
    if state.all_imported and not isinstance(edit, Cancel):
        raise ValueError("All variants are already imported; cancel the session")

    if isinstance(edit, (SetProductAttribute, SetProductValue)):
        nxt = _apply_product(state, edit, ctx)
    elif isinstance(edit, (SetVariantAttribute, SetVariantValue)):
        nxt = _apply_variant(state, edit, ctx)
    elif isinstance(edit, SetTarget):
        nxt = _apply_target(state, edit)
    elif isinstance(edit, AppendOption):
        # The catalog is session-owned; appended options become visible to every later match.
        ctx.catalog.append_option(edit.code, edit.option)
        nxt = state
    elif isinstance(edit, Cancel):
        return replace(state, phase=Phase.CANCELLED, product_mappings={}, variant_mappings={})
    elif isinstance(edit, MarkSubmitted):
        if state.phase != Phase.READY:
            raise ValueError("Session is not ready for submission")
        return replace(state, phase=Phase.SUBMITTED)
    else:
        raise ValueError(f"Unsupported edit: {type(edit).__name__}")
    return _settle(nxt)


def field_validation(state: MappingState) -> Dict[str, Dict[str, bool]]:
    """Per-field completeness: both a target code and a non-empty value are set."""
    out: Dict[str, Dict[str, bool]] = {
        "product": {k: bool(m.target_code) and not m.target_value.is_empty() for k, m in state.product_mappings.items()}
    }
    for v in state.visible_variants:
        mset = state.variant_mappings.get(v.sku, {})
        out[v.sku] = {
            k: bool(m.target_code) and not m.target_value.is_empty()
            for k, m in mset.items()
            if k not in state.product_mappings
        }
    return out
