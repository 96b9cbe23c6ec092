from __future__ import annotations
from typing import Iterable, NamedTuple, Optional, Sequence

from .models import AttributeCatalog, AttributeOption, TargetAttributeDef
from .normalize import normalize_key
from .similarity import similarity


DIRECT_MAPPINGS = {
    "title": "name",
    "description": "description",
    "vendor": "manufacturer",
    "vendorBrand": "brand",
    "productType": "product_type",
    "color": "color",
    "size": "size",
    "material": "material",
    "weight": "weight",
    "brand": "brand",
    "sku": "sku",
    "price": "price",
    # Vape catalog option names
    "Unit Per Pack": "unit_per_pack",
    "E-liquid flavor": "flavor",
    "Flavor": "flavor",
    "Resistance": "resistance",
}

OPTION_ACCEPT_THRESHOLD = 0.6
OPTION_BONUS_THRESHOLD = 0.8
OPTION_BONUS = 0.3
ATTRIBUTE_ACCEPT_THRESHOLD = 0.4


class AttributeMatch(NamedTuple):
    code: str
    value: str


NO_MATCH = AttributeMatch("", "")


def match_option_value(value: str, options: Optional[Sequence[AttributeOption]]) -> str:
    """Return the option value whose label is closest to ``value``, or "" below 0.6."""
    if not options or not value:
        return ""
    best_value = ""
    best_score = 0.0
    for opt in options:
        score = similarity(value, opt.label)
        if score > best_score:
            best_score = score
            best_value = opt.value
    return best_value if best_score > OPTION_ACCEPT_THRESHOLD else ""


def _value_for(attr: TargetAttributeDef, source_value: str) -> str:
    if attr.has_options:
        if not source_value:
            return ""
        return match_option_value(source_value, attr.options)
    return source_value


def _score(name_key: str, source_value: str, attr: TargetAttributeDef) -> float:
    score = similarity(name_key, normalize_key(attr.code))
    if attr.label:
        score = max(score, similarity(name_key, normalize_key(attr.label)))
    if source_value and attr.options:
        if any(similarity(opt.label, source_value) > OPTION_BONUS_THRESHOLD for opt in attr.options):
            score += OPTION_BONUS
    return score


def match_attribute(source_name: str, source_value: str, catalog: Iterable[TargetAttributeDef]) -> AttributeMatch:
    """Propose a target attribute (and option value) for one source field.

    Direct-table hits win outright; otherwise every attribute is scored by
    name/label similarity plus an option bonus, first-seen winning ties.
    """
    attributes = list(catalog)
    direct = DIRECT_MAPPINGS.get(source_name)
    if direct:
        for attr in attributes:
            if attr.code == direct:
                return AttributeMatch(attr.code, _value_for(attr, source_value))

    name_key = normalize_key(source_name)
    best: Optional[TargetAttributeDef] = None
    best_score = 0.0
    for attr in attributes:
        score = _score(name_key, source_value, attr)
        if score > best_score:
            best_score = score
            best = attr

    if best is None or best_score <= ATTRIBUTE_ACCEPT_THRESHOLD:
        return NO_MATCH
    return AttributeMatch(best.code, _value_for(best, source_value))


def resolve_value_for_attribute(source_value: str, attr: Optional[TargetAttributeDef]) -> str:
    """Value guess used when a mapping is re-targeted to ``attr`` by hand.

    Falls back to the raw source value when no option is close enough.
    """
    if attr is not None and attr.has_options:
        matched = match_option_value(source_value, attr.options)
        if matched:
            return matched
    return source_value


def option_label(attr: Optional[TargetAttributeDef], value: str) -> str:
    if attr is not None and attr.has_options:
        opt = attr.find_option(value)
        if opt is not None:
            return opt.label
    return value


def attribute_choices(catalog: AttributeCatalog) -> list:
    return [{"label": a.label or a.code, "value": a.code} for a in catalog]
