from __future__ import annotations
from typing import Dict, Optional

from .models import AttributeCatalog, Mapping, Multi, TargetAttributeDef, ValidationState
from .similarity import similarity


VALID_SIMILARITY = 0.8


def classify(mapping: Mapping, target_def: Optional[TargetAttributeDef]) -> ValidationState:
    """Attention hint for one mapping. Never used to gate submission."""
    value = mapping.target_value
    if value.is_empty():
        return ValidationState.error
    if isinstance(value, Multi):
        return ValidationState.valid
    # No option list loaded means free text
    if target_def is not None and target_def.has_options and target_def.options is not None:
        option = target_def.find_option(value.text)
        if option is None:
            return ValidationState.error
        if similarity(mapping.source_value, option.label) >= VALID_SIMILARITY:
            return ValidationState.valid
        return ValidationState.warning
    return ValidationState.valid


def classify_set(mappings: Dict[str, Mapping], catalog: AttributeCatalog) -> Dict[str, ValidationState]:
    return {name: classify(m, catalog.get(m.target_code)) for name, m in mappings.items()}
