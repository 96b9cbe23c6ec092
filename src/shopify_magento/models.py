from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union


ENUMERATED_KINDS = ("select", "multiselect")


# --- Source (Shopify) side ---

@dataclass(frozen=True)
class SourceField:
    name: str
    value: str


@dataclass(frozen=True)
class SourceImage:
    id: str
    url: str
    alt_text: Optional[str] = None


@dataclass
class SourceVariant:
    id: str
    sku: str
    title: str = ""
    price: str = "0"
    selected_options: List[SourceField] = field(default_factory=list)
    inventory_quantity: int = 0
    inventory_cost: float = 0.0
    image: Optional[SourceImage] = None

    def source_fields(self) -> List[SourceField]:
        return list(self.selected_options)


@dataclass
class SourceProduct:
    id: str
    title: str
    description: str = ""
    vendor: str = ""
    product_type: str = ""
    handle: str = ""
    status: str = "ACTIVE"
    tags: List[str] = field(default_factory=list)
    images: List[SourceImage] = field(default_factory=list)
    variants: List[SourceVariant] = field(default_factory=list)


# --- Target (Magento) side ---

@dataclass(frozen=True)
class AttributeOption:
    label: str
    value: str


@dataclass
class TargetAttributeDef:
    code: str
    label: str = ""
    input_kind: str = "text"  # text|textarea|select|multiselect
    required: bool = False
    options: Optional[List[AttributeOption]] = None
    attribute_id: Optional[int] = None

    @property
    def has_options(self) -> bool:
        return self.input_kind in ENUMERATED_KINDS

    @property
    def is_multi(self) -> bool:
        return self.input_kind == "multiselect"

    def find_option(self, text: str) -> Optional[AttributeOption]:
        """Option whose value equals ``text`` or whose label matches it case-insensitively."""
        lowered = (text or "").lower()
        for opt in self.options or []:
            if opt.value == text or opt.label.lower() == lowered:
                return opt
        return None


class AttributeCatalog:
    """Session-owned, ordered attribute schema. Option lists only ever grow."""

    def __init__(self, attributes: Iterable[TargetAttributeDef] = ()):
        self._attributes: List[TargetAttributeDef] = []
        self._by_code: Dict[str, TargetAttributeDef] = {}
        for attr in attributes:
            self.add(attr)

    def add(self, attr: TargetAttributeDef) -> None:
        if attr.code in self._by_code:
            return
        self._attributes.append(attr)
        self._by_code[attr.code] = attr

    def get(self, code: str) -> Optional[TargetAttributeDef]:
        return self._by_code.get(code or "")

    def __contains__(self, code: object) -> bool:
        return code in self._by_code

    def __iter__(self) -> Iterator[TargetAttributeDef]:
        return iter(self._attributes)

    def __len__(self) -> int:
        return len(self._attributes)

    def append_option(self, code: str, option: AttributeOption) -> AttributeOption:
        attr = self._by_code.get(code)
        if attr is None:
            raise ValueError(f"Attribute {code} not found")
        if not attr.has_options:
            raise ValueError(f"Attribute {code} does not take options")
        if attr.options is None:
            attr.options = []
        for existing in attr.options:
            if existing.value == option.value:
                return existing
        attr.options.append(option)
        return option


@dataclass(frozen=True)
class CategoryNode:
    id: str
    label: str
    level: int
    parent_id: str
    path_labels: Tuple[str, ...]

    @property
    def full_path_label(self) -> str:
        return " / ".join(self.path_labels)


# --- Mappings ---

@dataclass(frozen=True)
class Scalar:
    text: str = ""

    def is_empty(self) -> bool:
        return not self.text.strip()

    def as_payload(self) -> str:
        return self.text


@dataclass(frozen=True)
class Multi:
    values: Tuple[str, ...] = ()

    def is_empty(self) -> bool:
        return not self.values

    def as_payload(self) -> List[str]:
        return list(self.values)


TargetValue = Union[Scalar, Multi]


def coerce_value(raw: Union[str, Sequence[str], TargetValue, None], multi: bool) -> TargetValue:
    """Shape a raw edit value as Scalar or Multi depending on the target attribute."""
    if isinstance(raw, (Scalar, Multi)):
        raw = raw.as_payload()
    if multi:
        if raw is None or raw == "":
            return Multi(())
        if isinstance(raw, str):
            return Multi((raw,))
        return Multi(tuple(str(v) for v in raw if str(v)))
    if raw is None:
        return Scalar("")
    if isinstance(raw, str):
        return Scalar(raw)
    values = [str(v) for v in raw]
    return Scalar(values[0] if values else "")


@dataclass(frozen=True)
class Mapping:
    source_value: str
    target_code: str = ""
    target_value: TargetValue = Scalar("")

    def to_dict(self) -> Dict:
        return {
            "source_value": self.source_value,
            "target_code": self.target_code,
            "target_value": self.target_value.as_payload(),
        }


MappingSet = Dict[str, Mapping]


class ValidationState(str, Enum):
    valid = "valid"
    warning = "warning"
    error = "error"
