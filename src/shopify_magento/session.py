from __future__ import annotations
import logging
from typing import Callable, Dict, List, Optional, Sequence

from .categories import labels_for
from .importer import (
    AdditionalStores,
    PublishOutcome,
    SubmitOutcome,
    TargetCatalog,
    publish_to_stores,
    submit_import,
)
from .mapping import attribute_choices
from .models import AttributeCatalog, AttributeOption, CategoryNode, SourceProduct, SourceVariant
from .normalize import search_hint
from .state import (
    AppendOption,
    Cancel,
    Edit,
    MarkSubmitted,
    MappingState,
    Phase,
    SessionContext,
    SetTarget,
    field_validation,
    init_session,
    reduce,
)
from .transform import (
    ImageFetcher,
    PayloadOptions,
    build_configurable_payload,
    build_store_product_input,
    build_variant_payload,
)
from .validation import classify_set


logger = logging.getLogger(__name__)


class ImportSession:
    """One operator's migration of one Shopify product.

    Wraps the pure state reducer with the calls to the target catalog and
    the additional stores.
    """

    def __init__(
        self,
        product: SourceProduct,
        catalog: AttributeCatalog,
        forest: Sequence[CategoryNode],
        target: TargetCatalog,
        stores: Optional[AdditionalStores] = None,
        variants: Optional[Sequence[SourceVariant]] = None,
        payload_options: Optional[PayloadOptions] = None,
        variant_delay: float = 0.5,
        fetch_image: ImageFetcher = None,
    ):
        self.ctx = SessionContext(catalog, tuple(forest))
        self.target = target
        self.stores = stores
        self.payload_options = payload_options or PayloadOptions()
        self.variant_delay = variant_delay
        self.fetch_image = fetch_image
        self.state: MappingState = init_session(product, variants, catalog, forest)
        self.last_outcome: Optional[SubmitOutcome] = None

    @property
    def catalog(self) -> AttributeCatalog:
        return self.ctx.catalog

    @property
    def phase(self) -> Phase:
        return self.state.phase

    def apply(self, edit: Edit) -> MappingState:
        self.state = reduce(self.state, edit, self.ctx)
        return self.state

    apply_product_edit = apply
    apply_variant_edit = apply

    def candidates(self, hint: Optional[str] = None) -> List[Dict]:
        hint = hint if hint is not None else search_hint(self.state.product.title)
        return self.target.search_configurable_candidates(hint)

    def advance_target(self, sku: str = "", is_new: bool = False) -> MappingState:
        sku = (sku or "").strip()
        children: List[str] = []
        if not is_new:
            if not sku:
                raise ValueError("Invalid SKU: SKU cannot be empty")
            children = self.target.fetch_existing_child_skus(sku)
            logger.info("Target %s already has %d child product(s)", sku, len(children))
        return self.apply(SetTarget(sku, is_new, tuple(children)))

    def create_option(self, code: str, label: str) -> AttributeOption:
        attr = self.catalog.get(code)
        if attr is None:
            raise ValueError(f"Attribute {code} not found")
        if not attr.has_options:
            raise ValueError(f"Attribute {code} does not take options")
        option = self.target.create_option_value(code, label)
        self.apply(AppendOption(code, option))
        return option

    def build_payloads(self):
        state = self.state
        configurable = None
        if state.is_new:
            configurable = build_configurable_payload(state, self.catalog, self.payload_options, self.fetch_image)
        variants = [
            (v, build_variant_payload(state, v, self.payload_options, self.fetch_image))
            for v in state.visible_variants
        ]
        return configurable, variants

    def submit(self, progress: Optional[Callable[[int, int, SourceVariant], None]] = None) -> SubmitOutcome:
        if self.state.all_imported:
            raise ValueError("All variants are already imported; cancel the session")
        if self.state.phase != Phase.READY:
            raise ValueError("Choose a target SKU before submitting")
        configurable, variants = self.build_payloads()
        outcome = submit_import(
            self.target,
            self.state.target_sku,
            configurable,
            variants,
            delay=self.variant_delay,
            progress=progress,
        )
        self.last_outcome = outcome
        if outcome.ok:
            self.apply(MarkSubmitted())
        return outcome

    def publish(self, store_ids: Sequence[str]) -> PublishOutcome:
        if self.stores is None:
            raise ValueError("No additional stores configured")
        payload = build_store_product_input(self.state.product, self.state.visible_variants)
        return publish_to_stores(self.stores, store_ids, payload)

    def cancel(self) -> MappingState:
        return self.apply(Cancel())

    def field_validation(self) -> Dict[str, Dict[str, bool]]:
        return field_validation(self.state)

    def view(self) -> Dict:
        state = self.state
        product = state.product
        variants = []
        for v in state.visible_variants:
            mset = state.variant_mappings.get(v.sku, {})
            flags = classify_set(mset, self.catalog)
            variants.append(
                {
                    "sku": v.sku,
                    "title": v.title,
                    "mappings": {k: dict(m.to_dict(), validation=flags[k].value) for k, m in mset.items()},
                }
            )
        product_flags = classify_set(state.product_mappings, self.catalog)
        category = state.product_mappings.get("category_ids")
        return {
            "product": {"id": product.id, "title": product.title, "handle": product.handle},
            "phase": state.phase.value,
            "target_sku": state.target_sku,
            "is_new": state.is_new,
            "all_imported": state.all_imported,
            "excluded": sorted(state.excluded),
            "product_mappings": {
                k: dict(m.to_dict(), validation=product_flags[k].value) for k, m in state.product_mappings.items()
            },
            "category_labels": labels_for(self.ctx.forest, category.target_value.as_payload()) if category else [],
            "variants": variants,
            "field_validation": self.field_validation(),
            "attributes": attribute_choices(self.catalog),
        }
