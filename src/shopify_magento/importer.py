from __future__ import annotations
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .models import AttributeOption, CategoryNode, SourceVariant, TargetAttributeDef


logger = logging.getLogger(__name__)


class TargetCatalog(Protocol):
    def fetch_attribute_catalog(self) -> List[TargetAttributeDef]: ...

    def fetch_category_forest(self) -> List[CategoryNode]: ...

    def fetch_existing_child_skus(self, configurable_sku: str) -> List[str]: ...

    def search_configurable_candidates(self, hint: str) -> List[Dict]: ...

    def create_option_value(self, attribute_code: str, label: str) -> AttributeOption: ...

    def submit_configurable_product(self, payload: Dict) -> Dict: ...

    def submit_variant(self, payload: Dict) -> Dict: ...


class AdditionalStores(Protocol):
    def list_additional_stores(self) -> List[Dict]: ...

    def submit_to_additional_store(self, store_id: str, payload: Dict) -> str: ...


@dataclass
class SubmitOutcome:
    ok: bool
    message: str
    configurable_sku: str
    configurable_created: bool = False
    imported: List[str] = field(default_factory=list)
    failed_sku: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class StoreOutcome:
    store_id: str
    store_name: str
    success: bool
    product_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class PublishOutcome:
    results: List[StoreOutcome]

    @property
    def summary(self) -> Dict[str, int]:
        ok = sum(1 for r in self.results if r.success)
        return {"total": len(self.results), "successful": ok, "failed": len(self.results) - ok}

    def to_dict(self) -> Dict:
        return {"results": [asdict(r) for r in self.results], "summary": self.summary}


def submit_import(
    target: TargetCatalog,
    configurable_sku: str,
    configurable_payload: Optional[Dict],
    variant_payloads: Sequence[Tuple[SourceVariant, Dict]],
    delay: float = 0.0,
    progress: Optional[Callable[[int, int, SourceVariant], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> SubmitOutcome:
    """Create the configurable product (when given) then import variants one at a time.

    Stops at the first failure. Variants already imported stay imported.
    """
    created = False
    if configurable_payload is not None:
        logger.info("Creating configurable product %s", configurable_sku)
        try:
            target.submit_configurable_product(configurable_payload)
        except Exception as e:
            logger.error("Failed to create configurable product %s: %s", configurable_sku, e)
            return SubmitOutcome(
                ok=False,
                message=f"Failed to create configurable product {configurable_sku}: {e}",
                configurable_sku=configurable_sku,
            )
        created = True

    imported: List[str] = []
    total = len(variant_payloads)
    for idx, (variant, payload) in enumerate(variant_payloads, start=1):
        if idx > 1 and delay > 0:
            sleep(delay)
        logger.info("Importing variant %d/%d: %s", idx, total, variant.sku)
        try:
            target.submit_variant(payload)
        except Exception as e:
            logger.error("Variant %s failed: %s", variant.sku, e)
            return SubmitOutcome(
                ok=False,
                message=f"Failed to import variant {variant.title} ({variant.sku}): {e}",
                configurable_sku=configurable_sku,
                configurable_created=created,
                imported=imported,
                failed_sku=variant.sku,
            )
        imported.append(variant.sku)
        if progress is not None:
            progress(idx, total, variant)

    return SubmitOutcome(
        ok=True,
        message=f"Imported {len(imported)} variant(s) into {configurable_sku}",
        configurable_sku=configurable_sku,
        configurable_created=created,
        imported=imported,
    )


def publish_to_stores(stores: AdditionalStores, store_ids: Sequence[str], payload: Dict, max_workers: int = 8) -> PublishOutcome:
    """Create the product in every selected store concurrently; one outcome per store."""
    known = {str(s.get("id")): s for s in stores.list_additional_stores()}
    selected = [known[sid] for sid in (str(x) for x in store_ids) if sid in known]
    if not selected:
        raise ValueError("No valid stores selected for import")

    def _one(store: Dict) -> StoreOutcome:
        sid = str(store.get("id"))
        name = str(store.get("name") or sid)
        try:
            product_id = stores.submit_to_additional_store(sid, payload)
        except Exception as e:
            logger.error("Store %s failed: %s", name, e)
            return StoreOutcome(sid, name, False, error=str(e))
        logger.info("Store %s created product %s", name, product_id)
        return StoreOutcome(sid, name, True, product_id=str(product_id))

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(selected)))) as pool:
        results = list(pool.map(_one, selected))
    return PublishOutcome(results)
