from typing import Dict, List

import pytest

from shopify_magento.categories import build_category_forest
from shopify_magento.models import (
    AttributeCatalog,
    AttributeOption,
    SourceField,
    SourceImage,
    SourceProduct,
    SourceVariant,
    TargetAttributeDef,
)


RAW_CATEGORIES = [
    {"id": 1, "name": "Root Catalog", "level": 0, "path": "1", "parent_id": 0, "is_active": True, "position": 0},
    {"id": 2, "name": "Default Category", "level": 1, "path": "1/2", "parent_id": 1, "is_active": True, "position": 1},
    {"id": 3, "name": "Vaping", "level": 2, "path": "1/2/3", "parent_id": 2, "is_active": True, "position": 1},
    {"id": 4, "name": "Kits", "level": 3, "path": "1/2/3/4", "parent_id": 3, "is_active": True, "position": 1},
    {"id": 5, "name": "Accessories", "level": 2, "path": "1/2/5", "parent_id": 2, "is_active": True, "position": 2},
    {"id": 6, "name": "Hidden", "level": 2, "path": "1/2/6", "parent_id": 2, "is_active": False, "position": 3},
]


def make_catalog() -> AttributeCatalog:
    return AttributeCatalog(
        [
            TargetAttributeDef("name", "Product Name", "text"),
            TargetAttributeDef(
                "manufacturer",
                "Manufacturer",
                "select",
                options=[AttributeOption("Acme", "10"), AttributeOption("Vaporesso", "11")],
                attribute_id=83,
            ),
            TargetAttributeDef(
                "brand",
                "Brand",
                "select",
                options=[AttributeOption("Acme", "20"), AttributeOption("Vaporesso", "21")],
                attribute_id=84,
            ),
            TargetAttributeDef("description", "Description", "textarea"),
            TargetAttributeDef(
                "color",
                "Color",
                "select",
                options=[AttributeOption("Red", "30"), AttributeOption("Blue", "31")],
                attribute_id=93,
            ),
            TargetAttributeDef(
                "flavor",
                "Flavor",
                "select",
                options=[
                    AttributeOption("Strawberry", "40"),
                    AttributeOption("Mango", "41"),
                    AttributeOption("Mint", "42"),
                ],
                attribute_id=150,
            ),
            TargetAttributeDef("meta_title", "Meta Title", "text"),
            TargetAttributeDef("price", "Price", "text"),
        ]
    )


def make_variant(sku: str, flavor: str, qty: int = 5, cost: float = 0.0, image: SourceImage = None) -> SourceVariant:
    return SourceVariant(
        id=f"gid://shopify/ProductVariant/{sku}",
        sku=sku,
        title=flavor,
        price="19.99",
        selected_options=[SourceField("Flavor", flavor)],
        inventory_quantity=qty,
        inventory_cost=cost,
        image=image,
    )


def make_product(variants: List[SourceVariant] = None) -> SourceProduct:
    if variants is None:
        variants = [
            make_variant("A-1", "Strawberry", qty=5, cost=4.5,
                         image=SourceImage("img-2", "https://cdn.example.com/a-1.png", "Strawberry")),
            make_variant("A-2", "Mango", qty=0),
            make_variant("A-3", "Mint", qty=3),
        ]
    return SourceProduct(
        id="gid://shopify/Product/1",
        title="Adjust MyFlavor 40K Puffs",
        description="<p>Tasty <b>disposable</b></p>",
        vendor="Acme",
        product_type="Vape Kits",
        handle="adjust-myflavor-40k",
        tags=["vape", "disposable"],
        images=[
            SourceImage("img-1", "https://cdn.example.com/main.jpg", "Main"),
            SourceImage("img-2", "https://cdn.example.com/a-1.png", "Strawberry"),
        ],
        variants=variants,
    )


class FakeTarget:
    """In-memory stand-in for the Magento catalog."""

    def __init__(self, children=None, fail_variant=None, fail_configurable=False):
        self.children: Dict[str, List[str]] = children or {}
        self.fail_variant = fail_variant
        self.fail_configurable = fail_configurable
        self.calls: List[tuple] = []
        self.catalog = make_catalog()

    def fetch_attribute_catalog(self):
        return list(self.catalog)

    def fetch_category_forest(self):
        return build_category_forest(RAW_CATEGORIES)

    def fetch_existing_child_skus(self, configurable_sku):
        self.calls.append(("children", configurable_sku))
        return list(self.children.get(configurable_sku, []))

    def search_configurable_candidates(self, hint):
        self.calls.append(("search", hint))
        return [{"sku": "CFG-1", "name": "Adjust MyFlavor", "url_key": f"{hint}-40k"}]

    def create_option_value(self, attribute_code, label):
        self.calls.append(("option", attribute_code, label))
        return AttributeOption(label, "99")

    def submit_configurable_product(self, payload):
        self.calls.append(("configurable", payload["product"]["sku"]))
        if self.fail_configurable:
            raise RuntimeError("400: URL key for specified store already exists")
        return {"id": 1}

    def submit_variant(self, payload):
        sku = payload["product"]["sku"]
        self.calls.append(("variant", sku))
        if sku == self.fail_variant:
            raise RuntimeError("400: The value of attribute flavor must be set")
        return {"id": 2}

    def variant_calls(self) -> List[str]:
        return [c[1] for c in self.calls if c[0] == "variant"]


class FakeStores:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.submitted: List[str] = []

    def list_additional_stores(self):
        return [
            {"id": "1", "name": "Store One", "url": "https://one.myshopify.com"},
            {"id": "2", "name": "Store Two", "url": "https://two.myshopify.com"},
            {"id": "3", "name": "Store Three", "url": "https://three.myshopify.com"},
        ]

    def submit_to_additional_store(self, store_id, payload):
        self.submitted.append(store_id)
        if store_id in self.failing:
            raise RuntimeError(f"store {store_id} rejected the product")
        return f"gid://shopify/Product/{store_id}00"


@pytest.fixture
def catalog():
    return make_catalog()


@pytest.fixture
def forest():
    return build_category_forest(RAW_CATEGORIES)


@pytest.fixture
def product():
    return make_product()


@pytest.fixture
def target():
    return FakeTarget()
