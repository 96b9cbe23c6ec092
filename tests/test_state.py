import pytest

from conftest import make_product, make_variant
from shopify_magento.models import AttributeOption, Mapping, Multi, Scalar, SourceField
from shopify_magento.state import (
    AppendOption,
    Cancel,
    MarkSubmitted,
    Phase,
    SessionContext,
    SetProductAttribute,
    SetProductValue,
    SetTarget,
    SetVariantAttribute,
    SetVariantValue,
    field_validation,
    init_session,
    reduce,
)


@pytest.fixture
def ctx(catalog, forest):
    return SessionContext(catalog, tuple(forest))


@pytest.fixture
def state(product, catalog, forest):
    return init_session(product, None, catalog, forest)


def test_initial_product_mappings(state):
    pm = state.product_mappings
    assert pm["manufacturer"] == Mapping("Acme", "manufacturer", Scalar("10"))
    assert pm["brand"] == Mapping("Acme", "brand", Scalar("20"))
    assert pm["description"].target_value == Scalar("<p>Tasty <b>disposable</b></p>")
    assert pm["category_ids"] == Mapping("Vape Kits", "category_ids", Multi(("4",)))
    assert pm["meta_title"].target_value == Scalar("Adjust MyFlavor 40K Puffs")
    assert "meta_keyword" not in pm
    assert state.phase == Phase.SELECTING_TARGET


def test_initial_variant_mappings_include_product_fields(state):
    a1 = state.variant_mappings["A-1"]
    assert a1["title"] == Mapping("Adjust MyFlavor 40K Puffs", "name", Scalar("Adjust MyFlavor 40K Puffs"))
    assert a1["Flavor"] == Mapping("Strawberry", "flavor", Scalar("40"))
    assert a1["manufacturer"] == state.product_mappings["manufacturer"]
    assert state.variant_mappings["A-3"]["Flavor"].target_value == Scalar("42")


def test_unmatched_field_keeps_source_value(catalog, forest):
    variant = make_variant("B-1", "Strawberry")
    variant.selected_options = [SourceField("Xyz", "Qqq")]
    s = init_session(make_product([variant]), None, catalog, forest)
    assert s.variant_mappings["B-1"]["Xyz"] == Mapping("Qqq", "", Scalar("Qqq"))


def test_select_without_close_option_stays_empty(catalog, forest):
    s = init_session(make_product([make_variant("B-1", "Banana Ice")]), None, catalog, forest)
    assert s.variant_mappings["B-1"]["Flavor"] == Mapping("Banana Ice", "flavor", Scalar(""))


def test_empty_target_sku_is_rejected(state, ctx):
    with pytest.raises(ValueError, match="SKU cannot be empty"):
        reduce(state, SetTarget("   "), ctx)
    assert state.target_sku == ""
    assert state.phase == Phase.SELECTING_TARGET


def test_new_target_defaults_to_handle(state, ctx):
    s = reduce(state, SetTarget("", is_new=True), ctx)
    assert s.target_sku == "adjust-myflavor-40k"
    assert s.is_new
    assert s.excluded == frozenset()
    assert s.phase == Phase.READY


def test_new_target_sku_is_truncated(catalog, forest, ctx):
    product = make_product()
    product.handle = "h" * 80
    s = reduce(init_session(product, None, catalog, forest), SetTarget("", is_new=True), ctx)
    assert s.target_sku == "h" * 64


def test_existing_children_are_filtered(catalog, forest, ctx):
    product = make_product([make_variant("A-1", "Strawberry"), make_variant("A-2", "Mango")])
    s = init_session(product, None, catalog, forest)
    s = reduce(s, SetTarget("CFG-1", False, ("A-1",)), ctx)
    assert [v.sku for v in s.visible_variants] == ["A-2"]
    assert s.phase == Phase.READY
    assert not s.all_imported


def test_all_variants_imported_only_allows_cancel(state, ctx):
    s = reduce(state, SetTarget("CFG-1", False, ("A-1", "A-2", "A-3")), ctx)
    assert s.all_imported
    assert s.phase == Phase.MAPPING
    with pytest.raises(ValueError, match="already imported"):
        reduce(s, SetProductValue("description", "x"), ctx)
    with pytest.raises(ValueError):
        reduce(s, MarkSubmitted(), ctx)
    assert reduce(s, Cancel(), ctx).phase == Phase.CANCELLED


def test_manufacturer_edit_mirrors_into_brand(state, ctx):
    s = reduce(state, SetProductValue("manufacturer", "11"), ctx)
    assert s.product_mappings["manufacturer"].target_value == Scalar("11")
    assert s.product_mappings["brand"].target_value == Scalar("21")
    for sku in ("A-1", "A-2", "A-3"):
        assert s.variant_mappings[sku]["brand"].target_value == Scalar("21")
        assert s.variant_mappings[sku]["manufacturer"].target_value == Scalar("11")


def test_vendor_is_an_alias_of_manufacturer(state, ctx):
    s = reduce(state, SetProductValue("vendor", "11"), ctx)
    assert s.product_mappings["manufacturer"].target_value == Scalar("11")
    assert s.product_mappings["brand"].target_value == Scalar("21")


def test_direct_brand_edit_survives_other_edits(state, ctx):
    s = reduce(state, SetProductValue("brand", "21"), ctx)
    s = reduce(s, SetProductValue("description", "<p>New</p>"), ctx)
    assert s.variant_mappings["A-2"]["brand"].target_value == Scalar("21")
    s = reduce(s, SetProductValue("manufacturer", "10"), ctx)
    assert s.product_mappings["brand"].target_value == Scalar("21")
    assert s.variant_mappings["A-1"]["description"].target_value == Scalar("<p>New</p>")


def test_product_attribute_change_resets_value(state, ctx):
    s = reduce(state, SetProductAttribute("manufacturer", "brand"), ctx)
    assert s.product_mappings["manufacturer"] == Mapping("Acme", "brand", Scalar("20"))
    with pytest.raises(ValueError, match="not found"):
        reduce(state, SetProductAttribute("manufacturer", "nope"), ctx)


def test_category_edit_is_multi(state, ctx):
    s = reduce(state, SetProductValue("category_ids", ["3", "4"]), ctx)
    assert s.variant_mappings["A-3"]["category_ids"].target_value == Multi(("3", "4"))


def test_product_edit_preserves_variant_keys(state, ctx):
    s = reduce(state, SetVariantValue("A-1", "Flavor", "41"), ctx)
    s = reduce(s, SetProductValue("manufacturer", "11"), ctx)
    assert s.variant_mappings["A-1"]["Flavor"].target_value == Scalar("41")
    assert s.variant_mappings["A-3"]["Flavor"].target_value == Scalar("42")


def test_variant_edits_are_isolated(state, ctx):
    s = reduce(state, SetVariantValue("A-1", "Flavor", "42"), ctx)
    assert s.variant_mappings["A-1"]["Flavor"].target_value == Scalar("42")
    assert s.variant_mappings["A-2"]["Flavor"].target_value == Scalar("41")
    assert state.variant_mappings["A-1"]["Flavor"].target_value == Scalar("40")


def test_variant_cannot_edit_product_fields(state, ctx):
    with pytest.raises(ValueError, match="product-level"):
        reduce(state, SetVariantValue("A-1", "manufacturer", "11"), ctx)
    with pytest.raises(ValueError, match="product-level"):
        reduce(state, SetVariantValue("A-1", "vendor", "11"), ctx)
    with pytest.raises(ValueError, match="Unknown variant SKU"):
        reduce(state, SetVariantValue("ZZ-9", "Flavor", "41"), ctx)
    with pytest.raises(ValueError, match="Unknown field"):
        reduce(state, SetVariantValue("A-1", "Size", "L"), ctx)


def test_variant_attribute_change_uses_source_value(state, ctx):
    s = reduce(state, SetVariantAttribute("A-1", "Flavor", "color"), ctx)
    assert s.variant_mappings["A-1"]["Flavor"] == Mapping("Strawberry", "color", Scalar("Strawberry"))


def test_appended_option_is_used_by_later_matches(state, ctx):
    s = reduce(state, AppendOption("color", AttributeOption("Strawberry", "32")), ctx)
    s = reduce(s, SetVariantAttribute("A-1", "Flavor", "color"), ctx)
    assert s.variant_mappings["A-1"]["Flavor"].target_value == Scalar("32")
    with pytest.raises(ValueError):
        reduce(s, AppendOption("name", AttributeOption("x", "1")), ctx)


def test_cancel_discards_mappings(state, ctx):
    s = reduce(state, Cancel(), ctx)
    assert s.phase == Phase.CANCELLED
    assert s.product_mappings == {}
    assert s.variant_mappings == {}
    with pytest.raises(ValueError, match="cancelled"):
        reduce(s, SetTarget("CFG-1"), ctx)


def test_mark_submitted_requires_ready(state, ctx):
    with pytest.raises(ValueError, match="not ready"):
        reduce(state, MarkSubmitted(), ctx)
    s = reduce(reduce(state, SetTarget("CFG-1"), ctx), MarkSubmitted(), ctx)
    assert s.phase == Phase.SUBMITTED
    with pytest.raises(ValueError):
        reduce(s, Cancel(), ctx)


def test_field_validation(state, ctx):
    s = reduce(state, SetVariantValue("A-2", "Flavor", ""), ctx)
    s = reduce(s, SetTarget("CFG-1", False, ("A-3",)), ctx)
    fv = field_validation(s)
    assert fv["product"]["manufacturer"] is True
    assert fv["A-1"] == {"title": True, "Flavor": True}
    assert fv["A-2"]["Flavor"] is False
    assert "A-3" not in fv
