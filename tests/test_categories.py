from shopify_magento.categories import build_category_forest, labels_for, match_categories, search_categories
from shopify_magento.models import CategoryNode


def test_forest_drops_root_default_and_inactive(forest):
    assert [n.id for n in forest] == ["3", "5", "4"]
    kits = forest[2]
    assert kits.path_labels == ("Vaping", "Kits")
    assert kits.full_path_label == "Vaping / Kits"
    assert kits.label == "Kits"
    assert kits.level == 2
    assert all(n.level == len(n.path_labels) for n in forest)


def test_forest_without_default_root():
    raw = [
        {"id": 10, "name": "Shop", "level": 1, "path": "1/10", "is_active": True, "position": 1},
        {"id": 11, "name": "Pods", "level": 2, "path": "1/10/11", "is_active": True, "position": 1},
    ]
    forest = build_category_forest(raw)
    assert [n.full_path_label for n in forest] == ["Shop", "Shop / Pods"]


def test_vape_kits_matches_only_kits(forest):
    assert match_categories("Vape Kits", forest) == ["4"]


def test_results_ordered_by_score(forest):
    # "Vaping" scores 1.0, "Vaping / Kits" 0.5
    assert match_categories("Vaping", forest) == ["3", "4"]


def test_empty_product_type(forest):
    assert match_categories("", forest) == []
    assert match_categories("  /  ", forest) == []


def test_scores_at_or_below_threshold_are_dropped():
    forest = [
        CategoryNode("1", "Juice / Salt / Nic", 3, "", ("Juice", "Salt", "Nic")),
        CategoryNode("2", "Coils / Mesh", 2, "", ("Coils", "Mesh")),
        CategoryNode("3", "Liquids / Nic / Free / Salt", 4, "", ("Liquids", "Nic", "Free", "Salt")),
    ]
    # 1/3 passes, 1/4 does not
    assert match_categories("salt", forest) == ["1"]


def test_bidirectional_containment(forest):
    assert match_categories("Accessories", forest) == ["5"]
    assert match_categories("kit", forest) == ["4"]


def test_search_categories(forest):
    assert [n.id for n in search_categories(forest, "kits")] == ["4"]
    assert [n.id for n in search_categories(forest)] == ["5", "3", "4"]


def test_labels_for(forest):
    assert labels_for(forest, ["4", "99"]) == ["Vaping / Kits", "99"]
