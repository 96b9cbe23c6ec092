import pytest

from shopify_magento.similarity import similarity


@pytest.mark.parametrize("text", ["a", "Flavor", "Vaping / Kits", "ünïcödé"])
def test_identical_strings_score_one(text):
    assert similarity(text, text) == 1.0


def test_empty_strings():
    assert similarity("", "") == 1.0
    assert similarity("a", "") == 0.0
    assert similarity("", "abc") == 0.0


def test_case_insensitive():
    assert similarity("STRAWBERRY", "strawberry") == 1.0


def test_normalized_by_longest():
    assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


@pytest.mark.parametrize("a,b", [("color", "colour"), ("Mango", "Mint"), ("", "x"), ("brand", "manufacturer")])
def test_symmetric(a, b):
    assert similarity(a, b) == similarity(b, a)
