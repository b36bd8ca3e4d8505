import pytest

from menusales.utils.similarity import (
    calculate_similarity,
    levenshtein_similarity,
    normalize_name,
    token_jaccard,
    tokenize_name,
)


@pytest.mark.parametrize("raw, expected", [
    ("DIET COKE 330 ml", "diet coke 330"),
    ("Coke / Diet / Zero (330ml)", "coke diet zero 330"),
    ("Break-Feast", "break feast"),
    ("Fish & Chips", "fish and chips"),
    ("  Peroni   Draft (Pint) ", "peroni draft pint"),
    ("Montepulciano D'Abruzzo (175ml)", "montepulciano d abruzzo 175"),
])
def test_normalize_name(raw, expected):
    assert normalize_name(raw) == expected


def test_tokenize_drops_stop_words():
    assert tokenize_name("the english breakfast with beans") == ["english", "breakfast", "beans"]


def test_levenshtein_edges():
    assert levenshtein_similarity("latte", "latte") == 1.0
    assert levenshtein_similarity("", "latte") == 0.0
    assert levenshtein_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


def test_token_jaccard():
    assert token_jaccard(["a", "b"], ["b", "c"]) == pytest.approx(1 / 3)
    assert token_jaccard([], ["a"]) == 0.0


@pytest.mark.parametrize("a, b", [
    ("Cappuccino", "Cappuccino"),
    ("Latte", "Iced Matcha Latte"),
    ("PERONI DRAFT PINT", "Peroni Draft (Pint)"),
    ("x", "Sauvignon Blanc, Cloud Factory (750ml)"),
    ("", "Espresso"),
    ("Tea", "Tea"),
    ("flat white", "Flat White (Oat)"),
])
def test_score_is_bounded(a, b):
    score = calculate_similarity(a, b)
    assert 0.0 <= score <= 1.0
    assert calculate_similarity(b, a) == pytest.approx(score)


@pytest.mark.parametrize("name", ["Cappuccino", "Coke / Diet / Zero (330ml)", "", "A & B"])
def test_identical_names_score_one(name):
    assert calculate_similarity(name, name) == 1.0


def test_names_equal_after_normalization_score_one():
    assert calculate_similarity("PERONI DRAFT (PINT)", "peroni draft pint") == 1.0


def test_containment_bonus_capped():
    # "latte" is contained in "latte xl": high base score plus bonus must stay <= 1
    assert calculate_similarity("latte", "latte xl") <= 1.0
    assert calculate_similarity("latte", "latte xl") > calculate_similarity("latte", "lattx xl")
