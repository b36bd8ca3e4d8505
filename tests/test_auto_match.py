from menusales.models import Product
from menusales.utils.auto_match import (
    auto_match_products,
    filter_candidates,
    find_best_matches,
    is_addon,
    match_addon,
    match_grouping,
    resolve_alias,
    suggest_matches,
)


def _p(pid, name, **kwargs):
    return Product(id=pid, workspace_id="w", name=name, **kwargs)


CATALOG = [
    _p("capp", "Cappuccino"),
    _p("latte", "Latte"),
    _p("eb-tea", "English Breakfast Tea"),
    _p("steak", "Sirloin Minute Steak"),
    _p("coke330", "Coke / Diet / Zero (330ml)"),
    _p("peroni-pint", "Peroni Draft (Pint)"),
    _p("halloumi-x", "Halloumi (Extra)", is_extra=True),
    _p("bacon-x", "Bacon (Extra)", is_extra=True),
    _p("shot", "Extra Shot", is_extra=True),
    _p("alt-milk", "Alternative Milk (Oat/Almond/Soya)", is_extra=True),
    _p("syrup", "Syrup (Vanilla/Caramel/Hazelnut)", is_extra=True),
    _p("tonic", "Tonic Water"),
    _p("tapas-meat", "Meat (Tapas)"),
    _p("tapas-sea", "Seafood (Tapas)"),
    _p("tapas-gen", "Tapas (General)"),
    _p("mojito", "Mojito (Passion Fruit/Strawberry/Raspberry/Coconut)"),
    _p("flat", "Flat White", pos_code="fw01"),
]


# ─── rules ────────────────────────────────────────────────────────────────────

def test_addon_detection():
    assert is_addon("+ Extra Halloumi")
    assert is_addon("+Oat Milk")
    assert is_addon("+ Vanilla Syrup")
    assert is_addon("+ Tonic Water")
    assert not is_addon("Extra Hot Latte")


def test_extra_addons_resolve_within_addon_family():
    assert match_addon("+ Extra Hallom", CATALOG).id == "halloumi-x"
    assert match_addon("+ Extra Bacon", CATALOG).id == "bacon-x"
    assert match_addon("+ Extra Shot", CATALOG).id == "shot"


def test_milk_syrup_tonic_addons():
    assert match_addon("+ Oat Milk", CATALOG).id == "alt-milk"
    assert match_addon("+ Caramel Syrup", CATALOG).id == "syrup"
    assert match_addon("+ Tonic Water", CATALOG).id == "tonic"


def test_unknown_extra_is_unmatched_and_does_not_fall_through():
    assert match_addon("+ Extra Truffle Oil", CATALOG) is None
    result = auto_match_products(["+ Extra Truffle Oil"], CATALOG, threshold=0.0)
    assert result == {}


def test_tapas_grouping_by_keyword_bucket():
    assert match_grouping("TAPAS Chorizo al Vino", CATALOG).id == "tapas-meat"
    assert match_grouping("Tapas Gambas Pil Pil", CATALOG).id == "tapas-sea"
    assert match_grouping("Tapas Olives", CATALOG).id == "tapas-gen"
    # Vegetables parent is not in this catalog
    assert match_grouping("Tapas Patatas Bravas", CATALOG) is None
    assert match_grouping("Chorizo", CATALOG) is None


def test_alias_table():
    assert resolve_alias("DIET COKE 330 ml") == "Coke / Diet / Zero (330ml)"
    assert resolve_alias("diet coke 330ML") == "Coke / Diet / Zero (330ml)"
    assert resolve_alias("Something New") is None
    result = auto_match_products(["MOJITO STRAWBERRY", "DIET COKE 330 ml"], CATALOG)
    assert result["MOJITO STRAWBERRY"].product_id == "mojito"
    assert result["MOJITO STRAWBERRY"].reason == "alias"
    assert result["DIET COKE 330 ml"].product_id == "coke330"


# ─── candidate filtering + scoring ────────────────────────────────────────────

def test_tea_signal_is_token_based():
    teas = filter_candidates("Earl Grey Tea", CATALOG)
    assert [p.id for p in teas] == ["eb-tea"]
    # "steak" contains "tea" but is not tea
    assert "steak" in [p.id for p in filter_candidates("Minute Steak", CATALOG)]


def test_coffee_signal_restricts_candidates():
    ids = {p.id for p in filter_candidates("Large Latte", CATALOG)}
    assert ids == {"capp", "latte", "flat"}


def test_pos_code_boost_ranks_first():
    matches = find_best_matches("FW01", CATALOG)
    assert matches[0].product.id == "flat"
    assert matches[0].reason == "pos-code"
    assert matches[0].score >= 0.9


def test_find_best_matches_sorted_and_limited():
    matches = find_best_matches("Peroni Draft Pint", CATALOG, max_results=3)
    assert len(matches) <= 3
    assert matches[0].product.id == "peroni-pint"
    scores = [m.score for m in matches]
    assert scores == sorted(scores, reverse=True)
    assert all(m.score >= 0.3 for m in matches)


# ─── auto-match gate ──────────────────────────────────────────────────────────

def test_threshold_gate_never_assigns_below_threshold():
    names = ["Cappucino", "Lattee", "Flat Whte", "Zzz Unknown"]
    for threshold in (0.5, 0.8, 0.9, 0.99):
        result = auto_match_products(names, CATALOG, threshold=threshold)
        for match in result.values():
            if match.reason in ("similarity", "pos-code"):
                assert match.score >= threshold


def test_close_variant_accepted_at_interactive_threshold_only():
    name = "Sirloin Minute Steak Lrg"
    result = auto_match_products([name], CATALOG, threshold=0.8)
    assert result[name].product_id == "steak"
    assert result[name].reason == "similarity"
    assert 0.8 <= result[name].score < 0.95
    assert auto_match_products([name], CATALOG, threshold=0.95) == {}


def test_generic_names_never_auto_mapped():
    result = auto_match_products(["Misc Item 12", "Mixer Coke"], CATALOG, threshold=0.0)
    assert result == {}


def test_ally_wins_in_auto_match():
    result = auto_match_products(["Capp Lrg"], CATALOG, allies={"CAPP LRG": "capp"})
    assert result["Capp Lrg"].reason == "ally"
    assert result["Capp Lrg"].score == 1.0


def test_suggestions_put_rule_hit_first():
    suggestions = suggest_matches("+ Extra Bacon", CATALOG)
    assert suggestions[0].product.id == "bacon-x"
    assert suggestions[0].reason == "addon"
    assert len({s.product.id for s in suggestions}) == len(suggestions)
