from menusales.models import Product
from menusales.utils.product_resolver import MatchStrategy, ProductResolver


def _catalog():
    return [
        Product(id="p-capp", workspace_id="w", name="Cappuccino"),
        Product(id="p-flat", workspace_id="w", name="Flat White", pos_code="FW01"),
        Product(id="p-latte", workspace_id="w", name="Latte"),
        Product(id="p-iced", workspace_id="w", name="Iced Latte"),
        Product(id="p-tea", workspace_id="w", name="English Breakfast Tea"),
    ]


def test_ally_beats_exact_catalog_name():
    resolver = ProductResolver(_catalog(), allies={"cappuccino": "p-latte"})
    res = resolver.resolve("Cappuccino")
    assert res.strategy == MatchStrategy.ALLY
    assert res.product.id == "p-latte"


def test_ally_key_is_normalized():
    resolver = ProductResolver(_catalog(), allies={"flat white oat": "p-flat"})
    res = resolver.resolve("FLAT-WHITE (OAT)")
    assert res.strategy == MatchStrategy.ALLY
    assert res.product.id == "p-flat"


def test_ally_pointing_at_missing_product_is_ignored():
    resolver = ProductResolver(_catalog(), allies={"cappuccino": "gone"})
    res = resolver.resolve("Cappuccino")
    assert res.strategy == MatchStrategy.NAME
    assert res.product.id == "p-capp"


def test_manual_mapping_before_saved_and_catalog():
    resolver = ProductResolver(
        _catalog(),
        manual_mapping={"Latte": "p-capp"},
        saved_mappings={"Latte": "p-flat", "Mystery": "p-tea"},
    )
    assert resolver.resolve("Latte").strategy == MatchStrategy.MANUAL
    assert resolver.resolve("Latte").product.id == "p-capp"
    saved = resolver.resolve("Mystery")
    assert saved.strategy == MatchStrategy.SAVED
    assert saved.product.id == "p-tea"


def test_exact_name_is_case_and_space_insensitive():
    res = ProductResolver(_catalog()).resolve("  cappuccino ")
    assert res.strategy == MatchStrategy.NAME
    assert res.product.id == "p-capp"


def test_pos_code_match():
    res = ProductResolver(_catalog()).resolve("fw01")
    assert res.strategy == MatchStrategy.POS_CODE
    assert res.product.id == "p-flat"


def test_containment_prefers_longest_catalog_name():
    res = ProductResolver(_catalog()).resolve("Large Iced Latte")
    assert res.strategy == MatchStrategy.CONTAINS
    assert res.product.id == "p-iced"


def test_containment_does_not_use_pos_codes():
    res = ProductResolver(_catalog()).resolve("FW0")
    assert res.strategy == MatchStrategy.UNMATCHED


def test_unmatched_has_no_product():
    res = ProductResolver(_catalog()).resolve("Unknown Drink X")
    assert res.strategy == MatchStrategy.UNMATCHED
    assert res.product is None
    assert not res.matched


def test_from_db_scopes_catalog_to_workspace(db, make_product, make_ally):
    mine = make_product("Mocha", workspace_id="cafe-1")
    make_product("Mocha", workspace_id="cafe-2")
    other = make_product("Cortado", workspace_id="cafe-1")
    make_ally("MOCHA LARGE", other.id)

    resolver = ProductResolver.from_db(db, "cafe-1")
    assert resolver.resolve("Mocha").product.id == mine.id
    assert resolver.resolve("Mocha Large").strategy == MatchStrategy.ALLY
    assert {p.workspace_id for p in resolver.products} == {"cafe-1"}
