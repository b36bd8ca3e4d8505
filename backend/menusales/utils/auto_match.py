"""
Best-effort matching of raw POS names that the ProductResolver left unmatched.

Only ever invoked explicitly (review suggestions, the auto-match endpoint,
scripts/auto_map_reports.py); the report processor never falls back to it.

Per raw name, in order:
  0. generic names ("misc item", "mixer") are never auto-mapped
  1. ally      global ally table (normalized raw name)
  2. addon     "+ Extra X", "+ Oat Milk", "+ Vanilla Syrup", "+ Tonic Water";
               a recognized add-on with no hit stays unmatched
  3. grouping  "tapas <detail>" → Meat / Seafood / Vegetables / General parent
  4. alias     curated raw-name → catalog-name table
  5. scoring   calculate_similarity() against category-filtered candidates,
               with a POS-code containment boost
Steps 1-4 are rule hits and score 1.0.
"""
import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from ..models.catalog import Product
from .similarity import calculate_similarity, normalize_name, tokenize_name

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 5
DEFAULT_MIN_SCORE = 0.3
ADDON_MIN_SCORE = 0.7
POS_CODE_SCORE = 0.9


@dataclass(frozen=True)
class MatchScore:
    product: Product
    score: float
    reason: str     # ally | pos-code | similarity | alias | addon | grouping


@dataclass(frozen=True)
class AutoMatch:
    product_id: str
    score: float
    reason: str


# =============================================================================
# Category signals
# =============================================================================

Signal = Callable[[str, list[str]], bool]


def _any_token(*words: str) -> Signal:
    return lambda norm, tokens: any(w in tokens for w in words)


def _contains(*parts: str) -> Signal:
    return lambda norm, tokens: any(p in norm for p in parts)


def _either(*signals: Signal) -> Signal:
    return lambda norm, tokens: any(s(norm, tokens) for s in signals)


# Ordered: the first signal that fires restricts candidates to its pattern
CATEGORY_SIGNALS: list[tuple[Signal, re.Pattern]] = [
    # Hot beverages
    (
        _either(
            _any_token("latte", "cappuccino", "espresso", "americano", "mocha",
                       "cortado", "macchiato", "frappuccino"),
            _contains("flat white"),
        ),
        re.compile(r"latte|cappuccino|espresso|americano|flat white|mocha|matcha|frappuccino|cortado"),
    ),
    # Tea (token match so "steak" is not tea)
    (_any_token("tea"), re.compile(r"\btea\b|earl grey|english")),
    # Breakfast plates
    (_contains("breakfast", "break feast"), re.compile(r"break|arty|american|medi|veggie|vegan")),
    # Kids menu
    (_contains("kids"), re.compile(r"kids")),
    (_contains("pide", "lahmacun"), re.compile(r"pide|lahmacun")),
    # Starters / tapas
    (lambda norm, tokens: bool(tokens) and tokens[0] == "tapas", re.compile(r"tapas|humus|nibbles")),
    # Shakes
    (_contains("milkshake", "smoothie", "frappuccino"), re.compile(r"milkshake|smoothie|frappuccino")),
    # Cocktails
    (
        _either(
            _any_token("martini", "mojito", "spritz", "sour", "bellini", "zombie",
                       "negroni", "daiquiri", "sangria", "mai", "tai"),
            _contains("pina colada"),
        ),
        re.compile(r"martini|mojito|spritz|sour|bellini|zombie|negroni|daiquiri|sangria|mai tai|pina colada"),
    ),
    # Wines and prosecco, including measure-only names ("... 175ml")
    (
        _either(
            _any_token("rioja", "malbec", "chardonnay", "merlot", "pinot", "verde",
                       "sauvignon", "prosecco", "gavi"),
            lambda norm, tokens: re.search(r"\b(125|175|750)\b", norm) is not None,
        ),
        re.compile(r"rioja|malbec|chardonnay|merlot|pinot|verde|sauvignon|prosecco|gavi|\b(175|750)\b"),
    ),
    # Beers
    (
        _any_token("peroni", "stella", "moretti", "estrella", "magners", "koppaberg"),
        re.compile(r"peroni|stella|moretti|estrella|magners|koppaberg|zero"),
    ),
    # Soft drinks
    (
        _any_token("coke", "sprite", "fanta", "water", "juice", "red", "bull",
                   "cordial", "soda", "tonic", "bitter"),
        re.compile(r"coke|sprite|fanta|water|juice|red bull|cordial|soda|tonic|bitter"),
    ),
]


def filter_candidates(raw_name: str, products: list[Product]) -> list[Product]:
    """Restrict scoring candidates by the first category signal found in the raw name."""
    if is_addon(raw_name):
        return products

    norm = normalize_name(raw_name)
    tokens = tokenize_name(norm)
    for signal, pattern in CATEGORY_SIGNALS:
        if signal(norm, tokens):
            return [p for p in products if pattern.search(normalize_name(p.name))]
    return products


# =============================================================================
# Structural add-ons
# =============================================================================

_EXTRA = re.compile(r"^\+\s*extra\s+(.+)$", re.IGNORECASE)
_MILK = re.compile(r"^\+\s*(oat|almond|soya|soy|coconut)s?\s+milk", re.IGNORECASE)
_SYRUP = re.compile(r"^\+\s*(vanilla|caramel|hazelnut)\s+syrup", re.IGNORECASE)
_TONIC = re.compile(r"^\+\s*tonic\s+water", re.IGNORECASE)

# POS shorthand → catalog wording
_EXTRA_CLEANUP = [
    (re.compile(r"w butter", re.IGNORECASE), "Toast"),
    (re.compile(r"hashbrown", re.IGNORECASE), "Hash Browns"),
    (re.compile(r"hallom", re.IGNORECASE), "Halloumi"),
]
_PARENTHETICAL = re.compile(r"\(.*?\)")


def is_addon(raw_name: str) -> bool:
    raw = (raw_name or "").strip()
    return any(p.match(raw) for p in (_EXTRA, _MILK, _SYRUP, _TONIC))


def _addon_family(products: list[Product]) -> list[Product]:
    return [p for p in products if p.is_extra or "extra" in normalize_name(p.name)]


def _first(products: list[Product], predicate: Callable[[str], bool]) -> Optional[Product]:
    # Add-on family first, then the whole catalog
    for pool in (_addon_family(products), products):
        for p in pool:
            if predicate(normalize_name(p.name)):
                return p
    return None


def _match_extra(base: str, products: list[Product]) -> Optional[Product]:
    for pattern, replacement in _EXTRA_CLEANUP:
        base = pattern.sub(replacement, base)
    base = " ".join(w.capitalize() for w in base.split())
    family = _addon_family(products)

    if normalize_name(base) == "shot":
        for p in family:
            if normalize_name(p.name) == "extra shot":
                return p

    guess = normalize_name(f"{base} (Extra)")
    for p in family:
        if normalize_name(p.name) == guess:
            return p

    best, best_score = None, 0.0
    for p in family:
        score = calculate_similarity(base, _PARENTHETICAL.sub("", p.name))
        if score > best_score:
            best, best_score = p, score
    return best if best is not None and best_score >= ADDON_MIN_SCORE else None


def match_addon(raw_name: str, products: list[Product]) -> Optional[Product]:
    raw = (raw_name or "").strip()
    m = _EXTRA.match(raw)
    if m:
        return _match_extra(m.group(1).strip(), products)
    if _MILK.match(raw):
        return _first(products, lambda n: "alternative milk" in n)
    if _SYRUP.match(raw):
        return _first(products, lambda n: "syrup" in n)
    if _TONIC.match(raw):
        return _first(products, lambda n: n == "tonic water")
    return None


# =============================================================================
# Grouping: tapas details roll up to a parent product
# =============================================================================

TAPAS_GROUPS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"meatball|pork|jamon|belly|sausage|ribs|chorizo"), "Meat (Tapas)"),
    (re.compile(r"prawn|gambas|oyster|scallop|seabass|fish|calamar"), "Seafood (Tapas)"),
    (re.compile(r"patatas|aubergine|pepper|veg|veggie|asparagus|potato|spinach|esparragos"), "Vegetables (Tapas)"),
]
TAPAS_DEFAULT = "Tapas (General)"


def match_grouping(raw_name: str, products: list[Product]) -> Optional[Product]:
    norm = normalize_name(raw_name)
    if not norm.startswith("tapas "):
        return None
    target = TAPAS_DEFAULT
    for pattern, label in TAPAS_GROUPS:
        if pattern.search(norm):
            target = label
            break
    return _by_normalized_name(products, target)


# =============================================================================
# Alias table
# =============================================================================

ALIAS_ENTRIES: list[tuple[str, str]] = [
    # Breakfast
    ("THE ENGLISH BREAKFAST", "The English"),
    ("FULL ARTYSANZ BREAKFAST", "Full Artysansz"),
    ("AMERICAN BREAKFAST", "American"),
    ("MEDITERRANEAN BREAKFAST", "Mediterranean"),
    ("VEGGIE BREAKFAST", "Veggie (V)"),
    ("VEGAN BREAKFAST", "Vegan (Vg)"),
    ("BREAK-FEAST", "Break-Feast"),
    # Jacket potato
    ("PLAIN JP", "Plain Jack Potato"),
    # Soft drinks / water
    ("DIET COKE 330 ml", "Coke / Diet / Zero (330ml)"),
    ("COKE ZERO 330 ml", "Coke / Diet / Zero (330ml)"),
    ("COKE 330 ml", "Coke / Diet / Zero (330ml)"),
    ("COKE 500 ml", "Coke / Diet / Zero (500ml)"),
    ("DIET COKE 500 ml", "Coke / Diet / Zero (500ml)"),
    ("SPRITE 330 ml", "Sprite (330ml)"),
    ("FANTA 330 ml", "Fanta (330ml)"),
    ("FANTA 500 ml", "Fanta (500ml)"),
    ("STILL WATER 330ml", "Still Water (330ml)"),
    ("STILL WATER 500ml", "Still Water (500ml)"),
    ("SPARKLING WATER 330ml", "Sparkling Water (330ml)"),
    ("SPARKLING WATER 500ml", "Sparkling Water (500ml)"),
    ("ORANGE JUICE", "Fresh Orange Juice"),
    ("APPLE JUICE", "Fresh Apple Juice"),
    # Beer
    ("PERONI DRAFT PINT", "Peroni Draft (Pint)"),
    ("PERONI DRAFT HALF", "Peroni Draft (Half pint)"),
    ("PERONI ZERO", "Peroni Zero (Bottle)"),
    ("CORONA", "Corona (Bottle)"),
    ("STELLA ARTOIS", "Stella Artois (Pint)"),
    # Prosecco
    ("PROSECCO DOC 125ml", "Prosecco, Le Dolci Colline (125ml)"),
    ("PROSECCO DOC Bottle", "Prosecco, Le Dolci Colline (750ml)"),
    ("PINK PROSECCO DOC 125ml", "Rose Prosecco, Lunetta (125ml)"),
    ("PINK PROSECCO DOC Bottle", "Rose Prosecco, Lunetta (750ml)"),
    # Wine
    ("PINOT GRIGIO 175ml", "Pinot Grigio, Mirabello (175ml)"),
    ("PINOT GRIGIO Bottle", "Pinot Grigio, Mirabello (750ml)"),
    ("CASAL MENDES ROSE GLASS 175ml", "Rose, Casal Mendes (175ml)"),
    ("SAUVIGNON BLANC GLASS 175ml", "Sauvignon Blanc, Cloud Factory (175ml)"),
    ("SAUVIGNON BLANC BOTTLE", "Sauvignon Blanc, Cloud Factory (750ml)"),
    ("MERLOT 175ml", "Merlot Reserva, Los Espinos (175ml)"),
    ("CHARDONNAY 175ml", "Chardonnay, Soldiers Block (175ml)"),
    ("MALBEC MENDOZA 175ml", "Malbec, Santuario (175ml)"),
    ("MALBEC MENDOZA Bottle", "Malbec, Santuario (750ml)"),
    ("MONTEPULCIANO 175ml", "Montepulciano D'Abruzzo (175ml)"),
    ("MONTEPULCIANO Bottle", "Montepulciano D'Abruzzo (750ml)"),
    ("PINOT NOIR 175ml", "Pinot Noir, Le Fou (175ml)"),
    ("PINOT NOIR Bottle", "Pinot Noir, Le Fou (750ml)"),
    ("GAVI DI GAVI GLASS", "Gavi Di Gavi (750ml)"),
    ("GAVI DI GAVI BOTTLE", "Gavi Di Gavi (750ml)"),
    ("PRIMITIVO 175ml", "Primitivo, Vallone Versante (175ml)"),
    ("PRIMITIVO Bottle", "Primitivo, Vallone Versante (750ml)"),
    ("Whispering Angel Provence 175ml", "Whispering Angel (175ml)"),
    ("Whispering Angel Provence Bottle", "Whispering Angel (750ml)"),
    ("Vinho Verde 175ml", "Vinho Verde, Casal Mendes (175ml)"),
    ("PINOT GRIGIO ROSE Glass", "Pinot Grigio Rose, Mirabello (175ml)"),
    ("PINOT GRIGIO ROSE Bottle", "Pinot Grigio Rose, Mirabello (750ml)"),
    # Spirits, measure variants
    ("CAPTAIN MORGAN SPICED 25ml", "Captain Morgan Spiced (35ml)"),
    ("HAVANA CLUB 7YRS 25ml", "Havana Club 7yrs (35ml)"),
    ("BOMBAY SAPPHIRE 25ml", "Bombay Sapphire (35ml)"),
    ("BOMBAY SAPPHIRE 50ml", "Bombay Sapphire (35ml)"),
    ("JACK DANIELS 50ml", "Jack Daniels (25ml)"),
    ("DON JULIO REPOSADO 50ml", "Don Julio Reposado (35ml)"),
    ("PATRON SILVER", "Patron Silver (35ml)"),
    ("GREY GOSE 25ml", "Grey Goose Vodka (35ml)"),
    # Cocktails
    ("LONG ISLAN ICED TEA", "Long Island Iced Tea"),
    ("MARGARITA CLASSIC", "Margarita (Classic/Passion Fruit/Strawberry)"),
    ("MARGARITA PASSION FRUIT", "Margarita (Classic/Passion Fruit/Strawberry)"),
    ("MOJITO PASSION FRUIT", "Mojito (Passion Fruit/Strawberry/Raspberry/Coconut)"),
    ("MOJITO STRAWBERRY", "Mojito (Passion Fruit/Strawberry/Raspberry/Coconut)"),
    ("MOJITO LYCEE", "Mojito (Passion Fruit/Strawberry/Raspberry/Coconut)"),
    ("VIRGIN MOJITO", "Virgin Mojito (Classic)"),
    ("PINA COLADA", "Frozen Pina Colada"),
    # Coffee & tea
    ("BLACK AMERICANO", "Americano (Single)"),
    ("WHITE AMERICANO", "Americano (Single)"),
    ("ICED MATCHA", "Iced Matcha Latte"),
    ("ICED CHAI LATTE", "Chai Latte"),
    # Brunch
    ("SMASHED AVOCADO", "Smashed Avocado (V)"),
    ("VEGAN WRAP", "Vegan Wrap (Vg)"),
    ("FLUFFY PANCAKES NUTELLA", "Fluffy Pancakes"),
    ("FLUFFY PANCAKES MAPLE SYRUP", "Fluffy Pancakes"),
    ("BELGIUM WAFFLES NUTELLLA", "Belgian Waffles"),
    ("BELGIUM WAFFLES MAPLE SYRUP", "Belgian Waffles"),
    ("GARLIC KING PRAWNS", "King Prawns"),
    ("MINUTE STEAK", "Sirloin Minute Steak"),
    ("GRANOLA", "Granola (Vg)"),
    ("KIDS BREAKFAST", "Kids Breakfast"),
    # Milkshakes
    ("KINDER BUENO MILKSHAKE WITH CREAM", "Kinder Bueno Milkshake"),
    ("CHOCOLATE MILKSHAKE WITH CREAM", "Chocolate Milkshake"),
    ("OREO MILKSHAKE WITH CREAM", "Oreo Milkshake"),
    # Pide & pizza
    ("VEGETARIANA PIDE", "Vegetarian Pide"),
    ("CAPRICCIOSA PIDE", "Capricciosa Pizza"),
]

ALIASES: dict[str, str] = {normalize_name(src): dst for src, dst in ALIAS_ENTRIES}


def resolve_alias(raw_name: str) -> Optional[str]:
    return ALIASES.get(normalize_name(raw_name))


def _by_normalized_name(products: list[Product], name: str) -> Optional[Product]:
    target = normalize_name(name)
    for p in products:
        if normalize_name(p.name) == target:
            return p
    return None


# =============================================================================
# Scoring
# =============================================================================

def _is_generic(raw_name: str) -> bool:
    norm = normalize_name(raw_name)
    return norm.startswith("misc item") or re.match(r"mixer\b", norm) is not None


def _normalized_allies(allies: Optional[dict[str, str]]) -> dict[str, str]:
    return {normalize_name(k): v for k, v in (allies or {}).items()}


def rule_match(
    raw_name: str,
    products: list[Product],
    allies: Optional[dict[str, str]] = None,
) -> Optional[MatchScore]:
    """Ally, add-on, grouping and alias rules in order. Returns a 1.0 MatchScore or None."""
    name = (raw_name or "").strip()
    if not name:
        return None

    ally_id = _normalized_allies(allies).get(normalize_name(name))
    if ally_id:
        for p in products:
            if p.id == ally_id:
                return MatchScore(p, 1.0, "ally")

    if is_addon(name):
        product = match_addon(name, products)
        return MatchScore(product, 1.0, "addon") if product is not None else None

    product = match_grouping(name, products)
    if product is not None:
        return MatchScore(product, 1.0, "grouping")

    target = resolve_alias(name)
    if target:
        product = _by_normalized_name(products, target)
        if product is not None:
            return MatchScore(product, 1.0, "alias")
    return None


def find_best_matches(
    raw_name: str,
    products: list[Product],
    max_results: int = DEFAULT_MAX_RESULTS,
    min_score: float = DEFAULT_MIN_SCORE,
) -> list[MatchScore]:
    sales_norm = normalize_name(raw_name)
    scores: list[MatchScore] = []
    for product in filter_candidates(raw_name, products):
        score = calculate_similarity(raw_name, product.name)
        reason = "similarity"

        pos = (product.pos_code or "").lower().strip()
        if pos and sales_norm and (pos in sales_norm or sales_norm in pos):
            score = max(score, POS_CODE_SCORE)
            reason = "pos-code"

        if score >= min_score:
            scores.append(MatchScore(product, score, reason))

    # Stable sort: equal scores keep candidate order, POS-code hits rank first
    scores.sort(key=lambda m: (-m.score, m.reason != "pos-code"))
    return scores[:max_results]


def suggest_matches(
    raw_name: str,
    products: list[Product],
    allies: Optional[dict[str, str]] = None,
    max_results: int = DEFAULT_MAX_RESULTS,
) -> list[MatchScore]:
    """Ranked candidates for the mapping review screen; a rule hit is always listed first."""
    suggestions: list[MatchScore] = []
    hit = rule_match(raw_name, products, allies)
    if hit is not None:
        suggestions.append(hit)
    for match in find_best_matches(raw_name, products, max_results=max_results):
        if hit is not None and match.product.id == hit.product.id:
            continue
        suggestions.append(match)
    return suggestions[:max_results]


def auto_match_products(
    names: Iterable[str],
    products: list[Product],
    threshold: float = 0.8,
    allies: Optional[dict[str, str]] = None,
) -> dict[str, AutoMatch]:
    """
    Map raw names to product ids where the top candidate scores >= threshold.
    Names that cannot be placed confidently are simply absent from the result.
    """
    result: dict[str, AutoMatch] = {}
    for raw_name in names:
        name = (raw_name or "").strip()
        if not name or _is_generic(name):
            continue

        hit = rule_match(name, products, allies)
        if hit is not None:
            result[raw_name] = AutoMatch(hit.product.id, hit.score, hit.reason)
            continue
        if is_addon(name):
            logger.debug("Add-on %r has no catalog counterpart", name)
            continue

        matches = find_best_matches(name, products, max_results=1)
        if matches and matches[0].score >= threshold:
            top = matches[0]
            result[raw_name] = AutoMatch(top.product.id, top.score, top.reason)

    logger.info(
        "Auto-matched %d name(s) at threshold %.2f", len(result), threshold,
    )
    return result
