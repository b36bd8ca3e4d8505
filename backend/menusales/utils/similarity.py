"""
String similarity between raw POS product names and catalog names.

calculate_similarity() blends a normalized edit-distance score with token
overlap and is bounded to [0, 1]; two names that normalize identically always
score 1.0.
"""
import re

STOP_WORDS = frozenset({
    "the", "and", "with", "w", "of", "ml",
    "glass", "bottle", "pint", "half", "shot",
    "classic", "kids", "set",
    "sourdough", "ciabatta", "nutella", "syrup", "cream", "peri",
})

_VOLUME = re.compile(r"(\d+(?:\.\d+)?)\s*(?:ml|cl|ltr|l|oz)\b")
_PUNCTUATION = re.compile(r"[^\w\s]|_")
_BARE_UNIT = re.compile(r"\b(?:ml|cl)\b")
_SPACES = re.compile(r"\s+")


def normalize_name(raw: str) -> str:
    """'DIET COKE 330 ml' → 'diet coke 330'; 'Break-Feast' → 'break feast'."""
    s = (raw or "").lower().strip()
    s = s.replace("&", " and ")
    s = _VOLUME.sub(r"\1", s)
    s = _PUNCTUATION.sub(" ", s)
    s = _BARE_UNIT.sub(" ", s)
    return _SPACES.sub(" ", s).strip()


def tokenize_name(normalized: str) -> list[str]:
    return [t for t in normalized.split(" ") if t and t not in STOP_WORDS]


def levenshtein_similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    # Single-row dynamic programming over b
    row = list(range(len(b) + 1))
    for i in range(1, len(a) + 1):
        diag = row[0]
        row[0] = i
        for j in range(1, len(b) + 1):
            above = row[j]
            if a[i - 1] == b[j - 1]:
                row[j] = diag
            else:
                row[j] = min(diag + 1, above + 1, row[j - 1] + 1)
            diag = above

    return 1.0 - row[len(b)] / max(len(a), len(b))


def token_jaccard(a_tokens: list[str], b_tokens: list[str]) -> float:
    a, b = set(a_tokens), set(b_tokens)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def calculate_similarity(first: str, second: str) -> float:
    n1 = normalize_name(first)
    n2 = normalize_name(second)
    if n1 == n2:
        return 1.0

    score = 0.6 * levenshtein_similarity(n1, n2) + 0.4 * token_jaccard(
        tokenize_name(n1), tokenize_name(n2)
    )
    # Small bonus when one name fully contains the other
    if n1 and n2 and (n1 in n2 or n2 in n1):
        score += 0.1
    return min(score, 1.0)
