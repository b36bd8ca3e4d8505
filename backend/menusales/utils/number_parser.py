"""
Locale-tolerant parsing of display-formatted numbers from POS exports.

The same amount reaches us as "2.990,80", "2,990.80", "367,40", "2 990,80" or
"£2,990.80" depending on the till, the spreadsheet locale and whoever saved
the file. parse_number() turns all of them into a plain float.

parse_number() is total: it never raises and returns 0.0 for anything it
cannot interpret (None, "", "--", "n/a", ...).
"""
import math
import re
from numbers import Number
from typing import Any, Optional

# Currency codes are removed before whitespace so "GBP 12" does not become "GBP12"
_CURRENCY_CODES = re.compile(r"\b(GBP|USD|EUR|TRY|JPY|INR)\b", re.IGNORECASE)
_CURRENCY_SYMBOLS = re.compile(r"[£$€₺¥₹\s]")
_NOT_NUMERIC = re.compile(r"[^\d.,-]")
_LEADING_GROUP = re.compile(r"-?[1-9]\d{0,2}")


def _to_float(text: str) -> Optional[float]:
    try:
        value = float(text)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _finite(value: Any) -> float:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return 0.0
    return f if math.isfinite(f) else 0.0


def _is_short_fraction(tail: str) -> bool:
    return tail.isdigit() and 1 <= len(tail) <= 3


def _last_separator_is_decimal(text: str) -> Optional[float]:
    """Treat the last separator as decimal and strip every earlier one as grouping."""
    last = max(text.rfind(","), text.rfind("."))
    if last < 0:
        return _to_float(text)
    head = text[:last].replace(",", "").replace(".", "")
    return _to_float(f"{head}.{text[last + 1:]}")


def _single_kind_grouping(text: str, sep: str) -> Optional[float]:
    """'1,234,567' / '1.234.567': every group after the first has three digits."""
    groups = text.split(sep)
    if _LEADING_GROUP.fullmatch(groups[0]) and all(len(g) == 3 and g.isdigit() for g in groups[1:]):
        return _to_float("".join(groups))
    return None


def parse_number(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, Number):
        return _finite(value)

    text = str(value).strip()
    if not text:
        return 0.0

    text = _CURRENCY_CODES.sub("", text)
    text = _CURRENCY_SYMBOLS.sub("", text)
    if not text.strip("-"):
        return 0.0

    if "," not in text and "." not in text:
        direct = _to_float(text)
        if direct is not None:
            return direct
        return _last_resort(text)

    dots = text.count(".")
    commas = text.count(",")
    last_dot = text.rfind(".")
    last_comma = text.rfind(",")

    # 1. "2.990,80": dots group thousands, the single comma is the decimal mark
    if dots > 0 and commas == 1 and last_comma > last_dot:
        parsed = _to_float(text.replace(".", "").replace(",", "."))
        if parsed is not None:
            return parsed

    # 2. "367,40": lone comma with a short tail is a decimal mark.
    #    "1,200" (exactly three digits after a valid leading group) is grouping.
    if commas == 1 and dots == 0:
        head, tail = text.split(",")
        if _is_short_fraction(tail):
            if len(tail) == 3 and _LEADING_GROUP.fullmatch(head):
                parsed = _to_float(head + tail)
            else:
                parsed = _to_float(f"{head}.{tail}")
            if parsed is not None:
                return parsed

    # 3. "2,990.80": commas group thousands, the single dot is the decimal mark
    if commas > 0 and dots == 1 and last_dot > last_comma:
        parsed = _to_float(text.replace(",", ""))
        if parsed is not None:
            return parsed

    # 4. Several separators with no clear winner
    if commas > 0 and dots > 0:
        parsed = _last_separator_is_decimal(text)
        if parsed is not None:
            return parsed
    elif commas > 1 or dots > 1:
        sep = "," if commas > 1 else "."
        parsed = _single_kind_grouping(text, sep)
        if parsed is None:
            parsed = _last_separator_is_decimal(text)
        if parsed is not None:
            return parsed

    # 5. Single dot: short tail → decimal, otherwise thousands grouping
    if dots == 1 and commas == 0:
        tail = text[last_dot + 1:]
        if _is_short_fraction(tail):
            parsed = _to_float(text)
            if parsed is not None:
                return parsed
        parsed = _to_float(text.replace(".", ""))
        if parsed is not None:
            return parsed

    # 6. Single comma, same logic (short tails were handled by rule 2)
    if commas == 1 and dots == 0:
        parsed = _to_float(text.replace(",", ""))
        if parsed is not None:
            return parsed

    return _last_resort(text)


def _last_resort(text: str) -> float:
    """7. Keep digits, separators and minus only, then retry with the last separator as decimal."""
    cleaned = _NOT_NUMERIC.sub("", text)
    if not cleaned.strip("-.,"):
        return 0.0
    parsed = _last_separator_is_decimal(cleaned)
    if parsed is not None:
        return parsed
    parsed = _to_float(re.sub(r"[^\d-]", "", cleaned))
    return parsed if parsed is not None else 0.0
