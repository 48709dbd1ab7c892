"""
Locale-tolerant number parsing for user-typed values.

Accepts both pt-BR ("1.234,56") and en-US ("1,234.56") notation: whichever
separator appears LAST is the decimal point, the other one is grouping.
"""
import math
import re


# Longest numeric prefix, the way a lenient float parse reads it ("12abc" -> 12)
_NUMERIC_PREFIX = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')


def parse_locale_number(value) -> float:
    """Parse a user-entered number, returning NaN when it can't be read.

    Never raises: a NaN result is the caller's cue to report a field error.
    """
    if value is None:
        return math.nan
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    if not text:
        return math.nan

    last_comma = text.rfind(',')
    last_dot = text.rfind('.')

    if last_comma > last_dot:
        # "1.234,56" -> "1234.56"
        text = text.replace('.', '')
        idx = text.rfind(',')
        text = text[:idx] + '.' + text[idx + 1:]
    elif last_dot > last_comma:
        # "1,234.56" -> "1234.56"
        text = text.replace(',', '')

    match = _NUMERIC_PREFIX.match(text)
    if not match:
        return math.nan
    try:
        return float(match.group(0))
    except ValueError:
        return math.nan


def is_valid_number(value) -> bool:
    """True if value parses to a finite number."""
    num = parse_locale_number(value)
    return not math.isnan(num) and not math.isinf(num)


def is_number(value) -> bool:
    """True for a real int/float that is not NaN (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)
