# easysplit/money.py
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

ZERO = Decimal("0")
CENT = Decimal("0.01")

CURRENCY_SYMBOLS = "$€£¥"
_NUMBER_RE = re.compile(r'-?(?:\d+(?:\.\d*)?|\.\d+)')
_COMMA_DECIMAL_RE = re.compile(r'\d{1,3}(?:\.\d{3})*,\d{1,2}')
_THOUSANDS_RE = re.compile(r'\d{1,3}(?:,\d{3})+(?:\.\d*)?')


def clean_number_string(num_str: str) -> str:
    """Strip surrounding whitespace, a trailing '%', a leading currency symbol and thousands separators.

    Anything else is left in place, so the result is only numeric when the input was.
    """
    if not isinstance(num_str, str): return ""
    cleaned = num_str.strip()
    if cleaned.endswith("%"): cleaned = cleaned[:-1].rstrip()
    negative = cleaned.startswith("-")
    if negative: cleaned = cleaned[1:].lstrip()
    if cleaned[:1] and cleaned[0] in CURRENCY_SYMBOLS: cleaned = cleaned[1:].lstrip()
    # "$-5" as well as "-$5"
    if not negative and cleaned.startswith("-"):
        negative, cleaned = True, cleaned[1:].lstrip()

    # Comma as decimal separator: "12,50" or "1.234,56"
    if _COMMA_DECIMAL_RE.fullmatch(cleaned):
        cleaned = cleaned.replace('.', '').replace(',', '.')
    elif _THOUSANDS_RE.fullmatch(cleaned):
        cleaned = cleaned.replace(',', '')
    return f"-{cleaned}" if negative else cleaned


def clean_and_convert_number(num_str: Union[str, int, float, Decimal, None]) -> Optional[Decimal]:
    """Clean and convert a user-entered or extracted amount to Decimal.

    Accepts plain numbers, currency-prefixed strings ("$12.50"), percentages
    ("8.5%") and the European "1.234,56" format. Returns None for anything else,
    so "1e2", "8-5" or "abc8.5" are rejected rather than read as some other number.
    Booleans are rejected even though they are ints.
    """
    if isinstance(num_str, bool): return None
    if isinstance(num_str, Decimal): return num_str if num_str.is_finite() else None
    if isinstance(num_str, int): return Decimal(num_str)
    if isinstance(num_str, float):
        # str() keeps the shortest repr, so 1.12 stays 1.12 instead of its binary expansion
        value = Decimal(str(num_str))
        return value if value.is_finite() else None
    if not isinstance(num_str, str): return None

    cleaned = clean_number_string(num_str)
    if not _NUMBER_RE.fullmatch(cleaned):
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def round_cents(value: Decimal) -> Decimal:
    """Round half-up to the cent."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(value: Union[Decimal, float, None], symbol: str = "$") -> str:
    if value is None:
        value = ZERO
    return f"{symbol}{round_cents(Decimal(str(value))):,.2f}"
