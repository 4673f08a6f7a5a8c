import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENTS = Decimal("0.01")

# Currency words whose trailing dot would otherwise survive as a decimal point ("Rs.100").
_CURRENCY_PREFIX = re.compile(r"^\s*(?:rs\.?|inr|chf|usd|eur|gbp)\s*", re.IGNORECASE)
# "4,50" / "12,5": a lone comma followed by one or two digits is a decimal separator.
_DECIMAL_COMMA = re.compile(r"^[^\d,.-]*-?\d+,\d{1,2}[^\d,.]*$")
_NON_NUMERIC = re.compile(r"[^\d.\-]")


def parse_amount(value: Any) -> Decimal | None:
    """
    Parse an untrusted amount into a positive Decimal rounded to cents.

    Returns None for anything that is not a finite number greater than zero.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = _to_decimal(str(value))
    else:
        raw = _CURRENCY_PREFIX.sub("", str(value))
        if _DECIMAL_COMMA.match(raw):
            raw = raw.replace(",", ".")
        number = _to_decimal(_NON_NUMERIC.sub("", raw))

    if number is None or not number.is_finite():
        return None
    try:
        cents = number.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    # Positivity is checked after rounding so "0.004" cannot become a stored 0.00.
    return cents if cents > 0 else None


def _to_decimal(cleaned: str) -> Decimal | None:
    if not cleaned:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None
