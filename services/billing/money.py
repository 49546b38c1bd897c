"""Locale-stable money formatting.

Amounts are always grouped with ',' and use '.' as the decimal point, with
exactly two decimals, regardless of the process locale. On-screen totals and
rendered documents both go through format_money so they never disagree.
"""

from decimal import (
    MAX_EMAX,
    MIN_EMIN,
    ROUND_HALF_UP,
    Context,
    Decimal,
    InvalidOperation,
    getcontext,
    localcontext,
)
from typing import Any

ZERO = Decimal("0")
CENTS = Decimal("0.01")

DEFAULT_CURRENCY_SYMBOL = "₦"


def to_decimal(value: Any) -> Decimal:
    """Coerce a loosely-typed numeric value to Decimal.

    Accepts Decimal, int, float and numeric strings (surrounding whitespace
    and thousands separators are ignored). Anything else, including None,
    blank strings, booleans, NaN and infinities, becomes 0.

    Args:
        value: Raw value from a form field or API payload

    Returns:
        Finite Decimal value
    """
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # repr() gives the shortest round-tripping form (0.1 -> "0.1")
        result = Decimal(repr(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        if not cleaned:
            return ZERO
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            return ZERO
    else:
        return ZERO

    if not result.is_finite():
        return ZERO
    return result


def exact_context(*values: Decimal) -> Context:
    """Build a context wide enough that sums and products of values stay exact.

    The default 28-digit context silently rounds large totals; the precision
    here covers every digit of every operand plus one carry per operand.
    """
    width = 0
    for value in values:
        _, digits, exponent = value.as_tuple()
        width += len(digits) + abs(int(exponent))
    return Context(
        prec=max(getcontext().prec, width + len(values) + 8),
        rounding=ROUND_HALF_UP,
        Emax=MAX_EMAX,
        Emin=MIN_EMIN,
    )


def _parse_amount(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, Decimal | int | float):
            amount = Decimal(value)
        else:
            amount = Decimal(str(value).strip().replace(",", ""))
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


def format_money(value: Any, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    """Format an amount as '{symbol} 1,234.56'.

    Rounds half away from zero to two decimals. None, NaN, infinities and
    non-numeric input format as '{symbol}0.00'.

    Args:
        value: Amount to format
        symbol: Currency symbol prefix

    Returns:
        Formatted amount
    """
    parsed = _parse_amount(value)
    if parsed is None:
        return f"{symbol}0.00"

    with localcontext() as ctx:
        # quantize needs every integer digit plus the two decimals
        ctx.prec = max(ctx.prec, parsed.adjusted() + 4)
        ctx.Emax = MAX_EMAX
        amount = parsed.quantize(CENTS, rounding=ROUND_HALF_UP)
        if amount == ZERO:
            amount = abs(amount)
        return f"{symbol} {amount:,.2f}"


def format_percentage(value: Any) -> str:
    """Render a percentage for row labels: 7.50 -> '7.5', 10.0 -> '10'."""
    pct = to_decimal(value)
    text = f"{pct:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
