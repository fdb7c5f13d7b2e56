"""
Money and percentage arithmetic.

All monetary values are held as Decimal so that splitting a cost and
adding the parts back together is exact. Generator output arrives as
JSON numbers or as strings like "$1,250.50"; both are coerced here.
"""
import re
from decimal import (
    MAX_EMAX,
    MIN_EMIN,
    Decimal,
    InvalidOperation,
    ROUND_DOWN,
    ROUND_HALF_UP,
    localcontext,
)
from typing import Any, Optional

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

_CURRENCY_NOISE = re.compile(r"[\s$€£,]")


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Coerce a JSON value to Decimal.

    Returns None for anything that is not a finite number or a numeric
    string ("1200", "$1,200.50", " 3.5 "). Booleans are not amounts.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        return Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str):
        cleaned = _CURRENCY_NOISE.sub("", value)
        if not cleaned:
            return None
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            return None
    else:
        return None

    # Reject NaN and Inf
    if not result.is_finite():
        return None
    return result


def _to_cents(value: Decimal, rounding: str) -> Decimal:
    # quantize() needs every integer digit plus two decimals within precision
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        ctx.Emax = MAX_EMAX
        ctx.Emin = MIN_EMIN
        return value.quantize(CENT, rounding=rounding)


def truncate_cents(value: Decimal) -> Decimal:
    """Drop anything below one cent (toward zero)."""
    return _to_cents(value, ROUND_DOWN)


def share_of(amount: Decimal, share: Decimal) -> Decimal:
    """`share` (a fraction, e.g. 0.15) of `amount`, truncated to whole cents."""
    with localcontext() as ctx:
        # Exact product
        ctx.prec = max(ctx.prec, len(amount.as_tuple().digits) + len(share.as_tuple().digits))
        product = amount * share
    return truncate_cents(product)


def split_evenly(amount: Decimal, parts: int) -> Decimal:
    """One of `parts` equal shares of `amount`, truncated to whole cents."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        ctx.rounding = ROUND_DOWN
        quotient = amount / parts
    return truncate_cents(quotient)


def percent_of(part: Decimal, whole: Decimal) -> float:
    """part / whole * 100, rounded half-up to 2 decimals. 0.0 when whole is not positive."""
    if whole <= ZERO:
        return 0.0
    with localcontext() as ctx:
        ctx.Emax = MAX_EMAX
        ctx.Emin = MIN_EMIN
        ratio = part / whole * HUNDRED
    return float(_to_cents(ratio, ROUND_HALF_UP))


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


def json_number(value: Optional[Decimal]) -> Any:
    """Render a Decimal back as a JSON-friendly int or float."""
    if value is None:
        return None
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def format_money(value: Decimal) -> str:
    return f"${value:,.2f}"


def plain_json(value: Any) -> Any:
    """Recursively replace Decimals in parsed JSON with ints/floats."""
    if isinstance(value, Decimal):
        return json_number(value)
    if isinstance(value, dict):
        return {k: plain_json(v) for k, v in value.items()}
    if isinstance(value, list):
        return [plain_json(v) for v in value]
    return value
