"""
money.py - Decimal helpers shared by the split calculator and the simplifier

Every monetary value is a Decimal quantized to cents with ROUND_HALF_UP.
Floats only exist at the JSON boundary.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, List, Optional, Sequence

from .errors import InvalidInput

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

# Two totals closer than this are the same amount.
RECONCILIATION_TOLERANCE = Decimal("0.01")

CURRENCIES = ("USD", "EUR", "GBP", "INR", "CAD", "AUD", "JPY", "CNY")


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError("Cannot convert value to Decimal")
    if isinstance(value, Decimal):
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    if isinstance(value, (int, float)):
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    if isinstance(value, str):
        return Decimal(value.strip()).quantize(CENT, rounding=ROUND_HALF_UP)
    raise ValueError("Cannot convert value to Decimal")


def parse_amount(value: Any, field: str = "amount", code: str = "invalid_amount") -> Decimal:
    """Like to_decimal, but reports bad input as InvalidInput naming the field."""
    try:
        amount = to_decimal(value)
    except (TypeError, ValueError, InvalidOperation):
        raise InvalidInput(f"{field} must be a number, got {value!r}", code) from None
    if not amount.is_finite():
        raise InvalidInput(f"{field} must be a finite number", code)
    return amount


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal) -> int:
    return int(round_money(value) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def amounts_close(a: Decimal, b: Decimal, tolerance: Decimal = RECONCILIATION_TOLERANCE) -> bool:
    """Strict comparison: a difference of exactly one tolerance unit is NOT close."""
    return abs(a - b) < tolerance


def percentage_of(part: Decimal, whole: Decimal) -> Decimal:
    if whole == 0:
        return ZERO
    return round_money(part * HUNDRED / whole)


def normalize_currency(currency: Optional[str], default: str) -> str:
    code = (currency or default or "").strip().upper()
    if code not in CURRENCIES:
        raise InvalidInput(f"unsupported currency {code!r}", "unsupported_currency")
    return code


def apportion(total: Decimal, weights: Sequence[int], first: Optional[int] = None) -> List[Decimal]:
    """
    Split `total` proportionally to integer `weights` so the parts sum to the cent.

    Largest-remainder method in integer cents: each part gets the floor of its
    exact share, then the leftover cents go one each to the largest fractional
    remainders. Ties prefer index `first`, then lower indexes.
    """
    weight_sum = sum(weights)
    if weight_sum <= 0:
        return [ZERO for _ in weights]

    total_cents = to_cents(total)
    floors: List[int] = []
    remainders: List[int] = []
    for weight in weights:
        cents, rest = divmod(total_cents * weight, weight_sum)
        floors.append(cents)
        remainders.append(rest)

    leftover = total_cents - sum(floors)
    ranked = sorted(
        range(len(weights)),
        key=lambda i: (-remainders[i], 0 if i == first else 1, i),
    )
    for i in ranked[:leftover]:
        floors[i] += 1

    return [from_cents(cents) for cents in floors]
