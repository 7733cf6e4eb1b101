"""Money representation and balance policies.

All monetary fields are `Decimal`. Documents persist them as decimal
strings so that repeated commit/release cycles never accumulate binary
floating-point drift.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Tolerance between a delta and the sum of its per-item shares.
ALLOCATION_EPSILON = Decimal("0.000001")


def to_money(value: Any) -> Decimal:
    """Coerce a stored or user-supplied value to Decimal.

    None and empty strings read as zero, matching documents whose balance
    fields were never written.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() first so 0.1 becomes Decimal("0.1"), not its binary expansion
        return Decimal(str(value))
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid monetary value: {value!r}") from e


def money_str(value: Decimal) -> str:
    """Serialize a Decimal for a document body."""
    return str(value)


def quantize(value: Decimal) -> Decimal:
    """Round to cents for display and export."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def approx_equal(a: Decimal, b: Decimal, epsilon: Decimal = ALLOCATION_EPSILON) -> bool:
    """Check two amounts agree within the allocation tolerance."""
    return abs(a - b) <= epsilon


@dataclass(frozen=True)
class ClampNonNegative:
    """Balance policy: decreases never take a balance below `floor`.

    `apply` computes `max(floor, current + delta)`. Clamping defends against
    drift but also hides over-release; `clamped` reports whether it kicked in
    so callers can log it.
    """

    floor: Decimal = ZERO

    def apply(self, current: Decimal, delta: Decimal) -> Decimal:
        return max(self.floor, current + delta)

    def clamped(self, current: Decimal, delta: Decimal) -> bool:
        return current + delta < self.floor


CLAMP_NON_NEGATIVE = ClampNonNegative()
