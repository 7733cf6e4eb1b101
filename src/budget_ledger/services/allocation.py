"""Allocation of document-level deltas across line items."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from budget_ledger.models.line_item import LineItem
from budget_ledger.money import ZERO


@dataclass(frozen=True)
class Allocation:
    """Signed share of a delta destined for one item's sub-account."""

    item_index: int
    sub_account_id: str
    amount: Decimal


class AllocationEngine:
    """Splits PO/invoice deltas by each item's share of the parent base amount.

    Shares are computed at full Decimal context precision and are not
    rounded, so Σ share_i equals D up to ALLOCATION_EPSILON. No remainder is
    pushed onto any item to force an exact match.
    """

    @classmethod
    def allocate(
        cls,
        delta: Decimal,
        items: Sequence[LineItem],
        parent_base: Decimal,
    ) -> list[Allocation]:
        """share_i = delta * item.base_amount / parent_base.

        Every share is exactly zero when parent_base is zero. Items without
        a sub-account receive no allocation.
        """
        allocations = []
        for index, item in enumerate(items):
            if not item.sub_account_id:
                continue
            if parent_base == 0:
                share = ZERO
            else:
                share = delta * (item.base_amount / parent_base)
            allocations.append(Allocation(index, item.sub_account_id, share))
        return allocations

    @classmethod
    def allocate_direct(cls, items: Sequence[LineItem], sign: int = 1) -> list[Allocation]:
        """Allocate each item's own base amount (signed) to its sub-account.

        Items with a non-positive base amount or no sub-account are skipped.
        """
        if sign not in (1, -1):
            raise ValueError("sign must be 1 or -1")
        return [
            Allocation(index, item.sub_account_id, item.base_amount * sign)
            for index, item in enumerate(items)
            if item.sub_account_id and item.base_amount > 0
        ]

    @staticmethod
    def total(allocations: Iterable[Allocation]) -> Decimal:
        return sum((a.amount for a in allocations), ZERO)
