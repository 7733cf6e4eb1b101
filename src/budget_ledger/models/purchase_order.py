"""Purchase order documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from budget_ledger.models.base import parse_datetime, to_iso
from budget_ledger.models.line_item import LineItem
from budget_ledger.money import ZERO, to_money


class POStatus(str, Enum):
    """Purchase order status values."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CLOSED = "closed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ModificationRecord:
    """One entry of a PO's modification history."""

    previous_version: int
    reason: str
    user_id: str
    user_name: str
    date: datetime

    def to_document(self) -> dict[str, Any]:
        return {
            "previousVersion": self.previous_version,
            "reason": self.reason,
            "userId": self.user_id,
            "userName": self.user_name,
            "date": to_iso(self.date),
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> ModificationRecord:
        return cls(
            previous_version=int(doc.get("previousVersion") or 1),
            reason=doc.get("reason", ""),
            user_id=doc.get("userId", ""),
            user_name=doc.get("userName", ""),
            date=parse_datetime(doc.get("date")),
        )


@dataclass
class PurchaseOrder:
    """A purchase order as read from the store."""

    id: str
    number: str
    status: POStatus
    items: list[LineItem]
    base_amount: Decimal
    vat_amount: Decimal = ZERO
    irpf_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    version: int = 1
    supplier: str = ""
    description: str = ""
    committed_amount: Decimal = ZERO
    invoiced_amount: Decimal = ZERO
    remaining_amount: Decimal = ZERO
    modification_history: list[ModificationRecord] = field(default_factory=list)
    created_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    closed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None

    @property
    def open_amount(self) -> Decimal:
        """Base amount not yet invoiced (baseAmount - invoicedAmount)."""
        return self.base_amount - self.invoiced_amount

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> PurchaseOrder:
        items = [LineItem.from_document(i) for i in doc.get("items") or []]
        base = doc.get("baseAmount")
        # Old documents only carried totalAmount
        base_amount = to_money(base) if base not in (None, "") else to_money(doc.get("totalAmount"))
        return cls(
            id=doc["id"],
            number=str(doc.get("number", "")),
            status=POStatus(doc.get("status", POStatus.DRAFT.value)),
            items=items,
            base_amount=base_amount,
            vat_amount=to_money(doc.get("vatAmount")),
            irpf_amount=to_money(doc.get("irpfAmount")),
            total_amount=to_money(doc.get("totalAmount")),
            version=int(doc.get("version") or 1),
            supplier=doc.get("supplier", ""),
            description=doc.get("description", ""),
            committed_amount=to_money(doc.get("committedAmount")),
            invoiced_amount=to_money(doc.get("invoicedAmount")),
            remaining_amount=to_money(doc.get("remainingAmount")),
            modification_history=[
                ModificationRecord.from_document(m) for m in doc.get("modificationHistory") or []
            ],
            created_at=parse_datetime(doc.get("createdAt")),
            approved_at=parse_datetime(doc.get("approvedAt")),
            approved_by=doc.get("approvedBy"),
            closed_at=parse_datetime(doc.get("closedAt")),
            cancelled_at=parse_datetime(doc.get("cancelledAt")),
            cancellation_reason=doc.get("cancellationReason"),
        )
