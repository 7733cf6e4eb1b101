"""Invoice documents."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from budget_ledger.models.base import parse_datetime
from budget_ledger.models.line_item import LineItem
from budget_ledger.money import ZERO, to_money


class InvoiceStatus(str, Enum):
    """Invoice status values."""

    PENDING_APPROVAL = "pending_approval"
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


@dataclass
class Invoice:
    """An invoice as read from the store."""

    id: str
    number: str
    status: InvoiceStatus
    items: list[LineItem]
    base_amount: Decimal
    total_amount: Decimal
    due_date: datetime | None
    po_id: str | None = None
    vat_amount: Decimal = ZERO
    irpf_amount: Decimal = ZERO
    supplier: str = ""
    description: str = ""
    created_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None

    @property
    def has_po(self) -> bool:
        return bool(self.po_id)

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Invoice:
        base = doc.get("baseAmount")
        return cls(
            id=doc["id"],
            number=str(doc.get("number", "")),
            status=InvoiceStatus(doc.get("status", InvoiceStatus.PENDING_APPROVAL.value)),
            items=[LineItem.from_document(i) for i in doc.get("items") or []],
            base_amount=to_money(base) if base not in (None, "") else to_money(doc.get("totalAmount")),
            total_amount=to_money(doc.get("totalAmount")),
            due_date=parse_datetime(doc.get("dueDate")),
            po_id=doc.get("poId") or None,
            vat_amount=to_money(doc.get("vatAmount")),
            irpf_amount=to_money(doc.get("irpfAmount")),
            supplier=doc.get("supplier", ""),
            description=doc.get("description", ""),
            created_at=parse_datetime(doc.get("createdAt")),
            paid_at=parse_datetime(doc.get("paidAt")),
            cancelled_at=parse_datetime(doc.get("cancelledAt")),
            cancellation_reason=doc.get("cancellationReason"),
        )
