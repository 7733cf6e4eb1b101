"""Line items embedded in purchase orders and invoices."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from budget_ledger.money import HUNDRED, ZERO, money_str, to_money


@dataclass
class LineItem:
    """A single line of a PO or invoice.

    `base_amount` is authoritative once stored: it is derived from
    quantity x unit price only when the item is built, never re-derived
    later. VAT and IRPF (withholding) rates are percentages.
    """

    description: str
    sub_account_id: str | None
    quantity: Decimal
    unit_price: Decimal
    base_amount: Decimal
    vat_rate: Decimal = ZERO
    irpf_rate: Decimal = ZERO

    # Invoice-only: cumulative amount already invoiced against the PO item
    invoiced_amount: Decimal | None = None
    po_item_id: str | None = None
    item_id: str | None = None

    @classmethod
    def build(
        cls,
        description: str,
        sub_account_id: str | None,
        quantity: Any,
        unit_price: Any,
        vat_rate: Any = ZERO,
        irpf_rate: Any = ZERO,
        base_amount: Any = None,
        po_item_id: str | None = None,
        item_id: str | None = None,
    ) -> LineItem:
        """Build an item, deriving base_amount from quantity x unit price."""
        quantity = to_money(quantity)
        unit_price = to_money(unit_price)
        base = to_money(base_amount) if base_amount is not None else quantity * unit_price
        return cls(
            description=description,
            sub_account_id=sub_account_id or None,
            quantity=quantity,
            unit_price=unit_price,
            base_amount=base,
            vat_rate=to_money(vat_rate),
            irpf_rate=to_money(irpf_rate),
            po_item_id=po_item_id,
            item_id=item_id,
        )

    @property
    def vat_amount(self) -> Decimal:
        return self.base_amount * self.vat_rate / HUNDRED

    @property
    def irpf_amount(self) -> Decimal:
        return self.base_amount * self.irpf_rate / HUNDRED

    @property
    def total_amount(self) -> Decimal:
        return self.base_amount + self.vat_amount - self.irpf_amount

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "description": self.description,
            "subAccountId": self.sub_account_id,
            "quantity": money_str(self.quantity),
            "unitPrice": money_str(self.unit_price),
            "baseAmount": money_str(self.base_amount),
            "vatRate": money_str(self.vat_rate),
            "vatAmount": money_str(self.vat_amount),
            "irpfRate": money_str(self.irpf_rate),
            "irpfAmount": money_str(self.irpf_amount),
            "totalAmount": money_str(self.total_amount),
        }
        if self.invoiced_amount is not None:
            doc["invoicedAmount"] = money_str(self.invoiced_amount)
        if self.po_item_id is not None:
            doc["poItemId"] = self.po_item_id
        if self.item_id is not None:
            doc["id"] = self.item_id
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> LineItem:
        quantity = to_money(doc.get("quantity"))
        unit_price = to_money(doc.get("unitPrice"))
        # Legacy items without baseAmount fall back to quantity x price
        if doc.get("baseAmount") in (None, ""):
            base = quantity * unit_price
        else:
            base = to_money(doc["baseAmount"])
        invoiced = doc.get("invoicedAmount")
        return cls(
            description=doc.get("description", ""),
            sub_account_id=doc.get("subAccountId") or None,
            quantity=quantity,
            unit_price=unit_price,
            base_amount=base,
            vat_rate=to_money(doc.get("vatRate")),
            irpf_rate=to_money(doc.get("irpfRate")),
            invoiced_amount=to_money(invoiced) if invoiced is not None else None,
            po_item_id=doc.get("poItemId"),
            item_id=doc.get("id"),
        )


@dataclass(frozen=True)
class Totals:
    """Denormalized amounts summed over a document's items."""

    base_amount: Decimal
    vat_amount: Decimal
    irpf_amount: Decimal
    total_amount: Decimal

    def to_document(self) -> dict[str, str]:
        return {
            "baseAmount": money_str(self.base_amount),
            "vatAmount": money_str(self.vat_amount),
            "irpfAmount": money_str(self.irpf_amount),
            "totalAmount": money_str(self.total_amount),
        }


def sum_items(items: Iterable[LineItem]) -> Totals:
    """Sum base, VAT, IRPF and total amounts over items."""
    base = vat = irpf = total = ZERO
    for item in items:
        base += item.base_amount
        vat += item.vat_amount
        irpf += item.irpf_amount
        total += item.total_amount
    return Totals(base_amount=base, vat_amount=vat, irpf_amount=irpf, total_amount=total)
