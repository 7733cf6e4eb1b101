"""Domain documents and ORM base."""

from budget_ledger.models.base import Base, TimestampMixin
from budget_ledger.models.budget import AccountSummary, BudgetSummary, SubAccount
from budget_ledger.models.invoice import Invoice, InvoiceStatus
from budget_ledger.models.line_item import LineItem, Totals, sum_items
from budget_ledger.models.purchase_order import ModificationRecord, POStatus, PurchaseOrder

__all__ = [
    "Base",
    "TimestampMixin",
    "AccountSummary",
    "BudgetSummary",
    "SubAccount",
    "Invoice",
    "InvoiceStatus",
    "LineItem",
    "Totals",
    "sum_items",
    "ModificationRecord",
    "POStatus",
    "PurchaseOrder",
]
