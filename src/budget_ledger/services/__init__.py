"""Business logic services."""

from budget_ledger.services.allocation import Allocation, AllocationEngine
from budget_ledger.services.auth import Identity, IdentityProvider, InMemoryIdentityProvider, ReauthGate
from budget_ledger.services.invoice_service import InvoiceService
from budget_ledger.services.ledger_service import Adjustment, BalanceField, SubAccountLedger, SubAccountRef
from budget_ledger.services.purchase_order_service import PurchaseOrderService
from budget_ledger.services.reconciliation import (
    ReconciliationResult,
    ReconciliationRunner,
    ReconciliationStep,
    StepFailure,
    TransitionResult,
)
from budget_ledger.services.state_machine import InvoiceStateMachine, PurchaseOrderStateMachine

__all__ = [
    "Allocation",
    "AllocationEngine",
    "Identity",
    "IdentityProvider",
    "InMemoryIdentityProvider",
    "ReauthGate",
    "InvoiceService",
    "Adjustment",
    "BalanceField",
    "SubAccountLedger",
    "SubAccountRef",
    "PurchaseOrderService",
    "ReconciliationResult",
    "ReconciliationRunner",
    "ReconciliationStep",
    "StepFailure",
    "TransitionResult",
    "InvoiceStateMachine",
    "PurchaseOrderStateMachine",
]
