"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from budget_ledger.models.invoice import InvoiceStatus
from budget_ledger.models.line_item import LineItem
from budget_ledger.models.purchase_order import POStatus
from budget_ledger.services.reconciliation import ReconciliationResult


# ============================================================================
# Common schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    detail: str
    code: str


class ReasonRequest(BaseModel):
    """Schema for actions requiring a reason (reject, modify)."""

    reason: str = ""


class ReauthRequest(BaseModel):
    """Schema for actions guarded by a password challenge (close, reopen)."""

    password: str = ""


class CancelRequest(BaseModel):
    """Schema for cancellation: password challenge plus reason."""

    password: str = ""
    reason: str = ""


class LineItemCreate(BaseModel):
    """Schema for a line item of a new PO or invoice."""

    description: str = ""
    sub_account_id: str | None = None
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = Decimal("0")
    base_amount: Decimal | None = None
    vat_rate: Decimal = Decimal("0")
    irpf_rate: Decimal = Decimal("0")
    po_item_id: str | None = None

    def to_line_item(self) -> LineItem:
        return LineItem.build(
            description=self.description,
            sub_account_id=self.sub_account_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            vat_rate=self.vat_rate,
            irpf_rate=self.irpf_rate,
            base_amount=self.base_amount,
            po_item_id=self.po_item_id,
        )


class LineItemResponse(BaseModel):
    """Schema for line item response."""

    model_config = ConfigDict(from_attributes=True)

    description: str
    sub_account_id: str | None = None
    quantity: Decimal
    unit_price: Decimal
    base_amount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    irpf_rate: Decimal
    irpf_amount: Decimal
    total_amount: Decimal
    po_item_id: str | None = None


class StepFailureResponse(BaseModel):
    """A sub-account adjustment that could not be applied."""

    sub_account_id: str
    field: str
    delta: Decimal
    item_index: int | None = None
    error: str


class ReconciliationResponse(BaseModel):
    """Outcome of the sub-account pass of a transition."""

    label: str
    applied: int
    skipped: int
    failed: list[StepFailureResponse]
    complete: bool
    partial: bool

    @classmethod
    def from_result(cls, result: ReconciliationResult | None) -> ReconciliationResponse | None:
        if result is None:
            return None
        return cls(
            label=result.label,
            applied=len(result.applied),
            skipped=len(result.skipped),
            failed=[
                StepFailureResponse(
                    sub_account_id=f.step.sub_account_id,
                    field=f.step.field.value,
                    delta=f.step.delta,
                    item_index=f.step.item_index,
                    error=str(f.error),
                )
                for f in result.failed
            ],
            complete=result.complete,
            partial=result.partial,
        )


# ============================================================================
# Purchase order schemas
# ============================================================================


class PurchaseOrderCreate(BaseModel):
    """Schema for creating a draft purchase order."""

    supplier: str = ""
    description: str = ""
    items: list[LineItemCreate] = Field(min_length=1)


class PurchaseOrderUpdate(BaseModel):
    """Schema for editing a draft or rejected purchase order."""

    supplier: str | None = None
    description: str | None = None
    items: list[LineItemCreate] = Field(min_length=1)


class ModificationResponse(BaseModel):
    """Schema for a modification history entry."""

    model_config = ConfigDict(from_attributes=True)

    previous_version: int
    reason: str
    user_id: str
    user_name: str
    date: datetime | None = None


class PurchaseOrderResponse(BaseModel):
    """Schema for purchase order response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    number: str
    status: POStatus
    version: int
    supplier: str
    description: str
    items: list[LineItemResponse]
    base_amount: Decimal
    vat_amount: Decimal
    irpf_amount: Decimal
    total_amount: Decimal
    committed_amount: Decimal
    invoiced_amount: Decimal
    remaining_amount: Decimal
    modification_history: list[ModificationResponse]
    created_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    closed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None


class PurchaseOrderListResponse(BaseModel):
    """Schema for listing purchase orders."""

    items: list[PurchaseOrderResponse]
    total: int


class PurchaseOrderTransitionResponse(BaseModel):
    """Schema for a purchase order transition."""

    purchase_order: PurchaseOrderResponse
    reconciliation: ReconciliationResponse | None = None


# ============================================================================
# Invoice schemas
# ============================================================================


class InvoiceCreate(BaseModel):
    """Schema for registering an invoice."""

    po_id: str | None = None
    supplier: str = ""
    description: str = ""
    due_date: datetime
    items: list[LineItemCreate] = Field(min_length=1)


class PaymentRequest(BaseModel):
    """Schema for marking an invoice paid."""

    payment_date: datetime | None = None


class InvoiceResponse(BaseModel):
    """Schema for invoice response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    number: str
    status: InvoiceStatus
    po_id: str | None = None
    supplier: str
    description: str
    items: list[LineItemResponse]
    base_amount: Decimal
    vat_amount: Decimal
    irpf_amount: Decimal
    total_amount: Decimal
    due_date: datetime | None = None
    created_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None


class InvoiceListResponse(BaseModel):
    """Schema for listing invoices."""

    items: list[InvoiceResponse]
    total: int


class InvoiceTransitionResponse(BaseModel):
    """Schema for an invoice transition."""

    invoice: InvoiceResponse
    reconciliation: ReconciliationResponse | None = None


# ============================================================================
# Budget schemas
# ============================================================================


class SubAccountResponse(BaseModel):
    """Schema for a sub-account balance line."""

    model_config = ConfigDict(from_attributes=True)

    sub_account_id: str
    code: str
    description: str
    budgeted: Decimal
    committed: Decimal
    actual: Decimal
    available: Decimal
    executed: Decimal


class AccountResponse(BaseModel):
    """Schema for an account with its sub-accounts."""

    model_config = ConfigDict(from_attributes=True)

    account_id: str
    code: str
    description: str
    budgeted: Decimal
    committed: Decimal
    actual: Decimal
    available: Decimal
    executed: Decimal
    sub_accounts: list[SubAccountResponse]


class BudgetResponse(BaseModel):
    """Schema for the project budget view."""

    model_config = ConfigDict(from_attributes=True)

    project_id: str
    budgeted: Decimal
    committed: Decimal
    actual: Decimal
    available: Decimal
    accounts: list[AccountResponse]
