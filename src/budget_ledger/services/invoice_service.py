"""Invoice service - approval, payment, cancellation and lazy overdue detection."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Sequence
from uuid import uuid4

from budget_ledger.clock import Clock, SystemClock
from budget_ledger.exceptions import DocumentNotFoundError, TerminalWriteError, ValidationError
from budget_ledger.models.base import to_iso
from budget_ledger.models.invoice import Invoice, InvoiceStatus
from budget_ledger.models.line_item import LineItem, sum_items
from budget_ledger.models.purchase_order import POStatus, PurchaseOrder
from budget_ledger.money import CLAMP_NON_NEGATIVE, ZERO, money_str, to_money
from budget_ledger.services.allocation import AllocationEngine
from budget_ledger.services.auth import Identity, ReauthGate
from budget_ledger.services.ledger_service import BalanceField, SubAccountLedger
from budget_ledger.services.numbering import next_number
from budget_ledger.services.reconciliation import (
    ReconciliationResult,
    ReconciliationRunner,
    ReconciliationStep,
    TransitionResult,
)
from budget_ledger.services.state_machine import InvoiceStateMachine
from budget_ledger.store.base import DocumentStore, invoice_path, invoices_path, po_path

logger = logging.getLogger(__name__)


class InvoiceService:
    """Service for managing invoices against the budget.

    Payment realizes spend: each item's base amount moves to `actual` and,
    for invoices linked to a PO, leaves `committed`. Cancelling a paid
    invoice reverses both. Reads apply overdue detection and persist the
    derived status.
    """

    def __init__(
        self,
        store: DocumentStore,
        reauth_gate: ReauthGate,
        clock: Clock | None = None,
        ledger: SubAccountLedger | None = None,
    ):
        self.store = store
        self.reauth_gate = reauth_gate
        self.clock = clock or SystemClock()
        self.ledger = ledger or SubAccountLedger(store)
        self.runner = ReconciliationRunner(self.ledger)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, project_id: str, invoice_id: str) -> Invoice:
        """Load an invoice, marking it overdue first if its due date passed."""
        doc = await self.store.get(invoice_path(project_id, invoice_id))
        if doc is None:
            raise DocumentNotFoundError(invoice_path(project_id, invoice_id))
        return await self.refresh_status(project_id, Invoice.from_document(doc))

    async def list(self, project_id: str, status: str | None = None) -> list[Invoice]:
        """All invoices of a project, newest first, with overdue detection applied."""
        invoices = []
        for doc in await self.store.list_collection(invoices_path(project_id)):
            invoices.append(await self.refresh_status(project_id, Invoice.from_document(doc)))
        if status:
            invoices = [i for i in invoices if i.status == status]
        return sorted(invoices, key=_created_key, reverse=True)

    async def refresh_status(self, project_id: str, invoice: Invoice) -> Invoice:
        """Persist the derived status when it differs from the stored one.

        Only pending → overdue is ever derived, which has no ledger effect.
        """
        derived = InvoiceStateMachine.derive_status(invoice, self.clock.now())
        if derived == invoice.status:
            return invoice

        InvoiceStateMachine.validate_transition(invoice.status, derived)
        await self.store.update(
            invoice_path(project_id, invoice.id),
            {"status": derived.value, "overdueAt": to_iso(self.clock.now())},
        )
        logger.info("Invoice %s is overdue (due %s)", invoice.number, to_iso(invoice.due_date))
        invoice.status = derived
        return invoice

    # ------------------------------------------------------------------
    # Creation and approval
    # ------------------------------------------------------------------

    async def create(
        self,
        project_id: str,
        actor: Identity,
        items: Sequence[LineItem],
        due_date: datetime,
        po_id: str | None = None,
        supplier: str = "",
        description: str = "",
    ) -> Invoice:
        """Register an invoice awaiting approval.

        An invoice linked to a PO may only be raised against an approved PO.
        """
        if not items:
            raise ValidationError("An invoice needs at least one item")
        if po_id:
            po = await self._get_po(project_id, po_id)
            if po is None:
                raise DocumentNotFoundError(po_path(project_id, po_id))
            if po.status != POStatus.APPROVED:
                raise ValidationError(
                    f"Invoices can only be raised against approved POs (PO-{po.number} is {po.status.value})"
                )
            supplier = supplier or po.supplier

        totals = sum_items(items)
        number = await next_number(self.store, invoices_path(project_id))
        invoice_id = uuid4().hex
        body: dict[str, Any] = {
            "number": number,
            "status": InvoiceStatus.PENDING_APPROVAL.value,
            "poId": po_id or None,
            "supplier": supplier,
            "description": description,
            "items": [item.to_document() for item in items],
            **totals.to_document(),
            "dueDate": to_iso(due_date),
            "createdAt": to_iso(self.clock.now()),
            "createdBy": actor.user_id,
            "createdByName": actor.name,
        }
        await self.store.set(invoice_path(project_id, invoice_id), body)
        logger.info("Created invoice %s (%s) in project %s", number, invoice_id, project_id)
        return await self.get(project_id, invoice_id)

    async def approve(self, project_id: str, invoice_id: str, actor: Identity) -> TransitionResult[Invoice]:
        """Approve for payment (pending_approval → pending). No budget effect."""
        invoice = await self.get(project_id, invoice_id)
        InvoiceStateMachine.validate_transition(invoice.status, InvoiceStatus.PENDING)

        await self._write_status(project_id, invoice, {
            "status": InvoiceStatus.PENDING.value,
            "approvedAt": to_iso(self.clock.now()),
            "approvedBy": actor.user_id,
            "approvedByName": actor.name,
        })
        return TransitionResult(await self.get(project_id, invoice_id))

    async def reject(
        self, project_id: str, invoice_id: str, actor: Identity, reason: str
    ) -> TransitionResult[Invoice]:
        """Reject an invoice awaiting approval (pending_approval → rejected)."""
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required")
        invoice = await self.get(project_id, invoice_id)
        InvoiceStateMachine.validate_transition(invoice.status, InvoiceStatus.REJECTED)

        await self._write_status(project_id, invoice, {
            "status": InvoiceStatus.REJECTED.value,
            "rejectedAt": to_iso(self.clock.now()),
            "rejectedBy": actor.user_id,
            "rejectedByName": actor.name,
            "rejectionReason": reason.strip(),
        })
        return TransitionResult(await self.get(project_id, invoice_id))

    # ------------------------------------------------------------------
    # Payment / cancellation
    # ------------------------------------------------------------------

    async def mark_paid(
        self,
        project_id: str,
        invoice_id: str,
        actor: Identity,
        payment_date: datetime | None = None,
    ) -> TransitionResult[Invoice]:
        """Pay a pending or overdue invoice.

        For each item: actual += base; committed -= base when linked to a PO.
        The PO's invoicedAmount then grows by the invoice base amount.
        """
        invoice = await self.get(project_id, invoice_id)
        InvoiceStateMachine.validate_transition(invoice.status, InvoiceStatus.PAID)

        steps = ReconciliationStep.from_allocations(
            AllocationEngine.allocate_direct(invoice.items), BalanceField.ACTUAL
        )
        if invoice.has_po:
            steps += ReconciliationStep.from_allocations(
                AllocationEngine.allocate_direct(invoice.items, sign=-1), BalanceField.COMMITTED
            )
        result = await self.runner.run(project_id, steps, f"invoice:{invoice_id}:pay")

        if invoice.has_po:
            await self._apply_to_po(project_id, invoice, invoice.base_amount)

        now = self.clock.now()
        await self._write_status(project_id, invoice, {
            "status": InvoiceStatus.PAID.value,
            "paidAt": to_iso(now),
            "paidBy": actor.user_id,
            "paidByName": actor.name,
            "paymentDate": to_iso(payment_date or now),
        }, result)
        return TransitionResult(await self.get(project_id, invoice_id), result)

    async def cancel(
        self,
        project_id: str,
        invoice_id: str,
        actor: Identity,
        password: str | None,
        reason: str,
    ) -> TransitionResult[Invoice]:
        """Cancel an invoice, reversing its payment if it was paid.

        A paid invoice gives back actual on every item. Its commitment is
        restored only while the PO is still approved; a closed or cancelled
        PO keeps it released.
        """
        if not reason or not reason.strip():
            raise ValidationError("A cancellation reason is required")
        invoice = await self.get(project_id, invoice_id)
        InvoiceStateMachine.validate_transition(invoice.status, InvoiceStatus.CANCELLED)
        self.reauth_gate.require("invoice.cancel", actor, password)

        result = None
        if InvoiceStateMachine.is_actualized(invoice.status):
            steps = ReconciliationStep.from_allocations(
                AllocationEngine.allocate_direct(invoice.items, sign=-1), BalanceField.ACTUAL
            )
            po = await self._get_po(project_id, invoice.po_id) if invoice.has_po else None
            if po is not None and po.status == POStatus.APPROVED:
                steps += ReconciliationStep.from_allocations(
                    AllocationEngine.allocate_direct(invoice.items), BalanceField.COMMITTED
                )
            result = await self.runner.run(project_id, steps, f"invoice:{invoice_id}:cancel")

            if invoice.has_po:
                await self._apply_to_po(project_id, invoice, -invoice.base_amount)

        await self._write_status(project_id, invoice, {
            "status": InvoiceStatus.CANCELLED.value,
            "cancelledAt": to_iso(self.clock.now()),
            "cancelledBy": actor.user_id,
            "cancelledByName": actor.name,
            "cancellationReason": reason.strip(),
        }, result)
        return TransitionResult(await self.get(project_id, invoice_id), result)

    async def delete(self, project_id: str, invoice_id: str) -> None:
        """Delete an invoice that never reached the ledger."""
        invoice = await self.get(project_id, invoice_id)
        if not InvoiceStateMachine.can_delete(invoice.status):
            raise ValidationError(
                f"Only pending approval or rejected invoices can be deleted (invoice {invoice.number} is {invoice.status.value})"
            )
        await self.store.delete(invoice_path(project_id, invoice_id))
        logger.info("Deleted invoice %s (%s)", invoice.number, invoice_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_po(self, project_id: str, po_id: str) -> PurchaseOrder | None:
        doc = await self.store.get(po_path(project_id, po_id))
        return PurchaseOrder.from_document(doc) if doc else None

    async def _apply_to_po(self, project_id: str, invoice: Invoice, delta: Decimal) -> None:
        """Move the PO's invoicedAmount by delta and recompute remainingAmount.

        invoicedAmount is floored at zero and remainingAmount becomes
        max(0, baseAmount - invoicedAmount), both in one atomic write. Runs
        after the sub-account pass; a failure here is logged and does not stop
        the invoice status write.
        """
        delta = to_money(delta)

        def apply(body: dict[str, Any]) -> dict[str, Any]:
            current = to_money(body.get("invoicedAmount"))
            if CLAMP_NON_NEGATIVE.clamped(current, delta):
                logger.warning(
                    "Clamped invoicedAmount of PO %s at 0 (was %s, delta %s)", invoice.po_id, current, delta
                )
            invoiced = CLAMP_NON_NEGATIVE.apply(current, delta)
            base = to_money(body.get("baseAmount"))
            return {
                **body,
                "invoicedAmount": money_str(invoiced),
                "remainingAmount": money_str(max(ZERO, base - invoiced)),
            }

        try:
            await self.store.transform(po_path(project_id, invoice.po_id), apply)
        except Exception:
            logger.exception(
                "Failed to update invoiced amount of PO %s for invoice %s", invoice.po_id, invoice.number
            )

    async def _write_status(
        self,
        project_id: str,
        invoice: Invoice,
        updates: dict[str, Any],
        result: ReconciliationResult | None = None,
    ) -> None:
        path = invoice_path(project_id, invoice.id)
        try:
            await self.store.update(path, updates)
        except Exception as e:
            logger.exception("Failed to write status %s for invoice %s", updates.get("status"), invoice.number)
            raise TerminalWriteError(path, e, result) from e
        logger.info("Invoice %s: %s -> %s", invoice.number, invoice.status.value, updates.get("status"))


def _created_key(invoice: Invoice) -> str:
    return to_iso(invoice.created_at) or ""
