"""Purchase order service - lifecycle transitions and their budget effects."""

from __future__ import annotations

import logging
from typing import Any, Sequence
from uuid import uuid4

from budget_ledger.clock import Clock, SystemClock
from budget_ledger.exceptions import (
    DocumentNotFoundError,
    InvalidTransitionError,
    TerminalWriteError,
    ValidationError,
)
from budget_ledger.models.base import to_iso
from budget_ledger.models.line_item import LineItem, sum_items
from budget_ledger.models.purchase_order import ModificationRecord, POStatus, PurchaseOrder
from budget_ledger.money import ZERO, money_str
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
from budget_ledger.services.state_machine import PurchaseOrderStateMachine
from budget_ledger.store.base import DocumentStore, po_path, pos_path

logger = logging.getLogger(__name__)


class PurchaseOrderService:
    """Service for managing purchase order lifecycle.

    Operations:
    - create_draft: New PO in draft with derived totals and next number
    - submit: draft → pending
    - approve: pending → approved, committing each item's base amount
    - reject: pending → rejected
    - close: approved → closed, releasing the uninvoiced commitment
    - reopen: closed → approved, restoring the uninvoiced commitment
    - cancel: approved/draft → cancelled, releasing the full commitment
    - modify: approved → draft with a new version (no budget effect)
    - update_draft: replace items of a draft or rejected PO (rejected → draft)
    - delete_draft: remove a draft PO

    Close, reopen and cancel are guarded by a password re-authentication.
    Sub-account writes run before the PO status write, through the
    reconciliation runner (per-item isolation, no rollback).
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

    async def get(self, project_id: str, po_id: str) -> PurchaseOrder:
        doc = await self.store.get(po_path(project_id, po_id))
        if doc is None:
            raise DocumentNotFoundError(po_path(project_id, po_id))
        return PurchaseOrder.from_document(doc)

    async def list(self, project_id: str, status: str | None = None) -> list[PurchaseOrder]:
        pos = [PurchaseOrder.from_document(d) for d in await self.store.list_collection(pos_path(project_id))]
        if status:
            pos = [po for po in pos if po.status == status]
        return sorted(pos, key=lambda po: int(po.number) if po.number.isdigit() else 0, reverse=True)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_draft(
        self,
        project_id: str,
        actor: Identity,
        items: Sequence[LineItem],
        supplier: str = "",
        description: str = "",
    ) -> PurchaseOrder:
        """Create a PO in draft with totals summed over its items."""
        if not items:
            raise ValidationError("A purchase order needs at least one item")

        totals = sum_items(items)
        number = await next_number(self.store, pos_path(project_id))
        po_id = uuid4().hex
        body: dict[str, Any] = {
            "number": number,
            "version": 1,
            "status": POStatus.DRAFT.value,
            "supplier": supplier,
            "description": description,
            "items": [item.to_document() for item in items],
            **totals.to_document(),
            "committedAmount": money_str(ZERO),
            "invoicedAmount": money_str(ZERO),
            "remainingAmount": money_str(totals.base_amount),
            "modificationHistory": [],
            "createdAt": to_iso(self.clock.now()),
            "createdBy": actor.user_id,
            "createdByName": actor.name,
        }
        await self.store.set(po_path(project_id, po_id), body)
        logger.info("Created PO-%s (%s) in project %s", number, po_id, project_id)
        return await self.get(project_id, po_id)

    # ------------------------------------------------------------------
    # Approval workflow
    # ------------------------------------------------------------------

    async def submit(self, project_id: str, po_id: str, actor: Identity) -> TransitionResult[PurchaseOrder]:
        """Send a draft for approval (draft → pending)."""
        po = await self.get(project_id, po_id)
        PurchaseOrderStateMachine.validate_transition(po.status, POStatus.PENDING)
        if not po.items:
            raise ValidationError("Cannot submit a purchase order without items")

        await self._write_status(project_id, po, {
            "status": POStatus.PENDING.value,
            "submittedAt": to_iso(self.clock.now()),
            "submittedBy": actor.user_id,
        })
        return TransitionResult(await self.get(project_id, po_id))

    async def approve(self, project_id: str, po_id: str, actor: Identity) -> TransitionResult[PurchaseOrder]:
        """Final approval (pending → approved): commit each item's base amount."""
        po = await self.get(project_id, po_id)
        PurchaseOrderStateMachine.validate_transition(po.status, POStatus.APPROVED)

        steps = ReconciliationStep.from_allocations(
            AllocationEngine.allocate_direct(po.items), BalanceField.COMMITTED
        )
        result = await self.runner.run(project_id, steps, f"po:{po_id}:approve")

        await self._write_status(project_id, po, {
            "status": POStatus.APPROVED.value,
            "committedAmount": money_str(po.base_amount),
            "remainingAmount": money_str(max(ZERO, po.open_amount)),
            "approvedAt": to_iso(self.clock.now()),
            "approvedBy": actor.user_id,
            "approvedByName": actor.name,
        }, result)
        return TransitionResult(await self.get(project_id, po_id), result)

    async def reject(
        self, project_id: str, po_id: str, actor: Identity, reason: str
    ) -> TransitionResult[PurchaseOrder]:
        """Reject a pending PO (pending → rejected). No budget effect."""
        reason = _require_reason(reason, "rejection")
        po = await self.get(project_id, po_id)
        PurchaseOrderStateMachine.validate_transition(po.status, POStatus.REJECTED)

        await self._write_status(project_id, po, {
            "status": POStatus.REJECTED.value,
            "rejectedAt": to_iso(self.clock.now()),
            "rejectedBy": actor.user_id,
            "rejectedByName": actor.name,
            "rejectionReason": reason,
        })
        return TransitionResult(await self.get(project_id, po_id))

    # ------------------------------------------------------------------
    # Close / reopen / cancel
    # ------------------------------------------------------------------

    async def close(
        self, project_id: str, po_id: str, actor: Identity, password: str | None
    ) -> TransitionResult[PurchaseOrder]:
        """Close an approved PO, releasing the commitment not yet invoiced.

        remaining = baseAmount - invoicedAmount is released proportionally
        to each item's share of the base amount.
        """
        po = await self.get(project_id, po_id)
        PurchaseOrderStateMachine.validate_transition(po.status, POStatus.CLOSED)
        self.reauth_gate.require("po.close", actor, password)

        remaining = po.open_amount
        result = None
        if remaining > 0:
            allocations = AllocationEngine.allocate(-remaining, po.items, po.base_amount)
            steps = ReconciliationStep.from_allocations(allocations, BalanceField.COMMITTED)
            result = await self.runner.run(project_id, steps, f"po:{po_id}:close")

        await self._write_status(project_id, po, {
            "status": POStatus.CLOSED.value,
            "remainingAmount": money_str(ZERO),
            "closedAt": to_iso(self.clock.now()),
            "closedBy": actor.user_id,
            "closedByName": actor.name,
        }, result)
        return TransitionResult(await self.get(project_id, po_id), result)

    async def reopen(
        self, project_id: str, po_id: str, actor: Identity, password: str | None
    ) -> TransitionResult[PurchaseOrder]:
        """Reopen a closed PO, restoring the commitment not yet invoiced."""
        po = await self.get(project_id, po_id)
        PurchaseOrderStateMachine.validate_transition(po.status, POStatus.APPROVED)
        self.reauth_gate.require("po.reopen", actor, password)

        remaining = po.open_amount
        result = None
        if remaining > 0:
            allocations = AllocationEngine.allocate(remaining, po.items, po.base_amount)
            steps = ReconciliationStep.from_allocations(allocations, BalanceField.COMMITTED)
            result = await self.runner.run(project_id, steps, f"po:{po_id}:reopen")

        await self._write_status(project_id, po, {
            "status": POStatus.APPROVED.value,
            "remainingAmount": money_str(max(ZERO, remaining)),
            "closedAt": None,
            "closedBy": None,
            "closedByName": None,
            "reopenedAt": to_iso(self.clock.now()),
            "reopenedBy": actor.user_id,
        }, result)
        return TransitionResult(await self.get(project_id, po_id), result)

    async def cancel(
        self,
        project_id: str,
        po_id: str,
        actor: Identity,
        password: str | None,
        reason: str,
    ) -> TransitionResult[PurchaseOrder]:
        """Cancel a PO, releasing its whole commitment when approved.

        POs with invoiced amounts cannot be cancelled; close them instead.
        """
        reason = _require_reason(reason, "cancellation")
        po = await self.get(project_id, po_id)
        PurchaseOrderStateMachine.validate_transition(po.status, POStatus.CANCELLED)
        if po.invoiced_amount > 0:
            raise ValidationError(
                f"PO-{po.number} has invoiced amounts and cannot be cancelled; close it instead"
            )
        self.reauth_gate.require("po.cancel", actor, password)

        result = None
        if PurchaseOrderStateMachine.holds_commitment(po.status):
            committed = po.committed_amount if po.committed_amount > 0 else po.base_amount
            allocations = AllocationEngine.allocate(-committed, po.items, po.base_amount)
            steps = ReconciliationStep.from_allocations(allocations, BalanceField.COMMITTED)
            result = await self.runner.run(project_id, steps, f"po:{po_id}:cancel")

        await self._write_status(project_id, po, {
            "status": POStatus.CANCELLED.value,
            "cancelledAt": to_iso(self.clock.now()),
            "cancelledBy": actor.user_id,
            "cancelledByName": actor.name,
            "cancellationReason": reason,
            "committedAmount": money_str(ZERO),
            "remainingAmount": money_str(ZERO),
        }, result)
        return TransitionResult(await self.get(project_id, po_id), result)

    # ------------------------------------------------------------------
    # Modification / deletion
    # ------------------------------------------------------------------

    async def modify(
        self, project_id: str, po_id: str, actor: Identity, reason: str
    ) -> TransitionResult[PurchaseOrder]:
        """Turn an approved PO back into a draft under a new version.

        Sub-account commitments are left as they are; the PO must be
        re-approved, which commits again.
        """
        reason = _require_reason(reason, "modification")
        po = await self.get(project_id, po_id)
        if not PurchaseOrderStateMachine.is_modify(po.status, POStatus.DRAFT):
            raise InvalidTransitionError(po.status.value, POStatus.DRAFT.value, "Only approved POs can be modified")

        record = ModificationRecord(
            previous_version=po.version,
            reason=reason,
            user_id=actor.user_id,
            user_name=actor.name,
            date=self.clock.now(),
        )
        history = [m.to_document() for m in po.modification_history] + [record.to_document()]

        await self._write_status(project_id, po, {
            "status": POStatus.DRAFT.value,
            "version": po.version + 1,
            "modificationHistory": history,
            "approvedAt": None,
            "approvedBy": None,
            "approvedByName": None,
            "approvalSteps": None,
            "currentApprovalStep": None,
        })
        logger.info("PO-%s modified: v%d -> v%d", po.number, po.version, po.version + 1)
        return TransitionResult(await self.get(project_id, po_id))

    async def update_draft(
        self,
        project_id: str,
        po_id: str,
        actor: Identity,
        items: Sequence[LineItem],
        supplier: str | None = None,
        description: str | None = None,
    ) -> PurchaseOrder:
        """Replace the items and header of a draft or rejected PO.

        Totals are derived again from the new items. Editing a rejected PO
        returns it to draft. No budget effect.
        """
        if not items:
            raise ValidationError("A purchase order needs at least one item")
        po = await self.get(project_id, po_id)
        if not PurchaseOrderStateMachine.can_edit(po.status):
            raise InvalidTransitionError(
                po.status.value, POStatus.DRAFT.value, "Only draft or rejected POs can be edited"
            )

        totals = sum_items(items)
        updates: dict[str, Any] = {
            "items": [item.to_document() for item in items],
            **totals.to_document(),
            "remainingAmount": money_str(max(ZERO, totals.base_amount - po.invoiced_amount)),
            "updatedAt": to_iso(self.clock.now()),
            "updatedBy": actor.user_id,
            "updatedByName": actor.name,
        }
        if supplier is not None:
            updates["supplier"] = supplier
        if description is not None:
            updates["description"] = description

        if po.status != POStatus.DRAFT:
            PurchaseOrderStateMachine.validate_transition(po.status, POStatus.DRAFT)
            updates["status"] = POStatus.DRAFT.value
            await self._write_status(project_id, po, updates)
        else:
            await self.store.update(po_path(project_id, po_id), updates)
            logger.info("Updated draft PO-%s (base %s)", po.number, money_str(totals.base_amount))
        return await self.get(project_id, po_id)

    async def delete_draft(self, project_id: str, po_id: str) -> None:
        """Delete a PO that is still a draft."""
        po = await self.get(project_id, po_id)
        if not PurchaseOrderStateMachine.can_delete(po.status):
            raise ValidationError(f"Only draft POs can be deleted (PO-{po.number} is {po.status.value})")
        await self.store.delete(po_path(project_id, po_id))
        logger.info("Deleted draft PO-%s (%s)", po.number, po_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _write_status(
        self,
        project_id: str,
        po: PurchaseOrder,
        updates: dict[str, Any],
        result: ReconciliationResult | None = None,
    ) -> None:
        """Persist the PO status after the sub-account pass.

        Raises:
            TerminalWriteError: The status write failed; applied sub-account
                adjustments in `result` stay applied
        """
        path = po_path(project_id, po.id)
        try:
            await self.store.update(path, updates)
        except Exception as e:
            logger.exception("Failed to write status %s for PO-%s", updates.get("status"), po.number)
            raise TerminalWriteError(path, e, result) from e
        logger.info("PO-%s: %s -> %s", po.number, po.status.value, updates.get("status"))


def _require_reason(reason: str | None, kind: str) -> str:
    if not reason or not reason.strip():
        raise ValidationError(f"A {kind} reason is required")
    return reason.strip()
