"""Purchase order and invoice state machines with transition validation."""

from __future__ import annotations

from datetime import datetime

from budget_ledger.exceptions import InvalidTransitionError
from budget_ledger.models.invoice import Invoice, InvoiceStatus
from budget_ledger.models.purchase_order import POStatus


class PurchaseOrderStateMachine:
    """State machine for purchase order status transitions.

    Allowed transitions:
    - draft → pending (submit)
    - draft → cancelled
    - pending → approved (commits budget)
    - pending → rejected
    - rejected → draft (rework)
    - approved → closed (releases unused commitment)
    - approved → cancelled (releases full commitment)
    - approved → draft (modify: new version, needs re-approval)
    - closed → approved (reopen: restores commitment)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        POStatus.DRAFT: [POStatus.PENDING, POStatus.CANCELLED],
        POStatus.PENDING: [POStatus.APPROVED, POStatus.REJECTED],
        POStatus.REJECTED: [POStatus.DRAFT],
        POStatus.APPROVED: [POStatus.CLOSED, POStatus.CANCELLED, POStatus.DRAFT],
        POStatus.CLOSED: [POStatus.APPROVED],
        POStatus.CANCELLED: [],  # Terminal state
    }

    # Statuses holding a commitment on sub-accounts
    COMMITTING = {POStatus.APPROVED}

    # Statuses in which the document may be deleted outright
    DELETABLE = {POStatus.DRAFT}

    # Statuses in which items and header may still be edited
    EDITABLE = {POStatus.DRAFT, POStatus.REJECTED}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(_value(from_status), _value(to_status))

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def is_reopen(cls, from_status: str, to_status: str) -> bool:
        """Check if this transition is a reopen (closed → approved)."""
        return from_status == POStatus.CLOSED and to_status == POStatus.APPROVED

    @classmethod
    def is_modify(cls, from_status: str, to_status: str) -> bool:
        """Check if this transition is a modification (approved → draft)."""
        return from_status == POStatus.APPROVED and to_status == POStatus.DRAFT

    @classmethod
    def holds_commitment(cls, status: str) -> bool:
        return status in cls.COMMITTING

    @classmethod
    def can_delete(cls, status: str) -> bool:
        return status in cls.DELETABLE

    @classmethod
    def can_edit(cls, status: str) -> bool:
        return status in cls.EDITABLE


class InvoiceStateMachine:
    """State machine for invoice status transitions.

    Allowed transitions:
    - pending_approval → pending (approved for payment)
    - pending_approval → rejected
    - pending_approval → cancelled
    - pending → paid (actualizes budget)
    - pending → overdue (passive, on read once dueDate has passed)
    - pending → cancelled
    - overdue → paid
    - overdue → cancelled
    - paid → cancelled (reverses actualization)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        InvoiceStatus.PENDING_APPROVAL: [
            InvoiceStatus.PENDING,
            InvoiceStatus.REJECTED,
            InvoiceStatus.CANCELLED,
        ],
        InvoiceStatus.PENDING: [
            InvoiceStatus.PAID,
            InvoiceStatus.OVERDUE,
            InvoiceStatus.CANCELLED,
        ],
        InvoiceStatus.OVERDUE: [InvoiceStatus.PAID, InvoiceStatus.CANCELLED],
        InvoiceStatus.PAID: [InvoiceStatus.CANCELLED],
        InvoiceStatus.REJECTED: [],  # Only deletable
        InvoiceStatus.CANCELLED: [],  # Terminal state
    }

    # Statuses with no ledger effect yet, which may be deleted outright
    DELETABLE = {InvoiceStatus.PENDING_APPROVAL, InvoiceStatus.REJECTED}

    # Statuses that have actualized budget
    ACTUALIZED = {InvoiceStatus.PAID}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(_value(from_status), _value(to_status))

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def can_delete(cls, status: str) -> bool:
        return status in cls.DELETABLE

    @classmethod
    def is_actualized(cls, status: str) -> bool:
        return status in cls.ACTUALIZED

    @staticmethod
    def derive_status(invoice: Invoice, now: datetime) -> InvoiceStatus:
        """Status an invoice should have at `now`.

        Pure: a pending invoice whose due date has passed is overdue; any
        other status is returned unchanged.
        """
        if (
            invoice.status == InvoiceStatus.PENDING
            and invoice.due_date is not None
            and invoice.due_date < now
        ):
            return InvoiceStatus.OVERDUE
        return invoice.status


def _value(status: str) -> str:
    return status.value if hasattr(status, "value") else str(status)
