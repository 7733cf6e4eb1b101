"""Reconciliation runner - per-item sub-account pass of a state transition.

A transition's sub-account writes form a saga: a linear sequence of
steps, each with a declared compensating step. The runner applies steps
best-effort:

1. Each step is isolated; a failure is logged, recorded, and skipped
2. The batch never aborts and never rolls back on its own
3. Compensation is available only as an explicit call (`compensate`)

The caller writes the parent document's status after `run` returns, so a
partial result leaves the new status next to partially adjusted
sub-accounts. `ReconciliationResult.partial` flags that case.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Generic, Iterable, TypeVar

from budget_ledger.services.allocation import Allocation
from budget_ledger.services.ledger_service import Adjustment, BalanceField, SubAccountLedger

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ReconciliationStep:
    """One ledger adjustment: a signed delta on one balance of one sub-account."""

    sub_account_id: str
    field: BalanceField
    delta: Decimal
    item_index: int | None = None

    def compensation(self) -> ReconciliationStep:
        """Step that undoes this one.

        Exact unless the original decrease was clamped at zero, in which case
        the compensation restores more than was actually removed.
        """
        return ReconciliationStep(
            sub_account_id=self.sub_account_id,
            field=self.field,
            delta=-self.delta,
            item_index=self.item_index,
        )

    @classmethod
    def from_allocations(
        cls, allocations: Iterable[Allocation], field: BalanceField
    ) -> list[ReconciliationStep]:
        return [
            cls(sub_account_id=a.sub_account_id, field=field, delta=a.amount, item_index=a.item_index)
            for a in allocations
        ]


@dataclass(frozen=True)
class StepFailure:
    """A step that could not be applied."""

    step: ReconciliationStep
    error: Exception


@dataclass
class ReconciliationResult:
    """Outcome of a reconciliation pass."""

    label: str
    applied: list[tuple[ReconciliationStep, Adjustment]] = field(default_factory=list)
    failed: list[StepFailure] = field(default_factory=list)
    skipped: list[ReconciliationStep] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True if no step failed."""
        return not self.failed

    @property
    def partial(self) -> bool:
        """True if some steps applied and some failed."""
        return bool(self.applied) and bool(self.failed)

    @property
    def applied_total(self) -> Decimal:
        return sum((step.delta for step, _ in self.applied), Decimal("0"))

    def compensations(self) -> list[ReconciliationStep]:
        """Compensating steps for everything applied, in reverse order."""
        return [step.compensation() for step, _ in reversed(self.applied)]


@dataclass(frozen=True)
class TransitionResult(Generic[T]):
    """A state transition's resulting entity plus its reconciliation pass."""

    entity: T
    reconciliation: ReconciliationResult | None = None


class ReconciliationRunner:
    """Applies reconciliation steps with per-item error isolation."""

    def __init__(self, ledger: SubAccountLedger):
        self.ledger = ledger

    async def run(
        self,
        project_id: str,
        steps: Iterable[ReconciliationStep],
        label: str,
    ) -> ReconciliationResult:
        """Apply every step, continuing past failures.

        Zero-delta steps are skipped without touching the store.
        """
        result = ReconciliationResult(label=label)

        for step in steps:
            if step.delta == 0:
                result.skipped.append(step)
                continue
            try:
                adjustment = await self.ledger.adjust(
                    project_id, step.sub_account_id, step.field, step.delta
                )
            except Exception as e:
                logger.exception(
                    "%s: failed to adjust %s of sub-account %s by %s (item %s); skipping",
                    label,
                    step.field.value,
                    step.sub_account_id,
                    step.delta,
                    step.item_index,
                )
                result.failed.append(StepFailure(step=step, error=e))
                continue
            result.applied.append((step, adjustment))

        if result.partial:
            logger.warning(
                "%s: partial reconciliation, %d applied, %d failed",
                label,
                len(result.applied),
                len(result.failed),
            )
        return result

    async def compensate(self, project_id: str, result: ReconciliationResult) -> ReconciliationResult:
        """Explicitly run the compensations of a previous pass."""
        return await self.run(project_id, result.compensations(), f"compensate:{result.label}")
