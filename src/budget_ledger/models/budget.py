"""Budget accounts, sub-accounts and their balances."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from budget_ledger.money import ZERO, to_money


@dataclass(frozen=True)
class SubAccount:
    """Finest-grained budget bucket.

    committed: reserved by approved, not-yet-invoiced POs.
    actual: realized by paid invoices.
    """

    account_id: str
    sub_account_id: str
    budgeted: Decimal
    committed: Decimal
    actual: Decimal
    code: str = ""
    description: str = ""

    @property
    def available(self) -> Decimal:
        return self.budgeted - self.committed - self.actual

    @property
    def executed(self) -> Decimal:
        return self.committed + self.actual

    @classmethod
    def from_document(cls, account_id: str, doc: dict[str, Any]) -> SubAccount:
        return cls(
            account_id=account_id,
            sub_account_id=doc["id"],
            budgeted=to_money(doc.get("budgeted")),
            committed=to_money(doc.get("committed")),
            actual=to_money(doc.get("actual")),
            code=doc.get("code", ""),
            description=doc.get("description", ""),
        )


@dataclass
class AccountSummary:
    """Totals over the sub-accounts of one account."""

    account_id: str
    code: str
    description: str
    sub_accounts: list[SubAccount] = field(default_factory=list)

    @property
    def budgeted(self) -> Decimal:
        return sum((s.budgeted for s in self.sub_accounts), ZERO)

    @property
    def committed(self) -> Decimal:
        return sum((s.committed for s in self.sub_accounts), ZERO)

    @property
    def actual(self) -> Decimal:
        return sum((s.actual for s in self.sub_accounts), ZERO)

    @property
    def available(self) -> Decimal:
        return self.budgeted - self.committed - self.actual

    @property
    def executed(self) -> Decimal:
        return self.committed + self.actual


@dataclass
class BudgetSummary:
    """Project-wide budget view."""

    project_id: str
    accounts: list[AccountSummary] = field(default_factory=list)

    @property
    def budgeted(self) -> Decimal:
        return sum((a.budgeted for a in self.accounts), ZERO)

    @property
    def committed(self) -> Decimal:
        return sum((a.committed for a in self.accounts), ZERO)

    @property
    def actual(self) -> Decimal:
        return sum((a.actual for a in self.accounts), ZERO)

    @property
    def available(self) -> Decimal:
        return self.budgeted - self.committed - self.actual
