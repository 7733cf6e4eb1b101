"""Sub-account ledger - committed/actual balance adjustments.

Provides the only write path to sub-account balances:
- increase/decrease of `committed` (PO approval, close, reopen, cancel)
- increase/decrease of `actual` (invoice payment and its reversal)
- ClampNonNegative policy on every decrease
- Budget summaries (available = budgeted - committed - actual)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from budget_ledger.exceptions import DocumentNotFoundError, SubAccountNotFoundError
from budget_ledger.models.budget import AccountSummary, BudgetSummary, SubAccount
from budget_ledger.money import CLAMP_NON_NEGATIVE, ClampNonNegative, to_money
from budget_ledger.store.base import (
    DocumentStore,
    accounts_path,
    sub_account_path,
    sub_accounts_path,
)

logger = logging.getLogger(__name__)


class BalanceField(str, Enum):
    """Sub-account balances mutated by the ledger."""

    COMMITTED = "committed"
    ACTUAL = "actual"


@dataclass(frozen=True)
class SubAccountRef:
    """Location of a sub-account: (accountId, subAccountId) inside a project."""

    project_id: str
    account_id: str
    sub_account_id: str

    @property
    def path(self) -> str:
        return sub_account_path(self.project_id, self.account_id, self.sub_account_id)


@dataclass(frozen=True)
class Adjustment:
    """Result of one ledger adjustment."""

    ref: SubAccountRef
    field: BalanceField
    delta: Decimal
    balance: Decimal  # value of `field` after the write


class SubAccountLedger:
    """Atomic committed/actual adjustments on sub-account documents.

    Notes:
    - Every adjustment is a single `increment` on the store; no value is
      read here and written back computed client-side.
    - Amounts passed to increase/decrease must be positive.
    - Decreases go through `policy` (ClampNonNegative by default).
    - No cross-sub-account invariant is checked at write time.
    """

    def __init__(self, store: DocumentStore, policy: ClampNonNegative = CLAMP_NON_NEGATIVE):
        self.store = store
        self.policy = policy

    async def find_sub_account(self, project_id: str, sub_account_id: str) -> SubAccountRef:
        """Locate the account owning a sub-account by scanning the project's accounts.

        Raises:
            SubAccountNotFoundError: If no account has that sub-account
        """
        for account in await self.store.list_collection(accounts_path(project_id)):
            ref = SubAccountRef(project_id, account["id"], sub_account_id)
            if await self.store.get(ref.path) is not None:
                return ref
        raise SubAccountNotFoundError(project_id, sub_account_id)

    async def get_sub_account(self, ref: SubAccountRef) -> SubAccount:
        doc = await self.store.get(ref.path)
        if doc is None:
            raise DocumentNotFoundError(ref.path)
        return SubAccount.from_document(ref.account_id, doc)

    async def increase_committed(self, ref: SubAccountRef, amount: Decimal) -> Adjustment:
        return await self._adjust(ref, BalanceField.COMMITTED, _positive(amount))

    async def decrease_committed(self, ref: SubAccountRef, amount: Decimal) -> Adjustment:
        return await self._adjust(ref, BalanceField.COMMITTED, -_positive(amount))

    async def increase_actual(self, ref: SubAccountRef, amount: Decimal) -> Adjustment:
        return await self._adjust(ref, BalanceField.ACTUAL, _positive(amount))

    async def decrease_actual(self, ref: SubAccountRef, amount: Decimal) -> Adjustment:
        return await self._adjust(ref, BalanceField.ACTUAL, -_positive(amount))

    async def adjust(
        self,
        project_id: str,
        sub_account_id: str,
        field: BalanceField,
        delta: Decimal,
    ) -> Adjustment:
        """Resolve a sub-account and apply a signed delta to one balance."""
        ref = await self.find_sub_account(project_id, sub_account_id)
        if delta > 0:
            if field is BalanceField.COMMITTED:
                return await self.increase_committed(ref, delta)
            return await self.increase_actual(ref, delta)
        if field is BalanceField.COMMITTED:
            return await self.decrease_committed(ref, -delta)
        return await self.decrease_actual(ref, -delta)

    async def summarize(self, project_id: str) -> BudgetSummary:
        """Build per-account and project totals for the budget view."""
        summary = BudgetSummary(project_id=project_id)
        for account in await self.store.list_collection(accounts_path(project_id)):
            account_summary = AccountSummary(
                account_id=account["id"],
                code=account.get("code", ""),
                description=account.get("description", ""),
            )
            for doc in await self.store.list_collection(sub_accounts_path(project_id, account["id"])):
                account_summary.sub_accounts.append(SubAccount.from_document(account["id"], doc))
            summary.accounts.append(account_summary)
        return summary

    async def _adjust(self, ref: SubAccountRef, field: BalanceField, delta: Decimal) -> Adjustment:
        clamp = self.policy if delta < 0 else None
        doc = await self.store.increment(ref.path, {field.value: delta}, clamp=clamp)
        balance = to_money(doc.get(field.value))
        logger.debug(
            "Adjusted %s.%s by %s -> %s", ref.sub_account_id, field.value, delta, balance
        )
        return Adjustment(ref=ref, field=field, delta=delta, balance=balance)


def _positive(amount: Decimal) -> Decimal:
    amount = to_money(amount)
    if amount <= 0:
        raise ValueError("Amount must be positive")
    return amount
