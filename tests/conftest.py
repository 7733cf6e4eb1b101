"""Pytest fixtures for budget ledger tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Awaitable, Callable

import pytest

from budget_ledger.clock import FixedClock
from budget_ledger.models.budget import SubAccount
from budget_ledger.models.line_item import LineItem
from budget_ledger.services.auth import Identity, InMemoryIdentityProvider, ReauthGate
from budget_ledger.services.invoice_service import InvoiceService
from budget_ledger.services.ledger_service import SubAccountLedger
from budget_ledger.services.purchase_order_service import PurchaseOrderService
from budget_ledger.store.base import account_path, sub_account_path
from budget_ledger.store.memory import InMemoryDocumentStore

PROJECT_ID = "film-2026"
USER_ID = "user-ana"
USER_NAME = "Ana Ruiz"
PASSWORD = "correct-horse"

# sub-account id -> (account id, budgeted)
SUB_ACCOUNTS = {
    "A": ("acc-01", "5000"),
    "B": ("acc-01", "5000"),
    "C": ("acc-02", "2000"),
}

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


async def seed_budget(store, project_id: str = PROJECT_ID) -> None:
    """Create two accounts holding sub-accounts A, B and C with zero balances."""
    for account_id, code in (("acc-01", "01"), ("acc-02", "02")):
        await store.set(account_path(project_id, account_id), {"code": code, "description": f"Account {code}"})
    for sub_id, (account_id, budgeted) in SUB_ACCOUNTS.items():
        await store.set(
            sub_account_path(project_id, account_id, sub_id),
            {
                "code": f"{account_id[-2:]}.{sub_id}",
                "description": f"Sub-account {sub_id}",
                "budgeted": budgeted,
                "committed": "0",
                "actual": "0",
            },
        )


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
async def seeded_store(store: InMemoryDocumentStore) -> InMemoryDocumentStore:
    """Store holding the project's budget tree."""
    await seed_budget(store)
    return store


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def identity_provider() -> InMemoryIdentityProvider:
    provider = InMemoryIdentityProvider()
    provider.register(USER_ID, PASSWORD, USER_NAME)
    return provider


@pytest.fixture
def actor() -> Identity:
    return Identity(USER_ID, USER_NAME)


@pytest.fixture
def ledger(seeded_store: InMemoryDocumentStore) -> SubAccountLedger:
    return SubAccountLedger(seeded_store)


@pytest.fixture
def po_service(seeded_store, identity_provider, clock, ledger) -> PurchaseOrderService:
    return PurchaseOrderService(seeded_store, ReauthGate(identity_provider), clock, ledger)


@pytest.fixture
def invoice_service(seeded_store, identity_provider, clock, ledger) -> InvoiceService:
    return InvoiceService(seeded_store, ReauthGate(identity_provider), clock, ledger)


@pytest.fixture
def balance(ledger: SubAccountLedger) -> Callable[[str], Awaitable[SubAccount]]:
    """Read a sub-account's balances by sub-account id."""

    async def read(sub_account_id: str) -> SubAccount:
        ref = await ledger.find_sub_account(PROJECT_ID, sub_account_id)
        return await ledger.get_sub_account(ref)

    return read


@pytest.fixture
def approved_po(po_service: PurchaseOrderService, actor: Identity):
    """Factory: create, submit and approve a PO with (sub-account, base) items."""

    async def create(*lines: tuple[str | None, str]):
        items = [
            LineItem.build(f"Line {i}", sub_id, quantity="1", unit_price=base)
            for i, (sub_id, base) in enumerate(lines)
        ]
        po = await po_service.create_draft(PROJECT_ID, actor, items, supplier="Grip & Light SL")
        await po_service.submit(PROJECT_ID, po.id, actor)
        result = await po_service.approve(PROJECT_ID, po.id, actor)
        return result.entity

    return create
