"""SQL document store integration tests.

Tests verify:
1. CRUD and collection listing over the document table
2. Atomic increments with the clamp policy
3. Optimistic concurrency: version conflicts are retried, then surfaced
"""

import asyncio
import sqlite3
from datetime import timedelta
from decimal import Decimal

import pytest

from budget_ledger.database import get_session_factory
from budget_ledger.exceptions import ConcurrencyConflictError, DocumentNotFoundError
from budget_ledger.models.line_item import LineItem
from budget_ledger.money import CLAMP_NON_NEGATIVE
from budget_ledger.services.auth import ReauthGate
from budget_ledger.services.invoice_service import InvoiceService
from budget_ledger.services.ledger_service import SubAccountLedger
from budget_ledger.services.purchase_order_service import PurchaseOrderService
from budget_ledger.store.sql import SqlDocumentStore
from tests.conftest import NOW, PROJECT_ID, seed_budget

pytestmark = pytest.mark.asyncio

SUB_A = f"projects/{PROJECT_ID}/accounts/acc-01/subaccounts/A"


def bump_version(db_file: str, path: str) -> None:
    """Write the row from another connection, as a concurrent writer would."""
    conn = sqlite3.connect(db_file)
    try:
        conn.execute("UPDATE document SET version = version + 1 WHERE path = ?", (path,))
        conn.commit()
    finally:
        conn.close()


class TestCrud:
    """Test basic document operations."""

    async def test_set_get_update_delete(self, sql_store: SqlDocumentStore):
        path = f"projects/{PROJECT_ID}/pos/po-1"

        await sql_store.set(path, {"number": "0001", "status": "draft"})
        await sql_store.update(path, {"status": "pending"})
        doc = await sql_store.get(path)

        assert doc == {"id": "po-1", "number": "0001", "status": "pending"}

        await sql_store.delete(path)
        assert await sql_store.get(path) is None

    async def test_update_missing_document(self, sql_store: SqlDocumentStore):
        with pytest.raises(DocumentNotFoundError):
            await sql_store.update(f"projects/{PROJECT_ID}/pos/ghost", {"status": "x"})

    async def test_list_collection_direct_children_only(self, sql_store: SqlDocumentStore):
        await seed_budget(sql_store)

        accounts = await sql_store.list_collection(f"projects/{PROJECT_ID}/accounts")

        assert [a["id"] for a in accounts] == ["acc-01", "acc-02"]

    async def test_ping(self, sql_store: SqlDocumentStore):
        assert await sql_store.ping() is True


class TestIncrement:
    """Test atomic balance increments."""

    async def test_increment_and_clamp(self, sql_store: SqlDocumentStore):
        await seed_budget(sql_store)

        await sql_store.increment(SUB_A, {"committed": Decimal("200")})
        doc = await sql_store.increment(SUB_A, {"committed": Decimal("-360")}, clamp=CLAMP_NON_NEGATIVE)

        assert Decimal(doc["committed"]) == Decimal("0")
        assert doc["budgeted"] == "5000"

    async def test_ledger_over_sql_store(self, sql_store: SqlDocumentStore):
        await seed_budget(sql_store)
        ledger = SubAccountLedger(sql_store)
        ref = await ledger.find_sub_account(PROJECT_ID, "B")

        await ledger.increase_committed(ref, Decimal("0.1"))
        await ledger.increase_committed(ref, Decimal("0.2"))

        assert (await ledger.get_sub_account(ref)).committed == Decimal("0.3")

    async def test_concurrent_increments_are_not_lost(self, engine):
        store = SqlDocumentStore(get_session_factory(engine), retry_limit=50)
        await seed_budget(store)

        await asyncio.gather(*(store.increment(SUB_A, {"actual": Decimal("10")}) for _ in range(8)))

        assert Decimal((await store.get(SUB_A))["actual"]) == Decimal("80")

    async def test_concurrent_payments_keep_po_amounts_consistent(
        self, engine, identity_provider, clock, actor
    ):
        store = SqlDocumentStore(get_session_factory(engine), retry_limit=50)
        await seed_budget(store)
        gate = ReauthGate(identity_provider)
        po_service = PurchaseOrderService(store, gate, clock)
        invoice_service = InvoiceService(store, gate, clock)
        po = await po_service.create_draft(
            PROJECT_ID, actor, [LineItem.build("Dolly", "A", quantity="1", unit_price="1000")]
        )
        await po_service.submit(PROJECT_ID, po.id, actor)
        await po_service.approve(PROJECT_ID, po.id, actor)
        invoices = []
        for _ in range(4):
            inv = await invoice_service.create(
                PROJECT_ID,
                actor,
                [LineItem.build("Dolly day", "A", quantity="1", unit_price="100")],
                due_date=NOW + timedelta(days=30),
                po_id=po.id,
            )
            await invoice_service.approve(PROJECT_ID, inv.id, actor)
            invoices.append(inv)

        await asyncio.gather(*(invoice_service.mark_paid(PROJECT_ID, inv.id, actor) for inv in invoices))

        po = await po_service.get(PROJECT_ID, po.id)
        assert po.invoiced_amount == Decimal("400")
        assert po.remaining_amount == Decimal("600")


class TestOptimisticConcurrency:
    """Test the version guard on read-modify-write."""

    async def test_conflict_is_retried(self, sql_store: SqlDocumentStore, db_file: str, caplog):
        await seed_budget(sql_store)
        calls = []

        def change(body):
            calls.append(1)
            if len(calls) == 1:
                bump_version(db_file, SUB_A)
            return {**body, "committed": "42"}

        doc = await sql_store.transform(SUB_A, change)

        assert len(calls) == 2
        assert doc["committed"] == "42"
        assert "Version conflict" in caplog.text

    async def test_retries_exhausted(self, sql_store: SqlDocumentStore, db_file: str):
        await seed_budget(sql_store)

        def change(body):
            bump_version(db_file, SUB_A)
            return body

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await sql_store.transform(SUB_A, change)

        assert exc_info.value.attempts == 5
