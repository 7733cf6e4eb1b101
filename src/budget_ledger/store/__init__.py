"""Document store backends."""

from budget_ledger.store.base import (
    DocumentStore,
    account_path,
    accounts_path,
    invoice_path,
    invoices_path,
    po_path,
    pos_path,
    split_path,
    sub_account_path,
    sub_accounts_path,
)
from budget_ledger.store.memory import InMemoryDocumentStore
from budget_ledger.store.sql import DocumentRecord, SqlDocumentStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "SqlDocumentStore",
    "DocumentRecord",
    "split_path",
    "accounts_path",
    "account_path",
    "sub_accounts_path",
    "sub_account_path",
    "pos_path",
    "po_path",
    "invoices_path",
    "invoice_path",
]
