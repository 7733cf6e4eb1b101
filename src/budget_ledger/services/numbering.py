"""Correlative document numbers."""

from __future__ import annotations

from budget_ledger.store.base import DocumentStore


def format_number(value: int) -> str:
    """Zero-pad a document number to four digits."""
    return str(value).zfill(4)


async def next_number(store: DocumentStore, collection: str) -> str:
    """Next number in a collection: highest existing number + 1.

    Non-numeric numbers are ignored.
    """
    highest = 0
    for doc in await store.list_collection(collection):
        try:
            highest = max(highest, int(str(doc.get("number", "")).strip()))
        except ValueError:
            continue
    return format_number(highest + 1)
