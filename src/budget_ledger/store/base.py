"""Document store protocol and path layout.

The store is a mapping from document path to document body. Each operation
is independently consistent; nothing groups writes across paths.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Protocol, runtime_checkable

from budget_ledger.money import ClampNonNegative


@runtime_checkable
class DocumentStore(Protocol):
    """Per-document CRUD plus atomic increment and transform primitives.

    Bodies returned by `get` and `list_collection` include an `id` key set to
    the last path segment. Monetary fields are decimal strings.
    """

    async def get(self, path: str) -> dict[str, Any] | None:
        """Return the document at path, or None if absent."""
        ...

    async def set(self, path: str, body: dict[str, Any]) -> None:
        """Create or replace the document at path."""
        ...

    async def update(self, path: str, partial: dict[str, Any]) -> None:
        """Merge top-level fields into an existing document.

        Raises DocumentNotFoundError if the document does not exist.
        """
        ...

    async def delete(self, path: str) -> None:
        """Delete the document at path (no-op if absent)."""
        ...

    async def list_collection(self, path: str) -> list[dict[str, Any]]:
        """Return the direct child documents of a collection path."""
        ...

    async def increment(
        self,
        path: str,
        deltas: dict[str, Decimal],
        clamp: ClampNonNegative | None = None,
    ) -> dict[str, Any]:
        """Atomically add deltas to monetary fields of one document.

        With a clamp policy each field becomes `clamp.apply(current, delta)`.
        Returns the updated document. Raises DocumentNotFoundError if absent.
        """
        ...

    async def transform(
        self, path: str, change: Callable[[dict[str, Any]], dict[str, Any]]
    ) -> dict[str, Any]:
        """Atomically replace a document's body with `change(body)`.

        `change` receives the stored body without its `id` and may run more
        than once. Returns the new document. Raises DocumentNotFoundError if
        absent.
        """
        ...

    async def ping(self) -> bool:
        """Check the backend answers."""
        ...


def split_path(path: str) -> tuple[str, str]:
    """Split a document path into (collection path, document id)."""
    path = path.strip("/")
    if "/" not in path:
        raise ValueError(f"Not a document path: {path!r}")
    parent, doc_id = path.rsplit("/", 1)
    return parent, doc_id


# Path layout

def accounts_path(project_id: str) -> str:
    return f"projects/{project_id}/accounts"


def account_path(project_id: str, account_id: str) -> str:
    return f"{accounts_path(project_id)}/{account_id}"


def sub_accounts_path(project_id: str, account_id: str) -> str:
    return f"{account_path(project_id, account_id)}/subaccounts"


def sub_account_path(project_id: str, account_id: str, sub_account_id: str) -> str:
    return f"{sub_accounts_path(project_id, account_id)}/{sub_account_id}"


def pos_path(project_id: str) -> str:
    return f"projects/{project_id}/pos"


def po_path(project_id: str, po_id: str) -> str:
    return f"{pos_path(project_id)}/{po_id}"


def invoices_path(project_id: str) -> str:
    return f"projects/{project_id}/invoices"


def invoice_path(project_id: str, invoice_id: str) -> str:
    return f"{invoices_path(project_id)}/{invoice_id}"
