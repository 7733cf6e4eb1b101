"""In-process document store."""

from __future__ import annotations

import asyncio
import copy
import logging
from decimal import Decimal
from typing import Any, Callable

from budget_ledger.exceptions import DocumentNotFoundError
from budget_ledger.money import ClampNonNegative, money_str, to_money
from budget_ledger.store.base import split_path

logger = logging.getLogger(__name__)


class InMemoryDocumentStore:
    """Dict-backed store.

    Reads and writes copy bodies so callers never share mutable state with
    the store. `increment` and `transform` hold a lock across their read-modify-write,
    which makes them atomic with respect to each other on this store.
    """

    def __init__(self) -> None:
        self._docs: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _with_id(path: str, body: dict[str, Any]) -> dict[str, Any]:
        _, doc_id = split_path(path)
        doc = copy.deepcopy(body)
        doc["id"] = doc_id
        return doc

    async def get(self, path: str) -> dict[str, Any] | None:
        path = path.strip("/")
        body = self._docs.get(path)
        if body is None:
            return None
        return self._with_id(path, body)

    async def set(self, path: str, body: dict[str, Any]) -> None:
        path = path.strip("/")
        split_path(path)
        stored = copy.deepcopy(body)
        stored.pop("id", None)
        self._docs[path] = stored

    async def update(self, path: str, partial: dict[str, Any]) -> None:
        path = path.strip("/")
        body = self._docs.get(path)
        if body is None:
            raise DocumentNotFoundError(path)
        changes = copy.deepcopy(partial)
        changes.pop("id", None)
        body.update(changes)

    async def delete(self, path: str) -> None:
        self._docs.pop(path.strip("/"), None)

    async def list_collection(self, path: str) -> list[dict[str, Any]]:
        prefix = path.strip("/") + "/"
        docs = []
        for doc_path in sorted(self._docs):
            if doc_path.startswith(prefix) and "/" not in doc_path[len(prefix):]:
                docs.append(self._with_id(doc_path, self._docs[doc_path]))
        return docs

    async def increment(
        self,
        path: str,
        deltas: dict[str, Decimal],
        clamp: ClampNonNegative | None = None,
    ) -> dict[str, Any]:
        path = path.strip("/")
        async with self._lock:
            body = self._docs.get(path)
            if body is None:
                raise DocumentNotFoundError(path)
            for field_name, delta in deltas.items():
                current = to_money(body.get(field_name))
                if clamp and clamp.clamped(current, delta):
                    logger.warning(
                        "Clamped %s.%s at %s (was %s, delta %s)", path, field_name, clamp.floor, current, delta
                    )
                new_value = clamp.apply(current, delta) if clamp else current + delta
                body[field_name] = money_str(new_value)
            return self._with_id(path, body)

    async def transform(
        self, path: str, change: Callable[[dict[str, Any]], dict[str, Any]]
    ) -> dict[str, Any]:
        path = path.strip("/")
        async with self._lock:
            body = self._docs.get(path)
            if body is None:
                raise DocumentNotFoundError(path)
            new_body = copy.deepcopy(change(copy.deepcopy(body)))
            new_body.pop("id", None)
            self._docs[path] = new_body
            return self._with_id(path, new_body)

    async def ping(self) -> bool:
        return True
