"""SQLAlchemy-backed document store.

One row per document. `version` is bumped on every write and guards the
read-modify-write in `update`, `increment` and `transform` (optimistic concurrency):
the UPDATE only matches the version that was read, and a miss is retried.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Callable

from sqlalchemy import JSON, Integer, String, delete, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from budget_ledger.exceptions import ConcurrencyConflictError, DocumentNotFoundError
from budget_ledger.models.base import Base, TimestampMixin
from budget_ledger.money import ClampNonNegative, money_str, to_money
from budget_ledger.store.base import split_path

logger = logging.getLogger(__name__)


class DocumentRecord(Base, TimestampMixin):
    """Stored document body keyed by its path."""

    __tablename__ = "document"

    path: Mapped[str] = mapped_column(String(512), primary_key=True)
    parent: Mapped[str] = mapped_column(String(512), index=True, nullable=False)
    doc_id: Mapped[str] = mapped_column(String(128), nullable=False)
    body: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def to_document(self) -> dict[str, Any]:
        doc = dict(self.body or {})
        doc["id"] = self.doc_id
        return doc


class SqlDocumentStore:
    """Document store over an async SQLAlchemy session factory.

    Each call runs in its own session and transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        retry_limit: int = 5,
    ):
        self.session_factory = session_factory
        self.retry_limit = retry_limit

    async def get(self, path: str) -> dict[str, Any] | None:
        path = path.strip("/")
        async with self.session_factory() as session:
            record = await session.get(DocumentRecord, path)
            return record.to_document() if record else None

    async def set(self, path: str, body: dict[str, Any]) -> None:
        path = path.strip("/")
        parent, doc_id = split_path(path)
        stored = {k: v for k, v in body.items() if k != "id"}
        async with self.session_factory() as session:
            record = await session.get(DocumentRecord, path)
            if record is None:
                session.add(
                    DocumentRecord(path=path, parent=parent, doc_id=doc_id, body=stored, version=1)
                )
            else:
                record.body = stored
                record.version = record.version + 1
            await session.commit()

    async def update(self, path: str, partial: dict[str, Any]) -> None:
        changes = {k: v for k, v in partial.items() if k != "id"}
        await self.transform(path, lambda body: {**body, **changes})

    async def delete(self, path: str) -> None:
        async with self.session_factory() as session:
            await session.execute(delete(DocumentRecord).where(DocumentRecord.path == path.strip("/")))
            await session.commit()

    async def list_collection(self, path: str) -> list[dict[str, Any]]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(DocumentRecord)
                .where(DocumentRecord.parent == path.strip("/"))
                .order_by(DocumentRecord.path)
            )
            return [r.to_document() for r in result.scalars().all()]

    async def increment(
        self,
        path: str,
        deltas: dict[str, Decimal],
        clamp: ClampNonNegative | None = None,
    ) -> dict[str, Any]:
        def apply(body: dict[str, Any]) -> dict[str, Any]:
            new_body = dict(body)
            for field_name, delta in deltas.items():
                current = to_money(body.get(field_name))
                if clamp and clamp.clamped(current, delta):
                    logger.warning(
                        "Clamped %s.%s at %s (was %s, delta %s)", path, field_name, clamp.floor, current, delta
                    )
                value = clamp.apply(current, delta) if clamp else current + delta
                new_body[field_name] = money_str(value)
            return new_body

        return await self.transform(path, apply)

    async def ping(self) -> bool:
        """Check the database answers."""
        async with self.session_factory() as session:
            await session.execute(text("SELECT 1"))
        return True

    async def transform(
        self, path: str, change: Callable[[dict[str, Any]], dict[str, Any]]
    ) -> dict[str, Any]:
        """Compare-and-swap loop on the row version.

        `change` is called once per attempt.
        """
        path = path.strip("/")
        for attempt in range(1, self.retry_limit + 1):
            async with self.session_factory() as session:
                record = await session.get(DocumentRecord, path)
                if record is None:
                    raise DocumentNotFoundError(path)
                read_version = record.version
                doc_id = record.doc_id
                new_body = change(dict(record.body or {}))

                result = await session.execute(
                    update(DocumentRecord)
                    .where(
                        DocumentRecord.path == path,
                        DocumentRecord.version == read_version,
                    )
                    .values(body=new_body, version=read_version + 1)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    await session.commit()
                    doc = dict(new_body)
                    doc["id"] = doc_id
                    return doc

                await session.rollback()
                logger.warning(
                    "Version conflict on %s (read v%s), attempt %d/%d",
                    path,
                    read_version,
                    attempt,
                    self.retry_limit,
                )

        raise ConcurrencyConflictError(path, self.retry_limit)
