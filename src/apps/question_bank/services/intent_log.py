from __future__ import annotations

import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import sessionmaker

from apps.question_bank.errors import RecordStoreError
from apps.question_bank.services.question_repo import STORE_ERRORS
from db.models.sync_intent import SyncIntent
from db.session import async_session_maker

PENDING = "pending"
COMPLETED = "completed"
ROLLED_BACK = "rolled_back"
ABORTED = "aborted"
FAILED = "failed"
CRITICAL = "critical"

UNRESOLVED = (PENDING, FAILED, CRITICAL)


class IntentLog:
    """Durable write-ahead log of create/delete operations."""

    def __init__(self, session_maker: sessionmaker | None = None) -> None:
        self._session_maker = session_maker or async_session_maker

    async def open(self, operation: str, question_id: int, vector_id: str, namespace: str) -> int:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    intent = SyncIntent(
                        operation=operation,
                        question_id=question_id,
                        vector_id=vector_id,
                        namespace=namespace,
                        status=PENDING,
                    )
                    session.add(intent)
                    await session.flush()
                    intent_id = intent.id
        except STORE_ERRORS as e:
            raise RecordStoreError(f"database error while writing sync intent: {e}") from e
        return int(intent_id)

    async def resolve(self, intent_id: int, status: str, error: str | None = None) -> None:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    await session.execute(
                        update(SyncIntent)
                        .where(SyncIntent.id == intent_id)
                        .values(status=status, error=error)
                    )
        except STORE_ERRORS as e:
            raise RecordStoreError(f"database error while resolving sync intent {intent_id}: {e}") from e

    async def list_unresolved(self, older_than: datetime.datetime) -> list[dict[str, Any]]:
        stmt = (
            select(SyncIntent)
            .where(SyncIntent.status.in_(UNRESOLVED), SyncIntent.created_at <= older_than)
            .order_by(SyncIntent.id)
        )
        try:
            async with self._session_maker() as session:
                res = await session.execute(stmt)
                rows = res.scalars().all()
        except STORE_ERRORS as e:
            raise RecordStoreError(f"database error while listing sync intents: {e}") from e
        return [
            {
                "id": r.id,
                "operation": r.operation,
                "question_id": r.question_id,
                "vector_id": r.vector_id,
                "namespace": r.namespace,
                "status": r.status,
                "error": r.error,
                "created_at": r.created_at,
            }
            for r in rows
        ]
