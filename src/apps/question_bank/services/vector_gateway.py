from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from apps.question_bank.errors import VectorStoreError
from db.models.vector_entry import VectorEntry
from logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class VectorIndex:
    """Handle to one named index in the vector database."""

    name: str
    dimension: int
    session_maker: sessionmaker


@dataclass
class UpsertResult:
    success: bool
    message: str
    vector_id: str | None = None
    namespace: str | None = None

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.vector_id:
            out["vectorId"] = self.vector_id
        if self.namespace:
            out["namespace"] = self.namespace
        return out


class VectorIndexGateway:
    """
    Point operations on vectors, scoped to (index, namespace, vector id).

    Upsert and delete never raise on backend errors; they report
    success=False with the backend message instead.
    """

    async def upsert_vector(
        self,
        index: VectorIndex,
        namespace: str,
        vector_id: str,
        embedding: list[float],
        metadata: dict[str, Any],
    ) -> UpsertResult:
        if len(embedding) != index.dimension:
            return UpsertResult(
                success=False,
                message=f"vector dimension {len(embedding)} does not match index dimension {index.dimension}",
            )

        stmt = insert(VectorEntry).values(
            index_name=index.name,
            namespace=namespace,
            vector_id=vector_id,
            embedding=embedding,
            meta=metadata,
            updated_at=datetime.datetime.now(datetime.timezone.utc),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[VectorEntry.index_name, VectorEntry.namespace, VectorEntry.vector_id],
            set_={
                "embedding": stmt.excluded.embedding,
                "meta": stmt.excluded.meta,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        try:
            async with index.session_maker() as session:
                async with session.begin():
                    await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.warning("Vector upsert failed: %s/%s: %s", namespace, vector_id, e)
            return UpsertResult(success=False, message=f"vector upsert failed: {e}")

        return UpsertResult(
            success=True,
            message="Vector upserted successfully",
            vector_id=vector_id,
            namespace=namespace,
        )

    async def delete_vector(self, index: VectorIndex, namespace: str, vector_id: str) -> UpsertResult:
        stmt = delete(VectorEntry).where(
            VectorEntry.index_name == index.name,
            VectorEntry.namespace == namespace,
            VectorEntry.vector_id == vector_id,
        )
        try:
            async with index.session_maker() as session:
                async with session.begin():
                    res = await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.warning("Vector delete failed: %s/%s: %s", namespace, vector_id, e)
            return UpsertResult(success=False, message=f"vector delete failed: {e}")

        message = "Vector deleted successfully" if res.rowcount else "Vector not found, nothing to delete"
        return UpsertResult(success=True, message=message, vector_id=vector_id, namespace=namespace)

    async def fetch_vector(
        self, index: VectorIndex, namespace: str, vector_id: str
    ) -> dict[str, Any] | None:
        """
        Returns {"id", "values", "metadata"} or None when absent.
        """
        try:
            async with index.session_maker() as session:
                row = await self._get(session, index, namespace, vector_id)
        except SQLAlchemyError as e:
            raise VectorStoreError(f"vector fetch failed: {e}") from e
        if row is None:
            return None
        return {"id": row.vector_id, "values": list(row.embedding), "metadata": dict(row.meta or {})}

    async def list_vector_ids(self, index: VectorIndex, namespace: str) -> set[str]:
        stmt = select(VectorEntry.vector_id).where(
            VectorEntry.index_name == index.name,
            VectorEntry.namespace == namespace,
        )
        try:
            async with index.session_maker() as session:
                res = await session.execute(stmt)
        except SQLAlchemyError as e:
            raise VectorStoreError(f"vector listing failed: {e}") from e
        return {str(vid) for vid in res.scalars().all()}

    @staticmethod
    async def _get(
        session: AsyncSession, index: VectorIndex, namespace: str, vector_id: str
    ) -> VectorEntry | None:
        res = await session.execute(
            select(VectorEntry).where(
                VectorEntry.index_name == index.name,
                VectorEntry.namespace == namespace,
                VectorEntry.vector_id == vector_id,
            )
        )
        return res.scalar_one_or_none()
