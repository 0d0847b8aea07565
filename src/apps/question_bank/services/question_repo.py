from __future__ import annotations

import asyncio
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from apps.question_bank.errors import RecordStoreError
from db.models.question_part import QuestionPart, question_id_seq
from db.session import async_session_maker

# Driver failures such as refused connections reach us unwrapped through the pool.
STORE_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


class QuestionRepo:
    """
    Point operations on question records.

    Every call runs in its own transaction. Records cross this boundary as
    plain dicts. Missing rows on update/delete are reported as None/False,
    connectivity problems raise RecordStoreError.
    """

    def __init__(self, session_maker: sessionmaker | None = None) -> None:
        self._session_maker = session_maker or async_session_maker

    async def next_id(self) -> int:
        """
        Reserves the next record id from the store sequence.
        """
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    value = await session.scalar(select(question_id_seq.next_value()))
        except STORE_ERRORS as e:
            raise RecordStoreError(f"database error while reserving id: {e}") from e
        return int(value)

    async def find(self, question_id: int) -> dict[str, Any] | None:
        try:
            async with self._session_maker() as session:
                obj = await session.get(QuestionPart, question_id)
        except STORE_ERRORS as e:
            raise RecordStoreError(f"database error while loading question {question_id}: {e}") from e
        return obj.as_dict() if obj else None

    async def find_by_vector_id(self, vector_id: str) -> dict[str, Any] | None:
        rows = await self._select(select(QuestionPart).where(QuestionPart.vector_id == vector_id))
        return rows[0] if rows else None

    async def insert(self, record: dict[str, Any]) -> dict[str, Any]:
        if record.get("id") is None or not record.get("vector_id"):
            raise RecordStoreError("database insert requires a precomputed id and vector_id")
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    obj = QuestionPart(**record)
                    session.add(obj)
                    await session.flush()
                    out = obj.as_dict()
        except STORE_ERRORS as e:
            raise RecordStoreError(f"database error while inserting question {record.get('id')}: {e}") from e
        return out

    async def update(self, question_id: int, patch: dict[str, Any]) -> dict[str, Any] | None:
        patch = {k: v for k, v in patch.items() if k != "id"}
        stmt = (
            update(QuestionPart)
            .where(QuestionPart.id == question_id)
            .values(**patch)
            .returning(QuestionPart)
        )
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    res = await session.execute(stmt)
                    obj = res.scalar_one_or_none()
                    out = obj.as_dict() if obj else None
        except STORE_ERRORS as e:
            raise RecordStoreError(f"database error while updating question {question_id}: {e}") from e
        return out

    async def delete(self, question_id: int) -> bool:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    res = await session.execute(delete(QuestionPart).where(QuestionPart.id == question_id))
        except STORE_ERRORS as e:
            raise RecordStoreError(f"database error while deleting question {question_id}: {e}") from e
        return bool(res.rowcount)

    async def list_by_course(self, course_code: str) -> list[dict[str, Any]]:
        return await self._select(
            select(QuestionPart).where(QuestionPart.course_code == course_code).order_by(QuestionPart.id)
        )

    async def list_all(self) -> list[dict[str, Any]]:
        return await self._select(select(QuestionPart).order_by(QuestionPart.id))

    async def search(self, course_code: str, exam_type: str, semester_term: str) -> list[dict[str, Any]]:
        return await self._select(
            select(QuestionPart)
            .where(
                QuestionPart.course_code == course_code,
                QuestionPart.exam_type == exam_type,
                QuestionPart.semester_term == semester_term,
            )
            .order_by(QuestionPart.id)
        )

    async def count(self) -> int:
        try:
            async with self._session_maker() as session:
                value = await session.scalar(select(func.count()).select_from(QuestionPart))
        except STORE_ERRORS as e:
            raise RecordStoreError(f"database error while counting questions: {e}") from e
        return int(value or 0)

    async def _select(self, stmt) -> list[dict[str, Any]]:
        try:
            async with self._session_maker() as session:
                res = await session.execute(stmt)
                return [obj.as_dict() for obj in res.scalars().all()]
        except STORE_ERRORS as e:
            raise RecordStoreError(f"database error while listing questions: {e}") from e
