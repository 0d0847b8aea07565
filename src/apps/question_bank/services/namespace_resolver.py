from __future__ import annotations

import re
from dataclasses import dataclass

from redis.exceptions import RedisError
from sqlalchemy import select, text
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from apps.question_bank.errors import NamespaceError
from apps.question_bank.services.vector_gateway import VectorIndex
from common import redis_client
from db.base import VectorBase
from db.models.vector_entry import VectorNamespace
from db.session import vector_session_maker
from logger import get_logger
from settings import config

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9-]")


def sanitize_namespace(name: str) -> str:
    return _UNSAFE_CHARS.sub("-", name).lower()


def course_namespace(short: str) -> str:
    """
    Deterministic namespace of a course short code.
    """
    return sanitize_namespace(f"course-{short}")


@dataclass(frozen=True)
class NamespaceResult:
    index: VectorIndex
    namespace: str


class NamespaceResolver:
    """
    Maps course short codes to vector namespaces, creating the index tables
    and the namespace entry on first use.

    Already ensured namespaces are remembered in a Redis set. Redis being
    down only costs an extra idempotent ensure.
    """

    def __init__(
        self,
        session_maker: sessionmaker | None = None,
        index_name: str | None = None,
        dimension: int | None = None,
        cache_key: str | None = None,
    ) -> None:
        self.index = VectorIndex(
            name=index_name or config.VECTOR_INDEX_NAME,
            dimension=dimension or config.EMBEDDING_DIM,
            session_maker=session_maker or vector_session_maker,
        )
        self.cache_key = cache_key or config.NAMESPACE_CACHE_KEY

    async def get_course_namespace(self, short: str | None) -> NamespaceResult:
        if not short or not short.strip():
            raise NamespaceError("Course short code is required to resolve a namespace")

        namespace = course_namespace(short)
        member = f"{self.index.name}:{namespace}"

        if not await self._is_cached(member):
            await self._ensure(namespace)
            await self._remember(member)

        return NamespaceResult(index=self.index, namespace=namespace)

    async def list_namespaces(self) -> list[str]:
        try:
            async with self.index.session_maker() as session:
                res = await session.execute(
                    select(VectorNamespace.namespace).where(VectorNamespace.index_name == self.index.name)
                )
        except SQLAlchemyError as e:
            raise NamespaceError(f"Vector index unavailable: {e}") from e
        return sorted(str(ns) for ns in res.scalars().all())

    async def _ensure(self, namespace: str) -> None:
        try:
            async with self.index.session_maker() as session:
                async with session.begin():
                    await session.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                    conn = await session.connection()
                    await conn.run_sync(VectorBase.metadata.create_all, checkfirst=True)
                    await session.execute(
                        insert(VectorNamespace)
                        .values(
                            index_name=self.index.name,
                            namespace=namespace,
                            dimension=self.index.dimension,
                        )
                        .on_conflict_do_nothing()
                    )
        except SQLAlchemyError as e:
            raise NamespaceError(f"Vector index unavailable for namespace {namespace}: {e}") from e
        logger.info("Namespace ensured: %s/%s", self.index.name, namespace)

    async def _is_cached(self, member: str) -> bool:
        try:
            return await redis_client.set_contains(self.cache_key, member)
        except RedisError as e:
            logger.warning("Namespace cache unavailable: %s", e)
            return False

    async def _remember(self, member: str) -> None:
        try:
            await redis_client.set_add(self.cache_key, member)
        except RedisError as e:
            logger.warning("Namespace cache unavailable: %s", e)
