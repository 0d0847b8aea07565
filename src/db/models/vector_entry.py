import datetime
from typing import Any

from sqlalchemy import DateTime, Integer, String, PrimaryKeyConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from pgvector.sqlalchemy import Vector
from db.base import VectorBase
from settings import config


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class VectorNamespace(VectorBase):
    __tablename__ = "vector_namespaces"
    __table_args__ = (
        PrimaryKeyConstraint("index_name", "namespace", name="pk_vector_namespaces"),
    )

    index_name: Mapped[str] = mapped_column(String(128))
    namespace: Mapped[str] = mapped_column(String(128))
    dimension: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class VectorEntry(VectorBase):
    __tablename__ = "vector_entries"
    __table_args__ = (
        PrimaryKeyConstraint("index_name", "namespace", "vector_id", name="pk_vector_entries"),
    )

    index_name: Mapped[str] = mapped_column(String(128))
    namespace: Mapped[str] = mapped_column(String(128))
    vector_id: Mapped[str] = mapped_column(String(36))
    embedding: Mapped[list[float]] = mapped_column(Vector(config.EMBEDDING_DIM), nullable=False)
    meta: Mapped[dict[str, Any]] = mapped_column(JSONB, default=dict)
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
