import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from db.base import Base


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class SyncIntent(Base):
    """
    Write-ahead entry for one two-store operation.

    Committed as pending before the first side effect, resolved afterwards.
    Anything still unresolved after the grace period is picked up by the
    reconciliation sweep.
    """

    __tablename__ = "sync_intents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    operation: Mapped[str] = mapped_column(String(16))
    question_id: Mapped[int] = mapped_column(Integer, index=True)
    vector_id: Mapped[str] = mapped_column(String(36))
    namespace: Mapped[str] = mapped_column(String(128))
    status: Mapped[str] = mapped_column(String(16), index=True, default="pending")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=_utcnow
    )
