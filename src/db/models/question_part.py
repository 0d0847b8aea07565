import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, Integer, Sequence, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from db.base import Base


question_id_seq = Sequence("question_parts_id_seq")


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class QuestionPart(Base):
    __tablename__ = "question_parts"

    id: Mapped[int] = mapped_column(Integer, question_id_seq, primary_key=True)

    course_code: Mapped[str] = mapped_column(String(32), index=True)
    course_title: Mapped[str] = mapped_column(String(255))
    short: Mapped[str] = mapped_column(String(64), index=True)
    semester_term: Mapped[str] = mapped_column(String(64))
    exam_type: Mapped[str] = mapped_column(String(64))
    question_number: Mapped[str] = mapped_column(String(16))
    sub_question: Mapped[str | None] = mapped_column(String(16), nullable=True)

    marks: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_question_mark: Mapped[float | None] = mapped_column(Float, nullable=True)
    contribution_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)

    question: Mapped[str] = mapped_column(Text)
    has_description: Mapped[bool] = mapped_column(Boolean, default=False)
    description_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    has_image: Mapped[bool] = mapped_column(Boolean, default=False)
    image_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    pdf_url: Mapped[str | None] = mapped_column(String, nullable=True)

    vector_id: Mapped[str | None] = mapped_column(String(36), nullable=True, unique=True)

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=_utcnow
    )

    def as_dict(self) -> dict[str, Any]:
        return {c.key: getattr(self, c.key) for c in self.__table__.columns}
