from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class QuestionFields(BaseModel):
    """
    Client-settable question fields. Presence of required fields is checked
    by the sync service so that a missing field is a 400, not a 422.
    """

    model_config = ConfigDict(extra="ignore")

    course_code: str | None = None
    course_title: str | None = None
    short: str | None = None
    semester_term: str | None = None
    exam_type: str | None = None
    question_number: str | None = None
    sub_question: str | None = None

    marks: float | None = None
    total_question_mark: float | None = None
    contribution_percentage: float | None = None

    question: str | None = None
    has_description: bool | None = None
    description_content: str | None = None
    has_image: bool | None = None
    image_type: str | None = None
    image_url: str | None = None
    pdf_url: str | None = None

    @field_validator("question_number", "sub_question", mode="before")
    @classmethod
    def _numbers_as_text(cls, v):
        return str(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else v


class QuestionCreate(QuestionFields):
    pass


class QuestionUpdate(QuestionFields):
    pass
