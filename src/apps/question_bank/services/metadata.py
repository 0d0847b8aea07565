from __future__ import annotations

import datetime
import json
from typing import Any, Mapping

# Scalar fields of a question record that are mirrored into vector metadata.
METADATA_FIELDS: tuple[str, ...] = (
    "id",
    "course_code",
    "course_title",
    "short",
    "semester_term",
    "exam_type",
    "question_number",
    "sub_question",
    "marks",
    "total_question_mark",
    "contribution_percentage",
    "question",
    "has_description",
    "description_content",
    "has_image",
    "image_type",
    "image_url",
    "pdf_url",
    "vector_id",
    "created_at",
)

# Fields duplicated as strings so the index can filter on them uniformly.
TEXT_MIRRORS: dict[str, str] = {
    "id": "id_text",
    "course_code": "course_code_text",
    "exam_type": "exam_type_text",
    "semester_term": "semester_term_text",
    "vector_id": "vector_id_text",
}


def _to_metadata_value(value: Any) -> Any:
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return value.isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def build_vector_metadata(
    record: Mapping[str, Any],
    synced_at: datetime.datetime | None = None,
) -> dict[str, Any]:
    """
    Projects a question record onto vector metadata.

    Null fields are dropped, datetimes become ISO strings, and the filter
    mirrors plus ``updated_at`` are added.
    """
    metadata: dict[str, Any] = {}
    for field in METADATA_FIELDS:
        value = record.get(field)
        if value is None:
            continue
        metadata[field] = _to_metadata_value(value)

    for field, mirror in TEXT_MIRRORS.items():
        if field in metadata:
            metadata[mirror] = str(metadata[field])

    synced_at = synced_at or datetime.datetime.now(datetime.timezone.utc)
    metadata["updated_at"] = _to_metadata_value(synced_at)
    return metadata
