import datetime
import json

import pytest

from apps.question_bank.errors import RecordStoreError
from apps.question_bank.services.intent_log import IntentLog
from apps.question_bank.services.metadata import build_vector_metadata
from apps.question_bank.services.namespace_resolver import course_namespace, sanitize_namespace
from apps.question_bank.services.question_repo import QuestionRepo
from apps.question_bank.services.vector_gateway import VectorIndex, VectorIndexGateway


@pytest.mark.parametrize(
    ("short", "expected"),
    [
        ("DBMS", "course-dbms"),
        ("DB Lab", "course-db-lab"),
        ("C++", "course-c--"),
        ("Data_Str.", "course-data-str-"),
        (" OS ", "course--os-"),
    ],
)
def test_course_namespace(short, expected):
    assert course_namespace(short) == expected


def test_sanitize_keeps_dashes_and_digits():
    assert sanitize_namespace("Course-2213") == "course-2213"


def test_metadata_serializes_dates_and_collections():
    synced = datetime.datetime(2024, 5, 1, 12, 0, tzinfo=datetime.timezone.utc)
    record = {
        "id": 7,
        "course_code": "CSE-1115",
        "question": "What is 2NF?",
        "description_content": None,
        "has_image": False,
        "marks": 2.5,
        "created_at": datetime.datetime(2024, 4, 30, 8, 15),
        "image_url": ["a.png", "b.png"],
        "vector_id": "0b0c1f9e-6a0b-4b8e-9a57-3f1c2d9d8e11",
    }

    meta = build_vector_metadata(record, synced_at=synced)

    assert meta["created_at"] == "2024-04-30T08:15:00+00:00"
    assert meta["updated_at"] == "2024-05-01T12:00:00+00:00"
    assert json.loads(meta["image_url"]) == ["a.png", "b.png"]
    assert meta["has_image"] is False
    assert meta["marks"] == 2.5
    assert "description_content" not in meta
    assert meta["id_text"] == "7"
    assert meta["vector_id_text"] == record["vector_id"]
    assert "exam_type_text" not in meta


def test_metadata_keeps_empty_strings():
    meta = build_vector_metadata({"sub_question": ""})
    assert meta["sub_question"] == ""


async def test_upsert_rejects_wrong_dimension_without_touching_store():
    index = VectorIndex(name="test-index", dimension=3, session_maker=None)

    result = await VectorIndexGateway().upsert_vector(index, "course-dbms", "v1", [0.1, 0.2], {})

    assert result.success is False
    assert "dimension" in result.message


class _Unreachable:
    async def __aenter__(self):
        raise ConnectionRefusedError(111, "Connect call failed")

    async def __aexit__(self, *exc):
        return False


async def test_repo_wraps_driver_errors():
    repo = QuestionRepo(session_maker=_Unreachable)

    with pytest.raises(RecordStoreError, match="database error"):
        await repo.find(1)
    with pytest.raises(RecordStoreError):
        await repo.delete(1)
    with pytest.raises(RecordStoreError):
        await repo.list_by_course("CSE-1115")


async def test_intent_log_wraps_driver_errors():
    intents = IntentLog(session_maker=_Unreachable)

    with pytest.raises(RecordStoreError):
        await intents.open("create", 1, "v1", "course-dbms")
