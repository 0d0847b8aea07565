import datetime
import pathlib
import sys
from collections import Counter

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from apps.question_bank.errors import EmbeddingError, NamespaceError, QuestionValidationError  # noqa: E402
from apps.question_bank.services.namespace_resolver import NamespaceResult, course_namespace  # noqa: E402
from apps.question_bank.services.vector_gateway import UpsertResult, VectorIndex  # noqa: E402
from apps.question_bank.services.sync_service import QuestionSyncService  # noqa: E402

DIM = 1536


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class FakeQuestionRepo:
    """In-memory record store. fail_on[method] makes that method raise."""

    def __init__(self) -> None:
        self.rows: dict[int, dict] = {}
        self.calls: Counter = Counter()
        self.fail_on: dict[str, Exception] = {}
        self._seq = 0

    def _enter(self, name: str) -> None:
        self.calls[name] += 1
        if name in self.fail_on:
            raise self.fail_on[name]

    async def next_id(self) -> int:
        self._enter("next_id")
        self._seq += 1
        return self._seq

    async def find(self, question_id: int) -> dict | None:
        self._enter("find")
        row = self.rows.get(question_id)
        return dict(row) if row else None

    async def find_by_vector_id(self, vector_id: str) -> dict | None:
        self._enter("find_by_vector_id")
        for row in self.rows.values():
            if row.get("vector_id") == vector_id:
                return dict(row)
        return None

    async def insert(self, record: dict) -> dict:
        self._enter("insert")
        self.rows[record["id"]] = dict(record)
        self._seq = max(self._seq, record["id"])
        return dict(record)

    async def update(self, question_id: int, patch: dict) -> dict | None:
        self._enter("update")
        if question_id not in self.rows:
            return None
        self.rows[question_id].update(patch, updated_at=_now())
        return dict(self.rows[question_id])

    async def delete(self, question_id: int) -> bool:
        self._enter("delete")
        return self.rows.pop(question_id, None) is not None

    async def list_by_course(self, course_code: str) -> list[dict]:
        self._enter("list_by_course")
        return [dict(r) for _, r in sorted(self.rows.items()) if r.get("course_code") == course_code]

    async def list_all(self) -> list[dict]:
        self._enter("list_all")
        return [dict(r) for _, r in sorted(self.rows.items())]

    async def search(self, course_code: str, exam_type: str, semester_term: str) -> list[dict]:
        self._enter("search")
        return [
            dict(r)
            for _, r in sorted(self.rows.items())
            if (r.get("course_code"), r.get("exam_type"), r.get("semester_term"))
            == (course_code, exam_type, semester_term)
        ]

    async def count(self) -> int:
        self._enter("count")
        return len(self.rows)

    def seed(self, **fields) -> dict:
        self._seq += 1
        row = {
            "id": self._seq,
            "course_code": "CSE-1115",
            "course_title": "Database Management Systems",
            "short": "DBMS",
            "semester_term": "Spring 2024",
            "exam_type": "Mid",
            "question_number": "1",
            "sub_question": "a",
            "marks": 5.0,
            "question": f"Question {self._seq}",
            "has_description": False,
            "description_content": None,
            "has_image": False,
            "vector_id": None,
            "created_at": _now(),
            "updated_at": None,
        }
        row.update(fields)
        self.rows[row["id"]] = row
        return dict(row)


class FakeVectorIndex:
    """In-memory vector index keyed by (namespace, vector id)."""

    def __init__(self) -> None:
        self.vectors: dict[tuple[str, str], dict] = {}
        self.calls: Counter = Counter()
        self.fail_upsert: str | None = None
        self.fail_delete: str | None = None
        self.fail_delete_once = False

    async def upsert_vector(self, index, namespace, vector_id, embedding, metadata) -> UpsertResult:
        self.calls["upsert"] += 1
        if self.fail_upsert:
            return UpsertResult(success=False, message=self.fail_upsert)
        self.vectors[(namespace, vector_id)] = {"values": list(embedding), "metadata": dict(metadata)}
        return UpsertResult(True, "Vector upserted successfully", vector_id, namespace)

    async def delete_vector(self, index, namespace, vector_id) -> UpsertResult:
        self.calls["delete"] += 1
        if self.fail_delete:
            message = self.fail_delete
            if self.fail_delete_once:
                self.fail_delete = None
            return UpsertResult(success=False, message=message)
        self.vectors.pop((namespace, vector_id), None)
        return UpsertResult(True, "Vector deleted successfully", vector_id, namespace)

    async def fetch_vector(self, index, namespace, vector_id) -> dict | None:
        entry = self.vectors.get((namespace, vector_id))
        if entry is None:
            return None
        return {"id": vector_id, **entry}

    async def list_vector_ids(self, index, namespace) -> set[str]:
        return {vid for ns, vid in self.vectors if ns == namespace}

    def ids_in(self, namespace: str) -> set[str]:
        return {vid for ns, vid in self.vectors if ns == namespace}


class FakeEmbedder:
    def __init__(self, dimension: int = DIM) -> None:
        self.dimension = dimension
        self.calls: list[str] = []
        self.fail_for: set[str] = set()

    async def generate_embedding(self, question, has_description=False, description_content=None) -> list[float]:
        if not question or not str(question).strip():
            raise QuestionValidationError(["question"])
        self.calls.append(question)
        if question in self.fail_for:
            raise EmbeddingError(f"Embedding generation failed: rate limit for {question!r}")
        seed = (len(question) % 7 + 1) / 10
        return [seed] * self.dimension


class FakeResolver:
    def __init__(self) -> None:
        self.index = VectorIndex(name="test-index", dimension=DIM, session_maker=None)
        self.fail: Exception | None = None
        self.seen: set[str] = set()

    async def get_course_namespace(self, short) -> NamespaceResult:
        if self.fail is not None:
            raise self.fail
        if not short or not short.strip():
            raise NamespaceError("Course short code is required to resolve a namespace")
        ns = course_namespace(short)
        self.seen.add(ns)
        return NamespaceResult(index=self.index, namespace=ns)

    async def list_namespaces(self) -> list[str]:
        return sorted(self.seen)


class FakeIntentLog:
    def __init__(self) -> None:
        self.entries: dict[int, dict] = {}
        self.fail_open: Exception | None = None

    async def open(self, operation, question_id, vector_id, namespace) -> int:
        if self.fail_open is not None:
            raise self.fail_open
        intent_id = len(self.entries) + 1
        self.entries[intent_id] = {
            "id": intent_id,
            "operation": operation,
            "question_id": question_id,
            "vector_id": vector_id,
            "namespace": namespace,
            "status": "pending",
            "error": None,
            "created_at": _now(),
        }
        return intent_id

    async def resolve(self, intent_id, status, error=None) -> None:
        self.entries[intent_id].update(status=status, error=error)

    async def list_unresolved(self, older_than) -> list[dict]:
        return [
            dict(e)
            for e in self.entries.values()
            if e["status"] in ("pending", "failed", "critical") and e["created_at"] <= older_than
        ]

    def statuses(self) -> list[str]:
        return [e["status"] for e in self.entries.values()]


@pytest.fixture
def repo() -> FakeQuestionRepo:
    return FakeQuestionRepo()


@pytest.fixture
def index() -> FakeVectorIndex:
    return FakeVectorIndex()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def intents() -> FakeIntentLog:
    return FakeIntentLog()


@pytest.fixture
def sync(repo, index, embedder, resolver, intents) -> QuestionSyncService:
    return QuestionSyncService(
        questions=repo,
        vectors=index,
        embedder=embedder,
        resolver=resolver,
        intents=intents,
    )


@pytest.fixture
def question_payload() -> dict:
    return {
        "course_code": "CSE-1115",
        "course_title": "Database Management Systems",
        "short": "DBMS",
        "semester_term": "Spring 2024",
        "exam_type": "Mid",
        "question_number": "1",
        "sub_question": "a",
        "marks": 5,
        "total_question_mark": 10,
        "contribution_percentage": 20,
        "question": "What is 2NF?",
        "has_description": False,
    }


