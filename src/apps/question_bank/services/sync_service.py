from __future__ import annotations

import dataclasses
import datetime
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping

from apps.question_bank.errors import (
    CriticalInconsistency,
    EmbeddingError,
    NamespaceError,
    QuestionNotFound,
    QuestionValidationError,
    RecordStoreError,
    TransactionAborted,
    TransactionFailed,
    VectorStoreError,
)
from apps.question_bank.services import intent_log
from apps.question_bank.services.embedding_service import EmbeddingService
from apps.question_bank.services.intent_log import IntentLog
from apps.question_bank.services.metadata import METADATA_FIELDS, build_vector_metadata
from apps.question_bank.services.namespace_resolver import (
    NamespaceResolver,
    NamespaceResult,
    course_namespace,
)
from apps.question_bank.services.question_repo import QuestionRepo
from apps.question_bank.services.vector_gateway import VectorIndexGateway
from logger import get_logger
from logger.context import bind_operation

logger = get_logger(__name__)

REQUIRED_FIELDS: tuple[str, ...] = (
    "course_code",
    "course_title",
    "short",
    "semester_term",
    "exam_type",
    "question_number",
    "question",
)

# Fields a client may set on create or update. id, vector_id and timestamps are owned by the service.
EDITABLE_FIELDS: tuple[str, ...] = tuple(
    f for f in METADATA_FIELDS if f not in ("id", "vector_id", "created_at")
)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def classify_error(exc: BaseException) -> str | None:
    """
    Sorts a per-record failure into "vector" or "database".
    """
    if isinstance(exc, (EmbeddingError, NamespaceError, VectorStoreError, QuestionValidationError)):
        return "vector"
    if isinstance(exc, RecordStoreError):
        return "database"
    message = str(exc).lower()
    if "embedding" in message or "vector" in message:
        return "vector"
    if "database" in message or "mongodb" in message or "sql" in message:
        return "database"
    return None


@dataclass
class CreateResult:
    record: dict[str, Any]
    namespace: str
    vector_dimensions: int

    def as_data(self) -> dict[str, Any]:
        r = self.record
        return {
            "id": r["id"],
            "vector_id": r["vector_id"],
            "course_code": r.get("course_code"),
            "course_title": r.get("course_title"),
            "short": r.get("short"),
            "semester_term": r.get("semester_term"),
            "exam_type": r.get("exam_type"),
            "question_number": r.get("question_number"),
            "sub_question": r.get("sub_question"),
            "namespace": self.namespace,
            "vector_dimensions": self.vector_dimensions,
            "created_at": r.get("created_at"),
        }


@dataclass
class DeleteResult:
    question_id: int
    vector_id: str | None
    namespace: str | None


@dataclass
class UpdateResult:
    record: dict[str, Any]
    vector_sync: dict[str, Any] | None


@dataclass(frozen=True)
class ReembedOutcome:
    """Result of re-embedding one record. Exactly one of updated/failed is set."""

    updated: dict[str, Any] | None = None
    failed: dict[str, Any] | None = None
    category: str | None = None


@dataclass(frozen=True)
class ReembedReport:
    total: int
    updated: tuple[dict[str, Any], ...] = ()
    failed: tuple[dict[str, Any], ...] = ()
    vector_errors: int = 0
    database_errors: int = 0

    def merge(self, outcome: ReembedOutcome) -> "ReembedReport":
        if outcome.updated is not None:
            return dataclasses.replace(self, updated=self.updated + (outcome.updated,))
        return dataclasses.replace(
            self,
            failed=self.failed + (outcome.failed or {},),
            vector_errors=self.vector_errors + int(outcome.category == "vector"),
            database_errors=self.database_errors + int(outcome.category == "database"),
        )

    @property
    def summary(self) -> dict[str, int]:
        return {
            "total_processed": self.total,
            "successful_upserts": len(self.updated),
            "failed_upserts": len(self.failed),
            "vector_errors": self.vector_errors,
            "database_errors": self.database_errors,
        }

    def as_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "updated": list(self.updated),
            "failed": list(self.failed),
            "summary": self.summary,
        }


@dataclass
class QuestionSyncService:
    """
    Keeps question records and their vectors in step.

    Create writes the vector first and the record second, so a failed
    record insert is undone by deleting the vector. Delete removes the
    vector first and refuses to start when the namespace cannot be
    resolved. Create and delete are journaled in the intent log so the
    reconciliation sweep can finish what a failure left behind.
    """

    questions: QuestionRepo = field(default_factory=QuestionRepo)
    vectors: VectorIndexGateway = field(default_factory=VectorIndexGateway)
    embedder: EmbeddingService = field(default_factory=EmbeddingService)
    resolver: NamespaceResolver = field(default_factory=NamespaceResolver)
    intents: IntentLog = field(default_factory=IntentLog)

    async def create_question(self, payload: Mapping[str, Any]) -> CreateResult:
        missing = [f for f in REQUIRED_FIELDS if _is_blank(payload.get(f))]
        if missing:
            raise QuestionValidationError(missing)

        with bind_operation("create", payload.get("course_code")):
            record = {f: payload[f] for f in EDITABLE_FIELDS if f in payload}
            record.setdefault("has_description", False)
            record.setdefault("has_image", False)

            question_id = await self.questions.next_id()
            vector_id = str(uuid.uuid4())

            embedding = await self.embedder.generate_embedding(
                record["question"],
                bool(record.get("has_description")),
                record.get("description_content"),
            )
            ns = await self.resolver.get_course_namespace(record["short"])

            now = utcnow()
            record.update(id=question_id, vector_id=vector_id, created_at=now)
            metadata = build_vector_metadata(record, synced_at=now)

            intent_id = await self.intents.open("create", question_id, vector_id, ns.namespace)

            upsert = await self.vectors.upsert_vector(ns.index, ns.namespace, vector_id, embedding, metadata)
            if not upsert.success:
                await self._resolve_intent(intent_id, intent_log.ABORTED, upsert.message)
                raise VectorStoreError(f"Failed to upsert vector: {upsert.message}")

            try:
                created = await self.questions.insert(record)
            except Exception as e:
                rolled_back = await self._rollback_vector(ns, vector_id, intent_id, str(e))
                raise TransactionFailed(
                    f"Transaction failed: {e}. Vector rollback {'completed' if rolled_back else 'failed'}.",
                    question_id=question_id,
                    vector_id=vector_id,
                    rolled_back=rolled_back,
                ) from e

            await self._resolve_intent(intent_id, intent_log.COMPLETED)
            logger.info("Question %s created with vector %s in %s", question_id, vector_id, ns.namespace)
            return CreateResult(record=created, namespace=ns.namespace, vector_dimensions=len(embedding))

    async def delete_question(self, question_id: int) -> DeleteResult:
        with bind_operation("delete"):
            record = await self.questions.find(question_id)
            if record is None:
                raise QuestionNotFound(question_id)

            vector_id = record.get("vector_id")
            if not vector_id:
                if not await self.questions.delete(question_id):
                    raise QuestionNotFound(question_id)
                logger.info("Question %s deleted, it had no vector", question_id)
                return DeleteResult(question_id=question_id, vector_id=None, namespace=None)

            try:
                ns = await self.resolver.get_course_namespace(record.get("short"))
                intent_id = await self.intents.open("delete", question_id, vector_id, ns.namespace)
            except (NamespaceError, RecordStoreError) as e:
                raise TransactionAborted(
                    f"Transaction aborted: {e}. Question was not deleted.",
                    question_id=question_id,
                    vector_id=vector_id,
                ) from e

            removed = await self.vectors.delete_vector(ns.index, ns.namespace, vector_id)
            if not removed.success:
                await self._resolve_intent(intent_id, intent_log.ABORTED, removed.message)
                raise TransactionFailed(
                    f"Failed to delete vector: {removed.message}. Question record was not deleted.",
                    question_id=question_id,
                    vector_id=vector_id,
                )

            try:
                deleted = await self.questions.delete(question_id)
            except Exception as e:
                await self._resolve_intent(intent_id, intent_log.CRITICAL, str(e))
                logger.error(
                    "CRITICAL: vector %s deleted but question %s could not be deleted: %s",
                    vector_id,
                    question_id,
                    e,
                )
                raise CriticalInconsistency(
                    "Critical error: vector was deleted but the question record could not be deleted. "
                    "Manual intervention required.",
                    question_id=question_id,
                    vector_id=vector_id,
                ) from e

            if not deleted:
                logger.warning("Question %s disappeared before its record delete", question_id)

            await self._resolve_intent(intent_id, intent_log.COMPLETED)
            logger.info("Question %s and vector %s deleted", question_id, vector_id)
            return DeleteResult(question_id=question_id, vector_id=vector_id, namespace=ns.namespace)

    async def update_question(self, question_id: int, patch: Mapping[str, Any]) -> UpdateResult:
        changes = {f: patch[f] for f in EDITABLE_FIELDS if f in patch}
        for flag in ("has_description", "has_image"):
            if flag in changes and changes[flag] is None:
                changes[flag] = False
        blanked = [f for f in REQUIRED_FIELDS if f in changes and _is_blank(changes[f])]
        if blanked:
            raise QuestionValidationError(blanked)

        with bind_operation("update"):
            before = await self.questions.find(question_id)
            if before is None:
                raise QuestionNotFound(question_id)
            if not changes:
                return UpdateResult(record=before, vector_sync=None)

            updated = await self.questions.update(question_id, changes)
            if updated is None:
                raise QuestionNotFound(question_id)

            if not updated.get("vector_id"):
                return UpdateResult(record=updated, vector_sync=None)

            outcome = await self.reembed_question(updated)
            sync: dict[str, Any]
            if outcome.updated is not None:
                sync = {"success": True, "namespace": outcome.updated["namespace"]}
                old_ns = course_namespace(before["short"])
                if old_ns != outcome.updated["namespace"]:
                    moved = await self.vectors.delete_vector(self.resolver.index, old_ns, updated["vector_id"])
                    sync["previous_namespace_cleared"] = moved.success
            else:
                sync = {"success": False, "message": outcome.failed["error"] if outcome.failed else ""}
                logger.warning("Question %s updated but its vector is stale: %s", question_id, sync["message"])
            return UpdateResult(record=updated, vector_sync=sync)

    async def reembed_course(self, course_code: str) -> ReembedReport:
        with bind_operation("reembed", course_code):
            questions = await self.questions.list_by_course(course_code)
            return await self._reembed_all(questions)

    async def reembed_everything(self) -> ReembedReport:
        with bind_operation("reembed"):
            questions = await self.questions.list_all()
            return await self._reembed_all(questions)

    async def course_counts(self, course_code: str) -> dict[str, Any]:
        """
        Returns course title and question counts split by mid and final exams.
        """
        questions = await self.questions.list_by_course(course_code)
        exam_types = [(q.get("exam_type") or "").lower() for q in questions]
        return {
            "course_code": course_code,
            "course_title": questions[0].get("course_title") if questions else None,
            "counts": {
                "total": len(questions),
                "mid": sum(1 for t in exam_types if "mid" in t),
                "final": sum(1 for t in exam_types if "final" in t or "end" in t),
            },
        }

    async def reembed_question(self, question: dict[str, Any]) -> ReembedOutcome:
        """
        Re-embeds one record, assigning and persisting a vector id first
        when it has none. Never raises.
        """
        try:
            embedding = await self.embedder.generate_embedding(
                question.get("question"),
                bool(question.get("has_description")),
                question.get("description_content"),
            )
            ns = await self.resolver.get_course_namespace(question.get("short"))

            vector_id = question.get("vector_id")
            if not vector_id:
                vector_id = str(uuid.uuid4())
                stored = await self.questions.update(question["id"], {"vector_id": vector_id})
                if stored is None:
                    raise RecordStoreError(f"database update matched no question {question['id']}")
                question = stored
                logger.info("Assigned vector_id %s to question %s", vector_id, question["id"])

            metadata = build_vector_metadata({**question, "vector_id": vector_id})
            upsert = await self.vectors.upsert_vector(ns.index, ns.namespace, vector_id, embedding, metadata)
            if not upsert.success:
                raise VectorStoreError(f"Failed to upsert vector: {upsert.message}")
        except Exception as e:
            logger.warning("Error processing question %s: %s", question.get("id"), e)
            return ReembedOutcome(
                failed={
                    "id": question.get("id"),
                    "course_code": question.get("course_code"),
                    "question_number": question.get("question_number"),
                    "error": str(e),
                    "timestamp": utcnow().isoformat(),
                },
                category=classify_error(e),
            )

        return ReembedOutcome(
            updated={
                "id": question["id"],
                "vectorId": vector_id,
                "course_code": question.get("course_code"),
                "course_title": question.get("course_title"),
                "question_number": question.get("question_number"),
                "sub_question": question.get("sub_question"),
                "exam_type": question.get("exam_type"),
                "semester_term": question.get("semester_term"),
                "namespace": ns.namespace,
                "vector_dimensions": len(embedding),
                "upsert_status": upsert.as_dict(),
            }
        )

    async def _reembed_all(self, questions: list[dict[str, Any]]) -> ReembedReport:
        logger.info("Re-embedding %s questions", len(questions))
        report = ReembedReport(total=len(questions))
        for question in questions:
            report = report.merge(await self.reembed_question(question))
        logger.info(
            "Re-embedding finished: %s ok, %s failed",
            len(report.updated),
            len(report.failed),
        )
        return report

    async def _rollback_vector(
        self, ns: NamespaceResult, vector_id: str, intent_id: int, reason: str
    ) -> bool:
        rollback = await self.vectors.delete_vector(ns.index, ns.namespace, vector_id)
        if rollback.success:
            await self._resolve_intent(intent_id, intent_log.ROLLED_BACK, reason)
            logger.warning("Record insert failed, vector %s rolled back: %s", vector_id, reason)
            return True
        await self._resolve_intent(intent_id, intent_log.FAILED, f"{reason}; rollback: {rollback.message}")
        logger.error(
            "Record insert failed and vector %s rollback failed, vector is orphaned: %s",
            vector_id,
            rollback.message,
        )
        return False

    async def _resolve_intent(self, intent_id: int, status: str, error: str | None = None) -> None:
        try:
            await self.intents.resolve(intent_id, status, error)
        except RecordStoreError as e:
            logger.warning("Sync intent %s left unresolved (%s): %s", intent_id, status, e)
