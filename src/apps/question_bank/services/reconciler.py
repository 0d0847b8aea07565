from __future__ import annotations

import datetime
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from apps.question_bank.errors import QuestionSyncError, VectorStoreError
from apps.question_bank.services import intent_log
from apps.question_bank.services.namespace_resolver import course_namespace
from apps.question_bank.services.sync_service import QuestionSyncService, utcnow
from logger import get_logger
from logger.context import bind_operation
from settings import config

logger = get_logger(__name__)


@dataclass
class ReconcileReport:
    intents_resolved: int = 0
    orphaned_vectors_deleted: int = 0
    missing_vectors_restored: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "intents_resolved": self.intents_resolved,
            "orphaned_vectors_deleted": self.orphaned_vectors_deleted,
            "missing_vectors_restored": self.missing_vectors_restored,
            "errors": self.errors,
        }


class Reconciler:
    """
    Repairs disagreements between the record store and the vector index.

    Runs in two passes. First, intents older than the grace period are
    driven to a final state. Then each namespace in scope is diffed
    against the records that map to it: unreferenced vectors are deleted,
    records pointing at a missing vector are re-embedded. Vectors of
    intents still inside the grace period are left alone.
    """

    def __init__(self, sync: QuestionSyncService, grace_seconds: int | None = None) -> None:
        self.sync = sync
        self.grace = datetime.timedelta(
            seconds=config.RECONCILE_GRACE_SECONDS if grace_seconds is None else grace_seconds
        )

    async def run(self, course_code: str | None = None, now: datetime.datetime | None = None) -> ReconcileReport:
        now = now or utcnow()
        report = ReconcileReport()

        with bind_operation("reconcile", course_code):
            unresolved = await self.sync.intents.list_unresolved(now)
            cutoff = now - self.grace
            in_flight = {i["vector_id"] for i in unresolved if i["created_at"] > cutoff}

            for intent in unresolved:
                if intent["created_at"] > cutoff:
                    continue
                try:
                    await self._finish_intent(intent)
                    report.intents_resolved += 1
                except QuestionSyncError as e:
                    logger.warning("Intent %s could not be resolved: %s", intent["id"], e)
                    report.errors.append({"intent_id": intent["id"], "error": str(e)})

            await self._diff_namespaces(course_code, in_flight, cutoff, report)

        logger.info(
            "Reconciliation finished: %s intents, %s orphaned vectors, %s restored, %s errors",
            report.intents_resolved,
            report.orphaned_vectors_deleted,
            report.missing_vectors_restored,
            len(report.errors),
        )
        return report

    async def _finish_intent(self, intent: dict[str, Any]) -> None:
        index = self.sync.resolver.index
        question_id = intent["question_id"]
        vector_id = intent["vector_id"]
        record = await self.sync.questions.find(question_id)
        linked = record is not None and record.get("vector_id") == vector_id

        if intent["operation"] == "create":
            if linked:
                await self.sync.intents.resolve(intent["id"], intent_log.COMPLETED)
                return
            removed = await self.sync.vectors.delete_vector(index, intent["namespace"], vector_id)
            if not removed.success:
                raise VectorStoreError(removed.message)
            await self.sync.intents.resolve(intent["id"], intent_log.ROLLED_BACK, "reconciled")
            logger.info("Orphaned vector %s of unfinished create removed", vector_id)
            return

        removed = await self.sync.vectors.delete_vector(index, intent["namespace"], vector_id)
        if not removed.success:
            raise VectorStoreError(removed.message)
        if linked:
            await self.sync.questions.delete(question_id)
            logger.info("Leftover question %s of unfinished delete removed", question_id)
        await self.sync.intents.resolve(intent["id"], intent_log.COMPLETED, "reconciled")

    async def _diff_namespaces(
        self,
        course_code: str | None,
        in_flight: set[str],
        cutoff: datetime.datetime,
        report: ReconcileReport,
    ) -> None:
        index = self.sync.resolver.index
        records = await self.sync.questions.list_all()

        by_namespace: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        scope: set[str] = set()
        for r in records:
            if not r.get("short"):
                continue
            ns = course_namespace(r["short"])
            if course_code is None or r.get("course_code") == course_code:
                scope.add(ns)
            if r.get("vector_id"):
                by_namespace[ns][r["vector_id"]] = r
        if course_code is None:
            scope.update(await self.sync.resolver.list_namespaces())

        for ns in sorted(scope):
            linked = by_namespace.get(ns, {})
            try:
                existing = await self.sync.vectors.list_vector_ids(index, ns)
            except QuestionSyncError as e:
                report.errors.append({"namespace": ns, "error": str(e)})
                continue

            for vector_id in sorted(existing - set(linked) - in_flight):
                try:
                    if not await self._is_orphan(ns, vector_id, cutoff):
                        continue
                except QuestionSyncError as e:
                    report.errors.append({"namespace": ns, "vector_id": vector_id, "error": str(e)})
                    continue
                removed = await self.sync.vectors.delete_vector(index, ns, vector_id)
                if removed.success:
                    report.orphaned_vectors_deleted += 1
                else:
                    report.errors.append({"namespace": ns, "vector_id": vector_id, "error": removed.message})

            for vector_id, record in sorted(linked.items()):
                if vector_id in existing or vector_id in in_flight:
                    continue
                if course_code is not None and record.get("course_code") != course_code:
                    continue
                try:
                    current = await self.sync.questions.find(record["id"])
                except QuestionSyncError as e:
                    report.errors.append({"id": record["id"], "error": str(e)})
                    continue
                if current is None or current.get("vector_id") != vector_id:
                    continue
                outcome = await self.sync.reembed_question(current)
                if outcome.updated is not None:
                    report.missing_vectors_restored += 1
                else:
                    report.errors.append({"id": record["id"], "error": (outcome.failed or {}).get("error")})

    async def _is_orphan(self, namespace: str, vector_id: str, cutoff: datetime.datetime) -> bool:
        """
        Re-checks a vector missing from the records snapshot. Vectors written
        after the cutoff, or claimed by a record since, are not orphans.
        """
        entry = await self.sync.vectors.fetch_vector(self.sync.resolver.index, namespace, vector_id)
        if entry is None:
            return False
        synced_at = _parse_timestamp((entry.get("metadata") or {}).get("updated_at"))
        if synced_at is not None and synced_at > cutoff:
            return False
        return await self.sync.questions.find_by_vector_id(vector_id) is None


def _parse_timestamp(value: Any) -> datetime.datetime | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed
