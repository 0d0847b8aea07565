from fastapi import Depends

from apps.question_bank.services.reconciler import Reconciler
from apps.question_bank.services.sync_service import QuestionSyncService

_sync_service: QuestionSyncService | None = None


def get_sync_service() -> QuestionSyncService:
    global _sync_service
    if _sync_service is None:
        _sync_service = QuestionSyncService()
    return _sync_service


def get_reconciler(sync: QuestionSyncService = Depends(get_sync_service)) -> Reconciler:
    return Reconciler(sync)
