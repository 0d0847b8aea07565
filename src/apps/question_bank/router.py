from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from apps.question_bank.dependencies import get_reconciler, get_sync_service
from apps.question_bank.errors import (
    CriticalInconsistency,
    QuestionNotFound,
    QuestionSyncError,
    QuestionValidationError,
    TransactionAborted,
    TransactionFailed,
)
from apps.question_bank.schemas import QuestionCreate, QuestionUpdate
from apps.question_bank.services.reconciler import Reconciler
from apps.question_bank.services.sync_service import QuestionSyncService, ReembedReport, utcnow
from logger import get_logger

router = APIRouter(tags=["questions"])
logger = get_logger(__name__)


def _timestamp() -> str:
    return utcnow().isoformat()


def _json(status_code: int, content: dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def _failure(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return _json(status_code, {"success": False, "error": error, "timestamp": _timestamp(), **extra})


@router.post("/questions", status_code=201)
async def create_question(
    payload: QuestionCreate,
    service: QuestionSyncService = Depends(get_sync_service),
):
    try:
        result = await service.create_question(payload.model_dump(exclude_none=True))
    except QuestionValidationError as e:
        return _failure(400, str(e), missing_fields=e.missing_fields)
    except TransactionFailed as e:
        return _failure(
            500,
            str(e),
            transaction="failed",
            vector_rolled_back=e.rolled_back,
            vectorId=e.vector_id,
        )
    except QuestionSyncError as e:
        logger.warning("Question create failed: %s", e)
        return _failure(500, str(e))
    except Exception as e:
        logger.error("Unhandled error in question create: %s", e, exc_info=True)
        return _failure(500, "Internal server error")

    return {
        "success": True,
        "message": "Question created and embedded successfully",
        "data": result.as_data(),
    }


@router.get("/questions")
async def list_questions(
    course_code: str | None = None,
    exam_type: str | None = None,
    semester_term: str | None = None,
    service: QuestionSyncService = Depends(get_sync_service),
):
    if not course_code or not exam_type or not semester_term:
        return _json(400, {"error": "Missing required parameters"})
    try:
        data = await service.questions.search(course_code, exam_type, semester_term)
    except QuestionSyncError as e:
        return _json(500, {"error": str(e)})
    return {"data": data}


@router.get("/questions/count")
async def count_questions(service: QuestionSyncService = Depends(get_sync_service)):
    try:
        count = await service.questions.count()
    except QuestionSyncError as e:
        return _json(500, {"error": str(e)})
    return {"count": count}


@router.get("/questions/{question_id}")
async def get_question(question_id: int, service: QuestionSyncService = Depends(get_sync_service)):
    try:
        record = await service.questions.find(question_id)
    except QuestionSyncError as e:
        return _json(500, {"error": str(e)})
    if record is None:
        return _json(404, {"error": "Question not found"})
    return record


@router.put("/questions/{question_id}")
async def update_question(
    question_id: int,
    payload: QuestionUpdate,
    service: QuestionSyncService = Depends(get_sync_service),
):
    try:
        result = await service.update_question(question_id, payload.model_dump(exclude_unset=True))
    except QuestionValidationError as e:
        return _json(400, {"error": str(e), "missing_fields": e.missing_fields})
    except QuestionNotFound:
        return _json(404, {"error": "Question not found"})
    except QuestionSyncError as e:
        return _json(500, {"error": str(e)})

    return {
        "message": "Question updated successfully",
        "data": result.record,
        "vector_sync": result.vector_sync,
    }


@router.delete("/questions/{question_id}")
async def delete_question(question_id: int, service: QuestionSyncService = Depends(get_sync_service)):
    try:
        result = await service.delete_question(question_id)
    except QuestionNotFound:
        return _json(404, {"error": "Question not found"})
    except CriticalInconsistency as e:
        return _json(
            500,
            {
                "error": str(e),
                "transaction": e.transaction,
                "criticalError": True,
                "questionId": e.question_id,
                "vectorId": e.vector_id,
            },
        )
    except (TransactionAborted, TransactionFailed) as e:
        return _json(
            500,
            {
                "error": str(e),
                "transaction": e.transaction,
                "questionId": e.question_id,
                "vectorId": e.vector_id,
            },
        )
    except QuestionSyncError as e:
        logger.warning("Question delete aborted: %s", e)
        return _json(500, {"error": str(e), "transaction": "aborted", "questionId": question_id})
    except Exception as e:
        logger.error("Unhandled error in question delete: %s", e, exc_info=True)
        return _json(500, {"error": "Internal server error", "transaction": "aborted", "questionId": question_id})

    return {
        "message": "Question and its vector deleted successfully",
        "deletedId": result.question_id,
        "vectorId": result.vector_id,
        "transaction": "completed",
    }


def _reembed_response(report: ReembedReport) -> dict[str, Any]:
    return {
        "success": True,
        "message": "Embedding update process completed",
        "timestamp": _timestamp(),
        **report.as_dict(),
    }


def _reembed_fatal(e: Exception) -> JSONResponse:
    return _json(
        500,
        {
            "success": False,
            "message": str(e),
            "timestamp": _timestamp(),
            **ReembedReport(total=0).as_dict(),
        },
    )


@router.post("/update-embeddings/{course_code}")
async def update_course_embeddings(
    course_code: str,
    service: QuestionSyncService = Depends(get_sync_service),
):
    if not course_code.strip():
        return _json(400, {"error": "course_code is required"})
    try:
        report = await service.reembed_course(course_code.strip())
    except Exception as e:
        logger.error("Fatal error in update embeddings for %s: %s", course_code, e, exc_info=True)
        return _reembed_fatal(e)
    return _reembed_response(report)


@router.post("/update-embeddings")
async def update_embeddings(
    course_code: str | None = Query(default=None),
    service: QuestionSyncService = Depends(get_sync_service),
):
    try:
        if course_code and course_code.strip():
            report = await service.reembed_course(course_code.strip())
        else:
            report = await service.reembed_everything()
    except Exception as e:
        logger.error("Fatal error in update embeddings: %s", e, exc_info=True)
        return _reembed_fatal(e)
    return _reembed_response(report)


@router.get("/update-embeddings")
async def course_question_counts(
    course_code: str | None = Query(default=None),
    service: QuestionSyncService = Depends(get_sync_service),
):
    if not course_code:
        return _json(400, {"error": "course_code query parameter is required"})
    try:
        counts = await service.course_counts(course_code)
    except QuestionSyncError as e:
        return _json(500, {"error": f"Internal server error: {e}"})
    return {"success": True, **counts}


@router.post("/reconcile")
async def reconcile(
    course_code: str | None = Query(default=None),
    reconciler: Reconciler = Depends(get_reconciler),
):
    try:
        report = await reconciler.run(course_code=course_code or None)
    except QuestionSyncError as e:
        logger.error("Reconciliation failed: %s", e, exc_info=True)
        return _failure(500, str(e))
    return {"success": True, "timestamp": _timestamp(), **report.as_dict()}
