import asyncio
import json
import sys

from apps.question_bank.services.reconciler import Reconciler
from apps.question_bank.services.sync_service import QuestionSyncService
from common.openai_client import close_openai_client
from common.redis_client import close_redis
from db.session import dispose_engines
from logger import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


async def reconcile(course_code: str | None = None) -> dict:
    """
    Runs one reconciliation sweep over a course, or over every namespace.
    """
    logger.info("Reconciliation started for %s", course_code or "all courses")
    report = await Reconciler(QuestionSyncService()).run(course_code=course_code)
    return report.as_dict()


async def main() -> None:
    """
    Usage: python -m utils.reconcile [COURSE_CODE]
    """
    course_code = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        report = await reconcile(course_code)
        print(json.dumps(report, ensure_ascii=False, indent=2, default=str))
    finally:
        await close_openai_client()
        await close_redis()
        await dispose_engines()


if __name__ == "__main__":
    asyncio.run(main())
