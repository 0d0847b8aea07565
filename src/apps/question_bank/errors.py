from __future__ import annotations


class QuestionSyncError(Exception):
    """Base error of the question embedding pipeline."""


class QuestionValidationError(QuestionSyncError):
    def __init__(self, missing_fields: list[str]) -> None:
        self.missing_fields = missing_fields
        super().__init__(f"Missing required fields: {', '.join(missing_fields)}")


class QuestionNotFound(QuestionSyncError):
    def __init__(self, question_id: int) -> None:
        self.question_id = question_id
        super().__init__(f"Question {question_id} not found")


class EmbeddingError(QuestionSyncError):
    """Embedding service failed or returned an unusable vector."""


class NamespaceError(QuestionSyncError):
    """Vector index unreachable or namespace could not be ensured."""


class VectorStoreError(QuestionSyncError):
    """Vector upsert/delete reported failure."""


class RecordStoreError(QuestionSyncError):
    """Question record read/write failed."""


class TransactionAborted(QuestionSyncError):
    """
    Pre-write check failed. Neither store was touched.
    """

    transaction = "aborted"

    def __init__(self, message: str, question_id: int, vector_id: str | None = None) -> None:
        self.question_id = question_id
        self.vector_id = vector_id
        super().__init__(message)


class TransactionFailed(QuestionSyncError):
    """
    A write failed mid-sequence. Compensation, if any, has already run.
    """

    transaction = "failed"

    def __init__(
        self,
        message: str,
        question_id: int | None = None,
        vector_id: str | None = None,
        rolled_back: bool | None = None,
    ) -> None:
        self.question_id = question_id
        self.vector_id = vector_id
        self.rolled_back = rolled_back
        super().__init__(message)


class CriticalInconsistency(QuestionSyncError):
    """
    Vector is gone but the record delete failed. Needs reconciliation.
    """

    transaction = "failed"

    def __init__(self, message: str, question_id: int, vector_id: str) -> None:
        self.question_id = question_id
        self.vector_id = vector_id
        super().__init__(message)
