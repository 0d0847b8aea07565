from db.models.question_part import QuestionPart, question_id_seq
from db.models.sync_intent import SyncIntent
from db.models.vector_entry import VectorEntry, VectorNamespace

__all__ = [
    "QuestionPart",
    "question_id_seq",
    "SyncIntent",
    "VectorEntry",
    "VectorNamespace",
]
