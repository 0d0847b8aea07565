from __future__ import annotations

from openai import OpenAIError

from apps.question_bank.errors import EmbeddingError, QuestionValidationError
from common.openai_client import ensure_openai_client
from logger import get_logger
from settings import config

logger = get_logger(__name__)


def build_embedding_input(
    question: str,
    has_description: bool = False,
    description_content: str | None = None,
) -> str:
    """
    Returns the text sent to the embedding model: the question, then the
    description when the question carries one.
    """
    parts = [question.strip()]
    if has_description and description_content and description_content.strip():
        parts.append(description_content.strip())
    return " | ".join(p for p in parts if p)


class EmbeddingService:
    """Turns question text into a fixed-dimension vector via OpenAI."""

    def __init__(self, model: str | None = None, dimension: int | None = None) -> None:
        self.model = model or config.EMBEDDING_MODEL
        self.dimension = dimension or config.EMBEDDING_DIM

    async def generate_embedding(
        self,
        question: str | None,
        has_description: bool = False,
        description_content: str | None = None,
    ) -> list[float]:
        if not question or not question.strip():
            raise QuestionValidationError(["question"])

        text = build_embedding_input(question, has_description, description_content)
        client = await ensure_openai_client()
        try:
            resp = await client.embeddings.create(
                model=self.model,
                input=text,
                encoding_format="float",
            )
        except OpenAIError as e:
            raise EmbeddingError(f"Embedding generation failed: {e}") from e

        embedding = list(resp.data[0].embedding)
        if len(embedding) != self.dimension:
            raise EmbeddingError(
                f"Embedding dimension mismatch: got {len(embedding)}, expected {self.dimension}"
            )
        logger.debug("Embedding generated, dimensions=%s", len(embedding))
        return embedding
