"""
services/embedding_generator.py
──────────────────────────────────────────────────────────────────────────────
Turns question/answer text into a storable vector.

The provider client is injected (any EmbeddingPort).  Provider failures are
classified into TutorError here, so nothing downstream ever sees a
ProviderError.  There is no retry logic in this module.
"""
from __future__ import annotations

import logging

from mathtutor.config.settings import Settings
from mathtutor.domain.exceptions import FailureKind, ProviderError, TutorError
from mathtutor.ports.embedding_port import EmbeddingPort
from mathtutor.services.error_classifier import classify_provider_error

logger = logging.getLogger(__name__)


def combine_question_answer(question: str, answer: str) -> str:
    """Composite text embedded for a question/answer pair."""
    return f"Question: {question}\nAnswer: {answer}"


class EmbeddingGenerator:
    """Embedding front-end over an EmbeddingPort.

    Args:
        client:   Any object satisfying EmbeddingPort.
        settings: Shared application settings (``embed_dim``).
    """

    def __init__(self, client: EmbeddingPort, settings: Settings) -> None:
        self._client = client
        self._dim = settings.embed_dim

    @property
    def model_name(self) -> str:
        return self._client.model_name

    def generate(self, text: str) -> list[float]:
        """Embed ``text`` and return the provider's vector unmodified.

        Raises:
            TutorError: The classified provider failure.
        """
        try:
            return self._client.embed(text)
        except ProviderError as exc:
            raise classify_provider_error(exc) from exc

    def generate_combined(self, question: str, answer: str) -> list[float]:
        """Embed a question/answer pair as one composite text.

        Raises:
            TutorError(VALIDATION_FAILED): If either input is empty (the
                provider is not called), or if the vector length does not
                match the configured dimensionality.
            TutorError: The classified provider failure.
        """
        if not question or not question.strip():
            raise TutorError(FailureKind.VALIDATION_FAILED, "Question is required")
        if not answer or not answer.strip():
            raise TutorError(FailureKind.VALIDATION_FAILED, "Answer is required")

        vector = self.generate(combine_question_answer(question, answer))

        if len(vector) != self._dim:
            raise TutorError(
                FailureKind.VALIDATION_FAILED,
                f"Embedding must have {self._dim} dimensions, got {len(vector)}",
            )
        logger.debug("Generated embedding | dim=%d chars=%d", len(vector),
                     len(question) + len(answer))
        return vector
