"""
services/questions.py
──────────────────────────────────────────────────────────────────────────────
Question lifecycle: create, list, read, update, delete.

This is the only service that mutates the questions table on behalf of HTTP
callers.  Its one rule beyond delegation: a record's embedding is always
derived from its current text, so any change to question or answer
regenerates the vector before the row is written.
"""
from __future__ import annotations

import logging
from typing import Optional

from mathtutor.domain.exceptions import FailureKind, TutorError
from mathtutor.domain.models import Pagination, QuestionPage, QuestionRecord
from mathtutor.ports.question_store_port import QuestionStorePort
from mathtutor.services.embedding_generator import EmbeddingGenerator

logger = logging.getLogger(__name__)


class QuestionService:
    """Orchestrates EmbeddingGenerator + QuestionStorePort.

    Args:
        generator: Embedding front-end.
        store:     Any object satisfying QuestionStorePort.
    """

    def __init__(
        self,
        generator: EmbeddingGenerator,
        store: QuestionStorePort,
    ) -> None:
        self._generator = generator
        self._store = store

    def create(
        self,
        question: Optional[str],
        answer: Optional[str],
    ) -> QuestionRecord:
        embedding = self._generator.generate_combined(question or "", answer or "")
        return self._store.insert(question, answer, embedding)

    def list_page(self, limit: int = 10, offset: int = 0) -> QuestionPage:
        """Return one page of summaries.

        ``pagination.total`` is the number of items in this page, not the
        table size.
        """
        if limit < 1 or limit > 100:
            raise TutorError(
                FailureKind.VALIDATION_FAILED, "limit must be between 1 and 100"
            )
        if offset < 0:
            raise TutorError(FailureKind.VALIDATION_FAILED, "offset must be >= 0")
        data = self._store.find_all(limit, offset)
        return QuestionPage(
            data=data,
            pagination=Pagination(limit=limit, offset=offset, total=len(data)),
        )

    def get(self, question_id: str) -> QuestionRecord:
        return self._store.get(question_id)

    def update(
        self,
        question_id: str,
        question: Optional[str] = None,
        answer: Optional[str] = None,
    ) -> QuestionRecord:
        """Apply a partial update, regenerating the embedding if text changed.

        Raises:
            TutorError(NOT_FOUND): If the id is absent.
            TutorError(VALIDATION_FAILED): If a supplied field is blank.
        """
        current = self._store.get(question_id)

        for name, value in (("question", question), ("answer", answer)):
            if value is not None and not value.strip():
                raise TutorError(
                    FailureKind.VALIDATION_FAILED, f"{name.capitalize()} cannot be empty"
                )

        new_question = question if question is not None else current.question
        new_answer = answer if answer is not None else current.answer

        if new_question != current.question or new_answer != current.answer:
            logger.info("Text changed, regenerating embedding | id=%s", question_id)
            embedding = self._generator.generate_combined(new_question, new_answer)
        else:
            embedding = current.embedding

        return self._store.update(question_id, new_question, new_answer, embedding)

    def delete(self, question_id: str) -> None:
        self._store.delete(question_id)

    def count(self) -> int:
        return self._store.count()

    def ping(self) -> None:
        self._store.ping()
