"""
ports/question_store_port.py
──────────────────────────────────────────────────────────────────────────────
Abstract interface for the question/answer/embedding store.

The store owns row lifecycle only.  It never calls the embedding provider:
keeping a record's vector in sync with its text is the job of
services/questions.py, which regenerates the vector before calling update().

Every method reports failures as TutorError:
  NOT_FOUND         — id absent
  DUPLICATE_ENTRY   — uniqueness violation
  VALIDATION_FAILED — other constraint violation, or wrong vector length
  STORAGE_FAILED    — anything else

Current implementation: PostgresQuestionStore (psycopg2 + pgvector)
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from mathtutor.domain.models import QuestionRecord, QuestionSummary


@runtime_checkable
class QuestionStorePort(Protocol):
    """Contract for the persistence backend."""

    def ping(self) -> None:
        """Raise STORAGE_FAILED unless the datastore answers a trivial query."""
        ...

    def insert(
        self,
        question: str,
        answer: str,
        embedding: list[float],
    ) -> QuestionRecord:
        """Insert a new row and return it with generated id and timestamps."""
        ...

    def find_all(self, limit: int, offset: int) -> list[QuestionSummary]:
        """Return one page of rows ordered by creation time, oldest first."""
        ...

    def get(self, question_id: str) -> QuestionRecord:
        """Return the row with this id.

        Raises:
            TutorError(NOT_FOUND): If no such row exists.
        """
        ...

    def update(
        self,
        question_id: str,
        question: str,
        answer: str,
        embedding: list[float],
    ) -> QuestionRecord:
        """Overwrite text and vector, refresh updated_at, return the new row."""
        ...

    def delete(self, question_id: str) -> None:
        """Hard-delete the row.  NOT_FOUND if absent."""
        ...

    def count(self) -> int:
        """Total number of rows."""
        ...
