"""
domain/models.py
──────────────────────────────────────────────────────────────────────────────
Pure domain objects — Pydantic models with no imports from adapters or ports.

  • adapters produce QuestionRecord / QuestionSummary rows
  • services assemble QuestionPage, BatchReport, QAPair
  • interfaces serialise them with ``to_dict()`` (camelCase JSON keys)
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Serialises with camelCase aliases; accepts either spelling on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ── Stored entity ──────────────────────────────────────────────────────────────

class QuestionRecord(_CamelModel):
    """A persisted question/answer pair with its embedding."""

    id:         UUID
    question:   str
    answer:     str
    embedding:  list[float]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QuestionSummary(_CamelModel):
    """List-view projection of a QuestionRecord (no vector)."""

    id:         UUID
    question:   str
    answer:     str
    created_at: Optional[datetime] = None


class Pagination(_CamelModel):
    limit:  int
    offset: int
    total:  int


class QuestionPage(_CamelModel):
    data:       list[QuestionSummary]
    pagination: Pagination


# ── Request bodies ─────────────────────────────────────────────────────────────

class CreateQuestionRequest(BaseModel):
    """POST /embeddings body.  Emptiness is checked by the generator."""

    question: Optional[str] = None
    answer:   Optional[str] = None


class UpdateQuestionRequest(BaseModel):
    """PUT /embeddings/{id} body.  Omitted fields are left unchanged."""

    question: Optional[str] = None
    answer:   Optional[str] = None


class ConvertImageRequest(BaseModel):
    """POST /convert-to-latex body: base64 payload, optionally a data URL."""

    image: Optional[str] = None


# ── Batch import ───────────────────────────────────────────────────────────────

class QAPair(BaseModel):
    """One corpus entry, keyed by unit + question number."""

    unit:            str
    question_number: str
    question:        str
    answer:          str

    @field_validator("unit", "question_number")
    @classmethod
    def strip_key_part(cls, v: str) -> str:
        return v.strip()

    @property
    def key(self) -> str:
        return f"{self.unit}_{self.question_number}"


class BatchProgress(_CamelModel):
    """Resumability checkpoint document."""

    processed_keys: list[str] = Field(default_factory=list)
    last_updated:   datetime = Field(
                        default_factory=lambda: datetime.now(timezone.utc)
                    )


class ItemFailure(BaseModel):
    key:      str
    code:     str
    message:  str
    attempts: int


class BatchReport(BaseModel):
    """Aggregate outcome of one BatchImportPipeline run."""

    total:     int = 0
    succeeded: int = 0
    failed:    int = 0
    skipped:   int = 0
    failures:  list[ItemFailure] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when every item is either imported now or earlier."""
        return self.failed == 0 and self.succeeded + self.skipped == self.total
