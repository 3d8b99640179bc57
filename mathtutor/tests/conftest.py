"""
tests/conftest.py
──────────────────────────────────────────────────────────────────────────────
Shared pytest fixtures and mock adapter implementations.

Mock adapters implement the Port Protocols via structural subtyping — they do
NOT inherit from any base class.  pytest uses them to test service logic
without any real OpenAI or database connections.

Fixture hierarchy:
  mock_embedder     → implements EmbeddingPort (deterministic 8-dim vectors)
  mock_store        → implements QuestionStorePort (in-memory rows)
  mock_checkpoint   → implements CheckpointPort (in-memory, records saves)
  mock_vision       → implements VisionPort (canned LaTeX)
  generator         → EmbeddingGenerator wired with mock_embedder
  question_service  → QuestionService wired with generator + mock_store
  api_client        → FastAPI TestClient with question_service injected
"""
from __future__ import annotations

import hashlib
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import pytest

from mathtutor.config.settings import Settings
from mathtutor.domain.exceptions import FailureKind, ProviderError, TutorError
from mathtutor.domain.models import QAPair, QuestionRecord, QuestionSummary
from mathtutor.services.embedding_generator import EmbeddingGenerator
from mathtutor.services.questions import QuestionService


# ── Settings fixture ───────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def settings() -> Settings:
    """Return a Settings instance with sane test defaults."""
    return Settings(
        openai_api_key="sk-test-key",
        openai_base_url="https://api.openai.com/v1",
        openai_embed_model="text-embedding-3-small",
        openai_vision_model="gpt-4o",
        embed_dim=8,  # tiny vectors in tests
        db_dsn="dbname=ai_tutor_test",
        retry_max_attempts=3,
        retry_base_delay=1.0,
        seed_batch_size=2,
        seed_batch_delay=0.5,
        convert_batch_size=2,
        convert_batch_delay=0.5,
    )


# ── Mock adapters ──────────────────────────────────────────────────────────

def fake_vector(text: str, dim: int = 8) -> list[float]:
    """Deterministic, text-dependent vector."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [b / 255.0 for b in digest[:dim]]


class MockEmbeddingAdapter:
    """Deterministic fake embedder with scripted failures.

    ``failures`` maps a substring of the input text to a list of
    ProviderErrors raised (one per call) before calls for that text succeed.
    """

    model_name = "mock-embedding"

    def __init__(self, dim: int = 8) -> None:
        self.dimensions = dim
        self.calls: list[str] = []
        self.failures: dict[str, list[ProviderError]] = {}
        self._lock = threading.Lock()

    def fail_on(self, fragment: str, *errors: ProviderError) -> None:
        self.failures.setdefault(fragment, []).extend(errors)

    def embed(self, text: str) -> list[float]:
        with self._lock:
            self.calls.append(text)
            for fragment, errors in self.failures.items():
                if fragment in text and errors:
                    raise errors.pop(0)
        return fake_vector(text, self.dimensions)


class MockQuestionStore:
    """In-memory QuestionStorePort with the same error contract as Postgres."""

    def __init__(self, dim: int = 8) -> None:
        self._dim = dim
        self._rows: dict[str, QuestionRecord] = {}
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)
        self._lock = threading.Lock()
        self.healthy = True
        self.insert_calls = 0

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def ping(self) -> None:
        if not self.healthy:
            raise TutorError(FailureKind.STORAGE_FAILED, "Database health check failed")

    def insert(self, question, answer, embedding) -> QuestionRecord:
        if len(embedding) != self._dim:
            raise TutorError(FailureKind.VALIDATION_FAILED, "wrong dimensions")
        with self._lock:
            self.insert_calls += 1
            now = self._tick()
            record = QuestionRecord(
                id=uuid.uuid4(),
                question=question,
                answer=answer,
                embedding=list(embedding),
                created_at=now,
                updated_at=now,
            )
            self._rows[str(record.id)] = record
        return record

    def find_all(self, limit: int, offset: int) -> list[QuestionSummary]:
        rows = sorted(self._rows.values(), key=lambda r: r.created_at)
        return [
            QuestionSummary(
                id=r.id, question=r.question, answer=r.answer, created_at=r.created_at
            )
            for r in rows[offset : offset + limit]
        ]

    def get(self, question_id: str) -> QuestionRecord:
        try:
            return self._rows[str(question_id)]
        except KeyError:
            raise TutorError(FailureKind.NOT_FOUND) from None

    def update(self, question_id, question, answer, embedding) -> QuestionRecord:
        current = self.get(question_id)
        if len(embedding) != self._dim:
            raise TutorError(FailureKind.VALIDATION_FAILED, "wrong dimensions")
        updated = current.model_copy(update={
            "question": question,
            "answer": answer,
            "embedding": list(embedding),
            "updated_at": self._tick(),
        })
        self._rows[str(question_id)] = updated
        return updated

    def delete(self, question_id: str) -> None:
        self.get(question_id)
        del self._rows[str(question_id)]

    def count(self) -> int:
        return len(self._rows)


class MemoryCheckpoint:
    """In-memory CheckpointPort that records every save."""

    def __init__(self, keys: Optional[Iterable[str]] = None) -> None:
        self.keys: Optional[set[str]] = set(keys) if keys is not None else None
        self.saves: list[set[str]] = []
        self.cleared = False

    def load(self) -> set[str]:
        return set(self.keys or ())

    def save(self, keys: Iterable[str]) -> None:
        self.keys = set(keys)
        self.saves.append(set(self.keys))

    def clear(self) -> None:
        self.keys = None
        self.cleared = True


class MockVisionAdapter:
    """Returns canned LaTeX derived from the image bytes."""

    model_name = "mock-vision"

    def __init__(self) -> None:
        self.calls: list[bytes] = []
        self.failures: list[Exception] = []
        self.output: Optional[str] = None
        self._lock = threading.Lock()

    def image_to_text(self, image_bytes: bytes, prompt: str) -> str | None:
        with self._lock:
            self.calls.append(image_bytes)
            if self.failures:
                raise self.failures.pop(0)
        if self.output is not None:
            return self.output
        return f"  \\text{{{image_bytes.decode('utf-8', 'replace')}}}  "


class RecordingSleep:
    """Awaitable stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_pairs(n: int, unit: str = "algebra") -> list[QAPair]:
    return [
        QAPair(
            unit=unit,
            question_number=str(i),
            question=f"Solve item {i}: $x + {i} = 0$",
            answer=f"$x = -{i}$",
        )
        for i in range(1, n + 1)
    ]


# ── pytest fixtures ────────────────────────────────────────────────────────

@pytest.fixture
def mock_embedder(settings):
    return MockEmbeddingAdapter(dim=settings.embed_dim)


@pytest.fixture
def mock_store(settings):
    return MockQuestionStore(dim=settings.embed_dim)


@pytest.fixture
def mock_checkpoint():
    return MemoryCheckpoint()


@pytest.fixture
def mock_vision():
    return MockVisionAdapter()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def generator(mock_embedder, settings):
    return EmbeddingGenerator(mock_embedder, settings)


@pytest.fixture
def question_service(generator, mock_store):
    return QuestionService(generator=generator, store=mock_store)


@pytest.fixture
def api_client(question_service):
    """TestClient with the QuestionService dependency overridden."""
    from fastapi.testclient import TestClient

    from mathtutor.interfaces.api import app
    from mathtutor.services.container import get_question_service

    app.dependency_overrides[get_question_service] = lambda: question_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def fast_settings(settings):
    """Settings with zero back-off, for tests that do not inspect delays."""
    return replace(settings, retry_base_delay=0.0, seed_batch_delay=0.0,
                   convert_batch_delay=0.0)
