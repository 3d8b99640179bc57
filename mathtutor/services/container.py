"""
services/container.py
──────────────────────────────────────────────────────────────────────────────
Dependency Injection container.

THIS IS THE ONLY FILE THAT NAMES CONCRETE ADAPTER CLASSES.

  EmbeddingPort      → OpenAIEmbeddingAdapter
  VisionPort         → OpenAIVisionAdapter
  QuestionStorePort  → PostgresQuestionStore
  CheckpointPort     → JsonFileCheckpoint

Replace the database:
  - from mathtutor.adapters.postgres_db import PostgresQuestionStore
  + from mathtutor.adapters.other_db import OtherQuestionStore

Thread safety:
  @lru_cache(maxsize=1) makes get_question_service() return the same instance
  across calls, so every FastAPI worker thread shares one connection pool.
  Each uvicorn worker process builds its own (one pool per process).
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from mathtutor.adapters.json_checkpoint import JsonFileCheckpoint
from mathtutor.adapters.openai_embedding import OpenAIEmbeddingAdapter
from mathtutor.adapters.openai_vision import OpenAIVisionAdapter
from mathtutor.adapters.postgres_db import PostgresQuestionStore
from mathtutor.config.settings import Settings, get_settings
from mathtutor.services.batch_import import BatchImportPipeline
from mathtutor.services.embedding_generator import EmbeddingGenerator
from mathtutor.services.latex_conversion import LatexConversionPipeline, MathImageConverter
from mathtutor.services.questions import QuestionService

logger = logging.getLogger(__name__)


def _build_generator(settings: Settings) -> EmbeddingGenerator:
    logger.info("Embedding provider: OpenAI (%s)", settings.openai_embed_model)
    return EmbeddingGenerator(OpenAIEmbeddingAdapter(settings), settings)


@lru_cache(maxsize=1)
def get_question_service() -> QuestionService:
    """Build and return the fully wired QuestionService singleton.

    Raises:
        TutorError(INVALID_CREDENTIAL): If OPENAI_API_KEY is missing.
    """
    settings = get_settings()
    service = QuestionService(
        generator=_build_generator(settings),
        store=PostgresQuestionStore(settings),
    )
    logger.info("QuestionService ready | dsn=%s", settings.db_dsn)
    return service


@lru_cache(maxsize=1)
def get_image_converter() -> MathImageConverter:
    """Single-image converter singleton for the HTTP layer."""
    return build_image_converter(get_settings())


def build_image_converter(settings: Settings) -> MathImageConverter:
    logger.info("Vision provider: OpenAI (%s)", settings.openai_vision_model)
    return MathImageConverter(OpenAIVisionAdapter(settings))


def build_import_pipeline(
    settings: Settings,
    batch_size: Optional[int] = None,
) -> BatchImportPipeline:
    """Wire a BatchImportPipeline for the ``seed`` command."""
    return BatchImportPipeline(
        generator=_build_generator(settings),
        store=PostgresQuestionStore(settings),
        checkpoint=JsonFileCheckpoint(settings.seed_checkpoint_path),
        settings=settings,
        batch_size=batch_size,
    )


def build_latex_pipeline(
    settings: Settings,
    batch_size: Optional[int] = None,
) -> LatexConversionPipeline:
    """Wire a LatexConversionPipeline for the ``convert`` command."""
    return LatexConversionPipeline(
        converter=build_image_converter(settings),
        checkpoint=JsonFileCheckpoint(settings.convert_checkpoint_path),
        settings=settings,
        batch_size=batch_size,
    )
