"""
config/settings.py
──────────────────────────────────────────────────────────────────────────────
Single source of truth for all tuneable parameters.

All values can be overridden via environment variables or a .env file placed
at the project root.  The frozen dataclass ensures settings are never mutated
at runtime.

Commonly overridden:
  OPENAI_API_KEY      → provider credential
  OPENAI_EMBED_MODEL  → swap embedding model (EMBED_DIM must match the column)
  DB_DSN              → swap database
  RETRY_MAX_ATTEMPTS  → batch retry policy (applies to seed and convert)
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

_PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load .env from project root (two levels up from this file)
load_dotenv(_PROJECT_ROOT / ".env")


def _env(key: str, default: str) -> str:
    return os.getenv(key, default)


def _env_int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _env_float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


def _env_path(key: str, default: Path) -> Path:
    return Path(os.getenv(key, str(default)))


@dataclass(frozen=True)
class Settings:
    """Immutable application settings loaded from environment variables."""

    # ── OpenAI ─────────────────────────────────────────────────────────────
    openai_api_key: str = field(
        default_factory=lambda: _env("OPENAI_API_KEY", "")
    )
    openai_base_url: str = field(
        default_factory=lambda: _env("OPENAI_BASE_URL", "https://api.openai.com/v1")
    )
    # text-embedding-3-small: 1536-dim natively, matches the questions table.
    openai_embed_model: str = field(
        default_factory=lambda: _env("OPENAI_EMBED_MODEL", "text-embedding-3-small")
    )
    openai_vision_model: str = field(
        default_factory=lambda: _env("OPENAI_VISION_MODEL", "gpt-4o")
    )
    embed_dim: int = field(
        default_factory=lambda: _env_int("EMBED_DIM", 1536)
    )
    vision_max_tokens: int = field(
        default_factory=lambda: _env_int("VISION_MAX_TOKENS", 1000)
    )

    # ── Database ───────────────────────────────────────────────────────────
    db_dsn: str = field(
        default_factory=lambda: _env("DB_DSN", "dbname=ai_tutor_db")
    )
    db_pool_min: int = field(default_factory=lambda: _env_int("DB_POOL_MIN", 1))
    db_pool_max: int = field(default_factory=lambda: _env_int("DB_POOL_MAX", 10))

    # ── Batch retry policy ─────────────────────────────────────────────────
    retry_max_attempts: int = field(
        default_factory=lambda: _env_int("RETRY_MAX_ATTEMPTS", 3)
    )
    retry_base_delay: float = field(
        default_factory=lambda: _env_float("RETRY_BASE_DELAY", 1.0)
    )

    # ── Seeding (QA corpus → questions table) ──────────────────────────────
    seed_batch_size: int = field(
        default_factory=lambda: _env_int("SEED_BATCH_SIZE", 5)
    )
    seed_batch_delay: float = field(
        default_factory=lambda: _env_float("SEED_BATCH_DELAY", 1.0)
    )

    # ── Worksheet conversion (PNG → LaTeX corpus) ──────────────────────────
    convert_batch_size: int = field(
        default_factory=lambda: _env_int("CONVERT_BATCH_SIZE", 2)
    )
    convert_batch_delay: float = field(
        default_factory=lambda: _env_float("CONVERT_BATCH_DELAY", 2.0)
    )

    # ── Data paths ─────────────────────────────────────────────────────────
    qa_dir: Path = field(
        default_factory=lambda: _env_path("QA_DIR", _PROJECT_ROOT / "qa")
    )

    # ── HTTP ───────────────────────────────────────────────────────────────
    api_host: str = field(default_factory=lambda: _env("API_HOST", "0.0.0.0"))
    api_port: int = field(default_factory=lambda: _env_int("API_PORT", 4141))
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))

    # ── HTTP timeouts (seconds) ────────────────────────────────────────────
    embed_timeout: int = field(default_factory=lambda: _env_int("EMBED_TIMEOUT", 30))
    vision_timeout: int = field(default_factory=lambda: _env_int("VISION_TIMEOUT", 90))

    @property
    def corpus_path(self) -> Path:
        return self.qa_dir / "qa_latex.txt"

    @property
    def seed_checkpoint_path(self) -> Path:
        return self.qa_dir / "seed_progress.json"

    @property
    def convert_checkpoint_path(self) -> Path:
        return self.qa_dir / "qa_progress.json"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Returns a cached singleton Settings instance.

    Use this everywhere instead of instantiating Settings() directly —
    it guarantees a single object is shared across the entire process.
    """
    return Settings()
