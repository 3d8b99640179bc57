"""
adapters/json_checkpoint.py
──────────────────────────────────────────────────────────────────────────────
Implements CheckpointPort as a small JSON document on local disk:

  {"processedKeys": ["algebra_1", ...], "lastUpdated": "2026-10-18T09:00:00Z"}

The file is written to a temporary sibling and renamed into place, so a run
killed mid-write leaves the previous checkpoint intact.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from pydantic import ValidationError

from mathtutor.domain.models import BatchProgress

logger = logging.getLogger(__name__)


class JsonFileCheckpoint:
    """Local-file checkpoint store."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> set[str]:
        if not self._path.exists():
            return set()
        try:
            progress = BatchProgress.model_validate_json(
                self._path.read_text(encoding="utf-8")
            )
        except (OSError, ValidationError) as exc:
            logger.warning(
                "Could not load checkpoint %s, starting fresh: %s", self._path, exc
            )
            return set()
        logger.info(
            "Resuming from checkpoint | path=%s processed=%d",
            self._path, len(progress.processed_keys),
        )
        return set(progress.processed_keys)

    def save(self, keys: Iterable[str]) -> None:
        progress = BatchProgress(processed_keys=sorted(keys))
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(
            progress.model_dump_json(by_alias=True), encoding="utf-8"
        )
        os.replace(tmp, self._path)
        logger.debug(
            "Checkpoint saved | path=%s processed=%d",
            self._path, len(progress.processed_keys),
        )

    def clear(self) -> None:
        if self._path.exists():
            self._path.unlink()
            logger.info("Cleaned up checkpoint %s", self._path)
