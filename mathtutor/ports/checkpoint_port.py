"""
ports/checkpoint_port.py
──────────────────────────────────────────────────────────────────────────────
Abstract interface for batch resumability checkpoints.

A checkpoint is the set of work-item keys a batch run has already completed.
The pipelines only ever load, save and clear it, so the backing storage
(local JSON file, object store, a database row) is swappable.

Current implementation: JsonFileCheckpoint
"""
from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable


@runtime_checkable
class CheckpointPort(Protocol):
    """Contract for a processed-keys checkpoint store."""

    def load(self) -> set[str]:
        """Return the saved keys, or an empty set if there is no checkpoint."""
        ...

    def save(self, keys: Iterable[str]) -> None:
        """Replace the checkpoint with these keys."""
        ...

    def clear(self) -> None:
        """Delete the checkpoint.  A no-op when none exists."""
        ...
