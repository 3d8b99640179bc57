"""
services/batch_import.py
──────────────────────────────────────────────────────────────────────────────
Offline seeding: QA corpus → embeddings → questions table.

Execution model:
  • Items are processed in fixed-size batches.  Within a batch every item's
    embed + insert runs concurrently (blocking port calls are pushed to
    worker threads with asyncio.to_thread); the batch resolves only when
    every item has succeeded or failed.
  • Batches run strictly one after another.  The checkpoint is written after
    each batch, before the next one starts, so a crashed run resumes from
    "all earlier batches fully resolved".
  • Per-item retry via services/retry.py: RATE_LIMITED / NETWORK_UNAVAILABLE
    are retried with exponential back-off, every other kind fails the item
    at once.  A failed item never aborts the batch or the run.
  • Items whose key is already processed (checkpoint, or an earlier run of
    this pipeline instance) are skipped.  With nothing to resume, a table
    already holding at least as many rows as the corpus means a previous
    run completed and cleared its checkpoint: every item is skipped.
  • The inter-batch delay only follows batches that called the provider.
  • Fatal before any item: empty corpus, or a failed datastore ping.

Checkpoint lifecycle: saved after every batch; cleared once the whole corpus
is processed with zero failures.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from mathtutor.config.settings import Settings
from mathtutor.domain.exceptions import FailureKind, TutorError
from mathtutor.domain.models import BatchReport, ItemFailure, QAPair
from mathtutor.ports.checkpoint_port import CheckpointPort
from mathtutor.ports.question_store_port import QuestionStorePort
from mathtutor.services.embedding_generator import EmbeddingGenerator
from mathtutor.services.retry import RetryExhausted, RetryPolicy, Sleep, retry_async

logger = logging.getLogger(__name__)


class BatchImportPipeline:
    """Resumable, rate-limit-aware corpus importer.

    Args:
        generator:  Embedding front-end.
        store:      Any object satisfying QuestionStorePort.
        checkpoint: Any object satisfying CheckpointPort.
        settings:   Batch size, delays and retry policy.
        sleep:      Awaitable sleep used for back-off and batch delays.
    """

    def __init__(
        self,
        generator: EmbeddingGenerator,
        store: QuestionStorePort,
        checkpoint: CheckpointPort,
        settings: Settings,
        sleep: Sleep = asyncio.sleep,
        batch_size: Optional[int] = None,
    ) -> None:
        self._generator = generator
        self._store = store
        self._checkpoint = checkpoint
        self._batch_size = max(1, batch_size or settings.seed_batch_size)
        self._batch_delay = settings.seed_batch_delay
        self._policy = RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
        )
        self._sleep = sleep
        self._processed: set[str] = set()

    @property
    def processed_keys(self) -> frozenset[str]:
        return frozenset(self._processed)

    # ── Public API ─────────────────────────────────────────────────────────

    async def run(self, pairs: list[QAPair]) -> BatchReport:
        """Import every pair not already processed.

        Raises:
            TutorError(VALIDATION_FAILED): If ``pairs`` is empty.
            TutorError(STORAGE_FAILED): If the datastore pre-flight fails.
        """
        if not pairs:
            raise TutorError(
                FailureKind.VALIDATION_FAILED,
                "No question-answer pairs found in corpus",
            )

        logger.info("Checking database connection...")
        await asyncio.to_thread(self._store.ping)
        logger.info("Database connection established")

        self._processed |= self._checkpoint.load()
        if not self._processed:
            existing = await asyncio.to_thread(self._store.count)
            if existing >= len(pairs):
                logger.info(
                    "Database already holds %d rows for a %d-pair corpus | "
                    "treating corpus as seeded",
                    existing, len(pairs),
                )
                self._processed |= {pair.key for pair in pairs}
        report = BatchReport(total=len(pairs))

        batches = [
            pairs[i : i + self._batch_size]
            for i in range(0, len(pairs), self._batch_size)
        ]
        for n, batch in enumerate(batches, start=1):
            logger.info("Processing batch %d/%d", n, len(batches))
            pending: list[QAPair] = []
            for pair in batch:
                if pair.key in self._processed:
                    logger.debug("Skipping already processed: %s", pair.key)
                    report.skipped += 1
                else:
                    pending.append(pair)

            outcomes = await asyncio.gather(*(self._import_one(p) for p in pending))
            for pair, failure in zip(pending, outcomes):
                if failure is None:
                    self._processed.add(pair.key)
                    report.succeeded += 1
                else:
                    report.failed += 1
                    report.failures.append(failure)

            self._checkpoint.save(self._processed)

            if pending and n < len(batches) and self._batch_delay > 0:
                await self._sleep(self._batch_delay)

        if report.complete:
            self._checkpoint.clear()

        logger.info(
            "Seeding complete | succeeded=%d failed=%d skipped=%d total=%d",
            report.succeeded, report.failed, report.skipped, report.total,
        )
        return report

    # ── Per-item work ──────────────────────────────────────────────────────

    async def _import_one(self, pair: QAPair) -> Optional[ItemFailure]:
        """Embed and insert one pair.  Returns None on success."""

        async def attempt() -> None:
            embedding = await asyncio.to_thread(
                self._generator.generate_combined, pair.question, pair.answer
            )
            record = await asyncio.to_thread(
                self._store.insert, pair.question, pair.answer, embedding
            )
            logger.info("Created question %s | id=%s", pair.key, record.id)

        try:
            await retry_async(attempt, self._policy, label=pair.key, sleep=self._sleep)
        except RetryExhausted as exc:
            logger.error(
                "Failed to import %s after %d attempt(s): %s",
                pair.key, exc.attempts, exc.error.message,
            )
            return ItemFailure(
                key=pair.key,
                code=exc.error.code,
                message=exc.error.message,
                attempts=exc.attempts,
            )
        except Exception as exc:
            logger.exception("Unexpected error importing %s", pair.key)
            return ItemFailure(
                key=pair.key,
                code=FailureKind.UNCLASSIFIED.code,
                message=str(exc) or exc.__class__.__name__,
                attempts=1,
            )
        return None
