"""
services/latex_conversion.py
──────────────────────────────────────────────────────────────────────────────
Worksheet images → LaTeX text.

MathImageConverter
  Single-image conversion used by POST /convert-to-latex and by the batch
  pipeline.  Provider failures are classified into TutorError.

LatexConversionPipeline
  Scans the QA directory for worksheet PNGs named

      p1_<unit>_q<n>.png   p1_<unit>_a<n>.png   (optional _<k> suffix)

  pairs each question image with its answer image, converts both, and writes
  the corpus file read by the seeding pipeline (services/corpus.py).
  Batching, back-off and checkpointing follow services/batch_import.py; the
  corpus file is rewritten after every batch so a resumed run keeps earlier
  pairs.  A page that still fails after retries is written as a placeholder
  so one bad image does not lose its pair.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from mathtutor.config.prompts import CONVERSION_ERROR_TEMPLATE, LATEX_EXTRACTION_PROMPT
from mathtutor.config.settings import Settings
from mathtutor.domain.exceptions import FailureKind, ProviderError, TutorError
from mathtutor.domain.models import QAPair
from mathtutor.ports.checkpoint_port import CheckpointPort
from mathtutor.ports.vision_port import VisionPort
from mathtutor.services.corpus import format_corpus, parse_corpus
from mathtutor.services.error_classifier import classify_provider_error
from mathtutor.services.retry import RetryExhausted, RetryPolicy, Sleep, retry_async

logger = logging.getLogger(__name__)

_FILENAME_RE = re.compile(r"^p[12]_(?P<unit>.+)_(?P<kind>[qa])(?P<number>\d+)(?:_\d+)?\.png$")
_DATA_URL_RE = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")


# ── Single image ───────────────────────────────────────────────────────────

class MathImageConverter:
    """Convert one math image to LaTeX via a VisionPort."""

    def __init__(self, vision: VisionPort) -> None:
        self._vision = vision

    @property
    def model_name(self) -> str:
        return self._vision.model_name

    def convert(self, image_bytes: bytes) -> str:
        """Return the LaTeX extracted from ``image_bytes``.

        Raises:
            TutorError(VALIDATION_FAILED): Empty image.
            TutorError(UNCLASSIFIED): The model returned no text.
            TutorError: The classified provider failure.
        """
        if not image_bytes:
            raise TutorError(
                FailureKind.VALIDATION_FAILED,
                "Image buffer is required and cannot be empty",
            )
        try:
            text = self._vision.image_to_text(image_bytes, LATEX_EXTRACTION_PROMPT)
        except ProviderError as exc:
            raise classify_provider_error(exc) from exc
        if not text:
            raise TutorError(FailureKind.UNCLASSIFIED, "No LaTeX output received from OpenAI")
        return text.strip()


def decode_image_payload(payload: Optional[str]) -> bytes:
    """Decode a base64 image, with or without a ``data:image/...`` prefix."""
    if not payload:
        raise TutorError(FailureKind.VALIDATION_FAILED, "Image data is required")
    raw = _DATA_URL_RE.sub("", payload.strip())
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise TutorError(
            FailureKind.VALIDATION_FAILED,
            "Invalid image format. Expected a base64 string",
        ) from exc


# ── Directory scan ─────────────────────────────────────────────────────────

@dataclass
class WorksheetPair:
    unit: str
    question_number: str
    question_file: Optional[str] = None
    answer_file: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.unit}_{self.question_number}"

    @property
    def complete(self) -> bool:
        return bool(self.question_file and self.answer_file)


def group_worksheet_files(filenames: list[str]) -> list[WorksheetPair]:
    """Group worksheet image names into question/answer pairs, sorted by key.

    Names that do not match the worksheet pattern are ignored.
    """
    groups: dict[tuple[str, str], WorksheetPair] = {}
    for name in sorted(filenames):
        match = _FILENAME_RE.match(name)
        if not match:
            continue
        unit, number = match.group("unit"), match.group("number")
        pair = groups.setdefault((unit, number), WorksheetPair(unit, number))
        if match.group("kind") == "q":
            pair.question_file = name
        else:
            pair.answer_file = name
    return [groups[k] for k in sorted(groups)]


# ── Batch pipeline ─────────────────────────────────────────────────────────

class LatexConversionPipeline:
    """Resumable worksheet directory → QA corpus conversion.

    Args:
        converter:  Single-image converter.
        checkpoint: Any object satisfying CheckpointPort.
        settings:   Batch size, delays and retry policy.
        sleep:      Awaitable sleep used for back-off and batch delays.
    """

    def __init__(
        self,
        converter: MathImageConverter,
        checkpoint: CheckpointPort,
        settings: Settings,
        sleep: Sleep = asyncio.sleep,
        batch_size: Optional[int] = None,
    ) -> None:
        self._converter = converter
        self._checkpoint = checkpoint
        self._batch_size = max(1, batch_size or settings.convert_batch_size)
        self._batch_delay = settings.convert_batch_delay
        self._policy = RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
        )
        self._sleep = sleep

    async def run(self, image_dir: Path, output_file: Path) -> list[QAPair]:
        """Convert every unprocessed complete pair and write ``output_file``.

        Returns:
            Every pair now in the corpus file: resumed ones first, then the
            pairs converted in this run, in key order.

        Raises:
            TutorError(VALIDATION_FAILED): If ``image_dir`` does not exist.
        """
        image_dir = Path(image_dir)
        if not image_dir.is_dir():
            raise TutorError(
                FailureKind.VALIDATION_FAILED, f"QA directory not found: {image_dir}"
            )

        files = [p.name for p in image_dir.iterdir() if p.suffix == ".png"]
        groups = group_worksheet_files(files)
        logger.info("Found %d image files in %d groups", len(files), len(groups))

        output_file = Path(output_file)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        processed = self._checkpoint.load()
        results: list[QAPair] = []
        if processed and output_file.exists():
            # Resuming: keep the pairs the interrupted run already wrote
            results = [
                p for p in parse_corpus(output_file.read_text(encoding="utf-8"))
                if p.key in processed
            ]
        batches = [
            groups[i : i + self._batch_size]
            for i in range(0, len(groups), self._batch_size)
        ]
        for n, batch in enumerate(batches, start=1):
            logger.info("Processing batch %d/%d", n, len(batches))
            pending = []
            for group in batch:
                if group.key in processed:
                    logger.debug("Skipping already processed: %s", group.key)
                elif not group.complete:
                    logger.warning("Incomplete pair for %s: %s", group.key, group)
                else:
                    pending.append(group)

            converted = await asyncio.gather(
                *(self._convert_pair(image_dir, g) for g in pending)
            )
            for group, pair in zip(pending, converted):
                processed.add(group.key)
                results.append(pair)

            output_file.write_text(format_corpus(results), encoding="utf-8")
            self._checkpoint.save(processed)

            if n < len(batches) and self._batch_delay > 0:
                await self._sleep(self._batch_delay)

        output_file.write_text(format_corpus(results), encoding="utf-8")
        logger.info("Wrote %d question-answer pairs to %s", len(results), output_file)

        self._checkpoint.clear()
        return results

    async def _convert_pair(self, image_dir: Path, group: WorksheetPair) -> QAPair:
        question, answer = await asyncio.gather(
            self._convert_file(image_dir / group.question_file),
            self._convert_file(image_dir / group.answer_file),
        )
        return QAPair(
            unit=group.unit,
            question_number=group.question_number,
            question=question,
            answer=answer,
        )

    async def _convert_file(self, path: Path) -> str:
        """Convert one image; failures become a placeholder text."""
        async def attempt() -> str:
            return await asyncio.to_thread(self._converter.convert, image_bytes)

        try:
            image_bytes = await asyncio.to_thread(path.read_bytes)
            return await retry_async(attempt, self._policy, label=path.name, sleep=self._sleep)
        except RetryExhausted as exc:
            logger.error("Error converting %s: %s", path.name, exc.error.message)
            return CONVERSION_ERROR_TEMPLATE.format(message=exc.error.message)
        except Exception as exc:
            logger.exception("Unexpected error converting %s", path.name)
            return CONVERSION_ERROR_TEMPLATE.format(
                message=str(exc) or exc.__class__.__name__
            )
