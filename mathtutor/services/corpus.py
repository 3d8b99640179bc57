"""
services/corpus.py
──────────────────────────────────────────────────────────────────────────────
Reader and writer for the QA corpus text file (qa_latex.txt).

Each pair is a block:

  === PAIR 1 ===
  Unit: algebra
  Question Number: 3
  Question: Solve $x^2 = 4$
  (continuation lines…)
  Answer: $x = \\pm 2$
  (continuation lines…)

Blocks missing any of the four fields are dropped.
"""
from __future__ import annotations

import logging
from pathlib import Path

from mathtutor.domain.exceptions import FailureKind, TutorError
from mathtutor.domain.models import QAPair

logger = logging.getLogger(__name__)

PAIR_SEPARATOR = "=== PAIR"

_FIELD_PREFIXES = (
    ("Unit:", "unit"),
    ("Question Number:", "question_number"),
    ("Question:", "question"),
    ("Answer:", "answer"),
)


def parse_corpus(text: str) -> list[QAPair]:
    """Parse corpus text into QAPair objects, in file order."""
    pairs: list[QAPair] = []
    for section in text.split(PAIR_SEPARATOR)[1:]:
        fields = {"unit": "", "question_number": "", "question": "", "answer": ""}
        current = ""
        for line in section.strip().splitlines():
            for prefix, name in _FIELD_PREFIXES:
                if line.startswith(prefix):
                    fields[name] = line[len(prefix):].strip()
                    # Only question/answer span multiple lines
                    current = name if name in ("question", "answer") else ""
                    break
            else:
                if line.strip() and current:
                    fields[current] += "\n" + line.strip()

        if all(fields.values()):
            pairs.append(QAPair(**{k: v.strip() for k, v in fields.items()}))
        else:
            logger.debug("Dropping incomplete corpus block: %r", section[:80])
    return pairs


def format_corpus(pairs: list[QAPair]) -> str:
    """Render pairs in the format parse_corpus() reads."""
    blocks = [
        f"=== PAIR {i} ===\n"
        f"Unit: {pair.unit}\n"
        f"Question Number: {pair.question_number}\n"
        f"Question: {pair.question}\n"
        f"Answer: {pair.answer}\n"
        for i, pair in enumerate(pairs, start=1)
    ]
    return "\n".join(blocks)


def load_corpus(path: Path) -> list[QAPair]:
    """Read and parse a corpus file.

    Raises:
        TutorError(VALIDATION_FAILED): If the file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise TutorError(
            FailureKind.VALIDATION_FAILED,
            f"QA corpus not found: {path}. Run the convert command first.",
        )
    pairs = parse_corpus(path.read_text(encoding="utf-8"))
    logger.info("Loaded corpus | path=%s pairs=%d", path, len(pairs))
    return pairs
