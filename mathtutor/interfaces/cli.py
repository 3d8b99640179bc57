"""
interfaces/cli.py
──────────────────────────────────────────────────────────────────────────────
Command-line interface.

Usage:
  # Serve the HTTP API
  mathtutor serve --port 4141

  # Convert worksheet PNGs in QA_DIR into qa_latex.txt
  mathtutor convert

  # Seed the questions table from qa_latex.txt (resumable)
  mathtutor seed --batch-size 5

  # Same, via the module
  python -m mathtutor.interfaces.cli seed --corpus qa/qa_latex.txt

Exit codes:
  0 — success
  1 — fatal error (missing corpus, DB unreachable, auth, …) or failed items
  2 — argument error
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from mathtutor.config.settings import get_settings
from mathtutor.domain.exceptions import TutorError
from mathtutor.services.container import build_import_pipeline, build_latex_pipeline
from mathtutor.services.corpus import load_corpus

logger = logging.getLogger(__name__)


# ── Argument parser ────────────────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="mathtutor",
        description="Math tutor embedding backend: API server and batch tools.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging.",
    )
    sub = p.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve.add_argument("--host", default=None, help="Bind address. (default: API_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Port. (default: API_PORT)")

    seed = sub.add_parser("seed", help="Import the QA corpus into the database.")
    seed.add_argument(
        "--corpus", "-c",
        metavar="FILE",
        type=Path,
        default=None,
        help="Corpus file. (default: QA_DIR/qa_latex.txt)",
    )
    seed.add_argument(
        "--batch-size", "-b",
        type=int,
        default=None,
        dest="batch_size",
        help="Items embedded concurrently per batch. (default: SEED_BATCH_SIZE)",
    )

    convert = sub.add_parser("convert", help="Convert worksheet images to a LaTeX corpus.")
    convert.add_argument(
        "--dir", "-d",
        metavar="DIR",
        type=Path,
        default=None,
        dest="image_dir",
        help="Directory of worksheet PNGs. (default: QA_DIR)",
    )
    convert.add_argument(
        "--output", "-o",
        metavar="FILE",
        type=Path,
        default=None,
        help="Corpus file to write. (default: QA_DIR/qa_latex.txt)",
    )
    convert.add_argument(
        "--batch-size", "-b",
        type=int,
        default=None,
        dest="batch_size",
        help="Pairs converted concurrently per batch. (default: CONVERT_BATCH_SIZE)",
    )
    return p


# ── Commands ───────────────────────────────────────────────────────────────

def run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "mathtutor.interfaces.api:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        log_level=settings.log_level.lower(),
    )
    return 0


def run_seed(args: argparse.Namespace) -> int:
    """Seed the database.  Returns the process exit code."""
    settings = get_settings()
    corpus_path = args.corpus or settings.corpus_path

    try:
        pairs = load_corpus(corpus_path)
        pipeline = build_import_pipeline(settings, batch_size=args.batch_size)
        report = asyncio.run(pipeline.run(pairs))
    except TutorError as exc:
        logger.error("Seeding aborted | code=%s message=%s", exc.code, exc.message)
        print(f"ERROR: {exc.message}", file=sys.stderr)
        return 1

    print(f"\n{'─' * 60}")
    print(f"Succeeded : {report.succeeded}")
    print(f"Failed    : {report.failed}")
    print(f"Skipped   : {report.skipped}")
    print(f"Total     : {report.total}")
    for failure in report.failures:
        print(f"  ✗ {failure.key} [{failure.code}] {failure.message}")
    print()
    return 0 if report.failed == 0 else 1


def run_convert(args: argparse.Namespace) -> int:
    """Convert worksheet images.  Returns the process exit code."""
    settings = get_settings()
    image_dir = args.image_dir or settings.qa_dir
    output = args.output or settings.corpus_path

    try:
        pipeline = build_latex_pipeline(settings, batch_size=args.batch_size)
        pairs = asyncio.run(pipeline.run(image_dir, output))
    except TutorError as exc:
        logger.error("Conversion aborted | code=%s message=%s", exc.code, exc.message)
        print(f"ERROR: {exc.message}", file=sys.stderr)
        return 1

    print(f"Converted {len(pairs)} question-answer pairs → {output}")
    return 0


_COMMANDS = {
    "serve": run_serve,
    "seed": run_seed,
    "convert": run_convert,
}


def main() -> None:
    """Entry point for the mathtutor console script."""
    parser = _build_parser()
    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )

    if not args.command:
        parser.print_help()
        sys.exit(2)

    sys.exit(_COMMANDS[args.command](args))


if __name__ == "__main__":
    main()
