"""
interfaces/api.py
──────────────────────────────────────────────────────────────────────────────
FastAPI delivery layer.

Routes:
  POST   /embeddings            create (201)
  GET    /embeddings            list, ?limit=10&offset=0
  GET    /embeddings/{id}       read
  PUT    /embeddings/{id}       partial update, regenerates the vector
  DELETE /embeddings/{id}       hard delete
  GET    /health                datastore ping
  POST   /convert-to-latex      base64 image → LaTeX

Handlers only orchestrate: the QuestionService does the work on a threadpool
thread, and every failure is rendered as the same envelope

  {"statusCode": 404, "error": "Question not found",
   "code": "NOT_FOUND", "retryable": false}

TutorError is passed through unchanged.  Any other exception is reported as
VALIDATION_ERROR when it carries a message, or as an opaque 500 otherwise.

Run with:
  mathtutor serve            (or)   uvicorn mathtutor.interfaces.api:app
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from mathtutor import __version__
from mathtutor.domain.exceptions import FailureKind, TutorError
from mathtutor.domain.models import (
    ConvertImageRequest,
    CreateQuestionRequest,
    UpdateQuestionRequest,
)
from mathtutor.services.container import get_image_converter, get_question_service
from mathtutor.services.latex_conversion import MathImageConverter, decode_image_payload
from mathtutor.services.questions import QuestionService

logger = logging.getLogger(__name__)

T = TypeVar("T")

app = FastAPI(title="Math Tutor Embeddings API", version=__version__)


class _OpaqueFailure(Exception):
    """An unexpected exception with nothing safe to show the caller."""


# ── Error envelopes ────────────────────────────────────────────────────────

@app.exception_handler(TutorError)
async def _tutor_error_handler(request: Request, exc: TutorError) -> JSONResponse:
    logger.warning(
        "%s %s failed | code=%s status=%d message=%s",
        request.method, request.url.path, exc.code, exc.http_status, exc.message,
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_envelope())


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        where = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{where}: {first.get('msg', 'invalid value')}"
    else:
        message = None
    return await _tutor_error_handler(
        request, TutorError(FailureKind.VALIDATION_FAILED, message)
    )


@app.exception_handler(_OpaqueFailure)
async def _opaque_failure_handler(request: Request, exc: _OpaqueFailure) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "statusCode": 500,
            "error": "Internal server error",
            "code": "INTERNAL_ERROR",
            "retryable": False,
        },
    )


async def _call(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking service call and normalise non-typed exceptions."""
    try:
        return await run_in_threadpool(fn, *args, **kwargs)
    except TutorError:
        raise
    except Exception as exc:
        logger.exception("Unhandled error in %s", getattr(fn, "__name__", fn))
        if str(exc):
            raise TutorError(FailureKind.VALIDATION_FAILED, str(exc)) from exc
        raise _OpaqueFailure() from exc


# ── Embedding CRUD ─────────────────────────────────────────────────────────

@app.post("/embeddings", status_code=201, tags=["Embeddings"])
async def create_embedding(
    body: CreateQuestionRequest,
    service: QuestionService = Depends(get_question_service),
) -> JSONResponse:
    """Embed a question/answer pair and store it."""
    record = await _call(service.create, body.question, body.answer)
    return JSONResponse(
        status_code=201,
        content={
            "statusCode": 201,
            "data": record.to_dict(),
            "message": "Question and answer embedding created successfully",
        },
    )


@app.get("/embeddings", tags=["Embeddings"])
async def list_embeddings(
    limit: int = 10,
    offset: int = 0,
    service: QuestionService = Depends(get_question_service),
) -> dict:
    """List stored pairs (without vectors), oldest first."""
    page = await _call(service.list_page, limit, offset)
    return {"statusCode": 200, **page.to_dict()}


@app.get("/embeddings/{question_id}", tags=["Embeddings"])
async def get_embedding(
    question_id: str,
    service: QuestionService = Depends(get_question_service),
) -> dict:
    record = await _call(service.get, question_id)
    return {"statusCode": 200, "data": record.to_dict()}


@app.put("/embeddings/{question_id}", tags=["Embeddings"])
async def update_embedding(
    question_id: str,
    body: UpdateQuestionRequest,
    service: QuestionService = Depends(get_question_service),
) -> dict:
    record = await _call(
        service.update, question_id, question=body.question, answer=body.answer
    )
    return {
        "statusCode": 200,
        "data": record.to_dict(),
        "message": "Question updated successfully",
    }


@app.delete("/embeddings/{question_id}", tags=["Embeddings"])
async def delete_embedding(
    question_id: str,
    service: QuestionService = Depends(get_question_service),
) -> dict:
    await _call(service.delete, question_id)
    return {"statusCode": 200, "message": "Question deleted successfully"}


# ── Auxiliary routes ───────────────────────────────────────────────────────

@app.get("/health", tags=["System"])
async def health_check(
    service: QuestionService = Depends(get_question_service),
) -> dict:
    """Liveness plus a datastore round-trip."""
    await _call(service.ping)
    return {"statusCode": 200, "status": "ok", "database": "ok", "version": __version__}


@app.post("/convert-to-latex", tags=["Math images"])
async def convert_image_to_latex(
    body: ConvertImageRequest,
    converter: MathImageConverter = Depends(get_image_converter),
) -> dict:
    """Convert a base64 (or data-URL) math image to LaTeX."""
    image_bytes = decode_image_payload(body.image)
    latex = await _call(converter.convert, image_bytes)
    return {
        "statusCode": 200,
        "data": {
            "latex": latex,
            "originalImageSize": len(image_bytes),
            "processedAt": datetime.now(timezone.utc).isoformat(),
        },
        "message": "Math image successfully converted to LaTeX",
    }
