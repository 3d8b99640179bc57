"""
adapters/openai_embedding.py
──────────────────────────────────────────────────────────────────────────────
Implements EmbeddingPort using the OpenAI Embeddings API.

Key behaviour:
  - Uses /v1/embeddings via raw requests (no openai SDK dependency)
  - Passes `dimensions=settings.embed_dim` so output matches the pgvector
    column width of the questions table
  - Single attempt per call: no retries here.  Retrying is the caller's
    decision (the batch pipelines retry, HTTP handlers do not)
  - Every failure surfaces as ProviderError carrying the HTTP status and the
    provider's error code, for services/error_classifier.py to map

Required env vars:
  OPENAI_API_KEY        — your OpenAI secret key  (sk-...)
  OPENAI_EMBED_MODEL    — default: text-embedding-3-small
  EMBED_DIM             — default: 1536
"""
from __future__ import annotations

import logging

import requests

from mathtutor.config.settings import Settings
from mathtutor.domain.exceptions import FailureKind, ProviderError, TutorError

logger = logging.getLogger(__name__)


class OpenAIEmbeddingAdapter:
    """OpenAI text-embedding adapter.

    Injected into EmbeddingGenerator via services/container.py.
    """

    def __init__(self, settings: Settings) -> None:
        if not settings.openai_api_key:
            raise TutorError(
                FailureKind.INVALID_CREDENTIAL,
                "OPENAI_API_KEY is not set. "
                "Add it to your .env file or environment.",
            )
        self._settings = settings
        self._url = f"{settings.openai_base_url.rstrip('/')}/embeddings"
        self._headers = {
            "Authorization": f"Bearer {settings.openai_api_key}",
            "Content-Type": "application/json",
        }
        logger.debug(
            "OpenAIEmbeddingAdapter ready | model=%s dim=%d",
            settings.openai_embed_model,
            settings.embed_dim,
        )

    # ── EmbeddingPort implementation ───────────────────────────────────────

    @property
    def model_name(self) -> str:
        """Name of the underlying OpenAI embedding model."""
        return self._settings.openai_embed_model

    @property
    def dimensions(self) -> int:
        """Vector dimensionality (controlled by ``EMBED_DIM`` env var)."""
        return self._settings.embed_dim

    def embed(self, text: str) -> list[float]:
        """Embed one text string.

        Args:
            text: Text to embed.

        Returns:
            The provider's float vector, unmodified.

        Raises:
            ProviderError: On transport failure, non-2xx status or an
                unexpected response shape.
        """
        payload = {
            "model": self._settings.openai_embed_model,
            "input": text,
            "encoding_format": "float",
            "dimensions": self._settings.embed_dim,
        }
        data = post_json(
            self._url, self._headers, payload, self._settings.embed_timeout
        )
        try:
            return data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as exc:
            shape = list(data) if isinstance(data, dict) else type(data).__name__
            raise ProviderError(
                f"Unexpected OpenAI embed response shape: {shape}",
                code="invalid_response",
            ) from exc


# ── Shared HTTP helper ─────────────────────────────────────────────────────
# Also used by adapters/openai_vision.py.

def post_json(url: str, headers: dict, payload: dict, timeout: int) -> dict:
    """POST once to an OpenAI endpoint and return the decoded JSON body.

    Raises:
        ProviderError: With ``status`` and the provider's ``error.code`` /
            ``error.type`` when present; transport failures map to the
            connectivity codes ETIMEDOUT / ECONNRESET.
    """
    try:
        resp = requests.post(url, headers=headers, json=payload, timeout=timeout)
    except requests.Timeout as exc:
        raise ProviderError(f"Request to OpenAI timed out: {exc}", code="ETIMEDOUT") from exc
    except requests.ConnectionError as exc:
        raise ProviderError(f"Cannot reach OpenAI: {exc}", code="ECONNRESET") from exc
    except requests.RequestException as exc:
        raise ProviderError(f"OpenAI request failed: {exc}") from exc

    if not resp.ok:
        raise _error_from_response(resp)

    try:
        return resp.json()
    except ValueError as exc:
        raise ProviderError(
            "OpenAI returned a non-JSON body",
            status=resp.status_code,
            code="invalid_response",
        ) from exc


def _error_from_response(resp: requests.Response) -> ProviderError:
    """Build a ProviderError from an OpenAI ``{"error": {...}}`` body."""
    code = err_type = None
    message = f"OpenAI HTTP {resp.status_code}: {resp.text[:300]}"
    try:
        err = resp.json().get("error") or {}
    except (ValueError, AttributeError):
        err = {}
    if isinstance(err, dict):
        code = err.get("code")
        err_type = err.get("type")
        message = err.get("message") or message
    return ProviderError(message, status=resp.status_code, code=code, type=err_type)
