"""
adapters/openai_vision.py
──────────────────────────────────────────────────────────────────────────────
Implements VisionPort using the OpenAI Chat Completions API.

Key behaviour:
  - Uses /v1/chat/completions via raw requests (no openai SDK dependency)
  - The image is sent inline as a base64 data URL ``image_url`` part
  - temperature=0.1, max_tokens=settings.vision_max_tokens
  - Single attempt; failures surface as ProviderError
  - Returns the stripped text content, or None when the model returned none

Required env vars:
  OPENAI_API_KEY        — your OpenAI secret key  (sk-...)
  OPENAI_VISION_MODEL   — default: gpt-4o
"""
from __future__ import annotations

import base64
import logging

from mathtutor.adapters.openai_embedding import post_json
from mathtutor.config.settings import Settings
from mathtutor.domain.exceptions import FailureKind, TutorError

logger = logging.getLogger(__name__)


class OpenAIVisionAdapter:
    """OpenAI GPT vision adapter.

    Injected into MathImageConverter via services/container.py.
    """

    def __init__(self, settings: Settings) -> None:
        if not settings.openai_api_key:
            raise TutorError(
                FailureKind.INVALID_CREDENTIAL,
                "OPENAI_API_KEY is not set. "
                "Add it to your .env file or environment.",
            )
        self._settings = settings
        self._url = f"{settings.openai_base_url.rstrip('/')}/chat/completions"
        self._headers = {
            "Authorization": f"Bearer {settings.openai_api_key}",
            "Content-Type": "application/json",
        }
        logger.debug("OpenAIVisionAdapter ready | model=%s", settings.openai_vision_model)

    # ── VisionPort implementation ──────────────────────────────────────────

    @property
    def model_name(self) -> str:
        """Name of the underlying OpenAI chat model."""
        return self._settings.openai_vision_model

    def image_to_text(self, image_bytes: bytes, prompt: str) -> str | None:
        """Send one image with an instruction and return the model's text.

        Raises:
            ProviderError: On transport failure or non-2xx status.
        """
        payload = self._build_payload(image_bytes, prompt)
        data = post_json(
            self._url, self._headers, payload, self._settings.vision_timeout
        )
        return self._extract_text(data)

    # ── Private helpers ────────────────────────────────────────────────────

    def _build_payload(self, image_bytes: bytes, prompt: str) -> dict:
        """Build the chat completions request body."""
        data_url = "data:image/jpeg;base64," + base64.b64encode(image_bytes).decode("ascii")
        return {
            "model": self._settings.openai_vision_model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": data_url}},
                    ],
                },
            ],
            "max_tokens": self._settings.vision_max_tokens,
            "temperature": 0.1,
        }

    def _extract_text(self, response_json: dict) -> str | None:
        """Pull the content string out of the chat completions response."""
        choices = response_json.get("choices") or []
        if not choices:
            logger.warning("OpenAI vision response contained no choices")
            return None
        content = (choices[0].get("message") or {}).get("content") or ""
        content = content.strip()
        return content if content else None
