"""
ports/vision_port.py
──────────────────────────────────────────────────────────────────────────────
Abstract interface for image-to-text (vision) providers.

Current implementation: OpenAIVisionAdapter (gpt-4o chat completions)
To swap: write a new adapter implementing this Protocol, then change ONE line
in services/container.py.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class VisionPort(Protocol):
    """Contract for a provider that reads text out of an image."""

    @property
    def model_name(self) -> str:
        """Identifier of the underlying vision model."""
        ...

    def image_to_text(self, image_bytes: bytes, prompt: str) -> str | None:
        """Send an image plus an instruction and return the model's text.

        Args:
            image_bytes: Raw image bytes (PNG or JPEG).
            prompt:      Instruction describing what to extract.

        Returns:
            The model's text output, or None if the response had no content.

        Raises:
            ProviderError: On HTTP or transport failure.
        """
        ...
