"""
ports/embedding_port.py
──────────────────────────────────────────────────────────────────────────────
Abstract interface for text embedding providers.

Any class that implements these methods (structural subtyping via Protocol)
is a valid EmbeddingPort — no inheritance required.

Current implementation: OpenAIEmbeddingAdapter (text-embedding-3-small)
To swap: write a new adapter implementing this Protocol and change container.py
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingPort(Protocol):
    """Contract for a text embedding provider."""

    @property
    def model_name(self) -> str:
        """Identifier of the underlying embedding model."""
        ...

    @property
    def dimensions(self) -> int:
        """Number of dimensions in the output vectors."""
        ...

    def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Adapters do not retry and do not interpret failures: anything that
        goes wrong is reported as a ProviderError for the caller to classify.

        Args:
            text: Text to embed.

        Returns:
            Dense vector of floats, exactly as returned by the provider.

        Raises:
            ProviderError: On HTTP, transport or response-shape failure.
        """
        ...
