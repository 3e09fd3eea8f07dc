"""Base embedder interface."""

from abc import ABC, abstractmethod


class BaseEmbedder(ABC):
    """Abstract base class for embedding generation.

    Embedders convert one text slice into a fixed-length vector. Calls are
    awaited one at a time by the ingestion pipeline.
    """

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate the embedding for one text.

        Raises:
            BookRAGError: If the call fails; callers treat it as recoverable
        """
        pass

    @abstractmethod
    async def detect_dimension(self) -> int:
        """Return the vector length, embedding a sample text if not yet known."""
        pass

    @property
    @abstractmethod
    def dimension(self) -> int | None:
        """Vector length seen so far, or None before the first call."""
        pass
