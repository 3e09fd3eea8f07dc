"""
HTTP embedding client.

Two wire formats are supported and chosen from the endpoint path:

- OpenAI-compatible (default), e.g. ``http://host/v1/embeddings``::

    request:  {"input": [text], "model": ..., "encoding_format": "float"}
    response: {"data": [{"embedding": [...]}]}

- Ollama native, any endpoint whose path ends with ``/api/embed``::

    request:  {"model": ..., "input": text}
    response: {"embeddings": [[...]]}

Example:
    async with HttpEmbeddingClient("http://localhost:11434/api/embed", "bge-m3") as client:
        dim = await client.detect_dimension()
        vector = await client.embed("Call me Ishmael.")
"""

from enum import StrEnum
from typing import Any

import httpx
from loguru import logger

from bookrag.config.settings import Settings
from bookrag.embedder.base import BaseEmbedder
from bookrag.errors import (
    ConfigurationError,
    ConnectionError,
    EmbeddingError,
    TimeoutError,
    classify_http_error,
)
from bookrag.text.tokenizer import TextTokenizer, Tokenizer

DEFAULT_MAX_INPUT_TOKENS = 480
DIMENSION_SAMPLE_TEXT = "test"


class WireFormat(StrEnum):
    OPENAI = "openai"
    OLLAMA = "ollama"

    @classmethod
    def for_endpoint(cls, endpoint: str) -> "WireFormat":
        path = httpx.URL(endpoint).path.rstrip("/")
        if path.endswith("/api/embed"):
            return cls.OLLAMA
        return cls.OPENAI


class HttpEmbeddingClient(BaseEmbedder):
    """
    Embedding client for a remote service reached over HTTP.

    Attributes:
        endpoint: Full URL of the embeddings endpoint
        model: Model identifier sent with every request
        wire_format: Request/response shape, derived from the endpoint path
        max_input_tokens: Inputs longer than this are truncated at token level
    """

    def __init__(
        self,
        endpoint: str,
        model: str,
        api_key: str | None = None,
        tokenizer: Tokenizer | None = None,
        max_input_tokens: int = DEFAULT_MAX_INPUT_TOKENS,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ):
        if not endpoint:
            raise ConfigurationError("Embedding endpoint is required")
        if not model:
            raise ConfigurationError("Embedding model is required")
        if max_input_tokens <= 0:
            raise ConfigurationError("max_input_tokens must be positive")

        self.endpoint = endpoint
        self.model = model
        self.api_key = api_key
        self.max_input_tokens = max_input_tokens
        self.timeout = timeout
        self.wire_format = WireFormat.for_endpoint(endpoint)
        # Construction fails loudly when the vocabulary cannot be loaded
        self.tokenizer = tokenizer or TextTokenizer()
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._dimension: int | None = None

        logger.info(
            f"Initialized HttpEmbeddingClient: endpoint={endpoint}, "
            f"model={model}, format={self.wire_format}"
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        tokenizer: Tokenizer | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> "HttpEmbeddingClient":
        """Build a client from the ``EMBEDDING_*`` settings."""
        return cls(
            endpoint=settings.EMBEDDINGS_URL,
            model=settings.EMBEDDING_MODEL,
            api_key=settings.EMBEDDING_API_KEY,
            tokenizer=tokenizer,
            max_input_tokens=settings.MAX_EMBED_TOKENS,
            timeout=settings.EMBEDDING_TIMEOUT,
            client=client,
        )

    @property
    def dimension(self) -> int | None:
        return self._dimension

    async def detect_dimension(self) -> int:
        if self._dimension is None:
            vector = await self.embed(DIMENSION_SAMPLE_TEXT)
            logger.info(f"Detected embedding dimension: {len(vector)}")
        return self._dimension

    async def embed(self, text: str) -> list[float]:
        payload = self._build_payload(self._prepare_input(text))
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            resp = await self._client.post(self.endpoint, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            raise TimeoutError(
                f"Embedding request to {self.endpoint} timed out",
                timeout=self.timeout,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            raise ConnectionError(
                f"Embedding request to {self.endpoint} failed",
                original_error=e,
            ) from e

        if not resp.is_success:
            raise classify_http_error(
                resp.status_code,
                f"Embedding service returned HTTP {resp.status_code}: {resp.text[:200]}",
                dict(resp.headers),
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise EmbeddingError("Failed to parse embedding response", original_error=e) from e

        vector = self._extract_vector(body)
        if self._dimension is None:
            self._dimension = len(vector)
        return vector

    def _prepare_input(self, text: str) -> str:
        truncated = self.tokenizer.truncate(text, self.max_input_tokens)
        if len(truncated) < len(text):
            logger.debug(f"Truncated embedding input to {self.max_input_tokens} tokens")
        return truncated

    def _build_payload(self, text: str) -> dict[str, Any]:
        if self.wire_format is WireFormat.OLLAMA:
            return {"model": self.model, "input": text}
        return {"input": [text], "model": self.model, "encoding_format": "float"}

    def _extract_vector(self, body: Any) -> list[float]:
        try:
            if self.wire_format is WireFormat.OLLAMA:
                items = body.get("embeddings") or []
                vector = items[0] if items else None
            else:
                items = body.get("data") or []
                vector = items[0].get("embedding") if items else None
        except (AttributeError, TypeError, KeyError) as e:
            raise EmbeddingError("Malformed embedding response", original_error=e) from e

        if not vector:
            raise EmbeddingError("No embeddings returned")
        try:
            return [float(x) for x in vector]
        except (TypeError, ValueError) as e:
            raise EmbeddingError("Embedding contains non-numeric values", original_error=e) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpEmbeddingClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
