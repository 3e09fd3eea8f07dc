import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from bookrag.config.search import SearchSettings
from bookrag.errors import ConfigurationError
from bookrag.store.backends import VectorBackendKind
from bookrag.text.constants import PIPELINE_MAX_TOKENS, PIPELINE_MIN_TOKENS
from bookrag.utils.retry import RetryConfig

ENV_PREFIX = "BOOKRAG_"


class Settings(BaseModel):
    """Application settings for ingestion and search."""

    LOG_LEVEL: str = Field(default="INFO", description="Log level")

    # Embedding service
    EMBEDDINGS_URL: str = Field(
        default="http://localhost:11434/v1/embeddings",
        description="Full URL of the embeddings endpoint; a path ending in /api/embed selects the Ollama format",
    )
    EMBEDDING_MODEL: str = Field(default="bge-m3", description="Embedding model name")
    EMBEDDING_API_KEY: str | None = Field(default=None, description="Bearer token for the embedding service")
    EMBEDDING_TIMEOUT: float = Field(default=60.0, gt=0, description="Request timeout in seconds")
    MAX_EMBED_TOKENS: int = Field(default=480, gt=0, description="Inputs are truncated to this many tokens")
    EMBED_MAX_ATTEMPTS: int = Field(default=3, ge=1, description="Attempts per chunk before it is recorded as failed")
    EMBED_RETRY_DELAY: float = Field(default=1.0, ge=0, description="Backoff before the first retry, in seconds")
    EMBED_RETRY_MAX_DELAY: float = Field(default=30.0, ge=0, description="Cap on any single backoff, in seconds")

    # Chunking and batching
    CHUNK_MIN_TOKENS: int = Field(default=PIPELINE_MIN_TOKENS, ge=0)
    CHUNK_MAX_TOKENS: int = Field(default=PIPELINE_MAX_TOKENS, gt=0)
    BATCH_SIZE: int = Field(default=10, gt=0, description="Chunks per insert transaction")

    # Book directory layout
    SOURCE_FILENAME: str = Field(default="book.epub")
    CONVERTED_DIRNAME: str = Field(default="mdbook")
    STORE_FILENAME: str = Field(default="vectors.duckdb")
    VECTOR_BACKEND: VectorBackendKind = Field(default=VectorBackendKind.AUTO)

    SEARCH: SearchSettings = Field(default_factory=SearchSettings)

    model_config = {
        "frozen": True,
    }

    @model_validator(mode="after")
    def _check_ranges(self) -> "Settings":
        if self.CHUNK_MIN_TOKENS > self.CHUNK_MAX_TOKENS:
            raise ValueError("CHUNK_MIN_TOKENS must not exceed CHUNK_MAX_TOKENS")
        if self.EMBED_RETRY_MAX_DELAY < self.EMBED_RETRY_DELAY:
            raise ValueError("EMBED_RETRY_MAX_DELAY must be >= EMBED_RETRY_DELAY")
        return self

    def store_path(self, book_dir: str | Path) -> Path:
        return Path(book_dir) / self.STORE_FILENAME

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.EMBED_MAX_ATTEMPTS,
            base_delay=self.EMBED_RETRY_DELAY,
            max_delay=self.EMBED_RETRY_MAX_DELAY,
        )


def _env(name: str) -> str | None:
    return os.getenv(f"{ENV_PREFIX}{name}")


def _collect(names: list[str]) -> dict[str, str]:
    return {name: value for name in names if (value := _env(name)) is not None}


def load_settings(env_file: str | Path | None = None) -> Settings:
    """Load settings from BOOKRAG_* environment variables and an optional .env file.

    Raises:
        ConfigurationError: If a value cannot be parsed
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    search_values = {
        "vector_weight": _env("VECTOR_WEIGHT"),
        "bm25_weight": _env("BM25_WEIGHT"),
        "bm25_k1": _env("BM25_K1"),
        "bm25_b": _env("BM25_B"),
        "adaptive_weights": _env("ADAPTIVE_WEIGHTS"),
    }
    search_values = {k: v for k, v in search_values.items() if v is not None}

    values = _collect([
        "LOG_LEVEL",
        "EMBEDDINGS_URL",
        "EMBEDDING_MODEL",
        "EMBEDDING_API_KEY",
        "EMBEDDING_TIMEOUT",
        "MAX_EMBED_TOKENS",
        "EMBED_MAX_ATTEMPTS",
        "EMBED_RETRY_DELAY",
        "EMBED_RETRY_MAX_DELAY",
        "CHUNK_MIN_TOKENS",
        "CHUNK_MAX_TOKENS",
        "BATCH_SIZE",
        "SOURCE_FILENAME",
        "CONVERTED_DIRNAME",
        "STORE_FILENAME",
        "VECTOR_BACKEND",
    ])

    try:
        return Settings(SEARCH=SearchSettings(**search_values), **values)
    except ValidationError as e:
        raise ConfigurationError("Invalid BookRAG settings", original_error=e) from e
