"""
BookRAG - hybrid lexical and semantic search over ingested books.

Books arrive as per-chapter markdown files with a known reading order.
They are chunked, embedded and stored in one DuckDB file per book, and
searched with BM25, vector similarity, or both fused into one ranking.
"""

__version__ = "0.1.0"

from .config import SearchSettings, Settings, load_settings
from .embedder import BaseEmbedder, HttpEmbeddingClient, WireFormat
from .entities import (
    BookMetadata,
    ChapterEntry,
    CorpusStats,
    DocumentChunk,
    ErrorStats,
    FileGroup,
    HybridSearchConfig,
    ProcessReport,
    SearchMode,
    SearchResult,
)
from .errors import (
    BookRAGError,
    ConfigurationError,
    EmbeddingError,
    IngestionError,
    StoreError,
    StoreNotFoundError,
    VectorUnavailableError,
)
from .pipeline import (
    CallbackProgressSink,
    IngestionPipeline,
    IngestionStage,
    ProgressUpdate,
    QueueProgressSink,
)
from .retrieval import BM25Scorer, HybridSearcher, search_book
from .store import BookStore, VectorBackendKind
from .text import MarkdownChunker, TextTokenizer
from .config.factory import ComponentFactory

__all__ = [
    "BM25Scorer",
    "BaseEmbedder",
    "BookMetadata",
    "BookRAGError",
    "BookStore",
    "CallbackProgressSink",
    "ChapterEntry",
    "ComponentFactory",
    "ConfigurationError",
    "CorpusStats",
    "DocumentChunk",
    "EmbeddingError",
    "ErrorStats",
    "FileGroup",
    "HttpEmbeddingClient",
    "HybridSearchConfig",
    "HybridSearcher",
    "IngestionError",
    "IngestionPipeline",
    "IngestionStage",
    "MarkdownChunker",
    "ProcessReport",
    "ProgressUpdate",
    "QueueProgressSink",
    "SearchMode",
    "SearchResult",
    "SearchSettings",
    "Settings",
    "StoreError",
    "StoreNotFoundError",
    "TextTokenizer",
    "VectorBackendKind",
    "VectorUnavailableError",
    "WireFormat",
    "load_settings",
]
