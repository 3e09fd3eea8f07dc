from bookrag.entities.chapter import BookMetadata, ChapterEntry, FileGroup
from bookrag.entities.chunk import DocumentChunk, SearchResult
from bookrag.entities.report import ErrorStats, ProcessReport
from bookrag.entities.search import CorpusStats, HybridSearchConfig, SearchMode

__all__ = [
    "BookMetadata",
    "ChapterEntry",
    "CorpusStats",
    "DocumentChunk",
    "ErrorStats",
    "FileGroup",
    "HybridSearchConfig",
    "ProcessReport",
    "SearchMode",
    "SearchResult",
]
