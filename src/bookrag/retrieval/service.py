"""
Query interface over ingested books.

Every call attaches its own store handle and closes it afterwards, so
searches never share a connection with an ingestion run. The store file
name and the search tuning come from ``Settings``.

Example:
    >>> settings = load_settings()
    >>> results = await search_book(
    ...     "books/moby", "white whale", limit=5, mode="hybrid", embedder=client, settings=settings
    ... )
"""

from pathlib import Path

from loguru import logger

from bookrag.config.settings import Settings
from bookrag.embedder.base import BaseEmbedder
from bookrag.entities.chunk import DocumentChunk, SearchResult
from bookrag.entities.search import SearchMode
from bookrag.retrieval.hybrid import HybridSearcher
from bookrag.store.book_store import BookStore
from bookrag.utils.retry import retry_async


def _open(book_dir: str | Path, settings: Settings | None) -> BookStore:
    settings = settings or Settings()
    return BookStore.open_existing(settings.store_path(book_dir))


async def search_book(
    book_dir: str | Path,
    query: str,
    limit: int = 5,
    mode: SearchMode | str = SearchMode.HYBRID,
    vector_weight: float | None = None,
    bm25_weight: float | None = None,
    query_vector: list[float] | None = None,
    embedder: BaseEmbedder | None = None,
    settings: Settings | None = None,
) -> list[SearchResult]:
    """Search one book's store.

    When the mode needs a vector and none is given, ``embedder`` is used
    to embed the query. Without either, hybrid searches degrade to BM25.

    Raises:
        StoreNotFoundError: If the book has not been ingested
        VectorUnavailableError: If a vector-only search has no vector
        ConfigurationError: On an unknown mode or invalid weights
    """
    settings = settings or Settings()
    config = settings.SEARCH.resolve(query, mode, vector_weight, bm25_weight)

    if query_vector is None and embedder is not None and config.mode is not SearchMode.BM25_ONLY:
        query_vector = await retry_async(embedder.embed, query, config=settings.retry_config())

    with _open(book_dir, settings) as store:
        results = HybridSearcher(store).search(query, query_vector, limit, config)

    logger.info(f"Search {config.mode} for {query!r} returned {len(results)} results")
    return results


def chunk_with_context(
    book_dir: str | Path,
    chunk_id: int,
    prev_count: int,
    next_count: int,
    settings: Settings | None = None,
) -> list[DocumentChunk]:
    with _open(book_dir, settings) as store:
        return store.context_window(chunk_id, prev_count, next_count)


def chunks_by_range(
    book_dir: str | Path,
    start_index: int,
    end_index: int,
    settings: Settings | None = None,
) -> list[DocumentChunk]:
    with _open(book_dir, settings) as store:
        return store.chunks_in_range(start_index, end_index)


def chunks_by_chapter(
    book_dir: str | Path,
    chapter_title: str,
    settings: Settings | None = None,
) -> list[DocumentChunk]:
    with _open(book_dir, settings) as store:
        return store.chunks_by_chapter(chapter_title)
