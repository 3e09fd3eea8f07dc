"""
Per-book chunk store on DuckDB.

One database file holds everything for one book:

- ``document_chunks``: chunk records, unique per
  (book_title, book_author, md_file_path, chunk_order_in_file)
- a vector table, native or fallback (see ``bookrag.store.backends``)
- ``bm25_stats``: cached corpus statistics, one logical row

Example:
    Building a store during ingestion:

    >>> with BookStore.create("books/moby/vectors.duckdb", dimension=1024) as store:
    ...     ids = store.insert_batch(chunks)

    Attaching for search:

    >>> with BookStore.open_existing("books/moby/vectors.duckdb") as store:
    ...     hits = store.vector_search(query_vector, limit=5)
"""

import contextlib
import threading
from pathlib import Path

import duckdb
from loguru import logger

from bookrag.entities.chunk import DocumentChunk, SearchResult
from bookrag.entities.search import CorpusStats
from bookrag.errors import ChunkNotFoundError, StoreError, StoreNotFoundError
from bookrag.store.backends import (
    VectorBackend,
    VectorBackendKind,
    create_backend,
    detect_backend,
)
from bookrag.store.codec import clamp_score

CHUNK_TABLE = "document_chunks"
STATS_TABLE = "bm25_stats"

CHUNK_COLUMNS = (
    "id",
    "book_title",
    "book_author",
    "md_file_path",
    "file_order_in_book",
    "related_chapter_titles",
    "chunk_text",
    "chunk_order_in_file",
    "total_chunks_in_file",
    "global_chunk_index",
)
_SELECT_CHUNK = f"SELECT {', '.join(CHUNK_COLUMNS)} FROM {CHUNK_TABLE}"


def _row_to_chunk(row: tuple) -> DocumentChunk:
    return DocumentChunk(**dict(zip(CHUNK_COLUMNS, row)))


class BookStore:
    """
    Single-file chunk and vector store for one book.

    Use ``create`` to build a fresh store and ``open_existing`` to attach
    to one for searching. Operations are serialized with a lock, and the
    store is meant to have a single writer.

    Attributes:
        db_path: Path of the DuckDB database file
        dimension: Embedding vector length
        backend: Vector backend selected when the store was opened
    """

    def __init__(
        self,
        db_path: str | Path,
        connection: duckdb.DuckDBPyConnection,
        backend: VectorBackend | None,
        dimension: int,
    ):
        self.db_path = str(db_path)
        self.dimension = dimension
        self.backend = backend
        self._connection = connection
        self._lock = threading.RLock()
        self._closed = False

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        db_path: str | Path,
        dimension: int,
        backend: VectorBackendKind | str = VectorBackendKind.AUTO,
    ) -> "BookStore":
        """Open or create a store, creating any missing schema.

        Raises:
            StoreError: If the database or its schema cannot be created
        """
        if dimension <= 0:
            raise StoreError(f"Embedding dimension must be positive, got {dimension}")

        kind = VectorBackendKind(backend)
        try:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = duckdb.connect(str(db_path))
        except (duckdb.Error, OSError) as e:
            raise StoreError(f"Failed to open store at {db_path}", original_error=e) from e

        try:
            cls._create_chunk_schema(conn)
            cls._create_stats_table(conn)
            vector_backend = detect_backend(conn) or create_backend(conn, dimension, kind)
        except duckdb.Error as e:
            conn.close()
            raise StoreError(f"Failed to initialize store schema at {db_path}", original_error=e) from e

        logger.info(
            f"Initialized BookStore: db={db_path}, dim={dimension}, backend={vector_backend.kind}"
        )
        return cls(db_path, conn, vector_backend, dimension)

    @classmethod
    def open_existing(cls, db_path: str | Path) -> "BookStore":
        """Attach to an existing store without touching the chunk schema.

        Only the corpus stats table is created if it is missing.

        Raises:
            StoreNotFoundError: If the file does not exist
            StoreError: If the file cannot be opened
        """
        if not Path(db_path).exists():
            raise StoreNotFoundError(
                f"No store found at {db_path}",
                details={"db_path": str(db_path)},
            )

        try:
            conn = duckdb.connect(str(db_path))
            cls._create_stats_table(conn)
            vector_backend = detect_backend(conn)
        except duckdb.Error as e:
            raise StoreError(f"Failed to open store at {db_path}", original_error=e) from e

        dimension = vector_backend.dimension if vector_backend else 0
        logger.debug(
            f"Attached BookStore: db={db_path}, "
            f"backend={vector_backend.kind if vector_backend else None}"
        )
        return cls(db_path, conn, vector_backend, dimension)

    @staticmethod
    def _create_chunk_schema(conn: duckdb.DuckDBPyConnection) -> None:
        conn.execute(f"CREATE SEQUENCE IF NOT EXISTS {CHUNK_TABLE}_id_seq START 1")
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {CHUNK_TABLE} (
                id BIGINT PRIMARY KEY DEFAULT nextval('{CHUNK_TABLE}_id_seq'),
                book_title VARCHAR NOT NULL,
                book_author VARCHAR NOT NULL,
                md_file_path VARCHAR NOT NULL,
                file_order_in_book INTEGER NOT NULL,
                related_chapter_titles VARCHAR NOT NULL,
                chunk_text VARCHAR NOT NULL,
                chunk_order_in_file INTEGER NOT NULL,
                total_chunks_in_file INTEGER NOT NULL,
                global_chunk_index INTEGER NOT NULL,
                created_at TIMESTAMP DEFAULT current_timestamp,
                UNIQUE (book_title, book_author, md_file_path, chunk_order_in_file)
            )
        """)
        conn.execute(f"CREATE INDEX IF NOT EXISTS idx_book_info ON {CHUNK_TABLE} (book_title, book_author)")
        conn.execute(f"CREATE INDEX IF NOT EXISTS idx_file_order ON {CHUNK_TABLE} (file_order_in_book)")
        conn.execute(f"CREATE INDEX IF NOT EXISTS idx_global_chunk ON {CHUNK_TABLE} (global_chunk_index)")

    @staticmethod
    def _create_stats_table(conn: duckdb.DuckDBPyConnection) -> None:
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {STATS_TABLE} (
                total_docs BIGINT NOT NULL,
                avg_doc_length DOUBLE NOT NULL,
                updated_at TIMESTAMP DEFAULT current_timestamp
            )
        """)

    def _check_closed(self) -> None:
        if self._closed:
            raise StoreError(f"BookStore at {self.db_path} has been closed")

    @property
    def supports_vector_search(self) -> bool:
        return self.backend is not None

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def insert_batch(self, chunks: list[DocumentChunk]) -> list[int]:
        """Insert chunks and their vectors in one transaction.

        Any failure rolls the whole batch back.

        Returns:
            Assigned chunk ids, in input order

        Raises:
            StoreError: If any insert fails
        """
        self._check_closed()
        if not chunks:
            return []
        if self.backend is None:
            raise StoreError("Store has no vector table; it was not created by BookStore.create")

        columns = CHUNK_COLUMNS[1:]
        insert_sql = (
            f"INSERT INTO {CHUNK_TABLE} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)}) RETURNING id"
        )

        with self._lock:
            ids: list[int] = []
            self._connection.begin()
            try:
                for chunk in chunks:
                    if len(chunk.embedding) != self.dimension:
                        raise StoreError(
                            f"Embedding length {len(chunk.embedding)} does not match "
                            f"store dimension {self.dimension}",
                            details={"chunk_order_in_file": chunk.chunk_order_in_file},
                        )
                    params = [getattr(chunk, name) for name in columns]
                    chunk_id = self._connection.execute(insert_sql, params).fetchone()[0]
                    self.backend.insert(self._connection, chunk_id, chunk.embedding)
                    ids.append(chunk_id)
                self._connection.commit()
            except (duckdb.Error, StoreError) as e:
                with contextlib.suppress(duckdb.Error):
                    self._connection.rollback()
                logger.error(f"Batch insert of {len(chunks)} chunks rolled back: {e}")
                if isinstance(e, StoreError):
                    raise
                raise StoreError(
                    f"Failed to insert batch of {len(chunks)} chunks", original_error=e
                ) from e

        logger.debug(f"Inserted batch of {len(ids)} chunks")
        return ids

    # ------------------------------------------------------------------
    # Search primitives
    # ------------------------------------------------------------------

    def vector_search(self, query_vector: list[float], limit: int) -> list[SearchResult]:
        """Nearest chunks by cosine similarity, best first."""
        self._check_closed()
        if limit <= 0:
            return []
        if self.backend is None:
            raise StoreError("Store has no vector table")

        with self._lock:
            try:
                scored = self.backend.search(self._connection, list(query_vector), limit)
            except duckdb.Error as e:
                raise StoreError("Vector search failed", original_error=e) from e
            chunks = self.get_chunks([chunk_id for chunk_id, _ in scored])

        results = [
            SearchResult.from_chunk(chunks[chunk_id], clamp_score(score))
            for chunk_id, score in scored
            if chunk_id in chunks
        ]
        logger.debug(f"Vector search returned {len(results)} results")
        return results

    def text_search(self, query: str, limit: int) -> list[SearchResult]:
        """Case-sensitive substring search over text, chapter titles and book title.

        Book title matches rank first, then chapter title matches, then body
        matches, each in document order. Every result scores 1.0.
        """
        self._check_closed()
        if limit <= 0:
            return []

        pattern = f"%{query}%"
        sql = f"""
            {_SELECT_CHUNK}
            WHERE chunk_text LIKE ? OR related_chapter_titles LIKE ? OR book_title LIKE ?
            ORDER BY
                CASE
                    WHEN book_title LIKE ? THEN 1
                    WHEN related_chapter_titles LIKE ? THEN 2
                    ELSE 3
                END,
                file_order_in_book, chunk_order_in_file, global_chunk_index
            LIMIT ?
        """
        rows = self._fetch(sql, [pattern] * 5 + [limit])
        return [SearchResult.from_chunk(_row_to_chunk(row), 1.0) for row in rows]

    def context_window(self, chunk_id: int, prev_count: int, next_count: int) -> list[DocumentChunk]:
        """Chunks around ``chunk_id`` by global index, ascending.

        Raises:
            ChunkNotFoundError: If the chunk id is unknown
        """
        self._check_closed()
        rows = self._fetch(
            f"SELECT global_chunk_index FROM {CHUNK_TABLE} WHERE id = ?", [chunk_id]
        )
        if not rows:
            raise ChunkNotFoundError(f"Chunk {chunk_id} not found", details={"chunk_id": chunk_id})

        center = rows[0][0]
        start = max(center - prev_count, 0)
        end = center + next_count
        rows = self._fetch(
            f"{_SELECT_CHUNK} WHERE global_chunk_index BETWEEN ? AND ? ORDER BY global_chunk_index",
            [start, end],
        )
        return [_row_to_chunk(row) for row in rows]

    def chunks_in_range(self, start_index: int, end_index: int) -> list[DocumentChunk]:
        """Chunks with ``start_index <= global_chunk_index < end_index``."""
        self._check_closed()
        rows = self._fetch(
            f"{_SELECT_CHUNK} WHERE global_chunk_index >= ? AND global_chunk_index < ? "
            "ORDER BY global_chunk_index",
            [start_index, end_index],
        )
        return [_row_to_chunk(row) for row in rows]

    def chunks_by_chapter(self, chapter_title: str, limit: int = 100) -> list[DocumentChunk]:
        """Chunks whose chapter titles contain ``chapter_title``, in reading order."""
        self._check_closed()
        rows = self._fetch(
            f"{_SELECT_CHUNK} WHERE related_chapter_titles LIKE ? "
            "ORDER BY file_order_in_book, chunk_order_in_file, global_chunk_index LIMIT ?",
            [f"%{chapter_title}%", limit],
        )
        return [_row_to_chunk(row) for row in rows]

    def get_chunk(self, chunk_id: int) -> DocumentChunk:
        chunks = self.get_chunks([chunk_id])
        if chunk_id not in chunks:
            raise ChunkNotFoundError(f"Chunk {chunk_id} not found", details={"chunk_id": chunk_id})
        return chunks[chunk_id]

    def get_chunks(self, chunk_ids: list[int]) -> dict[int, DocumentChunk]:
        """Chunks by id, without embeddings."""
        self._check_closed()
        if not chunk_ids:
            return {}
        placeholders = ",".join("?" for _ in chunk_ids)
        rows = self._fetch(f"{_SELECT_CHUNK} WHERE id IN ({placeholders})", list(chunk_ids))
        return {row[0]: _row_to_chunk(row) for row in rows}

    def lexical_candidates(self, term: str) -> list[tuple[int, str]]:
        """(id, chunk_text) of chunks whose lowercased fields contain ``term``."""
        self._check_closed()
        pattern = f"%{term.lower()}%"
        return self._fetch(
            f"""
            SELECT id, chunk_text FROM {CHUNK_TABLE}
            WHERE lower(chunk_text) LIKE ?
               OR lower(related_chapter_titles) LIKE ?
               OR lower(book_title) LIKE ?
            """,
            [pattern, pattern, pattern],
        )

    def count_chunks(self) -> int:
        self._check_closed()
        return self._fetch(f"SELECT COUNT(*) FROM {CHUNK_TABLE}")[0][0]

    def book_exists(self, book_title: str, book_author: str) -> bool:
        self._check_closed()
        rows = self._fetch(
            f"SELECT 1 FROM {CHUNK_TABLE} WHERE book_title = ? AND book_author = ? LIMIT 1",
            [book_title, book_author],
        )
        return bool(rows)

    # ------------------------------------------------------------------
    # Corpus statistics
    # ------------------------------------------------------------------

    def cached_corpus_stats(self) -> CorpusStats | None:
        self._check_closed()
        rows = self._fetch(
            f"SELECT total_docs, avg_doc_length FROM {STATS_TABLE} "
            "ORDER BY updated_at DESC LIMIT 1"
        )
        if not rows:
            return None
        total_docs, avg_doc_length = rows[0]
        return CorpusStats(total_docs=total_docs, avg_doc_length=avg_doc_length)

    def compute_corpus_stats(self) -> CorpusStats:
        self._check_closed()
        total_docs, avg_doc_length = self._fetch(
            f"SELECT COUNT(*), AVG(length(chunk_text)) FROM {CHUNK_TABLE}"
        )[0]
        return CorpusStats(total_docs=total_docs, avg_doc_length=float(avg_doc_length or 0.0))

    def cache_corpus_stats(self, stats: CorpusStats) -> None:
        """Replace the cached statistics row."""
        self._check_closed()
        with self._lock:
            try:
                self._connection.begin()
                self._connection.execute(f"DELETE FROM {STATS_TABLE}")
                self._connection.execute(
                    f"INSERT INTO {STATS_TABLE} (total_docs, avg_doc_length, updated_at) "
                    "VALUES (?, ?, current_timestamp)",
                    [stats.total_docs, stats.avg_doc_length],
                )
                self._connection.commit()
            except duckdb.Error as e:
                with contextlib.suppress(duckdb.Error):
                    self._connection.rollback()
                raise StoreError("Failed to cache corpus statistics", original_error=e) from e

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _fetch(self, sql: str, params: list | None = None) -> list[tuple]:
        with self._lock:
            try:
                return self._connection.execute(sql, params or []).fetchall()
            except duckdb.Error as e:
                raise StoreError("Store query failed", original_error=e) from e

    def close(self) -> None:
        if self._closed:
            return

        with self._lock:
            try:
                self._connection.close()
                logger.debug(f"BookStore connection closed: {self.db_path}")
            except duckdb.Error as e:
                logger.warning(f"Error closing BookStore connection: {e}")
            finally:
                self._closed = True

    def __enter__(self) -> "BookStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self):
        with contextlib.suppress(Exception):
            self.close()
