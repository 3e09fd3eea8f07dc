"""Vector storage backends.

Two interchangeable backends sit behind the ``VectorBackend`` protocol:

- ``NativeVectorIndex``: a ``FLOAT[dim]`` column with an HNSW index from
  DuckDB's ``vss`` extension, searched by cosine distance.
- ``BlobVectorTable``: little-endian float32 blobs scanned in-process when
  the extension cannot be installed or loaded.

The backend is chosen once, when a store is created or attached.
"""

import re
from enum import StrEnum
from typing import Protocol

import duckdb
from loguru import logger

from bookrag.store.codec import cosine_similarity, decode_vector, encode_vector

NATIVE_TABLE = "chunk_embeddings"
FALLBACK_TABLE = "chunk_embeddings_fallback"
NATIVE_INDEX = "chunk_embeddings_hnsw_idx"


class VectorBackendKind(StrEnum):
    AUTO = "auto"
    NATIVE = "native"
    FALLBACK = "fallback"


class VectorBackend(Protocol):
    """Insert and nearest-neighbour search over chunk vectors."""

    kind: VectorBackendKind
    table_name: str

    def create_schema(self, conn: duckdb.DuckDBPyConnection) -> None: ...

    def insert(self, conn: duckdb.DuckDBPyConnection, chunk_id: int, vector: list[float]) -> None: ...

    def search(
        self, conn: duckdb.DuckDBPyConnection, vector: list[float], limit: int
    ) -> list[tuple[int, float]]: ...


def load_vss(conn: duckdb.DuckDBPyConnection) -> None:
    conn.execute("INSTALL vss; LOAD vss;")
    conn.execute("SET hnsw_enable_experimental_persistence = true;")


class NativeVectorIndex:
    """HNSW-indexed fixed-width vector column (cosine metric)."""

    kind = VectorBackendKind.NATIVE
    table_name = NATIVE_TABLE

    def __init__(self, dimension: int):
        self.dimension = dimension

    def create_schema(self, conn: duckdb.DuckDBPyConnection) -> None:
        load_vss(conn)
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {NATIVE_TABLE} (
                chunk_id BIGINT PRIMARY KEY,
                embedding FLOAT[{self.dimension}] NOT NULL
            )
        """)
        # Cosine keeps 1 - distance comparable with the fallback scores
        conn.execute(f"""
            CREATE INDEX IF NOT EXISTS {NATIVE_INDEX}
            ON {NATIVE_TABLE} USING HNSW (embedding)
            WITH (metric = 'cosine')
        """)
        logger.debug(f"Created native vector index: dim={self.dimension}")

    def insert(self, conn: duckdb.DuckDBPyConnection, chunk_id: int, vector: list[float]) -> None:
        conn.execute(
            f"INSERT INTO {NATIVE_TABLE} (chunk_id, embedding) VALUES (?, ?::FLOAT[{self.dimension}])",
            [chunk_id, vector],
        )

    def search(
        self, conn: duckdb.DuckDBPyConnection, vector: list[float], limit: int
    ) -> list[tuple[int, float]]:
        rows = conn.execute(
            f"""
            SELECT chunk_id,
                   array_cosine_distance(embedding, ?::FLOAT[{self.dimension}]) AS distance
            FROM {NATIVE_TABLE}
            ORDER BY distance ASC
            LIMIT ?
            """,
            [vector, limit],
        ).fetchall()
        return [
            (chunk_id, 1.0 - distance if distance is not None else 0.0)
            for chunk_id, distance in rows
        ]


class BlobVectorTable:
    """Opaque float32 blobs with a brute-force cosine scan."""

    kind = VectorBackendKind.FALLBACK
    table_name = FALLBACK_TABLE

    def __init__(self, dimension: int):
        self.dimension = dimension

    def create_schema(self, conn: duckdb.DuckDBPyConnection) -> None:
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {FALLBACK_TABLE} (
                chunk_id BIGINT PRIMARY KEY,
                embedding BLOB NOT NULL
            )
        """)
        logger.debug(f"Created fallback vector table: dim={self.dimension}")

    def insert(self, conn: duckdb.DuckDBPyConnection, chunk_id: int, vector: list[float]) -> None:
        conn.execute(
            f"INSERT INTO {FALLBACK_TABLE} (chunk_id, embedding) VALUES (?, ?)",
            [chunk_id, encode_vector(vector)],
        )

    def search(
        self, conn: duckdb.DuckDBPyConnection, vector: list[float], limit: int
    ) -> list[tuple[int, float]]:
        rows = conn.execute(f"SELECT chunk_id, embedding FROM {FALLBACK_TABLE}").fetchall()
        scored = [(chunk_id, cosine_similarity(vector, decode_vector(blob))) for chunk_id, blob in rows]
        scored.sort(key=lambda item: (-item[1], item[0]))
        return scored[:limit]


def create_backend(
    conn: duckdb.DuckDBPyConnection, dimension: int, kind: VectorBackendKind = VectorBackendKind.AUTO
) -> VectorBackend:
    """Create the vector table for a fresh store and return its backend."""
    if kind is VectorBackendKind.FALLBACK:
        backend = BlobVectorTable(dimension)
        backend.create_schema(conn)
        return backend

    native = NativeVectorIndex(dimension)
    try:
        native.create_schema(conn)
        logger.info("Native vector index available")
        return native
    except duckdb.Error as e:
        if kind is VectorBackendKind.NATIVE:
            raise
        logger.warning(f"Native vector index unavailable, using fallback table: {e}")
        conn.execute(f"DROP TABLE IF EXISTS {NATIVE_TABLE}")

    backend = BlobVectorTable(dimension)
    backend.create_schema(conn)
    return backend


def _table_exists(conn: duckdb.DuckDBPyConnection, name: str) -> bool:
    row = conn.execute(
        "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?", [name]
    ).fetchone()
    return bool(row and row[0])


def detect_backend(conn: duckdb.DuckDBPyConnection) -> VectorBackend | None:
    """Work out which backend an existing store was created with."""
    if _table_exists(conn, NATIVE_TABLE):
        try:
            load_vss(conn)
        except duckdb.Error as e:
            logger.warning(f"Could not load vss extension for existing index: {e}")
        return NativeVectorIndex(_native_dimension(conn))

    if _table_exists(conn, FALLBACK_TABLE):
        row = conn.execute(f"SELECT embedding FROM {FALLBACK_TABLE} LIMIT 1").fetchone()
        dimension = len(row[0]) // 4 if row else 0
        return BlobVectorTable(dimension)

    return None


def _native_dimension(conn: duckdb.DuckDBPyConnection) -> int:
    row = conn.execute(
        """
        SELECT data_type FROM information_schema.columns
        WHERE table_name = ? AND column_name = 'embedding'
        """,
        [NATIVE_TABLE],
    ).fetchone()
    match = re.search(r"\[(\d+)\]", row[0]) if row else None
    return int(match.group(1)) if match else 0
