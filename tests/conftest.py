"""Pytest configuration and global fixtures for BookRAG tests."""

import pytest

from bookrag.store.backends import VectorBackendKind
from bookrag.store.book_store import BookStore
from bookrag.text.chunker import MarkdownChunker
from tests.utils.builders import ChunkBuilder
from tests.utils.fakes import FakeEmbedder, WordTokenizer


@pytest.fixture
def tokenizer():
    return WordTokenizer()


@pytest.fixture
def chunker(tokenizer):
    return MarkdownChunker(tokenizer)


@pytest.fixture
def embedder():
    return FakeEmbedder(dimension=8)


@pytest.fixture
def chunk_builder():
    return ChunkBuilder()


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "book" / "vectors.duckdb"


@pytest.fixture
def fallback_store(store_path):
    """Empty 4-dimensional store on the blob fallback backend."""
    store = BookStore.create(store_path, dimension=4, backend=VectorBackendKind.FALLBACK)
    yield store
    store.close()


@pytest.fixture
def populated_store(fallback_store, chunk_builder):
    """Ten chunks across two files, with simple axis-aligned embeddings."""
    texts = [
        ("The mitochondria is the powerhouse of the cell.", [1.0, 0.0, 0.0, 0.0]),
        ("Photosynthesis happens in chloroplasts.", [0.0, 1.0, 0.0, 0.0]),
        ("Ribosomes assemble proteins from amino acids.", [0.0, 0.0, 1.0, 0.0]),
        ("The nucleus stores genetic material.", [0.0, 0.0, 0.0, 1.0]),
        ("Cell membranes control what enters the cell.", [0.7, 0.7, 0.0, 0.0]),
    ]
    chunks = [chunk_builder.chunk(text, vec, "ch1.md", 1, "Cells|Organelles") for text, vec in texts]
    chunks += [
        chunk_builder.chunk(f"Whales migrate across ocean {i}.", [0.0, 0.0, 0.5, 0.5], "ch2.md", 2, "Oceans")
        for i in range(5)
    ]
    fallback_store.insert_batch(chunks)
    return fallback_store
