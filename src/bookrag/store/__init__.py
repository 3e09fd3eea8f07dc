"""Single-file persistent store for one book."""

from bookrag.store.backends import (
    BlobVectorTable,
    NativeVectorIndex,
    VectorBackend,
    VectorBackendKind,
)
from bookrag.store.book_store import BookStore
from bookrag.store.codec import cosine_similarity, decode_vector, encode_vector

__all__ = [
    "BlobVectorTable",
    "BookStore",
    "NativeVectorIndex",
    "VectorBackend",
    "VectorBackendKind",
    "cosine_similarity",
    "decode_vector",
    "encode_vector",
]
