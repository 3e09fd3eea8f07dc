"""Lexical, vector and hybrid retrieval."""

from bookrag.retrieval.bm25 import BM25Scorer, tokenize_query
from bookrag.retrieval.hybrid import HybridSearcher
from bookrag.retrieval.scoring import combine_scores, min_max_normalize, weighted_fusion
from bookrag.retrieval.service import (
    chunk_with_context,
    chunks_by_chapter,
    chunks_by_range,
    search_book,
)

__all__ = [
    "BM25Scorer",
    "HybridSearcher",
    "chunk_with_context",
    "chunks_by_chapter",
    "chunks_by_range",
    "combine_scores",
    "min_max_normalize",
    "search_book",
    "tokenize_query",
    "weighted_fusion",
]
