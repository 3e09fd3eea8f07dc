"""Hybrid search: vector similarity and BM25 fused by weighted scores."""

from loguru import logger

from bookrag.entities.chunk import SearchResult
from bookrag.entities.search import HybridSearchConfig, SearchMode
from bookrag.errors import VectorUnavailableError
from bookrag.retrieval.bm25 import BM25Scorer
from bookrag.retrieval.scoring import weighted_fusion
from bookrag.store.book_store import BookStore


class HybridSearcher:
    """
    Runs a search in one of three modes against a store.

    - VECTOR_ONLY: the store's vector search
    - BM25_ONLY: the BM25 scorer
    - HYBRID: both, each fetching twice the limit, then weighted fusion

    A hybrid search without a query vector falls back to BM25 only.
    """

    def __init__(self, store: BookStore):
        self.store = store

    def search(
        self,
        query: str,
        query_vector: list[float] | None,
        limit: int,
        config: HybridSearchConfig | None = None,
    ) -> list[SearchResult]:
        config = config or HybridSearchConfig()
        if limit <= 0:
            return []

        if config.mode is SearchMode.VECTOR_ONLY:
            if not query_vector:
                raise VectorUnavailableError("Vector search requested without a query vector")
            return self.store.vector_search(query_vector, limit)

        scorer = BM25Scorer(self.store, k1=config.bm25_k1, b=config.bm25_b)
        if config.mode is SearchMode.BM25_ONLY:
            return scorer.search(query, limit)

        if not query_vector:
            logger.debug("No query vector for hybrid search, using BM25 only")
            return scorer.search(query, limit)

        weights = config.normalized()
        vector_results = self.store.vector_search(query_vector, limit * 2)
        bm25_results = scorer.search(query, limit * 2)
        return weighted_fusion(
            vector_results,
            bm25_results,
            weights.vector_weight,
            weights.bm25_weight,
            limit,
        )
