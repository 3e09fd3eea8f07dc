"""
BM25 scoring over a book store.

This is a scan-based BM25: candidate chunks for each query term are found
by case-insensitive substring matching, and term frequency is the number
of substring occurrences in the chunk text. A term can therefore match
inside longer words. For per-book corpora of a few thousand chunks this
is fast enough and needs no inverted index.

    idf(t)   = ln((N - DF + 0.5) / (DF + 0.5))
    score(c) = sum_t idf(t) * TF*(k1+1) / (TF + k1*(1 - b + b*len(c)/avgLen))

Corpus statistics (N, avgLen) are cached in the store. They are only
recomputed when no cached row exists or when the caller asks for it.
"""

import math
import re

from loguru import logger

from bookrag.entities.chunk import SearchResult
from bookrag.entities.search import CorpusStats
from bookrag.retrieval.scoring import min_max_normalize
from bookrag.store.book_store import BookStore

_NON_ALNUM = re.compile(r"[^\w]|_", re.UNICODE)


def tokenize_query(query: str) -> list[str]:
    """Lowercase, split on whitespace, strip punctuation, drop 1-char terms."""
    terms = []
    for word in query.lower().split():
        term = _NON_ALNUM.sub("", word)
        if len(term) > 1:
            terms.append(term)
    return terms


class BM25Scorer:
    """
    BM25 relevance over one store.

    Attributes:
        store: Store to score against
        k1: Term frequency saturation
        b: Document length normalization
    """

    def __init__(self, store: BookStore, k1: float = 1.2, b: float = 0.75):
        if k1 < 0:
            raise ValueError("k1 must be non-negative")
        if not 0 <= b <= 1:
            raise ValueError("b must be in [0, 1]")
        self.store = store
        self.k1 = k1
        self.b = b

    def corpus_stats(self, refresh: bool = False) -> CorpusStats:
        """Cached corpus statistics, recomputed when missing or on request."""
        if not refresh:
            cached = self.store.cached_corpus_stats()
            if cached is not None:
                return cached

        stats = self.store.compute_corpus_stats()
        self.store.cache_corpus_stats(stats)
        logger.debug(
            f"Recomputed corpus stats: docs={stats.total_docs}, avg_len={stats.avg_doc_length:.1f}"
        )
        return stats

    def score(self, query: str, limit: int) -> list[tuple[int, float]]:
        """Rank chunk ids for a query.

        Returns:
            (chunk_id, score) pairs, best first, scores min-max normalized
            into [0, 1]; empty when nothing matches
        """
        terms = tokenize_query(query)
        if not terms or limit <= 0:
            return []

        stats = self.corpus_stats()
        totals: dict[int, float] = {}
        for term in terms:
            for chunk_id, term_score in self._term_scores(term, stats).items():
                totals[chunk_id] = totals.get(chunk_id, 0.0) + term_score

        ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))[:limit]
        normalized = min_max_normalize([score for _, score in ranked])
        return [(chunk_id, norm) for (chunk_id, _), norm in zip(ranked, normalized)]

    def search(self, query: str, limit: int) -> list[SearchResult]:
        ranked = self.score(query, limit)
        chunks = self.store.get_chunks([chunk_id for chunk_id, _ in ranked])
        results = [
            SearchResult.from_chunk(chunks[chunk_id], score)
            for chunk_id, score in ranked
            if chunk_id in chunks
        ]
        logger.debug(f"BM25 search for {query!r} returned {len(results)} results")
        return results

    def _term_scores(self, term: str, stats: CorpusStats) -> dict[int, float]:
        matches = []
        for chunk_id, text in self.store.lexical_candidates(term):
            tf = text.lower().count(term)
            if tf > 0:
                matches.append((chunk_id, tf, len(text)))

        if not matches:
            return {}

        df = len(matches)
        # Stale cached stats can report fewer docs than currently match
        total_docs = max(stats.total_docs, df)
        idf = math.log((total_docs - df + 0.5) / (df + 0.5))
        return {
            chunk_id: self.bm25_term_score(tf, doc_length, stats.avg_doc_length, idf)
            for chunk_id, tf, doc_length in matches
        }

    def bm25_term_score(self, tf: int, doc_length: int, avg_doc_length: float, idf: float) -> float:
        length_ratio = doc_length / avg_doc_length if avg_doc_length > 0 else 1.0
        denominator = tf + self.k1 * (1 - self.b + self.b * length_ratio)
        return idf * (tf * (self.k1 + 1)) / denominator
