"""Tests for BM25 scoring over a store."""

import math

import pytest

from bookrag.retrieval.bm25 import BM25Scorer, tokenize_query
from tests.utils.assertions import assert_scores_descending, assert_search_results_valid


@pytest.mark.unit
class TestTokenizeQuery:
    def test_lowercases_and_strips_punctuation(self):
        assert tokenize_query("Hello, World! a I'm") == ["hello", "world", "im"]

    def test_drops_single_character_terms(self):
        assert tokenize_query("a b cd") == ["cd"]

    def test_counts_characters_not_bytes(self):
        assert tokenize_query("细 胞 细胞") == ["细胞"]

    def test_underscores_are_stripped(self):
        assert tokenize_query("snake_case __") == ["snakecase"]

    def test_empty(self):
        assert tokenize_query("   ") == []


@pytest.mark.unit
class TestBM25Scorer:
    def test_invalid_parameters(self, fallback_store):
        with pytest.raises(ValueError):
            BM25Scorer(fallback_store, k1=-1)
        with pytest.raises(ValueError):
            BM25Scorer(fallback_store, b=1.5)

    def test_single_match(self, populated_store):
        results = BM25Scorer(populated_store).search("mitochondria", limit=5)

        assert len(results) == 1
        assert results[0].chunk_text.startswith("The mitochondria")
        assert results[0].similarity_score == 1.0

    def test_no_match(self, populated_store):
        assert BM25Scorer(populated_store).search("ribosomal subunit xyz", limit=5) == []

    def test_punctuation_only_query(self, populated_store):
        assert BM25Scorer(populated_store).search("?! .", limit=5) == []

    def test_term_matches_inside_longer_words(self, populated_store):
        results = BM25Scorer(populated_store).search("chloro", limit=5)
        assert [r.chunk_text for r in results] == ["Photosynthesis happens in chloroplasts."]

    def test_scores_are_normalized_and_ranked(self, fallback_store, chunk_builder):
        texts = ["whale", "whale whale", "whale whale whale"] + ["nothing here to see"] * 5
        fallback_store.insert_batch([chunk_builder.chunk(t, [1.0, 0, 0, 0]) for t in texts])

        results = BM25Scorer(fallback_store).search("whale", limit=10)

        assert [r.chunk_text for r in results] == ["whale whale whale", "whale whale", "whale"]
        assert results[0].similarity_score == 1.0
        assert results[-1].similarity_score == 0.0
        assert_search_results_valid(results)
        assert_scores_descending(results)

    def test_limit_applies_before_normalization(self, fallback_store, chunk_builder):
        texts = ["whale", "whale whale", "whale whale whale"] + ["nothing here to see"] * 5
        fallback_store.insert_batch([chunk_builder.chunk(t, [1.0, 0, 0, 0]) for t in texts])

        results = BM25Scorer(fallback_store).search("whale", limit=2)

        assert [r.similarity_score for r in results] == [1.0, 0.0]

    def test_score_pairs(self, populated_store):
        ranked = BM25Scorer(populated_store).score("whales ocean", limit=3)

        assert len(ranked) == 3
        assert all(0.0 <= score <= 1.0 for _, score in ranked)
        assert [chunk_id for chunk_id, _ in ranked] == sorted(chunk_id for chunk_id, _ in ranked)

    def test_term_score_formula(self, fallback_store):
        scorer = BM25Scorer(fallback_store, k1=1.2, b=0.75)
        assert scorer.bm25_term_score(tf=2, doc_length=100, avg_doc_length=100.0, idf=1.0) == pytest.approx(1.375)
        assert scorer.bm25_term_score(tf=1, doc_length=10, avg_doc_length=0.0, idf=2.0) == pytest.approx(2.0)

    def test_idf_of_rare_term_is_positive(self):
        df, n = 1, 10
        assert math.log((n - df + 0.5) / (df + 0.5)) > 0


@pytest.mark.unit
class TestCorpusStatsCaching:
    def test_stats_are_cached_until_refresh(self, fallback_store, chunk_builder):
        fallback_store.insert_batch([chunk_builder.chunk(f"text {i}", [1.0, 0, 0, 0]) for i in range(2)])
        scorer = BM25Scorer(fallback_store)

        assert scorer.corpus_stats().total_docs == 2

        fallback_store.insert_batch([chunk_builder.chunk(f"more {i}", [1.0, 0, 0, 0]) for i in range(2)])
        assert scorer.corpus_stats().total_docs == 2
        assert scorer.corpus_stats(refresh=True).total_docs == 4
        assert fallback_store.cached_corpus_stats().total_docs == 4

    def test_stale_stats_do_not_break_scoring(self, fallback_store, chunk_builder):
        fallback_store.insert_batch([chunk_builder.chunk("lonely whale", [1.0, 0, 0, 0])])
        scorer = BM25Scorer(fallback_store)
        scorer.corpus_stats()

        fallback_store.insert_batch([chunk_builder.chunk(f"whale {i}", [1.0, 0, 0, 0]) for i in range(4)])
        results = scorer.search("whale", limit=10)

        assert len(results) == 5
        assert_search_results_valid(results)
