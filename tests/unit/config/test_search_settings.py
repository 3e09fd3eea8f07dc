"""Tests for search weight resolution."""

import pytest

from bookrag.config.search import SearchSettings
from bookrag.entities.search import SearchMode
from bookrag.errors import ConfigurationError


@pytest.mark.unit
class TestAdaptiveWeights:
    @pytest.fixture
    def settings(self):
        return SearchSettings()

    def test_short_query_leans_lexical(self, settings):
        config = settings.resolve("mitochondria")
        assert (config.vector_weight, config.bm25_weight) == (0.4, 0.6)

    def test_long_query_leans_semantic(self, settings):
        query = "how do cells turn the food we eat into energy that muscles can use during exercise"
        config = settings.resolve(query)
        assert (config.vector_weight, config.bm25_weight) == (0.8, 0.2)

    def test_medium_query_uses_defaults(self, settings):
        config = settings.resolve("where does photosynthesis happen")
        assert (config.vector_weight, config.bm25_weight) == (0.7, 0.3)

    def test_requested_mode_is_kept(self, settings):
        assert settings.resolve("mitochondria", mode="bm25").mode is SearchMode.BM25_ONLY
        assert settings.resolve("mitochondria", mode=SearchMode.VECTOR_ONLY).mode is SearchMode.VECTOR_ONLY

    def test_adaptive_can_be_disabled(self):
        config = SearchSettings(adaptive_weights=False).resolve("mitochondria")
        assert (config.vector_weight, config.bm25_weight) == (0.7, 0.3)

    def test_bm25_parameters_are_passed_through(self):
        config = SearchSettings(bm25_k1=2.0, bm25_b=0.5).resolve("where does photosynthesis happen")
        assert (config.bm25_k1, config.bm25_b) == (2.0, 0.5)


@pytest.mark.unit
class TestExplicitWeights:
    @pytest.fixture
    def settings(self):
        return SearchSettings()

    def test_pair_is_normalized(self, settings):
        config = settings.resolve("cell", vector_weight=3.0, bm25_weight=1.0)
        assert config.vector_weight == pytest.approx(0.75)
        assert config.bm25_weight == pytest.approx(0.25)

    def test_single_weight_gets_complement(self, settings):
        config = settings.resolve("cell", vector_weight=0.9)
        assert config.vector_weight == pytest.approx(0.9)
        assert config.bm25_weight == pytest.approx(0.1)

        config = settings.resolve("cell", bm25_weight=1.0)
        assert config.vector_weight == pytest.approx(0.0)
        assert config.bm25_weight == pytest.approx(1.0)

    @pytest.mark.parametrize(
        "weights",
        [
            {"vector_weight": -0.1, "bm25_weight": 0.5},
            {"vector_weight": 0.0, "bm25_weight": 0.0},
            {"vector_weight": 1.5},
            {"bm25_weight": -0.2},
        ],
    )
    def test_invalid_weights(self, settings, weights):
        with pytest.raises(ConfigurationError):
            settings.resolve("cell", **weights)

    def test_unknown_mode(self, settings):
        with pytest.raises(ConfigurationError):
            settings.resolve("cell", mode="semantic")
