"""Search tuning defaults and the query-adaptive weighting policy."""

from pydantic import BaseModel, Field

from bookrag.entities.search import HybridSearchConfig, SearchMode
from bookrag.errors import ConfigurationError


class SearchSettings(BaseModel):
    """
    Search tuning, built once at startup and passed to whoever searches.

    When ``adaptive_weights`` is on and the caller gives no weights, short
    queries lean on BM25 and long queries lean on vectors.
    """

    vector_weight: float = Field(default=0.7, ge=0.0)
    bm25_weight: float = Field(default=0.3, ge=0.0)
    bm25_k1: float = Field(default=1.2, ge=0.0)
    bm25_b: float = Field(default=0.75, ge=0.0, le=1.0)

    adaptive_weights: bool = True
    # Short queries: at most this many words, or fewer than this many characters
    short_query_max_words: int = 2
    short_query_min_chars: int = 10
    short_query_weights: tuple[float, float] = (0.4, 0.6)
    # Long queries: more than this many words, or more than this many characters
    long_query_min_words: int = 10
    long_query_max_chars: int = 100
    long_query_weights: tuple[float, float] = (0.8, 0.2)

    model_config = {
        "frozen": True,
    }

    def default_config(self, mode: SearchMode = SearchMode.HYBRID) -> HybridSearchConfig:
        return self._config(mode, self.vector_weight, self.bm25_weight)

    def adaptive_config(self, query: str, mode: SearchMode = SearchMode.HYBRID) -> HybridSearchConfig:
        words = len(query.split())
        chars = len(query)
        if words <= self.short_query_max_words or chars < self.short_query_min_chars:
            return self._config(mode, *self.short_query_weights)
        if words > self.long_query_min_words or chars > self.long_query_max_chars:
            return self._config(mode, *self.long_query_weights)
        return self.default_config(mode)

    def resolve(
        self,
        query: str,
        mode: SearchMode | str = SearchMode.HYBRID,
        vector_weight: float | None = None,
        bm25_weight: float | None = None,
    ) -> HybridSearchConfig:
        """Pick the configuration for one search.

        Explicit weights win over the adaptive policy. A pair is normalized
        to sum to 1; a single weight gets its complement.

        Raises:
            ConfigurationError: On an unknown mode or invalid weights
        """
        mode = SearchMode.parse(mode)

        if vector_weight is not None or bm25_weight is not None:
            if vector_weight is None:
                vector_weight = 1.0 - self._check_unit(bm25_weight, "bm25_weight")
            elif bm25_weight is None:
                bm25_weight = 1.0 - self._check_unit(vector_weight, "vector_weight")
            if vector_weight < 0 or bm25_weight < 0:
                raise ConfigurationError(
                    "Search weights must be non-negative",
                    details={"vector_weight": vector_weight, "bm25_weight": bm25_weight},
                )
            if vector_weight + bm25_weight <= 0:
                raise ConfigurationError("At least one search weight must be positive")
            return self._config(mode, vector_weight, bm25_weight).normalized()

        if self.adaptive_weights:
            return self.adaptive_config(query, mode)
        return self.default_config(mode)

    def _config(self, mode: SearchMode, vector_weight: float, bm25_weight: float) -> HybridSearchConfig:
        return HybridSearchConfig(
            mode=mode,
            vector_weight=vector_weight,
            bm25_weight=bm25_weight,
            bm25_k1=self.bm25_k1,
            bm25_b=self.bm25_b,
        )

    @staticmethod
    def _check_unit(weight: float, name: str) -> float:
        if not 0.0 <= weight <= 1.0:
            raise ConfigurationError(
                f"{name} must be in [0, 1] when given alone", details={name: weight}
            )
        return weight
