"""Search configuration entities."""

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from bookrag.errors import ConfigurationError


class SearchMode(StrEnum):
    """Which retrieval signal(s) a search uses."""

    VECTOR_ONLY = "vector"
    BM25_ONLY = "bm25"
    HYBRID = "hybrid"

    @classmethod
    def parse(cls, value: "str | SearchMode") -> "SearchMode":
        """Parse a user supplied mode name.

        Raises:
            ConfigurationError: If the name is not a known mode
        """
        if isinstance(value, SearchMode):
            return value
        key = str(value).strip().lower()
        mode = _MODE_ALIASES.get(key)
        if mode is None:
            raise ConfigurationError(
                f"Unknown search mode: {value!r}",
                details={"allowed": sorted(_MODE_ALIASES)},
            )
        return mode


_MODE_ALIASES = {
    "vector": SearchMode.VECTOR_ONLY,
    "vector_only": SearchMode.VECTOR_ONLY,
    "bm25": SearchMode.BM25_ONLY,
    "bm25_only": SearchMode.BM25_ONLY,
    "lexical": SearchMode.BM25_ONLY,
    "hybrid": SearchMode.HYBRID,
}


class HybridSearchConfig(BaseModel):
    """Mode, fusion weights and BM25 parameters for one search.

    Weights need not sum to 1 on input; ``normalized()`` rescales them.
    """

    mode: SearchMode = SearchMode.HYBRID
    vector_weight: float = Field(default=0.7, ge=0.0)
    bm25_weight: float = Field(default=0.3, ge=0.0)
    bm25_k1: float = Field(default=1.2, ge=0.0)
    bm25_b: float = Field(default=0.75, ge=0.0, le=1.0)

    model_config = {
        "frozen": True,
    }

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value):
        return SearchMode.parse(value)

    def normalized(self) -> "HybridSearchConfig":
        total = self.vector_weight + self.bm25_weight
        if total <= 0:
            return self
        return self.model_copy(
            update={
                "vector_weight": self.vector_weight / total,
                "bm25_weight": self.bm25_weight / total,
            }
        )


class CorpusStats(BaseModel):
    """Chunk count and average chunk length (characters) used by BM25."""

    total_docs: int = Field(default=0, ge=0)
    avg_doc_length: float = Field(default=0.0, ge=0.0)
