"""Score normalization and weighted fusion helpers."""

from loguru import logger

from bookrag.entities.chunk import SearchResult


def min_max_normalize(scores: list[float]) -> list[float]:
    """Rescale scores into [0, 1].

    An empty list stays empty; if every score is equal, all become 1.0.
    """
    if not scores:
        return []
    low = min(scores)
    high = max(scores)
    if high - low <= 0:
        return [1.0] * len(scores)
    span = high - low
    return [(score - low) / span for score in scores]


def combine_scores(
    vector_score: float | None,
    bm25_score: float | None,
    vector_weight: float,
    bm25_weight: float,
) -> float:
    """Weighted sum over whichever sides produced a score."""
    combined = 0.0
    if vector_score is not None:
        combined += vector_weight * vector_score
    if bm25_score is not None:
        combined += bm25_weight * bm25_score
    return combined


def weighted_fusion(
    vector_results: list[SearchResult],
    bm25_results: list[SearchResult],
    vector_weight: float,
    bm25_weight: float,
    limit: int,
) -> list[SearchResult]:
    """Fuse two ranked lists by min-max normalized, weighted scores.

    Each list is normalized on its own before combining. A chunk found by
    only one side gets only that side's weighted term.

    Example:
        >>> fused = weighted_fusion(vector_hits, bm25_hits, 0.7, 0.3, limit=5)
    """
    vector_norm = dict(
        zip(
            (r.chunk_id for r in vector_results),
            min_max_normalize([r.similarity_score for r in vector_results]),
        )
    )
    bm25_norm = dict(
        zip(
            (r.chunk_id for r in bm25_results),
            min_max_normalize([r.similarity_score for r in bm25_results]),
        )
    )

    by_id: dict[int, SearchResult] = {}
    for result in [*vector_results, *bm25_results]:
        by_id.setdefault(result.chunk_id, result)

    fused = []
    for chunk_id, result in by_id.items():
        score = combine_scores(
            vector_norm.get(chunk_id),
            bm25_norm.get(chunk_id),
            vector_weight,
            bm25_weight,
        )
        fused.append(result.with_score(max(0.0, min(1.0, score))))

    fused.sort(key=lambda r: (-r.similarity_score, r.global_chunk_index))
    logger.debug(
        f"Fused {len(vector_results)} vector and {len(bm25_results)} BM25 results "
        f"into {min(len(fused), limit)}"
    )
    return fused[:limit]
