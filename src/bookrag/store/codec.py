"""Vector blob encoding and in-process cosine similarity.

Vectors are stored as concatenated little-endian float32 values, four
bytes per component, with no header.
"""

from collections.abc import Sequence

import numpy as np

FLOAT32_LE = np.dtype("<f4")


def encode_vector(vector: Sequence[float]) -> bytes:
    return np.asarray(vector, dtype=FLOAT32_LE).tobytes()


def decode_vector(blob: bytes) -> list[float]:
    """Decode a blob written by ``encode_vector``.

    Raises:
        ValueError: If the blob length is not a multiple of four
    """
    if len(blob) % FLOAT32_LE.itemsize:
        raise ValueError(f"Invalid vector blob length: {len(blob)}")
    return np.frombuffer(blob, dtype=FLOAT32_LE).tolist()


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Raw cosine similarity in [-1, 1].

    Returns 0.0 when the lengths differ, either vector is empty or either
    norm is zero.
    """
    if len(vec1) != len(vec2) or len(vec1) == 0:
        return 0.0

    v1 = np.asarray(vec1, dtype=np.float64)
    v2 = np.asarray(vec2, dtype=np.float64)
    norm1 = np.linalg.norm(v1)
    norm2 = np.linalg.norm(v2)
    if norm1 == 0 or norm2 == 0:
        return 0.0
    return float(np.dot(v1, v2) / (norm1 * norm2))


def clamp_score(score: float) -> float:
    return max(0.0, min(1.0, float(score)))
