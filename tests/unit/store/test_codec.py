"""Tests for vector blob encoding and cosine similarity."""

import struct

import numpy as np
import pytest

from bookrag.store.codec import clamp_score, cosine_similarity, decode_vector, encode_vector


@pytest.mark.unit
class TestVectorCodec:
    def test_layout_is_little_endian_float32(self):
        assert encode_vector([1.0, -2.5]) == struct.pack("<2f", 1.0, -2.5)

    def test_round_trip_is_bitwise_exact_for_float32_values(self):
        values = [0.0, -0.0, 1.0, -1.5, 3.4028234663852886e38, 1.401298464324817e-45, float("inf")]
        decoded = decode_vector(encode_vector(values))

        original_bits = np.asarray(values, dtype="<f4").view("<u4").tolist()
        decoded_bits = np.asarray(decoded, dtype="<f4").view("<u4").tolist()
        assert decoded_bits == original_bits

    def test_nan_survives(self):
        decoded = decode_vector(encode_vector([float("nan")]))
        assert np.isnan(decoded[0])

    def test_empty_vector(self):
        assert encode_vector([]) == b""
        assert decode_vector(b"") == []

    def test_truncated_blob_rejected(self):
        with pytest.raises(ValueError):
            decode_vector(b"\x00\x00\x80")


@pytest.mark.unit
class TestCosineSimilarity:
    def test_identical_and_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [2.0, 0.0]) == pytest.approx(1.0)
        assert cosine_similarity([1.0, 0.0], [0.0, 3.0]) == pytest.approx(0.0)

    def test_opposite(self):
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    @pytest.mark.parametrize(
        "a,b",
        [([1.0, 2.0], [1.0]), ([], []), ([0.0, 0.0], [1.0, 1.0])],
        ids=["length-mismatch", "empty", "zero-norm"],
    )
    def test_degenerate_inputs_score_zero(self, a, b):
        assert cosine_similarity(a, b) == 0.0

    def test_clamp_score(self):
        assert clamp_score(-0.2) == 0.0
        assert clamp_score(1.0000001) == 1.0
        assert clamp_score(0.25) == 0.25
