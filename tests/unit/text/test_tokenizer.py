"""Tests for the tiktoken-backed tokenizer."""

import pytest

from bookrag.errors import ConfigurationError
from bookrag.text.tokenizer import TextTokenizer, Tokenizer
from tests.utils.fakes import WordTokenizer


def _load_tokenizer():
    try:
        return TextTokenizer()
    except ConfigurationError:
        return None


_TOKENIZER = _load_tokenizer()


@pytest.mark.unit
class TestTokenizerProtocol:
    def test_fake_satisfies_protocol(self):
        assert isinstance(WordTokenizer(), Tokenizer)

    def test_unknown_encoding_raises_configuration_error(self):
        with pytest.raises(ConfigurationError):
            TextTokenizer("no_such_encoding")


@pytest.mark.unit
@pytest.mark.skipif(_TOKENIZER is None, reason="tiktoken vocabulary not available")
class TestTextTokenizer:
    def test_empty_text_has_no_tokens(self):
        assert _TOKENIZER.estimate_tokens("") == 0

    def test_counts_are_deterministic(self):
        text = "Call me Ishmael. Some years ago, never mind how long precisely."
        assert _TOKENIZER.estimate_tokens(text) == _TOKENIZER.estimate_tokens(text)
        assert _TOKENIZER.estimate_tokens(text) > 0

    def test_special_token_text_is_counted(self):
        assert _TOKENIZER.estimate_tokens("<|endoftext|>") >= 1

    def test_truncate_respects_budget(self):
        text = " ".join(["whale"] * 500)
        truncated = _TOKENIZER.truncate(text, 20)
        assert _TOKENIZER.estimate_tokens(truncated) <= 20
        assert text.startswith(truncated)

    def test_truncate_leaves_short_text_alone(self):
        assert _TOKENIZER.truncate("short text", 100) == "short text"
