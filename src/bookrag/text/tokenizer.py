"""Token counting with a fixed subword vocabulary."""

from typing import Protocol, runtime_checkable

import tiktoken
from loguru import logger

from bookrag.errors import ConfigurationError

DEFAULT_ENCODING = "o200k_base"


@runtime_checkable
class Tokenizer(Protocol):
    """What the chunker and the embedding client need from a tokenizer."""

    def estimate_tokens(self, text: str) -> int: ...

    def truncate(self, text: str, max_tokens: int) -> str: ...


class TextTokenizer:
    """
    tiktoken-backed tokenizer.

    Special-token text is encoded as the special token it names, so
    counts stay stable for documents that happen to contain it.
    """

    def __init__(self, encoding_name: str = DEFAULT_ENCODING):
        try:
            self._encoding = tiktoken.get_encoding(encoding_name)
        except Exception as e:
            raise ConfigurationError(
                f"Failed to load tokenizer encoding '{encoding_name}'",
                original_error=e,
            ) from e
        self.encoding_name = encoding_name
        logger.debug(f"Loaded tokenizer encoding {encoding_name}")

    def encode(self, text: str) -> list[int]:
        return self._encoding.encode(text, allowed_special="all")

    def estimate_tokens(self, text: str) -> int:
        if not text:
            return 0
        return len(self.encode(text))

    def truncate(self, text: str, max_tokens: int) -> str:
        """Cut text to at most max_tokens tokens, at token granularity."""
        tokens = self.encode(text)
        if len(tokens) <= max_tokens:
            return text
        return self._encoding.decode(tokens[:max_tokens])
