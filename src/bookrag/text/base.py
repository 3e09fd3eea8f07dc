"""Base class for token-bounded text splitters."""

import re
from abc import ABC, abstractmethod

from bookrag.text.boundaries import (
    SENTENCE_ENDINGS,
    is_code_fence,
    is_good_overlap_boundary,
    is_sentence_ending,
)
from bookrag.text.constants import CHUNK_OVERLAP_RATIO, MAX_CHUNK_TOKENS
from bookrag.text.tokenizer import Tokenizer

_WORD = re.compile(r"\S+")


class BaseTextSplitter(ABC):
    """Abstract base class for splitters that bound chunks by token count.

    Attributes:
        tokenizer: Token counter shared with the embedding client
        overlap_ratio: Fraction of max_tokens carried into the next chunk
        max_tokens_cap: Ceiling applied to any requested max_tokens
    """

    def __init__(
        self,
        tokenizer: Tokenizer,
        overlap_ratio: float = CHUNK_OVERLAP_RATIO,
        max_tokens_cap: int = MAX_CHUNK_TOKENS,
    ):
        if not 0 <= overlap_ratio < 1:
            raise ValueError("overlap_ratio must be in [0, 1)")
        if max_tokens_cap <= 0:
            raise ValueError("max_tokens_cap must be positive")

        self.tokenizer = tokenizer
        self.overlap_ratio = overlap_ratio
        self.max_tokens_cap = max_tokens_cap

    @abstractmethod
    def chunk(self, document_text: str, min_tokens: int, max_tokens: int) -> list[str]:
        """Split a document into token-bounded, overlapping slices.

        Args:
            document_text: Full text of one chapter file
            min_tokens: Slices below this are dropped (floors apply)
            max_tokens: Hard upper bound per slice, clamped to max_tokens_cap

        Returns:
            Slices in document order; empty for blank input
        """
        pass

    def effective_max(self, max_tokens: int) -> int:
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        return min(max_tokens, self.max_tokens_cap)

    def overlap_budget(self, max_tokens: int) -> int:
        return int(max_tokens * self.overlap_ratio)

    def _tokens(self, text: str) -> int:
        return self.tokenizer.estimate_tokens(text)

    def _sum_tokens(self, lines: list[str]) -> int:
        return sum(self._tokens(line) for line in lines)

    def prepare_overlap(self, lines: list[str], max_overlap_tokens: int) -> list[str]:
        """Text of a finished chunk to repeat at the start of the next.

        Prefers whole trailing lines, starting at a semantic boundary that
        holds at least 30% of the budget, else as many trailing lines as fit.
        When no non-blank line fits, the tail of the last non-blank line is
        carried instead (see ``tail_within_budget``).
        """
        if not lines or max_overlap_tokens <= 0:
            return []

        min_overlap_tokens = int(max_overlap_tokens * 0.3)
        overlap = self._select_overlap_boundary(lines, max_overlap_tokens, min_overlap_tokens)
        if overlap is None:
            overlap = self._trailing_lines(lines, max_overlap_tokens)

        while overlap and not overlap[0].strip():
            overlap.pop(0)
        if overlap:
            return overlap

        last_line = next((line for line in reversed(lines) if line.strip()), None)
        if last_line is None or is_code_fence(last_line):
            return []
        tail = self.tail_within_budget(last_line, max_overlap_tokens)
        return [tail] if tail else []

    def tail_within_budget(self, text: str, max_tokens: int) -> str:
        """Longest suffix of ``text`` within ``max_tokens``.

        The cut is made at a sentence start when one fits, else at a word
        start, else at any character.
        """
        text = text.strip()
        if not text or max_tokens <= 0:
            return ""

        sentence_starts = [0] + [
            i + 1
            for i, ch in enumerate(text[:-1])
            if ch in SENTENCE_ENDINGS and text[i + 1] not in SENTENCE_ENDINGS
        ]
        word_starts = [m.start() for m in _WORD.finditer(text)]
        for starts in (sentence_starts, word_starts, range(len(text))):
            tail = self._longest_suffix(text, starts, max_tokens)
            if tail:
                return tail
        return ""

    def _longest_suffix(self, text: str, starts, max_tokens: int) -> str:
        # Suffixes only grow as the start moves left, so stop at the first overflow
        best = ""
        for start in reversed(starts):
            candidate = text[start:].strip()
            if not candidate:
                continue
            if self._tokens(candidate) > max_tokens:
                break
            best = candidate
        return best

    def _trailing_lines(self, lines: list[str], max_overlap_tokens: int) -> list[str]:
        overlap: list[str] = []
        total = 0
        for line in reversed(lines):
            line_tokens = self._tokens(line)
            if total + line_tokens > max_overlap_tokens:
                break
            overlap.insert(0, line)
            total += line_tokens
        return overlap

    def _select_overlap_boundary(
        self, lines: list[str], max_overlap_tokens: int, min_overlap_tokens: int
    ) -> list[str] | None:
        best = None
        collected: list[str] = []
        total = 0
        for line in reversed(lines):
            new_total = total + self._tokens(line)
            if new_total > max_overlap_tokens:
                break
            collected.insert(0, line)
            total = new_total

            if is_good_overlap_boundary(line) and total >= min_overlap_tokens:
                best = list(collected)
                if is_sentence_ending(line):
                    break
        return best
