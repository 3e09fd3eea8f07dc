"""Markdown-aware chunker.

Walks a chapter line by line and cuts it into token-bounded sections,
preferring headings, code fences, paragraph breaks and sentence ends as
cut points. Each new section starts with a little context carried over
from the previous one. When the structural pass yields nothing the plain
line splitter takes over.
"""

from loguru import logger

from bookrag.text.boundaries import SplitQuality, is_code_fence, is_heading, split_quality
from bookrag.text.constants import (
    MAX_SECTION_LINES,
    SHORT_CHUNK_FLOOR,
    TRAILING_SECTION_FLOOR,
)
from bookrag.text.line_splitter import LineSplitter


class MarkdownChunker(LineSplitter):
    """Token-bounded, overlapping chunks that respect markdown structure.

    Example:
        >>> chunker = MarkdownChunker(TextTokenizer())
        >>> slices = chunker.chunk(chapter_markdown, min_tokens=50, max_tokens=400)
    """

    def chunk(self, document_text: str, min_tokens: int, max_tokens: int) -> list[str]:
        max_tokens = self.effective_max(max_tokens)
        if not document_text.strip():
            return []

        chunks = self._chunk_by_structure(document_text, min_tokens, max_tokens)
        if chunks:
            return self.enforce_limit(chunks, max_tokens)

        logger.debug("Markdown structured chunking produced nothing, falling back to line chunking")
        return super().chunk(document_text, min_tokens, max_tokens)

    def _chunk_by_structure(self, text: str, min_tokens: int, max_tokens: int) -> list[str]:
        overlap_tokens = self.overlap_budget(max_tokens)
        chunks: list[str] = []
        section: list[str] = []
        section_tokens = 0

        for raw_line in text.splitlines():
            line = raw_line.strip()
            line_tokens = self._tokens(line)

            ready = bool(section) and section_tokens >= min_tokens
            should_consider = (
                is_heading(line)
                or section_tokens >= max_tokens * 3 // 4
                or len(section) >= MAX_SECTION_LINES
            )
            if ready and should_consider and section_tokens + line_tokens > max_tokens:
                chunks.append("\n".join(section))
                section = self.prepare_overlap(section, overlap_tokens)
                section_tokens = self._sum_tokens(section)

            # Close before a fence rather than cutting the code block later
            if is_code_fence(line) and section:
                if section_tokens >= min_tokens and section_tokens + line_tokens > max_tokens:
                    chunks.append("\n".join(section))
                    section = []
                    section_tokens = 0

            if line or section:
                section.append(line)
                section_tokens += line_tokens

            if section_tokens > max_tokens and len(section) > 1:
                split_point = self.find_best_split_point(section, min_tokens, max_tokens)
                if split_point is not None:
                    head = section[:split_point]
                    chunks.append("\n".join(head))
                    section = self.prepare_overlap(head, overlap_tokens) + section[split_point:]
                else:
                    mid = len(section) // 2
                    chunks.append("\n".join(section[:mid]))
                    section = section[mid:]
                section_tokens = self._sum_tokens(section)

        if section and section_tokens >= min(min_tokens, TRAILING_SECTION_FLOOR):
            chunks.extend(self._close_trailing_section(section, section_tokens, min_tokens, max_tokens))

        short_floor = min(min_tokens, SHORT_CHUNK_FLOOR)
        result: list[str] = []
        for piece in chunks:
            if not piece.strip():
                continue
            piece_tokens = self._tokens(piece)
            if piece_tokens < short_floor:
                continue
            if piece_tokens > max_tokens:
                result.extend(self.emergency_split(piece, max_tokens))
            else:
                result.append(piece)
        return result

    def _close_trailing_section(
        self, section: list[str], section_tokens: int, min_tokens: int, max_tokens: int
    ) -> list[str]:
        if section_tokens <= max_tokens or len(section) <= 1:
            return ["\n".join(section)]

        split_point = self.find_best_split_point(section, min_tokens, max_tokens)
        if split_point is None:
            mid = len(section) // 2
            return ["\n".join(section[:mid]), "\n".join(section[mid:])]

        pieces = ["\n".join(section[:split_point])]
        remainder = section[split_point:]
        if remainder and self._sum_tokens(remainder) >= min(min_tokens, SHORT_CHUNK_FLOOR):
            pieces.append("\n".join(remainder))
        return pieces

    def find_best_split_point(self, lines: list[str], min_tokens: int, max_tokens: int) -> int | None:
        """Index after which to cut ``lines``, or None when no line qualifies.

        Scans forward once min_tokens have accumulated. Headings and fences
        are taken at once; paragraph and sentence ends once 3/4 of the limit
        is reached; list, quote and numbered lines once 9/10 is reached.
        """
        best = None
        accumulated = 0

        for i, line in enumerate(lines):
            accumulated += self._tokens(line)
            if accumulated < min_tokens:
                continue

            quality = split_quality(line)
            if quality is not SplitQuality.NONE:
                best = i + 1
                if quality is SplitQuality.IDEAL:
                    break
                if quality is SplitQuality.GOOD and accumulated >= max_tokens * 3 // 4:
                    break
                if quality is SplitQuality.ACCEPTABLE and accumulated >= max_tokens * 9 // 10:
                    break

            if accumulated >= max_tokens:
                break

        return best
