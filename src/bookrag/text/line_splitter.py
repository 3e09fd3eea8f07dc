"""Plain line-based splitter and the sentence/character fallbacks.

``LineSplitter.chunk`` ignores markdown structure and only packs trimmed,
non-empty lines up to the token limit. Its helpers are also the escalation
path for anything the markdown chunker cannot bring under the limit:

    line too long  ->  sentences  ->  fixed-width character windows
"""

from loguru import logger

from bookrag.text.base import BaseTextSplitter
from bookrag.text.boundaries import split_into_sentences
from bookrag.text.constants import CHARS_PER_TOKEN_WINDOW, PLAIN_CHUNK_FLOOR


class LineSplitter(BaseTextSplitter):
    """Packs whole lines into chunks with line-level overlap."""

    def chunk(self, document_text: str, min_tokens: int, max_tokens: int) -> list[str]:
        max_tokens = self.effective_max(max_tokens)
        lines = [line.strip() for line in document_text.splitlines()]
        entries = [(line, self._tokens(line)) for line in lines if line]
        if not entries:
            return []

        overlap_tokens = self.overlap_budget(max_tokens)
        keep_floor = min(min_tokens, PLAIN_CHUNK_FLOOR)
        chunks: list[str] = []
        start = 0

        while start < len(entries):
            current: list[str] = []
            current_tokens = 0
            end = start

            while end < len(entries):
                line, line_tokens = entries[end]

                if line_tokens > max_tokens:
                    if current:
                        chunks.append("\n".join(current))
                        current = []
                        current_tokens = 0
                    chunks.extend(self.split_long_line(line, min_tokens, max_tokens))
                    end += 1
                    break

                if current_tokens + line_tokens > max_tokens and current_tokens >= min_tokens:
                    break

                current.append(line)
                current_tokens += line_tokens
                end += 1

            if current and current_tokens >= keep_floor:
                chunks.append("\n".join(current))

            if end >= len(entries):
                break

            # Step back over trailing lines until the overlap budget is met
            overlap_start = start
            carried = 0
            for i in range(end - 1, start - 1, -1):
                carried += entries[i][1]
                if carried >= overlap_tokens:
                    overlap_start = i
                    break
            start = max(overlap_start, start + 1)

        return self.enforce_limit(chunks, max_tokens)

    def split_long_line(self, line: str, min_tokens: int, max_tokens: int) -> list[str]:
        """Split one overlong line by sentences, then by characters."""
        sentences = split_into_sentences(line)
        if len(sentences) <= 1:
            return self.split_by_characters(line, max_tokens)

        overlap_tokens = self.overlap_budget(max_tokens)
        chunks: list[str] = []
        current: list[str] = []
        current_tokens = 0

        for sentence in sentences:
            tokens = self._tokens(sentence)
            if tokens > max_tokens:
                if current:
                    chunks.append(" ".join(current))
                    current = []
                    current_tokens = 0
                chunks.extend(self.split_by_characters(sentence, max_tokens))
                continue

            if current_tokens + tokens > max_tokens and current_tokens >= min_tokens:
                chunks.append(" ".join(current))
                carried: list[str] = []
                carried_tokens = 0
                for previous in reversed(current):
                    t = self._tokens(previous)
                    if carried_tokens + t > overlap_tokens:
                        break
                    carried_tokens += t
                    carried.insert(0, previous)
                current = carried
                current_tokens = carried_tokens
                # Overlap plus this sentence must still fit
                if current_tokens + tokens > max_tokens:
                    current = []
                    current_tokens = 0

            current.append(sentence)
            current_tokens += tokens

        if current:
            chunks.append(" ".join(current))
        return chunks

    def split_by_characters(self, text: str, max_tokens: int, overlap_chars: int | None = None) -> list[str]:
        """Fixed-width character windows with character overlap (last resort)."""
        if overlap_chars is None:
            overlap_chars = int(max_tokens * self.overlap_ratio * CHARS_PER_TOKEN_WINDOW)
        chunk_size = max(int(max_tokens * CHARS_PER_TOKEN_WINDOW), 1)

        if len(text) <= chunk_size:
            return [text] if text.strip() else []

        chunks = []
        start = 0
        while start < len(text):
            end = min(start + chunk_size, len(text))
            piece = text[start:end]
            if piece.strip():
                chunks.append(piece)
            if end >= len(text):
                break
            start = max(end - overlap_chars, start + 1)
        return chunks

    def emergency_split(self, chunk: str, max_tokens: int) -> list[str]:
        """Re-split a finished chunk that is still over the limit."""
        lines = chunk.splitlines()
        if len(lines) <= 1:
            return self.split_by_characters(chunk, max_tokens)

        overlap_tokens = self.overlap_budget(max_tokens)
        result: list[str] = []
        current: list[str] = []
        current_tokens = 0
        # Leading lines of ``current`` that repeat the previous piece
        carried = 0

        for line in lines:
            line_tokens = self._tokens(line)

            if current_tokens + line_tokens > max_tokens and len(current) > carried:
                result.append("\n".join(current))
                current = self.prepare_overlap(current, overlap_tokens)
                current_tokens = self._sum_tokens(current)
                if current and current_tokens + line_tokens > max_tokens:
                    tail = self.tail_within_budget(current[-1], max_tokens - line_tokens)
                    current = [tail] if tail else []
                    current_tokens = self._sum_tokens(current)
                carried = len(current)

            if line_tokens > max_tokens:
                if len(current) > carried:
                    result.append("\n".join(current))
                current = []
                current_tokens = 0
                carried = 0
                result.extend(self.split_by_characters(line, max_tokens))
            else:
                current.append(line)
                current_tokens += line_tokens

        if len(current) > carried:
            result.append("\n".join(current))
        return result

    def enforce_limit(self, chunks: list[str], max_tokens: int) -> list[str]:
        """Bisect by characters any chunk the heuristics left over the limit.

        Character windows assume at most one token per character, which
        does not hold for every script.
        """
        result = []
        pending = list(reversed(chunks))
        while pending:
            piece = pending.pop()
            if len(piece) <= 1 or self._tokens(piece) <= max_tokens:
                result.append(piece)
                continue
            logger.debug(f"Bisecting oversized chunk of {len(piece)} characters")
            mid = len(piece) // 2
            pending.append(piece[mid:])
            pending.append(piece[:mid])
        return [piece for piece in result if piece.strip()]
