"""Line classification helpers used when choosing where to split markdown."""

from enum import IntEnum

SENTENCE_ENDINGS = ("。", "！", "？", ".", "!", "?")


class SplitQuality(IntEnum):
    """How good a line is as the last line of a chunk."""

    NONE = 0
    ACCEPTABLE = 1  # list item, quote, numbered line, separator
    GOOD = 2        # blank line or sentence end
    IDEAL = 3       # heading or code fence


def is_heading(line: str) -> bool:
    return line.startswith("#") and len(line) > 1


def is_code_fence(line: str) -> bool:
    return line.startswith("```")


def is_sentence_ending(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and stripped.endswith(SENTENCE_ENDINGS)


def split_quality(line: str) -> SplitQuality:
    """Classify a line as a split point, best category first."""
    if line.startswith("#") or is_code_fence(line):
        return SplitQuality.IDEAL
    if not line.strip() or is_sentence_ending(line):
        return SplitQuality.GOOD
    stripped = line.strip()
    if (
        line.startswith(("-", "*", ">"))
        or stripped[:1].isnumeric()
        or "---" in line
    ):
        return SplitQuality.ACCEPTABLE
    return SplitQuality.NONE


def is_good_overlap_boundary(line: str) -> bool:
    """Lines where carried-over context may start cleanly."""
    stripped = line.strip()
    if not stripped:
        return True
    if is_sentence_ending(stripped):
        return True
    if stripped.startswith(("#", "-", "*")):
        return True
    return stripped[0] in "0123456789"


def split_into_sentences(text: str) -> list[str]:
    """Split on sentence-ending punctuation, keeping the punctuation.

    >>> split_into_sentences("First one. Second one! Third?")
    ['First one.', 'Second one!', 'Third?']
    """
    sentences = []
    current = []
    for ch in text:
        current.append(ch)
        if ch in SENTENCE_ENDINGS:
            sentence = "".join(current).strip()
            if sentence:
                sentences.append(sentence)
            current = []
    tail = "".join(current).strip()
    if tail:
        sentences.append(tail)
    return sentences
