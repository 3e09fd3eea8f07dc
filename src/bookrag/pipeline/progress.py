"""
Progress reporting for ingestion runs.

The pipeline sends a ``ProgressUpdate`` after every chunk. Sinks must not
block: a slow or full consumer loses updates rather than stalling the run.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Protocol

from loguru import logger


@dataclass
class ProgressUpdate:
    """
    Progress of an ingestion run.

    ``total_chunks`` is an online estimate that is refined as files are
    processed, not an exact count.

    Attributes:
        current_chunk: Chunks handled so far, including failed ones
        total_chunks: Estimated chunks in the whole book
        percent: Completion percentage (0 to 100)
        current_file: Markdown file being processed
        chunk_index: Index of the chunk within that file
        chapter_titles: Chapter titles mapped to that file
    """

    current_chunk: int
    total_chunks: int
    percent: float
    current_file: str
    chunk_index: int
    chapter_titles: list[str] = field(default_factory=list)

    @classmethod
    def estimate(
        cls,
        file_index: int,
        total_files: int,
        chunk_index: int,
        chunks_in_file: int,
        chunks_before_file: int,
        current_file: str,
        chapter_titles: list[str] | None = None,
    ) -> "ProgressUpdate":
        """
        Build an update, extrapolating the total from files seen so far.

        Args:
            file_index: 0-based index of the current file
            total_files: Number of files in the run
            chunk_index: 0-based index of the chunk within the current file
            chunks_in_file: Chunks produced for the current file
            chunks_before_file: Chunks produced by earlier files
            current_file: Current file path
            chapter_titles: Titles for the current file
        """
        current = chunks_before_file + chunk_index + 1
        if file_index == 0:
            per_file = chunks_in_file
        else:
            per_file = (chunks_before_file + chunks_in_file) / (file_index + 1)
        files_remaining = max(total_files - file_index - 1, 0)
        total = chunks_before_file + chunks_in_file + round(per_file * files_remaining)

        file_fraction = (chunk_index + 1) / chunks_in_file if chunks_in_file else 1.0
        percent = (file_index + file_fraction) / total_files * 100 if total_files else 100.0

        return cls(
            current_chunk=current,
            total_chunks=max(total, current),
            percent=min(percent, 100.0),
            current_file=current_file,
            chunk_index=chunk_index,
            chapter_titles=list(chapter_titles or []),
        )


ProgressCallback = Callable[[ProgressUpdate], None]


class ProgressSink(Protocol):
    """Destination for progress updates. ``send`` must return promptly."""

    def send(self, update: ProgressUpdate) -> None:
        ...


class CallbackProgressSink:
    """
    Calls a user-provided function with every update.

    Exceptions from the callback are logged and dropped so a broken
    progress display cannot abort ingestion.

    Example:
        >>> sink = CallbackProgressSink(lambda p: print(f"{p.percent:.0f}%"))
    """

    def __init__(self, callback: ProgressCallback):
        self.callback = callback

    def send(self, update: ProgressUpdate) -> None:
        try:
            self.callback(update)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")


class QueueProgressSink:
    """
    Puts updates on a bounded asyncio queue without waiting.

    When the queue is full the update is dropped and counted in ``dropped``.
    """

    def __init__(self, queue: asyncio.Queue):
        self.queue = queue
        self.dropped = 0

    def send(self, update: ProgressUpdate) -> None:
        try:
            self.queue.put_nowait(update)
        except asyncio.QueueFull:
            self.dropped += 1


class LoggingProgressSink:
    """Logs each update at DEBUG level."""

    def send(self, update: ProgressUpdate) -> None:
        logger.debug(
            f"{update.current_file} chunk {update.chunk_index}: "
            f"{update.current_chunk}/{update.total_chunks} ({update.percent:.1f}%)"
        )
