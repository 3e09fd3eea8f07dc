"""
Book ingestion.

Example:
    >>> from bookrag.pipeline import IngestionPipeline, CallbackProgressSink
    >>> pipeline = IngestionPipeline(
    ...     reader, converter, chapter_index, embedder,
    ...     progress=CallbackProgressSink(lambda p: print(f"{p.percent:.0f}%")),
    ... )
    >>> report = await pipeline.run("books/moby")
"""

from bookrag.pipeline.collaborators import BookReader, ChapterIndex, StructuralConverter
from bookrag.pipeline.ingestion import (
    IngestionPipeline,
    IngestionStage,
    IngestionState,
    group_chapter_entries,
)
from bookrag.pipeline.progress import (
    CallbackProgressSink,
    LoggingProgressSink,
    ProgressCallback,
    ProgressSink,
    ProgressUpdate,
    QueueProgressSink,
)

__all__ = [
    "BookReader",
    "CallbackProgressSink",
    "ChapterIndex",
    "IngestionPipeline",
    "IngestionStage",
    "IngestionState",
    "LoggingProgressSink",
    "ProgressCallback",
    "ProgressSink",
    "ProgressUpdate",
    "QueueProgressSink",
    "StructuralConverter",
    "group_chapter_entries",
]
