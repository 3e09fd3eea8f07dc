"""Interfaces for the book-format tooling the pipeline depends on.

Reading the packaged book, converting it into markdown files and parsing
its table of contents are done by external tools. The pipeline only
depends on these protocols.
"""

from pathlib import Path
from typing import Protocol

from bookrag.entities.chapter import BookMetadata, ChapterEntry


class BookReader(Protocol):
    def read_metadata(self, source_path: Path) -> BookMetadata:
        """Title and author of the packaged book."""
        ...


class StructuralConverter(Protocol):
    def convert(self, source_path: Path, output_dir: Path) -> None:
        """Write the book as a tree of markdown files under ``output_dir``."""
        ...


class ChapterIndex(Protocol):
    def locate(self, converted_dir: Path) -> Path | None:
        """Path of the chapter index inside the converted tree, if present."""
        ...

    def parse(self, index_path: Path) -> list[ChapterEntry]:
        """Flattened chapter entries in reading order."""
        ...
