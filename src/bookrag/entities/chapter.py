"""Chapter structure entities supplied by the chapter index parser."""

from pydantic import BaseModel, Field


class BookMetadata(BaseModel):
    title: str
    author: str = "Unknown"


class ChapterEntry(BaseModel):
    """
    One flattened table-of-contents entry.

    ``md_src`` is the markdown file the entry points to, relative to the
    converted book directory, with any ``#anchor`` removed.
    """
    id: str
    play_order: int
    title: str
    md_src: str
    depth: int = 0
    anchor: str | None = None
    hierarchy_path: list[str] = Field(default_factory=list)


class FileGroup(BaseModel):
    """All chapter entries that point at the same markdown file."""

    md_src: str
    entries: list[ChapterEntry] = Field(default_factory=list)

    @property
    def related_chapter_titles(self) -> str:
        ordered = sorted(self.entries, key=lambda e: e.play_order)
        return "|".join(e.title for e in ordered)

    @property
    def file_order_in_book(self) -> int:
        return min((e.play_order for e in self.entries), default=0)
