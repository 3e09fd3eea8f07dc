"""Chunk and search result entities."""

from pydantic import BaseModel, Field


class DocumentChunk(BaseModel):
    """
    A contiguous slice of one chapter file's text.

    Chunks are produced by the ingestion pipeline and never updated after
    they are persisted. ``embedding`` is empty when a chunk is read back
    for context only.
    """
    id: int | None = None

    book_title: str
    book_author: str
    md_file_path: str
    file_order_in_book: int = Field(default=0, ge=0)
    # Chapter titles mapped to the file, in ascending play order, joined by "|"
    related_chapter_titles: str = ""

    chunk_text: str
    chunk_order_in_file: int = Field(default=0, ge=0)
    total_chunks_in_file: int = Field(default=0, ge=0)
    global_chunk_index: int = Field(default=0, ge=0)

    embedding: list[float] = Field(default_factory=list)

    @property
    def chapter_titles(self) -> list[str]:
        return [t for t in self.related_chapter_titles.split("|") if t]


class SearchResult(BaseModel):
    """A chunk's descriptive fields plus a relevance score in [0, 1].

    The score is a cosine similarity, a normalized BM25 score or a fused
    score depending on which component produced the result.
    """

    chunk_id: int
    book_title: str
    book_author: str
    md_file_path: str
    file_order_in_book: int
    related_chapter_titles: str
    chunk_text: str
    chunk_order_in_file: int
    total_chunks_in_file: int
    global_chunk_index: int
    similarity_score: float = Field(..., ge=0.0, le=1.0)

    model_config = {
        "frozen": True,
    }

    @classmethod
    def from_chunk(cls, chunk: DocumentChunk, score: float) -> "SearchResult":
        if chunk.id is None:
            raise ValueError("Only persisted chunks can become search results")
        return cls(
            chunk_id=chunk.id,
            book_title=chunk.book_title,
            book_author=chunk.book_author,
            md_file_path=chunk.md_file_path,
            file_order_in_book=chunk.file_order_in_book,
            related_chapter_titles=chunk.related_chapter_titles,
            chunk_text=chunk.chunk_text,
            chunk_order_in_file=chunk.chunk_order_in_file,
            total_chunks_in_file=chunk.total_chunks_in_file,
            global_chunk_index=chunk.global_chunk_index,
            similarity_score=score,
        )

    def with_score(self, score: float) -> "SearchResult":
        return self.model_copy(update={"similarity_score": score})
