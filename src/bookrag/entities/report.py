"""Ingestion outcome entities."""

from pydantic import BaseModel, Field


class ErrorStats(BaseModel):
    """Recoverable failures accumulated over one ingestion run."""

    failed_files: int = 0
    failed_chunks: int = 0
    failed_batches: int = 0
    messages: list[str] = Field(default_factory=list)

    def record_file_error(self, path: str, error: Exception | str) -> None:
        self.failed_files += 1
        self.messages.append(f"{path}: {error}")

    def record_chunk_error(self, path: str, chunk_index: int, error: Exception | str) -> None:
        self.failed_chunks += 1
        self.messages.append(f"{path} [chunk {chunk_index}]: {error}")

    def record_batch_error(self, batch_size: int, error: Exception | str) -> None:
        self.failed_batches += 1
        self.messages.append(f"batch of {batch_size} chunks: {error}")

    @property
    def has_errors(self) -> bool:
        return bool(self.failed_files or self.failed_chunks or self.failed_batches)

    def summary(self) -> str:
        return (
            f"{self.failed_files} failed files, {self.failed_chunks} failed chunks, "
            f"{self.failed_batches} failed batches"
        )


class ProcessReport(BaseModel):
    """Result of a completed ingestion run."""

    db_path: str
    book_title: str
    book_author: str
    total_chunks: int
    vector_dimension: int
    errors: ErrorStats = Field(default_factory=ErrorStats)
    warnings: list[str] = Field(default_factory=list)
