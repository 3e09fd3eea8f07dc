"""
Ingestion Pipeline Module.

Turns one book directory into a searchable store:

    Validate -> StructuralConvert -> LocateChapterIndex -> GroupFiles
    -> InitializeDestination -> per file: Read -> Chunk -> Embed -> Flush
    -> Complete

Only the setup stages can abort a run. Once files are being ingested,
unreadable files, failed embeddings and failed batch inserts are counted
in ``ErrorStats`` and the run carries on. Embedding calls that fail with a
retryable error are retried with backoff first.
"""

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from loguru import logger

from bookrag.config.settings import Settings
from bookrag.embedder.base import BaseEmbedder
from bookrag.entities.chapter import BookMetadata, ChapterEntry, FileGroup
from bookrag.entities.chunk import DocumentChunk
from bookrag.entities.report import ErrorStats, ProcessReport
from bookrag.errors import BookRAGError, IngestionError, StoreError
from bookrag.pipeline.collaborators import BookReader, ChapterIndex, StructuralConverter
from bookrag.pipeline.progress import ProgressSink, ProgressUpdate
from bookrag.retrieval.bm25 import BM25Scorer
from bookrag.store.book_store import BookStore
from bookrag.text.base import BaseTextSplitter
from bookrag.text.chunker import MarkdownChunker
from bookrag.text.tokenizer import TextTokenizer
from bookrag.utils.retry import retry_async


class IngestionStage(StrEnum):
    VALIDATE = "validate"
    STRUCTURAL_CONVERT = "structural_convert"
    LOCATE_CHAPTER_INDEX = "locate_chapter_index"
    GROUP_FILES = "group_files"
    INITIALIZE_DESTINATION = "initialize_destination"
    INGEST_FILES = "ingest_files"
    COMPLETE = "complete"


def group_chapter_entries(entries: list[ChapterEntry]) -> list[FileGroup]:
    """Group chapter entries by markdown file, in reading order.

    Files are ordered by their smallest play order, then by path.
    """
    groups: dict[str, FileGroup] = {}
    for entry in entries:
        if not entry.md_src:
            continue
        groups.setdefault(entry.md_src, FileGroup(md_src=entry.md_src)).entries.append(entry)
    return sorted(groups.values(), key=lambda g: (g.file_order_in_book, g.md_src))


@dataclass
class IngestionState:
    """Running totals threaded through the per-file loop."""

    errors: ErrorStats = field(default_factory=ErrorStats)
    warnings: list[str] = field(default_factory=list)
    next_global_index: int = 0
    inserted_chunks: int = 0
    chunks_seen: int = 0


class IngestionPipeline:
    """
    Ingestion pipeline for one book directory.

    Expected layout of ``book_dir``::

        book_dir/
            book.epub          # source (Settings.SOURCE_FILENAME)
            mdbook/            # written by the converter (Settings.CONVERTED_DIRNAME)
            vectors.duckdb     # the store, rebuilt on every run (Settings.STORE_FILENAME)
    """

    def __init__(
        self,
        reader: BookReader,
        converter: StructuralConverter,
        chapter_index: ChapterIndex,
        embedder: BaseEmbedder,
        settings: Settings | None = None,
        chunker: BaseTextSplitter | None = None,
        progress: ProgressSink | None = None,
    ):
        """
        Initialize the ingestion pipeline.

        Args:
            reader: Supplies book title and author
            converter: Converts the source into markdown files
            chapter_index: Locates and parses the table of contents
            embedder: Embedding client used for every chunk
            settings: Chunk sizes, batch size, retry policy and file names
            chunker: Text splitter (markdown chunker by default)
            progress: Optional sink for per-chunk progress updates
        """
        self.reader = reader
        self.converter = converter
        self.chapter_index = chapter_index
        self.embedder = embedder
        self.settings = settings or Settings()
        self.chunker = chunker or MarkdownChunker(TextTokenizer())
        self.progress = progress
        self.retry_config = self.settings.retry_config()

    async def run(self, book_dir: Path | str) -> ProcessReport:
        """
        Ingest a book directory into a fresh store.

        Returns:
            Report with the number of chunks stored and the errors seen

        Raises:
            IngestionError: If a setup stage fails; ``stage`` names it
        """
        book_dir = Path(book_dir)
        settings = self.settings

        source_path = book_dir / settings.SOURCE_FILENAME
        metadata = self._validate(source_path)

        converted_dir = book_dir / settings.CONVERTED_DIRNAME
        self._convert(source_path, converted_dir)

        entries = self._load_chapter_index(converted_dir)
        groups = group_chapter_entries(entries)
        logger.info(
            f"[Ingestion] {IngestionStage.GROUP_FILES}: {len(entries)} chapter entries map to {len(groups)} files"
        )

        db_path = settings.store_path(book_dir)
        dimension = await self._detect_dimension()
        store = self._initialize_store(db_path, dimension)

        state = IngestionState()
        logger.info(f"[Ingestion] {IngestionStage.INGEST_FILES}: {len(groups)} files")
        try:
            for file_index, group in enumerate(groups):
                await self._ingest_file(
                    store, converted_dir, group, file_index, len(groups), metadata, state
                )
            self._refresh_corpus_stats(store, state)
        finally:
            store.close()

        if state.errors.has_errors:
            state.warnings.append(f"Ingestion finished with errors: {state.errors.summary()}")
            for message in state.warnings:
                logger.warning(f"[Ingestion] {message}")

        logger.info(
            f"[Ingestion] {IngestionStage.COMPLETE}: {state.inserted_chunks} chunks stored "
            f"for '{metadata.title}' in {db_path}"
        )
        return ProcessReport(
            db_path=str(db_path),
            book_title=metadata.title,
            book_author=metadata.author,
            total_chunks=state.inserted_chunks,
            vector_dimension=dimension,
            errors=state.errors,
            warnings=state.warnings,
        )

    # ------------------------------------------------------------------
    # Setup stages (fatal on failure)
    # ------------------------------------------------------------------

    def _validate(self, source_path: Path) -> BookMetadata:
        stage = IngestionStage.VALIDATE
        logger.info(f"[Ingestion] {stage}: {source_path}")
        if not source_path.is_file():
            raise IngestionError(f"Source file not found: {source_path}", stage=stage, path=str(source_path))
        try:
            return self.reader.read_metadata(source_path)
        except Exception as e:
            raise IngestionError(
                f"Failed to read book metadata from {source_path}",
                stage=stage,
                path=str(source_path),
                original_error=e,
            ) from e

    def _convert(self, source_path: Path, converted_dir: Path) -> None:
        stage = IngestionStage.STRUCTURAL_CONVERT
        logger.info(f"[Ingestion] {stage}: {source_path} -> {converted_dir}")
        try:
            self.converter.convert(source_path, converted_dir)
        except Exception as e:
            raise IngestionError(
                f"Failed to convert {source_path} to markdown",
                stage=stage,
                path=str(source_path),
                original_error=e,
            ) from e

    def _load_chapter_index(self, converted_dir: Path) -> list[ChapterEntry]:
        stage = IngestionStage.LOCATE_CHAPTER_INDEX
        index_path = self.chapter_index.locate(converted_dir)
        if index_path is None:
            raise IngestionError(
                f"No chapter index found under {converted_dir}", stage=stage, path=str(converted_dir)
            )
        logger.info(f"[Ingestion] {stage}: {index_path}")
        try:
            return self.chapter_index.parse(index_path)
        except Exception as e:
            raise IngestionError(
                f"Failed to parse chapter index {index_path}",
                stage=stage,
                path=str(index_path),
                original_error=e,
            ) from e

    async def _detect_dimension(self) -> int:
        try:
            return await self.embedder.detect_dimension()
        except BookRAGError as e:
            raise IngestionError(
                "Failed to detect embedding dimension",
                stage=IngestionStage.INITIALIZE_DESTINATION,
                original_error=e,
            ) from e

    def _initialize_store(self, db_path: Path, dimension: int) -> BookStore:
        stage = IngestionStage.INITIALIZE_DESTINATION
        logger.info(f"[Ingestion] {stage}: {db_path} (dim={dimension})")
        try:
            for stale in (db_path, db_path.with_name(db_path.name + ".wal")):
                if stale.exists():
                    stale.unlink()
                    logger.debug(f"Removed previous store file {stale}")
            return BookStore.create(db_path, dimension, backend=self.settings.VECTOR_BACKEND)
        except (OSError, StoreError) as e:
            raise IngestionError(
                f"Failed to create store at {db_path}", stage=stage, path=str(db_path), original_error=e
            ) from e

    # ------------------------------------------------------------------
    # Per-file ingestion (recoverable failures)
    # ------------------------------------------------------------------

    async def _ingest_file(
        self,
        store: BookStore,
        converted_dir: Path,
        group: FileGroup,
        file_index: int,
        total_files: int,
        metadata: BookMetadata,
        state: IngestionState,
    ) -> None:
        md_path = (converted_dir / group.md_src).resolve()
        if not md_path.exists():
            message = f"Markdown file not found, skipping: {md_path}"
            logger.warning(f"[Ingestion] {message}")
            state.warnings.append(message)
            return

        try:
            content = await asyncio.to_thread(md_path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"[Ingestion] Failed to read {md_path}: {e}")
            state.errors.record_file_error(str(md_path), e)
            return

        if not content.strip():
            logger.debug(f"Skipping empty file {md_path}")
            return

        pieces = self.chunker.chunk(content, self.settings.CHUNK_MIN_TOKENS, self.settings.CHUNK_MAX_TOKENS)
        if not pieces:
            logger.debug(f"No chunks produced for {md_path}")
            return

        titles = group.related_chapter_titles
        chapter_titles = [e.title for e in sorted(group.entries, key=lambda e: e.play_order)]
        chunks_before_file = state.chunks_seen
        batch: list[DocumentChunk] = []

        logger.info(f"[Ingestion] File {file_index + 1}/{total_files}: {group.md_src} ({len(pieces)} chunks)")

        for chunk_index, text in enumerate(pieces):
            try:
                embedding = await retry_async(self.embedder.embed, text, config=self.retry_config)
            except BookRAGError as e:
                logger.warning(f"[Ingestion] Embedding failed for {md_path} chunk {chunk_index}: {e}")
                state.errors.record_chunk_error(str(md_path), chunk_index, e)
            else:
                batch.append(
                    DocumentChunk(
                        book_title=metadata.title,
                        book_author=metadata.author,
                        md_file_path=str(md_path),
                        file_order_in_book=group.file_order_in_book,
                        related_chapter_titles=titles,
                        chunk_text=text,
                        chunk_order_in_file=chunk_index,
                        total_chunks_in_file=len(pieces),
                        global_chunk_index=state.next_global_index,
                        embedding=embedding,
                    )
                )
                state.next_global_index += 1

            if len(batch) >= self.settings.BATCH_SIZE:
                await self._flush(store, batch, state)
                batch = []

            state.chunks_seen += 1
            if self.progress is not None:
                self.progress.send(
                    ProgressUpdate.estimate(
                        file_index=file_index,
                        total_files=total_files,
                        chunk_index=chunk_index,
                        chunks_in_file=len(pieces),
                        chunks_before_file=chunks_before_file,
                        current_file=str(md_path),
                        chapter_titles=chapter_titles,
                    )
                )

        if batch:
            await self._flush(store, batch, state)

    async def _flush(self, store: BookStore, batch: list[DocumentChunk], state: IngestionState) -> None:
        try:
            ids = await asyncio.to_thread(store.insert_batch, batch)
        except StoreError as e:
            logger.error(f"[Ingestion] Failed to insert batch of {len(batch)} chunks: {e}")
            state.errors.record_batch_error(len(batch), e)
            return
        state.inserted_chunks += len(ids)

    def _refresh_corpus_stats(self, store: BookStore, state: IngestionState) -> None:
        try:
            BM25Scorer(store).corpus_stats(refresh=True)
        except StoreError as e:
            message = f"Failed to cache corpus statistics, they will be computed at search time: {e}"
            logger.warning(f"[Ingestion] {message}")
            state.warnings.append(message)
