"""End-to-end ingestion tests with offline collaborators."""

from pathlib import Path

import pytest

from bookrag.config.settings import Settings
from bookrag.errors import IngestionError
from bookrag.pipeline.ingestion import IngestionPipeline, IngestionStage
from bookrag.pipeline.progress import CallbackProgressSink
from bookrag.retrieval.service import search_book
from bookrag.store.book_store import BookStore
from bookrag.text.chunker import MarkdownChunker
from tests.utils.builders import chapter_entry
from tests.utils.fakes import (
    DictConverter,
    FakeEmbedder,
    StaticBookReader,
    StaticChapterIndex,
    WordTokenizer,
)

MIN_TOKENS = 5
MAX_TOKENS = 40


def _chapter(name: str, lines: int = 12, marker: str = "") -> str:
    body = [f"# Chapter {name}"]
    body += [f"Sentence {i} in chapter {name} keeps going{marker}." for i in range(lines)]
    return "\n".join(body)


BOOK_FILES = {
    "ch1.md": _chapter("one"),
    "ch2.md": _chapter("two", marker=" POISON"),
    "ch3.md": _chapter("three"),
}

BOOK_ENTRIES = [
    chapter_entry(1, "Chapter One", "ch1.md"),
    chapter_entry(2, "Chapter Two", "ch2.md"),
    chapter_entry(3, "Chapter Three", "ch3.md"),
    chapter_entry(4, "Coda", "ch3.md", depth=1),
]


@pytest.fixture
def book_dir(tmp_path) -> Path:
    directory = tmp_path / "moby"
    directory.mkdir()
    (directory / "book.epub").write_bytes(b"PK\x03\x04 packaged book")
    return directory


def _settings(**overrides) -> Settings:
    values = {
        "CHUNK_MIN_TOKENS": MIN_TOKENS,
        "CHUNK_MAX_TOKENS": MAX_TOKENS,
        "BATCH_SIZE": 3,
        "VECTOR_BACKEND": "fallback",
        "EMBED_RETRY_DELAY": 0.0,
        "EMBED_RETRY_MAX_DELAY": 0.0,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return _settings()


def _expected_chunks(content: str) -> list[str]:
    return MarkdownChunker(WordTokenizer()).chunk(content, MIN_TOKENS, MAX_TOKENS)


def _pipeline(settings, files=None, entries=None, embedder=None, progress=None, **overrides):
    return IngestionPipeline(
        reader=overrides.get("reader", StaticBookReader("Moby Dick", "Herman Melville")),
        converter=overrides.get("converter", DictConverter(BOOK_FILES if files is None else files)),
        chapter_index=overrides.get("chapter_index", StaticChapterIndex(BOOK_ENTRIES if entries is None else entries)),
        embedder=embedder or FakeEmbedder(dimension=8, fail_when=lambda text: "POISON" in text),
        settings=settings,
        chunker=MarkdownChunker(WordTokenizer()),
        progress=progress,
    )


@pytest.mark.integration
class TestIngestionPipeline:
    @pytest.mark.asyncio
    async def test_failed_embeddings_leave_contiguous_indices(self, book_dir, settings):
        expected = {name: _expected_chunks(content) for name, content in BOOK_FILES.items()}
        assert all(len(chunks) > 1 for chunks in expected.values())

        report = await _pipeline(settings).run(book_dir)

        stored_total = len(expected["ch1.md"]) + len(expected["ch3.md"])
        assert report.book_title == "Moby Dick"
        assert report.book_author == "Herman Melville"
        assert report.vector_dimension == 8
        assert report.total_chunks == stored_total
        assert report.errors.failed_chunks == len(expected["ch2.md"])
        assert report.errors.failed_files == 0
        assert report.errors.failed_batches == 0
        assert any("finished with errors" in w for w in report.warnings)

        with BookStore.open_existing(report.db_path) as store:
            chunks = store.chunks_in_range(0, 10_000)
            assert [c.global_chunk_index for c in chunks] == list(range(stored_total))
            assert [Path(c.md_file_path).name for c in chunks] == (
                ["ch1.md"] * len(expected["ch1.md"]) + ["ch3.md"] * len(expected["ch3.md"])
            )
            assert [c.chunk_text for c in chunks] == expected["ch1.md"] + expected["ch3.md"]

            last = chunks[-1]
            assert last.related_chapter_titles == "Chapter Three|Coda"
            assert last.file_order_in_book == 3
            assert last.total_chunks_in_file == len(expected["ch3.md"])
            assert last.chunk_order_in_file == len(expected["ch3.md"]) - 1

            assert store.cached_corpus_stats().total_docs == stored_total

    @pytest.mark.asyncio
    async def test_progress_is_reported_for_every_chunk(self, book_dir, settings):
        updates = []
        await _pipeline(settings, progress=CallbackProgressSink(updates.append)).run(book_dir)

        total = sum(len(_expected_chunks(content)) for content in BOOK_FILES.values())
        assert [u.current_chunk for u in updates] == list(range(1, total + 1))
        assert updates[-1].percent == pytest.approx(100.0)
        assert updates[-1].total_chunks == total
        assert updates[-1].chapter_titles == ["Chapter Three", "Coda"]
        assert all(0.0 < u.percent <= 100.0 for u in updates)

    @pytest.mark.asyncio
    async def test_ingested_book_is_searchable(self, book_dir, settings):
        embedder = FakeEmbedder(dimension=8)
        await _pipeline(settings, embedder=embedder).run(book_dir)

        results = await search_book(book_dir, "three", limit=3, embedder=embedder)

        assert 0 < len(results) <= 3
        assert "three" in results[0].chunk_text
        assert embedder.calls[-1] == "three"

    @pytest.mark.asyncio
    async def test_failed_batch_is_counted_and_skipped(self, book_dir):
        settings = _settings(BATCH_SIZE=100)
        files = {"ch1.md": _chapter("one"), "ch2.md": _chapter("two", marker=" BADDIM")}
        entries = [chapter_entry(1, "Chapter One", "ch1.md"), chapter_entry(2, "Chapter Two", "ch2.md")]
        embedder = FakeEmbedder(dimension=8, wrong_dimension_when=lambda text: "BADDIM" in text)

        report = await _pipeline(settings, files=files, entries=entries, embedder=embedder).run(book_dir)

        first_file = len(_expected_chunks(files["ch1.md"]))
        assert report.errors.failed_batches == 1
        assert report.errors.failed_chunks == 0
        assert report.total_chunks == first_file
        with BookStore.open_existing(report.db_path) as store:
            assert store.count_chunks() == first_file

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content",
        [b"# Broken\n\xff\xfe not utf-8 \xc3\x28", None],
        ids=["invalid-utf8", "directory"],
    )
    async def test_unreadable_file_is_recorded_and_skipped(self, book_dir, settings, content):
        files = {"ch1.md": _chapter("one"), "bad.md": content, "ch3.md": _chapter("three")}
        entries = [
            chapter_entry(1, "Chapter One", "ch1.md"),
            chapter_entry(2, "Broken", "bad.md"),
            chapter_entry(3, "Chapter Three", "ch3.md"),
        ]

        report = await _pipeline(settings, files=files, entries=entries).run(book_dir)

        first, third = len(_expected_chunks(files["ch1.md"])), len(_expected_chunks(files["ch3.md"]))
        assert report.errors.failed_files == 1
        assert report.errors.failed_chunks == 0
        assert "bad.md" in report.errors.messages[0]
        assert report.total_chunks == first + third
        with BookStore.open_existing(report.db_path) as store:
            chunks = store.chunks_in_range(0, 10_000)
            assert [c.global_chunk_index for c in chunks] == list(range(first + third))
            assert [Path(c.md_file_path).name for c in chunks] == ["ch1.md"] * first + ["ch3.md"] * third

    @pytest.mark.asyncio
    async def test_transient_embedding_failure_is_retried(self, book_dir, settings):
        embedder = FakeEmbedder(dimension=8, fail_first=1)
        total = sum(len(_expected_chunks(content)) for content in BOOK_FILES.values())

        report = await _pipeline(settings, embedder=embedder).run(book_dir)

        assert report.errors.failed_chunks == 0
        assert report.total_chunks == total
        assert len(embedder.calls) == total + 1
        assert embedder.calls[0] == embedder.calls[1]

    @pytest.mark.asyncio
    async def test_chunk_fails_once_retries_are_exhausted(self, book_dir):
        embedder = FakeEmbedder(dimension=8, fail_first=2)
        total = sum(len(_expected_chunks(content)) for content in BOOK_FILES.values())

        report = await _pipeline(_settings(EMBED_MAX_ATTEMPTS=2), embedder=embedder).run(book_dir)

        assert report.errors.failed_chunks == 1
        assert report.total_chunks == total - 1
        assert "HTTP 503" in report.errors.messages[0]

    @pytest.mark.asyncio
    async def test_missing_and_empty_files_are_skipped(self, book_dir, settings):
        files = {"ch1.md": _chapter("one"), "blank.md": "   \n\n"}
        entries = [
            chapter_entry(1, "Chapter One", "ch1.md"),
            chapter_entry(2, "Lost", "missing.md"),
            chapter_entry(3, "Blank", "blank.md"),
        ]

        report = await _pipeline(settings, files=files, entries=entries).run(book_dir)

        assert report.total_chunks == len(_expected_chunks(files["ch1.md"]))
        assert not report.errors.has_errors
        assert len(report.warnings) == 1
        assert "missing.md" in report.warnings[0]

    @pytest.mark.asyncio
    async def test_empty_chapter_index_produces_empty_store(self, book_dir, settings):
        report = await _pipeline(settings, entries=[]).run(book_dir)

        assert report.total_chunks == 0
        assert Path(report.db_path).exists()

    @pytest.mark.asyncio
    async def test_rerun_replaces_previous_store(self, book_dir, settings):
        first = await _pipeline(settings).run(book_dir)
        second = await _pipeline(settings).run(book_dir)

        assert second.total_chunks == first.total_chunks
        assert second.errors.failed_batches == 0
        with BookStore.open_existing(second.db_path) as store:
            assert store.count_chunks() == second.total_chunks


@pytest.mark.integration
class TestIngestionFatalStages:
    @pytest.mark.asyncio
    async def test_missing_source(self, tmp_path, settings):
        with pytest.raises(IngestionError) as exc_info:
            await _pipeline(settings).run(tmp_path)
        assert exc_info.value.stage == IngestionStage.VALIDATE

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides,stage",
        [
            ({"reader": StaticBookReader(error=ValueError("not a zip file"))}, IngestionStage.VALIDATE),
            ({"converter": DictConverter({}, error=RuntimeError("converter crashed"))}, IngestionStage.STRUCTURAL_CONVERT),
            ({"chapter_index": StaticChapterIndex([], filename=None)}, IngestionStage.LOCATE_CHAPTER_INDEX),
            (
                {"chapter_index": StaticChapterIndex([], error=ValueError("malformed index"))},
                IngestionStage.LOCATE_CHAPTER_INDEX,
            ),
        ],
        ids=["unreadable-metadata", "conversion", "index-missing", "index-unparseable"],
    )
    async def test_setup_failures_abort(self, book_dir, settings, overrides, stage):
        with pytest.raises(IngestionError) as exc_info:
            await _pipeline(settings, **overrides).run(book_dir)

        assert exc_info.value.stage == stage
        assert not (book_dir / "vectors.duckdb").exists()

    @pytest.mark.asyncio
    async def test_dimension_detection_failure(self, book_dir, settings):
        with pytest.raises(IngestionError) as exc_info:
            await _pipeline(settings, embedder=FakeEmbedder(fail_detection=True)).run(book_dir)

        assert exc_info.value.stage == IngestionStage.INITIALIZE_DESTINATION
        assert exc_info.value.original_error is not None
