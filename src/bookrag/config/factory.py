"""Builds configured components from ``Settings``."""

from loguru import logger

from bookrag.config.settings import Settings
from bookrag.embedder.base import BaseEmbedder
from bookrag.embedder.http import HttpEmbeddingClient
from bookrag.pipeline.collaborators import BookReader, ChapterIndex, StructuralConverter
from bookrag.pipeline.ingestion import IngestionPipeline
from bookrag.pipeline.progress import ProgressSink
from bookrag.text.chunker import MarkdownChunker
from bookrag.text.tokenizer import TextTokenizer, Tokenizer
from bookrag.utils.logging import configure_logging


class ComponentFactory:
    """Creates the embedder, pipeline and logging setup for one ``Settings`` value.

    The embedding client and the chunker share one tokenizer, so token
    counts agree between chunking and input truncation.
    """

    @staticmethod
    def setup_logging(settings: Settings, sink=None) -> int:
        """Install the log sink at ``settings.LOG_LEVEL``."""
        return configure_logging(settings.LOG_LEVEL, sink=sink)

    @staticmethod
    def create_embedder(settings: Settings, tokenizer: Tokenizer | None = None) -> HttpEmbeddingClient:
        logger.info(f"Creating embedder: {settings.EMBEDDING_MODEL} at {settings.EMBEDDINGS_URL}")
        return HttpEmbeddingClient.from_settings(settings, tokenizer=tokenizer)

    @staticmethod
    def create_pipeline(
        settings: Settings,
        reader: BookReader,
        converter: StructuralConverter,
        chapter_index: ChapterIndex,
        embedder: BaseEmbedder | None = None,
        tokenizer: Tokenizer | None = None,
        progress: ProgressSink | None = None,
    ) -> IngestionPipeline:
        """Create an ingestion pipeline.

        Without an ``embedder`` an ``HttpEmbeddingClient`` is built from
        the settings; without a ``tokenizer`` the default tiktoken encoding
        is loaded.
        """
        tokenizer = tokenizer or TextTokenizer()
        if embedder is None:
            embedder = ComponentFactory.create_embedder(settings, tokenizer)
        logger.info(
            f"Creating ingestion pipeline: chunks {settings.CHUNK_MIN_TOKENS}-{settings.CHUNK_MAX_TOKENS} tokens, "
            f"batch size {settings.BATCH_SIZE}"
        )
        return IngestionPipeline(
            reader=reader,
            converter=converter,
            chapter_index=chapter_index,
            embedder=embedder,
            settings=settings,
            chunker=MarkdownChunker(tokenizer),
            progress=progress,
        )
