"""Tests for building components from Settings."""

import pytest
from loguru import logger

from bookrag.config.factory import ComponentFactory
from bookrag.config.settings import Settings
from bookrag.embedder.http import HttpEmbeddingClient, WireFormat
from tests.utils.fakes import DictConverter, FakeEmbedder, StaticBookReader, StaticChapterIndex, WordTokenizer


@pytest.fixture
def settings():
    return Settings(
        EMBEDDINGS_URL="http://gpu-box:11434/api/embed",
        EMBEDDING_MODEL="nomic-embed-text",
        EMBEDDING_API_KEY="secret",
        EMBEDDING_TIMEOUT=5.0,
        MAX_EMBED_TOKENS=256,
        EMBED_MAX_ATTEMPTS=5,
        LOG_LEVEL="ERROR",
    )


def _collaborators():
    return {
        "reader": StaticBookReader(),
        "converter": DictConverter({}),
        "chapter_index": StaticChapterIndex([]),
    }


@pytest.mark.unit
class TestEmbedderFromSettings:
    @pytest.mark.asyncio
    async def test_fields_come_from_settings(self, settings):
        tokenizer = WordTokenizer()
        client = HttpEmbeddingClient.from_settings(settings, tokenizer=tokenizer)
        try:
            assert client.endpoint == "http://gpu-box:11434/api/embed"
            assert client.model == "nomic-embed-text"
            assert client.api_key == "secret"
            assert client.timeout == 5.0
            assert client.max_input_tokens == 256
            assert client.wire_format is WireFormat.OLLAMA
            assert client.tokenizer is tokenizer
        finally:
            await client.aclose()


@pytest.mark.unit
class TestComponentFactory:
    def test_pipeline_uses_settings(self, settings):
        tokenizer = WordTokenizer()
        embedder = FakeEmbedder()

        pipeline = ComponentFactory.create_pipeline(
            settings, embedder=embedder, tokenizer=tokenizer, **_collaborators()
        )

        assert pipeline.settings is settings
        assert pipeline.embedder is embedder
        assert pipeline.chunker.tokenizer is tokenizer
        assert pipeline.retry_config.max_attempts == 5

    @pytest.mark.asyncio
    async def test_pipeline_builds_http_embedder_sharing_tokenizer(self, settings):
        tokenizer = WordTokenizer()

        pipeline = ComponentFactory.create_pipeline(settings, tokenizer=tokenizer, **_collaborators())
        try:
            assert isinstance(pipeline.embedder, HttpEmbeddingClient)
            assert pipeline.embedder.model == "nomic-embed-text"
            assert pipeline.embedder.tokenizer is tokenizer
            assert pipeline.chunker.tokenizer is tokenizer
        finally:
            await pipeline.embedder.aclose()

    def test_setup_logging_uses_log_level(self, settings):
        messages: list[str] = []
        handler_id = ComponentFactory.setup_logging(settings, sink=messages.append)
        try:
            logger.warning("filtered out")
            logger.error("kept")
        finally:
            logger.remove(handler_id)

        assert len(messages) == 1
        assert "kept" in messages[0]
