"""Tests for RetrievalEngine context selection."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from lexguard.core.errors import CorpusUnavailableError, InvalidInputError
from lexguard.database.repositories.corpus_repository import CorpusStoreError
from lexguard.models.article import NO_CONTEXT_MARKER, RetrievalStrategy, TopicDomain, TopicInfo
from lexguard.rag.retrieval_engine import (
    RetrievalEngine,
    classify_topic,
    estimate_tokens,
    merge_ranked,
    select_within_budget,
    technical_block,
)
from lexguard.services.embedding.embedding_service import EmbeddingError


@pytest.fixture
def embedding_service() -> MagicMock:
    service = MagicMock()
    service.embed_text = AsyncMock(return_value=[0.1] * 384)
    return service


@pytest.mark.unit
class TestTopicClassification:
    @pytest.mark.parametrize("number", [1, 11, 16, 29, None])
    def test_legal_numbers(self, number):
        assert classify_topic(number) == TopicDomain.LEGAL

    @pytest.mark.parametrize("number", [17, 22, 28])
    def test_technical_numbers(self, number):
        assert classify_topic(number) == TopicDomain.TECHNICAL

    @pytest.mark.parametrize(
        "number,block",
        [(17, "admin_electronica"), (20, "admin_electronica"), (21, "informatica"),
         (28, "informatica"), (22, "ofimatica"), (27, "ofimatica")],
    )
    def test_technical_blocks(self, number, block):
        assert technical_block(number) == block


@pytest.mark.unit
class TestSelectionHelpers:
    def test_estimate_tokens_rounds_up(self):
        assert estimate_tokens(0) == 0
        assert estimate_tokens(1) == 1
        assert estimate_tokens(8) == 2
        assert estimate_tokens(9) == 3

    def test_merge_keeps_first_occurrence(self, factories):
        a, b, c = factories.article(), factories.article(), factories.article()

        merged = merge_ranked([a, b], [b, c], [a])

        assert [x.id for x in merged] == [a.id, b.id, c.id]

    def test_budget_stops_at_first_overflow(self, factories):
        """Given three articles where the second overflows, Then only the first is kept."""
        small = factories.article(full_text="x" * 50)
        large = factories.article(full_text="y" * 5000)
        tail = factories.article(full_text="z" * 10)
        budget = len(small.render()) + 100

        selected, chars = select_within_budget([small, large, tail], budget)

        assert selected == [small]
        assert chars == len(small.render())


@pytest.mark.unit
class TestBuildContext:
    """RetrievalEngine.build_context behaviour."""

    @pytest.mark.asyncio
    async def test_tagged_articles_only(self, mock_repository, topic, factories, embedding_service):
        """Given tagged rows and no query, When built, Then no vector search runs."""
        articles = [factories.article(article_number=str(n)) for n in (21, 22, 23)]
        mock_repository.get_topic = AsyncMock(return_value=topic)
        mock_repository.find_by_topic = AsyncMock(return_value=articles)
        engine = RetrievalEngine(mock_repository, embedding_service)

        context = await engine.build_context(topic.id)

        assert context.strategy == RetrievalStrategy.TAG_BASED
        assert context.articles == tuple(articles)
        assert context.domain == TopicDomain.LEGAL
        chars = sum(len(a.render()) for a in articles)
        assert context.estimated_tokens == estimate_tokens(chars)
        embedding_service.embed_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_query_adds_semantic_results(
        self, mock_repository, topic, factories, embedding_service
    ):
        tagged = [factories.article(article_number="21")]
        semantic = [factories.article(article_number="53"), tagged[0]]
        mock_repository.get_topic = AsyncMock(return_value=topic)
        mock_repository.find_by_topic = AsyncMock(return_value=tagged)
        mock_repository.similarity_search = AsyncMock(return_value=semantic)
        engine = RetrievalEngine(mock_repository, embedding_service)

        context = await engine.build_context(topic.id, query="plazo de alegaciones")

        assert context.strategy == RetrievalStrategy.HYBRID
        assert [a.article_number for a in context.articles] == ["21", "53"]
        embedding_service.embed_text.assert_awaited_once_with("plazo de alegaciones")

    @pytest.mark.asyncio
    async def test_no_tags_uses_semantic_search(
        self, mock_repository, topic, factories, embedding_service
    ):
        mock_repository.get_topic = AsyncMock(return_value=topic)
        mock_repository.similarity_search = AsyncMock(return_value=[factories.article()])
        engine = RetrievalEngine(mock_repository, embedding_service)

        context = await engine.build_context(topic.id)

        assert context.strategy == RetrievalStrategy.SEMANTIC
        embedding_service.embed_text.assert_awaited_once_with(topic.search_text)
        mock_repository.full_text_search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_embedding_failure_falls_back_to_full_text(
        self, mock_repository, topic, factories, embedding_service
    ):
        """Given the embedding model fails, When built, Then full-text search supplies the rows."""
        embedding_service.embed_text = AsyncMock(side_effect=EmbeddingError("model missing"))
        mock_repository.get_topic = AsyncMock(return_value=topic)
        mock_repository.full_text_search = AsyncMock(return_value=[factories.article()])
        engine = RetrievalEngine(mock_repository, embedding_service)

        context = await engine.build_context(topic.id)

        assert context.strategy == RetrievalStrategy.FALLBACK
        assert len(context.articles) == 1
        mock_repository.similarity_search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_context(self, mock_repository, topic, embedding_service):
        """Given nothing in the store, Then the context is empty and renders the marker."""
        mock_repository.get_topic = AsyncMock(return_value=topic)
        engine = RetrievalEngine(mock_repository, embedding_service)

        context = await engine.build_context(topic.id)

        assert context.is_empty
        assert context.strategy == RetrievalStrategy.FALLBACK
        assert context.estimated_tokens == 0
        assert context.render() == NO_CONTEXT_MARKER

    @pytest.mark.asyncio
    async def test_budget_is_respected(self, mock_repository, topic, factories):
        articles = [factories.article(full_text="a" * 600) for _ in range(5)]
        mock_repository.get_topic = AsyncMock(return_value=topic)
        mock_repository.find_by_topic = AsyncMock(return_value=articles)
        engine = RetrievalEngine(mock_repository, max_context_chars=2000)

        context = await engine.build_context(topic.id)

        rendered = sum(len(a.render()) for a in context.articles)
        assert rendered <= 2000
        assert 0 < len(context.articles) < 5
        assert context.articles == tuple(articles[: len(context.articles)])

    @pytest.mark.asyncio
    async def test_technical_topic_is_scoped_to_block(self, mock_repository, embedding_service):
        topic = TopicInfo(id=uuid.uuid4(), number=23, title="Procesadores de texto")
        mock_repository.get_topic = AsyncMock(return_value=topic)
        engine = RetrievalEngine(mock_repository, embedding_service)

        context = await engine.build_context(topic.id)

        assert context.domain == TopicDomain.TECHNICAL
        args, kwargs = mock_repository.similarity_search.await_args
        assert args[1] == TopicDomain.TECHNICAL
        assert kwargs["block"] == "ofimatica"

    @pytest.mark.asyncio
    async def test_unknown_topic_is_invalid_input(self, mock_repository):
        engine = RetrievalEngine(mock_repository)

        with pytest.raises(InvalidInputError):
            await engine.build_context(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_store_down_is_corpus_unavailable(self, mock_repository):
        mock_repository.get_topic = AsyncMock(side_effect=CorpusStoreError("connection refused"))
        engine = RetrievalEngine(mock_repository)

        with pytest.raises(CorpusUnavailableError):
            await engine.build_context(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_full_text_failure_without_rows_is_corpus_unavailable(
        self, mock_repository, topic
    ):
        mock_repository.get_topic = AsyncMock(return_value=topic)
        mock_repository.full_text_search = AsyncMock(side_effect=CorpusStoreError("timeout"))
        engine = RetrievalEngine(mock_repository)

        with pytest.raises(CorpusUnavailableError):
            await engine.build_context(topic.id)

    @pytest.mark.asyncio
    async def test_full_text_failure_with_tagged_rows_is_tolerated(
        self, mock_repository, topic, factories
    ):
        tagged = [factories.article()]
        mock_repository.get_topic = AsyncMock(return_value=topic)
        mock_repository.find_by_topic = AsyncMock(return_value=tagged)
        mock_repository.full_text_search = AsyncMock(side_effect=CorpusStoreError("timeout"))
        engine = RetrievalEngine(mock_repository)

        context = await engine.build_context(topic.id, query="plazos")

        assert context.articles == tuple(tagged)
        assert context.strategy == RetrievalStrategy.TAG_BASED
