"""Retrieval engine: bounded textual context for one syllabus topic.

Strategy per request:
    1. Tag lookup: articles explicitly associated with the topic.
    2. Vector search, when the tag lookup is empty or a query is supplied.
    3. Spanish full-text search, when embeddings fail or return no rows.

Results are merged in rank order, de-duplicated by article id and accepted
greedily while the rendered size fits the character budget. Articles are
dropped whole, never cut.
"""

from __future__ import annotations

import asyncio
import math
import time
import uuid

import structlog

from ..core.config import settings
from ..core.errors import CorpusUnavailableError, InvalidInputError
from ..database.repositories.corpus_repository import CorpusRepository, CorpusStoreError
from ..models.article import (
    ArticleRecord,
    RetrievalContext,
    RetrievalStrategy,
    TopicDomain,
    TopicInfo,
)
from ..services.embedding.embedding_service import EmbeddingError, EmbeddingService

logger = structlog.get_logger()

CHARS_PER_TOKEN = 4


def classify_topic(topic_number: int | None) -> TopicDomain:
    """Static topic-number partition between legal and technical topics."""
    if topic_number is not None and topic_number in settings.TECHNICAL_TOPIC_NUMBERS:
        return TopicDomain.TECHNICAL
    return TopicDomain.LEGAL


def technical_block(topic_number: int) -> str:
    """Knowledge block of a technical topic.

    17-20 e-administration, 21 and 28 computing, 22-27 office software.
    """
    if 17 <= topic_number <= 20:
        return "admin_electronica"
    if topic_number in (21, 28):
        return "informatica"
    return "ofimatica"


def estimate_tokens(chars: int) -> int:
    return math.ceil(chars / CHARS_PER_TOKEN)


def merge_ranked(*ranked_lists: list[ArticleRecord]) -> list[ArticleRecord]:
    """Concatenate ranked lists keeping the first occurrence of each article."""
    seen: set[uuid.UUID] = set()
    merged: list[ArticleRecord] = []
    for ranked in ranked_lists:
        for article in ranked:
            if article.id not in seen:
                seen.add(article.id)
                merged.append(article)
    return merged


def select_within_budget(
    articles: list[ArticleRecord], max_chars: int
) -> tuple[list[ArticleRecord], int]:
    """Greedily accept articles in order until the next one would overflow.

    Returns:
        (selected articles, total rendered characters)
    """
    selected: list[ArticleRecord] = []
    total = 0
    for article in articles:
        size = len(article.render())
        if total + size > max_chars:
            break
        selected.append(article)
        total += size
    return selected, total


def pick_strategy(
    tagged: list[ArticleRecord],
    semantic: list[ArticleRecord],
    full_text: list[ArticleRecord],
) -> RetrievalStrategy:
    sources = sum(1 for found in (tagged, semantic, full_text) if found)
    if sources > 1:
        return RetrievalStrategy.HYBRID
    if tagged:
        return RetrievalStrategy.TAG_BASED
    if semantic:
        return RetrievalStrategy.SEMANTIC
    return RetrievalStrategy.FALLBACK


class RetrievalEngine:
    """Builds the retrieval context of a generation or correction request.

    Attributes:
        repository: Corpus store access
        embedding_service: Query embeddings; None disables the vector step
        max_context_chars: Budget on the rendered context
        tag_limit: Maximum tag-lookup rows
        semantic_limit: Vector-search top-K

    Example:
        >>> engine = RetrievalEngine(CorpusRepository(session), EmbeddingService())
        >>> context = await engine.build_context(topic_id)
        >>> prompt_block = context.render()
    """

    def __init__(
        self,
        repository: CorpusRepository,
        embedding_service: EmbeddingService | None = None,
        max_context_chars: int | None = None,
        tag_limit: int | None = None,
        semantic_limit: int | None = None,
    ) -> None:
        self.repository = repository
        self.embedding_service = embedding_service
        self.max_context_chars = max_context_chars or settings.MAX_CONTEXT_CHARS
        self.tag_limit = tag_limit or settings.TAG_RETRIEVAL_LIMIT
        self.semantic_limit = semantic_limit or settings.SEMANTIC_RETRIEVAL_LIMIT

    async def build_context(
        self, topic_id: uuid.UUID, query: str | None = None
    ) -> RetrievalContext:
        """Select the articles that ground a request on ``topic_id``.

        Args:
            topic_id: Syllabus topic
            query: Optional free text that forces a vector search

        Returns:
            RetrievalContext, possibly empty (strategy ``fallback``)

        Raises:
            InvalidInputError: If the topic does not exist
            CorpusUnavailableError: If the store cannot be reached
        """
        start = time.perf_counter()
        topic = await self._load_topic(topic_id)
        domain = classify_topic(topic.number)
        block = technical_block(topic.number) if domain == TopicDomain.TECHNICAL else None
        log = logger.bind(topic_id=str(topic_id), topic_number=topic.number, domain=domain.value)

        tagged = await self._tag_lookup(topic_id, domain, log)

        semantic: list[ArticleRecord] = []
        full_text: list[ArticleRecord] = []
        if not tagged or query:
            search_text = query or topic.search_text
            found = await self._semantic_search(search_text, domain, block, log)
            if found:
                semantic = found
            else:
                full_text = await self._full_text_search(search_text, domain, block, log, tagged)

        candidates = merge_ranked(tagged, semantic, full_text)
        selected, chars = select_within_budget(candidates, self.max_context_chars)
        strategy = pick_strategy(tagged, semantic, full_text)

        context = RetrievalContext(
            topic_id=topic_id,
            topic_number=topic.number,
            topic_title=topic.title,
            domain=domain,
            articles=tuple(selected),
            estimated_tokens=estimate_tokens(chars),
            strategy=strategy,
        )

        log.info(
            "retrieval_context_built",
            strategy=strategy.value,
            candidates=len(candidates),
            articles=len(selected),
            dropped=len(candidates) - len(selected),
            estimated_tokens=context.estimated_tokens,
            duration_ms=round((time.perf_counter() - start) * 1000),
        )
        if context.is_empty:
            log.warning("retrieval_context_empty")
        return context

    async def _load_topic(self, topic_id: uuid.UUID) -> TopicInfo:
        try:
            topic = await self.repository.get_topic(topic_id)
        except CorpusStoreError as e:
            raise CorpusUnavailableError(f"Corpus store unavailable: {e}") from e
        if topic is None:
            raise InvalidInputError(f"Topic {topic_id} not found")
        return topic

    async def _tag_lookup(
        self, topic_id: uuid.UUID, domain: TopicDomain, log: structlog.typing.FilteringBoundLogger
    ) -> list[ArticleRecord]:
        try:
            return await self.repository.find_by_topic(topic_id, domain, self.tag_limit)
        except CorpusStoreError as e:
            log.warning("tag_lookup_failed", error=str(e))
            return []

    async def _semantic_search(
        self,
        search_text: str,
        domain: TopicDomain,
        block: str | None,
        log: structlog.typing.FilteringBoundLogger,
    ) -> list[ArticleRecord] | None:
        """Vector search; None when embeddings or the vector query fail."""
        if self.embedding_service is None or not search_text.strip():
            return None
        try:
            vector = await asyncio.wait_for(
                self.embedding_service.embed_text(search_text),
                timeout=settings.IO_TIMEOUT_SECONDS,
            )
            return await self.repository.similarity_search(
                vector, domain, self.semantic_limit, block=block
            )
        except (EmbeddingError, TimeoutError) as e:
            log.warning("embedding_unavailable", error=str(e) or type(e).__name__)
        except CorpusStoreError as e:
            log.warning("similarity_search_failed", error=str(e))
        return None

    async def _full_text_search(
        self,
        search_text: str,
        domain: TopicDomain,
        block: str | None,
        log: structlog.typing.FilteringBoundLogger,
        already_found: list[ArticleRecord],
    ) -> list[ArticleRecord]:
        log.info("retrieval_full_text_fallback")
        try:
            return await self.repository.full_text_search(
                search_text, domain, self.semantic_limit, block=block
            )
        except CorpusStoreError as e:
            if already_found:
                log.warning("full_text_search_failed", error=str(e))
                return []
            raise CorpusUnavailableError(f"Corpus store unavailable: {e}") from e
