"""Read-only access to the legal and technical corpus.

This module wraps the relational store (PostgreSQL + pgvector) behind a
small query surface: topic lookup, topic-tagged articles, vector similarity,
Spanish full-text search, exact article lookup and a random sample of
articles for trap exercises. Every query is bounded by
a timeout and every driver failure surfaces as ``CorpusStoreError``.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

import structlog
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.config import settings
from ...models.article import ArticleRecord, TopicDomain, TopicInfo
from ..models import LegalArticle, TechnicalSection, Topic

logger = structlog.get_logger()

FTS_LANGUAGE = "spanish"


class CorpusStoreError(Exception):
    """Exception raised when a single corpus query fails or times out."""

    pass


def _legal_record(row: LegalArticle, similarity: float | None = None) -> ArticleRecord:
    return ArticleRecord(
        id=row.id,
        law_name=row.law_name,
        law_code=row.law_code,
        article_number=row.article_number,
        section=row.section,
        chapter_heading=row.chapter_heading or "",
        full_text=row.full_text,
        similarity=similarity,
    )


def _technical_record(row: TechnicalSection, similarity: float | None = None) -> ArticleRecord:
    # Sections have no article numbering; the knowledge block plays the law role
    return ArticleRecord(
        id=row.id,
        law_name=row.block.upper(),
        law_code=row.block,
        article_number="",
        section=None,
        chapter_heading=row.title,
        full_text=row.content,
        similarity=similarity,
    )


class CorpusRepository:
    """Repository for corpus lookups used by retrieval and verification.

    Only rows flagged ``active`` are ever returned.

    Attributes:
        db: AsyncSession for database operations
        timeout: Seconds allowed per query

    Example:
        >>> repo = CorpusRepository(db=session)
        >>> article = await repo.get_article("LPAC", "21", section="3")
    """

    def __init__(self, db: AsyncSession, timeout: float | None = None) -> None:
        self.db = db
        self.timeout = timeout if timeout is not None else settings.IO_TIMEOUT_SECONDS

    async def _execute(self, stmt: Select[Any], operation: str) -> Any:
        try:
            return await asyncio.wait_for(self.db.execute(stmt), timeout=self.timeout)
        except TimeoutError as e:
            logger.warning("corpus_query_timeout", operation=operation, timeout=self.timeout)
            raise CorpusStoreError(f"{operation} timed out after {self.timeout}s") from e
        except Exception as e:
            logger.warning("corpus_query_failed", operation=operation, error=str(e))
            raise CorpusStoreError(f"Failed to run {operation}: {e}") from e

    async def get_topic(self, topic_id: uuid.UUID) -> TopicInfo | None:
        """Fetch a syllabus topic.

        Returns:
            TopicInfo, or None if the topic does not exist
        """
        result = await self._execute(select(Topic).where(Topic.id == topic_id), "get_topic")
        row = result.scalars().first()
        if row is None:
            return None
        return TopicInfo(id=row.id, number=row.number, title=row.title, description=row.description)

    async def find_by_topic(
        self,
        topic_id: uuid.UUID,
        domain: TopicDomain,
        limit: int,
    ) -> list[ArticleRecord]:
        """Return articles explicitly tagged with a topic.

        Args:
            topic_id: Topic UUID
            domain: Which table to read (legal articles or technical sections)
            limit: Maximum number of records

        Returns:
            Records ordered by law and article number
        """
        if domain == TopicDomain.TECHNICAL:
            stmt = (
                select(TechnicalSection)
                .where(TechnicalSection.active.is_(True))
                .where(TechnicalSection.topic_id == topic_id)
                .order_by(TechnicalSection.title)
                .limit(limit)
            )
            result = await self._execute(stmt, "find_by_topic")
            return [_technical_record(row) for row in result.scalars().all()]

        stmt = (
            select(LegalArticle)
            .where(LegalArticle.active.is_(True))
            .where(LegalArticle.topic_ids.any(topic_id))
            .order_by(LegalArticle.law_code, LegalArticle.article_number)
            .limit(limit)
        )
        result = await self._execute(stmt, "find_by_topic")
        return [_legal_record(row) for row in result.scalars().all()]

    async def similarity_search(
        self,
        query_vector: list[float],
        domain: TopicDomain,
        top_k: int,
        block: str | None = None,
    ) -> list[ArticleRecord]:
        """Perform cosine similarity search over embedded articles.

        Args:
            query_vector: Query embedding vector
            domain: Which table to search
            top_k: Number of top results to return
            block: Restrict technical results to one knowledge block

        Returns:
            Records ordered by descending similarity

        Raises:
            CorpusStoreError: If the vector dimension is wrong or the query fails
        """
        if len(query_vector) != settings.EMBEDDING_DIMENSION:
            raise CorpusStoreError(
                f"Query vector dimension must be {settings.EMBEDDING_DIMENSION}, "
                f"got {len(query_vector)}"
            )

        model: type[LegalArticle] | type[TechnicalSection]
        model = TechnicalSection if domain == TopicDomain.TECHNICAL else LegalArticle

        # pgvector's cosine_distance returns 1 - cosine_similarity
        similarity = 1 - model.embedding.cosine_distance(query_vector)
        stmt = (
            select(model, similarity.label("similarity_score"))
            .where(model.active.is_(True))
            .where(model.embedding.is_not(None))
            .order_by(similarity.desc())
            .limit(top_k)
        )
        if block is not None and model is TechnicalSection:
            stmt = stmt.where(TechnicalSection.block == block)

        result = await self._execute(stmt, "similarity_search")
        to_record = _technical_record if model is TechnicalSection else _legal_record
        return [to_record(row[0], float(row.similarity_score)) for row in result.all()]

    async def full_text_search(
        self,
        query: str,
        domain: TopicDomain,
        limit: int,
        block: str | None = None,
    ) -> list[ArticleRecord]:
        """Spanish full-text search, used when semantic search is unavailable.

        Args:
            query: Free text query
            domain: Which table to search
            limit: Maximum number of records
            block: Restrict technical results to one knowledge block

        Returns:
            Records ordered by text rank (empty for a blank query)
        """
        if not query or not query.strip():
            return []

        ts_query = func.plainto_tsquery(FTS_LANGUAGE, query.strip())
        if domain == TopicDomain.TECHNICAL:
            document = func.to_tsvector(FTS_LANGUAGE, TechnicalSection.title + " " + TechnicalSection.content)
            stmt = select(TechnicalSection).where(TechnicalSection.active.is_(True))
            if block is not None:
                stmt = stmt.where(TechnicalSection.block == block)
        else:
            document = func.to_tsvector(FTS_LANGUAGE, LegalArticle.full_text)
            stmt = select(LegalArticle).where(LegalArticle.active.is_(True))

        stmt = (
            stmt.where(document.op("@@")(ts_query))
            .order_by(func.ts_rank(document, ts_query).desc())
            .limit(limit)
        )
        result = await self._execute(stmt, "full_text_search")
        rows = result.scalars().all()
        if domain == TopicDomain.TECHNICAL:
            return [_technical_record(row) for row in rows]
        return [_legal_record(row) for row in rows]

    async def get_article(
        self,
        law_code: str,
        article_number: str,
        section: str | None = None,
    ) -> ArticleRecord | None:
        """Exact lookup of an active legal article.

        Args:
            law_code: Canonical law code (e.g. 'LPAC')
            article_number: Article number as stored ('9', '9 bis')
            section: Apartado; when given, only that apartado matches

        Returns:
            The article, or None if no active row matches
        """
        stmt = (
            select(LegalArticle)
            .where(LegalArticle.active.is_(True))
            .where(LegalArticle.law_code == law_code)
            .where(LegalArticle.article_number == article_number)
        )
        if section is not None:
            stmt = stmt.where(LegalArticle.section == section)
        stmt = stmt.order_by(LegalArticle.section.nulls_first()).limit(1)

        result = await self._execute(stmt, "get_article")
        row = result.scalars().first()
        return _legal_record(row) if row is not None else None

    async def trap_candidates(
        self,
        min_chars: int,
        limit: int,
        topic_id: uuid.UUID | None = None,
    ) -> list[ArticleRecord]:
        """Random sample of active legal articles long enough for a trap exercise.

        Args:
            min_chars: Shortest accepted ``full_text``
            limit: Maximum number of records
            topic_id: Only articles tagged with this topic

        Returns:
            Records in random order
        """
        stmt = (
            select(LegalArticle)
            .where(LegalArticle.active.is_(True))
            .where(func.length(LegalArticle.full_text) >= min_chars)
        )
        if topic_id is not None:
            stmt = stmt.where(LegalArticle.topic_ids.any(topic_id))
        stmt = stmt.order_by(func.random()).limit(limit)

        result = await self._execute(stmt, "trap_candidates")
        return [_legal_record(row) for row in result.scalars().all()]
