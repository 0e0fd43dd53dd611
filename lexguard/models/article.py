"""Corpus records and request-scoped retrieval context."""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, Field

NO_CONTEXT_MARKER = "[Sin contexto disponible para este tema]"


class TopicDomain(str, Enum):
    """Knowledge domain of a syllabus topic.

    LEGAL: statute-based topics, items carry verifiable citations
    TECHNICAL: office software / IT topics, items are grounded on context text
    """

    LEGAL = "legal"
    TECHNICAL = "technical"


class RetrievalStrategy(str, Enum):
    """How the articles of a context were selected."""

    TAG_BASED = "tag_based"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"
    FALLBACK = "fallback"  # full-text fallback, also used for an empty context


class TopicInfo(BaseModel):
    """Syllabus topic as seen by the retrieval engine."""

    id: uuid.UUID
    number: int
    title: str
    description: str | None = None

    model_config = {"frozen": True}

    @property
    def search_text(self) -> str:
        """Text used as semantic query when the caller gives none."""
        return f"{self.title}. {self.description or ''}".strip()


class ArticleRecord(BaseModel):
    """Immutable view of one active corpus article.

    Technical sections are mapped onto the same shape, with the knowledge
    block as ``law_code`` and an empty ``article_number``.
    """

    id: uuid.UUID
    law_name: str
    law_code: str
    article_number: str
    section: str | None = None
    chapter_heading: str = ""
    full_text: str
    similarity: float | None = Field(default=None, description="Present on vector results")

    model_config = {"frozen": True}

    def render(self) -> str:
        """Render the article as a context block.

        Format:
            === [LPAC] Artículo 53 — TÍTULO I | CAPÍTULO II ===
            <full text>
        """
        heading = f" — {self.chapter_heading}" if self.chapter_heading else ""
        number = f" Artículo {self.article_number}" if self.article_number else ""
        return f"=== [{self.law_name}]{number}{heading} ===\n{self.full_text}\n"


class RetrievalContext(BaseModel):
    """Bounded textual context selected for one generation request."""

    topic_id: uuid.UUID
    topic_number: int | None = None
    topic_title: str = ""
    domain: TopicDomain = TopicDomain.LEGAL
    articles: tuple[ArticleRecord, ...] = ()
    estimated_tokens: int = Field(default=0, ge=0)
    strategy: RetrievalStrategy = RetrievalStrategy.FALLBACK

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not self.articles

    @property
    def is_legal(self) -> bool:
        return self.domain == TopicDomain.LEGAL

    @property
    def law_codes(self) -> frozenset[str]:
        """Law codes present among the selected articles."""
        return frozenset(article.law_code for article in self.articles)

    def render(self) -> str:
        """Render the whole context for a prompt."""
        if self.is_empty:
            return NO_CONTEXT_MARKER

        label = "LEGISLATIVO" if self.is_legal else "TÉCNICO"
        lines = [
            f"--- CONTEXTO {label} ({len(self.articles)} bloques, ~{self.estimated_tokens} tokens) ---",
            "",
            *(article.render() for article in self.articles),
            "--- FIN DEL CONTEXTO ---",
        ]
        return "\n".join(lines)
