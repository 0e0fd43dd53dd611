"""Pytest configuration and shared fixtures.

No test touches the network or a database: repositories, providers and
sessions are replaced with mocks.
"""

from __future__ import annotations

import json
import os
import uuid
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# Settings are read at import time; keep the client constructible in tests
os.environ.setdefault("OPENROUTER_API_KEY", "test-key")

from lexguard.core.circuit_breaker import CircuitBreaker  # noqa: E402
from lexguard.models.article import (  # noqa: E402
    ArticleRecord,
    RetrievalContext,
    RetrievalStrategy,
    TopicDomain,
    TopicInfo,
)

LPAC_21_TEXT = (
    "La Administración está obligada a dictar resolución expresa en todos los "
    "procedimientos. El plazo máximo en el que debe notificarse la resolución expresa "
    "será el fijado por la norma reguladora del correspondiente procedimiento. Cuando "
    "las normas reguladoras no fijen el plazo máximo, éste será de tres meses."
)

LPAC_53_TEXT = (
    "Los interesados en un procedimiento administrativo tienen derecho a conocer, en "
    "cualquier momento, el estado de la tramitación de los procedimientos en los que "
    "tengan la condición de interesados; el plazo para formular alegaciones es de tres meses."
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def breaker(fake_clock: FakeClock) -> CircuitBreaker:
    """Independent breaker per test."""
    return CircuitBreaker(name="test-provider", failure_threshold=5, timeout=60.0, clock=fake_clock)


def make_article(
    law_code: str = "LPAC",
    article_number: str = "21",
    full_text: str = LPAC_21_TEXT,
    section: str | None = None,
    chapter_heading: str = "TÍTULO IV | CAPÍTULO I",
) -> ArticleRecord:
    return ArticleRecord(
        id=uuid.uuid4(),
        law_name=law_code,
        law_code=law_code,
        article_number=article_number,
        section=section,
        chapter_heading=chapter_heading,
        full_text=full_text,
    )


def make_context(
    articles: list[ArticleRecord] | None = None,
    domain: TopicDomain = TopicDomain.LEGAL,
    topic_id: uuid.UUID | None = None,
    strategy: RetrievalStrategy = RetrievalStrategy.TAG_BASED,
) -> RetrievalContext:
    selected = tuple(articles or ())
    chars = sum(len(a.render()) for a in selected)
    return RetrievalContext(
        topic_id=topic_id or uuid.uuid4(),
        topic_number=11 if domain == TopicDomain.LEGAL else 23,
        topic_title="El procedimiento administrativo común",
        domain=domain,
        articles=selected,
        estimated_tokens=-(-chars // 4),
        strategy=strategy if selected else RetrievalStrategy.FALLBACK,
    )


def make_question(
    question: str = "Según el artículo 21 de la LPAC, ¿cuál es el plazo máximo de resolución?",
    options: tuple[str, str, str, str] = ("Tres meses", "Diez días", "Un año", "Seis meses"),
    correct: int = 0,
    explanation: str = "Cuando la norma no fija plazo, el plazo máximo es de tres meses.",
    citation: dict[str, Any] | None = None,
    with_citation: bool = True,
) -> dict[str, Any]:
    """Provider-shaped question payload."""
    payload: dict[str, Any] = {
        "question": question,
        "options": list(options),
        "correct": correct,
        "explanation": explanation,
        "difficulty": "medium",
    }
    if with_citation:
        payload["citation"] = citation or {
            "law": "LPAC",
            "article": "21",
            "quote": "éste será de tres meses",
        }
    return payload


def questions_json(*questions: dict[str, Any]) -> str:
    return json.dumps({"questions": list(questions)}, ensure_ascii=False)


def trap_json(trap_text: str, *errors: tuple[str, str]) -> str:
    """Provider-shaped trap exercise; each error is (original_value, trap_value)."""
    return json.dumps(
        {
            "trap_text": trap_text,
            "errors": [
                {
                    "kind": "figure",
                    "original_value": original,
                    "trap_value": trap,
                    "explanation": f"El texto legal dice \"{original}\", no \"{trap}\".",
                }
                for original, trap in errors
            ],
        },
        ensure_ascii=False,
    )


@pytest.fixture
def topic() -> TopicInfo:
    return TopicInfo(
        id=uuid.uuid4(),
        number=11,
        title="El procedimiento administrativo común",
        description="Fases del procedimiento y plazos",
    )


@pytest.fixture
def mock_repository() -> MagicMock:
    """CorpusRepository stand-in with every query returning nothing."""
    repository = MagicMock()
    repository.get_topic = AsyncMock(return_value=None)
    repository.find_by_topic = AsyncMock(return_value=[])
    repository.similarity_search = AsyncMock(return_value=[])
    repository.full_text_search = AsyncMock(return_value=[])
    repository.get_article = AsyncMock(return_value=None)
    repository.trap_candidates = AsyncMock(return_value=[])
    return repository


@pytest.fixture
def mock_provider() -> MagicMock:
    """Provider client whose ``complete`` is an AsyncMock."""
    provider = MagicMock()
    provider.complete = AsyncMock()
    return provider


@pytest.fixture
def factories() -> SimpleNamespace:
    """Builders for articles, contexts and provider payloads."""
    return SimpleNamespace(
        article=make_article,
        context=make_context,
        question=make_question,
        questions_json=questions_json,
        trap_json=trap_json,
        lpac_21_text=LPAC_21_TEXT,
        lpac_53_text=LPAC_53_TEXT,
    )
