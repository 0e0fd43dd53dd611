"""Tests for written-answer correction."""

from __future__ import annotations

import json
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from lexguard.agents.answer_corrector import QUERY_PREFIX_CHARS, AnswerCorrector
from lexguard.core.errors import CorpusUnavailableError, ProviderResponseError
from lexguard.database.repositories.corpus_repository import CorpusStoreError
from lexguard.models.citation import Confidence, FailureReason
from lexguard.models.correction import CorrectionRequest
from lexguard.services.llm.json_completion import JsonCompletion
from lexguard.utils.citation_verifier import CitationVerifier

ANSWER = (
    "El artículo 21 de la LPAC obliga a la Administración a resolver de forma expresa. "
    "Cuando la norma reguladora no fija plazo, el plazo máximo es de tres meses."
)


def correction_json(feedback: str, references: list[dict] | None = None) -> str:
    return json.dumps(
        {
            "score": 7.5,
            "feedback": feedback,
            "improvements": ["Citar el apartado concreto del artículo"],
            "cited_references": references or [],
            "dimensions": {"legal_content": 8, "argumentation": 7, "structure": 7},
        },
        ensure_ascii=False,
    )


@pytest.fixture
def corrector(mock_repository, mock_provider, breaker, factories):
    engine = MagicMock()
    engine.build_context = AsyncMock(return_value=factories.context([factories.article()]))
    mock_repository.get_article = AsyncMock(
        side_effect=lambda law, number, section=None: (
            factories.article() if (law, number) == ("LPAC", "21") else None
        )
    )
    return AnswerCorrector(engine, CitationVerifier(mock_repository), JsonCompletion(mock_provider, breaker))


@pytest.fixture
def request_model() -> CorrectionRequest:
    return CorrectionRequest(
        topic_id=uuid.uuid4(), question="Explique el deber de resolver de la Administración.", answer=ANSWER
    )


@pytest.mark.unit
class TestAnswerCorrector:
    """AnswerCorrector.correct behaviour."""

    @pytest.mark.asyncio
    async def test_verified_feedback(self, corrector, mock_provider, request_model):
        """Given feedback citing an existing article correctly, Then the score is 1.0."""
        mock_provider.complete = AsyncMock(
            return_value=correction_json(
                "Correcto: según el artículo 21 LPAC el plazo supletorio es de tres meses.",
                [{"law": "LPAC", "article": "21", "quote": "éste será de tres meses"}],
            )
        )

        result = await corrector.correct(request_model)

        assert result.correction.score == 7.5
        assert result.verification_score == 1.0
        assert len(result.verdicts) == 1
        assert result.verdicts[0].content_match.confidence == Confidence.HIGH

    @pytest.mark.asyncio
    async def test_invented_article_lowers_score(self, corrector, mock_provider, request_model):
        mock_provider.complete = AsyncMock(
            return_value=correction_json(
                "Debería mencionar también el artículo 21 LPAC y el artículo 400 LPAC.",
            )
        )

        result = await corrector.correct(request_model)

        assert result.verification_score == pytest.approx(0.5)
        failed = [v for v in result.verdicts if not v.verified]
        assert failed[0].failure_reason == FailureReason.NOT_FOUND

    @pytest.mark.asyncio
    async def test_query_uses_answer_prefix(self, corrector, mock_provider, request_model):
        mock_provider.complete = AsyncMock(
            return_value=correction_json("Respuesta correcta y bien estructurada en general.")
        )

        result = await corrector.correct(request_model)

        corrector.retrieval_engine.build_context.assert_awaited_once_with(
            request_model.topic_id, query=ANSWER[:QUERY_PREFIX_CHARS]
        )
        assert result.verdicts == []
        assert result.verification_score == 1.0

    @pytest.mark.asyncio
    async def test_malformed_output_is_provider_response_error(
        self, corrector, mock_provider, request_model
    ):
        mock_provider.complete = AsyncMock(return_value="no es json")

        with pytest.raises(ProviderResponseError):
            await corrector.correct(request_model)

        assert mock_provider.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_store_failure_during_verification_is_corpus_unavailable(
        self, corrector, mock_repository, mock_provider, request_model
    ):
        """Given the store fails on article lookups, Then no half-verified result is returned."""
        mock_repository.get_article = AsyncMock(side_effect=CorpusStoreError("connection refused"))
        mock_provider.complete = AsyncMock(
            return_value=correction_json("Según el artículo 21 LPAC el plazo es de tres meses.")
        )

        with pytest.raises(CorpusUnavailableError):
            await corrector.correct(request_model)
