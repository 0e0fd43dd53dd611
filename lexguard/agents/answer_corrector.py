"""Correction of written answers with verified legal references."""

from __future__ import annotations

import time
import uuid

import structlog

from ..core.config import settings
from ..core.errors import CorpusUnavailableError, ProviderResponseError
from ..models.correction import CorrectionRequest, CorrectionResult, RawCorrection
from ..rag.retrieval_engine import RetrievalEngine
from ..services.llm.json_completion import JsonCompletion
from ..services.llm.prompts import SYSTEM_CORRECT_ANSWER, build_correction_prompt
from ..services.llm.schemas import LLMClientError, MalformedOutputError
from ..utils.citation_verifier import CitationVerifier

logger = structlog.get_logger()

# Only the opening of the answer steers semantic retrieval
QUERY_PREFIX_CHARS = 200


class AnswerCorrector:
    """Grades a written answer and verifies every citation in the feedback.

    Example:
        >>> corrector = AnswerCorrector(engine, verifier, JsonCompletion(client, breaker))
        >>> result = await corrector.correct(CorrectionRequest(topic_id=..., question=..., answer=...))
        >>> result.verification_score
        1.0
    """

    def __init__(
        self,
        retrieval_engine: RetrievalEngine,
        verifier: CitationVerifier,
        completion: JsonCompletion,
        max_tokens: int | None = None,
    ) -> None:
        self.retrieval_engine = retrieval_engine
        self.verifier = verifier
        self.completion = completion
        self.max_tokens = max_tokens

    async def correct(
        self, request: CorrectionRequest, request_id: str | None = None
    ) -> CorrectionResult:
        """Correct one answer.

        Raises:
            InvalidInputError: Unknown topic
            CorpusUnavailableError: Corpus store unreachable
            ProviderUnavailableError: Provider circuit open
            ProviderResponseError: Provider failed or returned invalid JSON twice
        """
        request_id = request_id or str(uuid.uuid4())
        log = logger.bind(request_id=request_id, topic_id=str(request.topic_id))
        start = time.perf_counter()

        context = await self.retrieval_engine.build_context(
            request.topic_id, query=request.answer[:QUERY_PREFIX_CHARS]
        )
        user_prompt = build_correction_prompt(
            context_text=context.render(), question=request.question, answer=request.answer
        )

        try:
            correction = await self.completion.complete(
                SYSTEM_CORRECT_ANSWER, user_prompt, RawCorrection, max_tokens=self.max_tokens
            )
        except (LLMClientError, MalformedOutputError) as e:
            log.error("correction_provider_failed", error_type=type(e).__name__, error=str(e)[:200])
            raise ProviderResponseError(f"Correction could not be produced: {e}") from e

        references = " ".join(ref.as_text() for ref in correction.cited_references)
        report = await self.verifier.verify_all_citations(
            f"{correction.feedback}\n{references}",
            claim_text=correction.feedback,
            request_id=request_id,
        )
        if report.lookup_failed:
            log.error("correction_verification_unavailable", citations=report.total)
            raise CorpusUnavailableError("Corpus lookups failed while verifying the correction")

        log.info(
            "correction_complete",
            score=correction.score,
            citations=report.total,
            verification_score=round(report.score, 3),
            duration_ms=round((time.perf_counter() - start) * 1000),
        )
        return CorrectionResult(
            topic_id=request.topic_id,
            correction=correction,
            verdicts=report.verdicts,
            verification_score=report.score,
            prompt_version=settings.PROMPT_VERSION,
        )
