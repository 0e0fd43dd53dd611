"""Generation-verification loop for verified question batches.

Each round asks the provider for exactly the items still missing, verifies
every returned item and keeps only the ones that pass. Rounds run
sequentially; a bad round costs one retry, never the whole request.

    build_context -> [round: complete -> verify each -> accept] x (max_retries + 1)
                  -> truncate to target
"""

from __future__ import annotations

import time
import uuid
from collections import Counter
from typing import Any

import structlog
from pydantic import ValidationError

from ..core.config import settings
from ..core.errors import (
    CorpusUnavailableError,
    InsufficientVerifiedItemsError,
    InvalidInputError,
)
from ..models.article import RetrievalContext
from ..models.citation import ExtractedCitation, FailureReason
from ..models.items import (
    BatchRequest,
    CitationRef,
    Difficulty,
    GeneratedItem,
    LegalItem,
    RawQuestion,
    RawQuestionBatch,
    TechnicalItem,
)
from ..rag.retrieval_engine import RetrievalEngine
from ..services.llm.json_completion import JsonCompletion
from ..services.llm.prompts import build_generation_prompt, system_prompt_for
from ..services.llm.schemas import LLMClientError, MalformedOutputError
from ..utils.citation_extractor import citation_from_reference, extract_citations
from ..utils.citation_verifier import CitationVerifier, match_content
from ..utils.content_grounding import is_grounded

logger = structlog.get_logger()


def validate_batch_request(topic_id: Any, target_count: Any, difficulty: Any) -> BatchRequest:
    """Validate loop input before any I/O.

    Raises:
        InvalidInputError: On a malformed topic id or out-of-range count/difficulty
    """
    try:
        return BatchRequest(topic_id=topic_id, target_count=target_count, difficulty=difficulty)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise InvalidInputError(f"Invalid batch request ({fields}): {e.errors()[0]['msg']}") from e


class VerifiedBatchGenerator:
    """Generates batches in which every item passed verification.

    Attributes:
        retrieval_engine: Builds the topic context
        verifier: Citation lookups for legal items
        completion: Provider access through the breaker with JSON validation
        max_retries: Extra rounds after the first one
        lenient_partial_coverage: Accept not-found citations of partially loaded laws

    Example:
        >>> generator = VerifiedBatchGenerator(engine, verifier, JsonCompletion(client, breaker))
        >>> items = await generator.generate_verified_batch(topic_id, 10, Difficulty.MEDIUM)
        >>> len(items)
        10
    """

    def __init__(
        self,
        retrieval_engine: RetrievalEngine,
        verifier: CitationVerifier,
        completion: JsonCompletion,
        max_retries: int | None = None,
        lenient_partial_coverage: bool | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self.retrieval_engine = retrieval_engine
        self.verifier = verifier
        self.completion = completion
        self.max_retries = settings.GENERATION_MAX_RETRIES if max_retries is None else max_retries
        self.lenient_partial_coverage = (
            settings.LENIENT_PARTIAL_COVERAGE
            if lenient_partial_coverage is None
            else lenient_partial_coverage
        )
        self.max_tokens = max_tokens

    async def generate_verified_batch(
        self,
        topic_id: uuid.UUID | str,
        target_count: int,
        difficulty: Difficulty | str = Difficulty.MEDIUM,
        request_id: str | None = None,
    ) -> list[GeneratedItem]:
        """Generate up to ``target_count`` verified items for a topic.

        Raises:
            InvalidInputError: Bad topic id, count or difficulty, or unknown topic
            CorpusUnavailableError: Corpus store unreachable
            ProviderUnavailableError: Provider circuit open
            InsufficientVerifiedItemsError: No item passed in any round
        """
        request = validate_batch_request(topic_id, target_count, difficulty)
        log = logger.bind(
            request_id=request_id or str(uuid.uuid4()),
            topic_id=str(request.topic_id),
        )
        start = time.perf_counter()

        context = await self.retrieval_engine.build_context(request.topic_id)
        context_text = context.render()
        system_prompt = system_prompt_for(context.is_legal)

        accepted: list[GeneratedItem] = []
        rounds = 0
        for round_number in range(1, self.max_retries + 2):
            needed = request.target_count - len(accepted)
            if needed <= 0:
                break
            rounds = round_number

            raw_questions = await self._request_round(
                system_prompt, context, context_text, needed, request.difficulty, log
            )
            rejections: Counter[str] = Counter()
            round_accepted = 0
            for raw in raw_questions:
                item, reason = await self._judge(raw, context, context_text, request.difficulty)
                if item is None:
                    rejections[reason or "rejected"] += 1
                    continue
                accepted.append(item)
                round_accepted += 1

            log.info(
                "generation_round_complete",
                round=round_number,
                requested=needed,
                received=len(raw_questions),
                accepted=round_accepted,
                total_accepted=len(accepted),
                rejections=dict(rejections),
            )

        if not accepted:
            log.error("generation_exhausted", rounds=rounds, domain=context.domain.value)
            raise InsufficientVerifiedItemsError(str(request.topic_id), rounds)

        if len(accepted) < request.target_count:
            log.warning(
                "generation_short",
                requested=request.target_count,
                accepted=len(accepted),
                rounds=rounds,
            )

        items = accepted[: request.target_count]
        log.info(
            "generation_complete",
            items=len(items),
            rounds=rounds,
            strategy=context.strategy.value,
            duration_ms=round((time.perf_counter() - start) * 1000),
        )
        return items

    async def _request_round(
        self,
        system_prompt: str,
        context: RetrievalContext,
        context_text: str,
        needed: int,
        difficulty: Difficulty,
        log: Any,
    ) -> list[RawQuestion]:
        """One provider round; transient failures yield an empty round."""
        user_prompt = build_generation_prompt(
            context_text=context_text,
            topic_title=context.topic_title,
            count=needed,
            difficulty=difficulty,
            is_legal=context.is_legal,
        )
        try:
            batch = await self.completion.complete(
                system_prompt, user_prompt, RawQuestionBatch, max_tokens=self.max_tokens
            )
        except (LLMClientError, MalformedOutputError) as e:
            log.warning("generation_round_failed", error_type=type(e).__name__, error=str(e)[:200])
            return []
        # Never keep more than was asked for in this round
        return batch.questions[:needed]

    async def _judge(
        self,
        raw: RawQuestion,
        context: RetrievalContext,
        context_text: str,
        difficulty: Difficulty,
    ) -> tuple[GeneratedItem | None, str | None]:
        item_difficulty = raw.difficulty or difficulty
        if not context.is_legal:
            if not is_grounded(raw, context_text):
                return None, "not_grounded"
            return (
                TechnicalItem(
                    question=raw.question,
                    options=raw.options,
                    correct=raw.correct,
                    explanation=raw.explanation,
                    difficulty=item_difficulty,
                ),
                None,
            )

        if raw.citation is None:
            return None, "missing_citation"

        reason = await self._verify_legal(raw, raw.citation, context)
        if reason is not None:
            return None, reason
        return (
            LegalItem(
                question=raw.question,
                options=raw.options,
                correct=raw.correct,
                explanation=raw.explanation,
                difficulty=item_difficulty,
                citation=raw.citation,
            ),
            None,
        )

    async def _verify_legal(
        self, raw: RawQuestion, reference: CitationRef, context: RetrievalContext
    ) -> str | None:
        """Verify every citation of a legal item; return the rejection reason, if any.

        Raises:
            CorpusUnavailableError: A lookup failed on the store, not on the citation
        """
        citations = self._collect_citations(raw, reference)
        claim_text = raw.claim_text

        for citation in citations:
            verdict = await self.verifier.verify(citation)
            if verdict.failure_reason == FailureReason.LOOKUP_ERROR:
                raise CorpusUnavailableError(
                    f"Corpus lookup failed while verifying {citation.law_raw} art. {citation.article_number}"
                )
            if verdict.verified and verdict.matched_article_text is not None:
                content = match_content(citation, claim_text, verdict.matched_article_text)
                if content.is_rejection:
                    return f"content_mismatch_{content.confidence.value}"
                continue

            if verdict.failure_reason == FailureReason.NOT_FOUND and self._partially_covered(
                citation, context
            ):
                continue
            return verdict.failure_reason.value if verdict.failure_reason else "not_verified"

        return None

    def _partially_covered(self, citation: ExtractedCitation, context: RetrievalContext) -> bool:
        return self.lenient_partial_coverage and citation.law_resolved in context.law_codes

    @staticmethod
    def _collect_citations(
        raw: RawQuestion, reference: CitationRef
    ) -> list[ExtractedCitation]:
        """Structured citation first, then citations found in stem and explanation."""
        collected = [citation_from_reference(reference.law, reference.article, reference.section)]
        collected.extend(extract_citations(f"{raw.question}\n{raw.explanation}"))

        unique: list[ExtractedCitation] = []
        seen: set[tuple[str, str, str | None]] = set()
        for citation in collected:
            key = (citation.law_resolved or citation.law_raw, citation.article_number, citation.section)
            if key not in seen:
                seen.add(key)
                unique.append(citation)
        return unique
