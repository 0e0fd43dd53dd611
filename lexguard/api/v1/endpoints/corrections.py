"""Written-answer correction endpoint."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Header, status

from ....agents.answer_corrector import AnswerCorrector
from ....core.errors import GenerationError
from ....models.correction import CorrectionRequest
from ..dependencies import get_answer_corrector
from ..errors import to_http_exception
from ..schemas import CitationCheck, CorrectionHttpRequest, CorrectionResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/v1", tags=["corrections"])


@router.post(
    "/corrections",
    response_model=CorrectionResponse,
    status_code=status.HTTP_200_OK,
    summary="Correct a written answer",
    responses={
        422: {"description": "Invalid request or unknown topic"},
        502: {"description": "Provider returned no usable correction"},
        503: {"description": "Provider or corpus temporarily unavailable"},
    },
)
async def correct_answer(
    request: CorrectionHttpRequest,
    corrector: AnswerCorrector = Depends(get_answer_corrector),
    x_request_id: str | None = Header(default=None),
) -> CorrectionResponse:
    """Grade an answer and verify the legal references used in the feedback."""
    request_id = x_request_id or str(uuid.uuid4())
    try:
        result = await corrector.correct(
            CorrectionRequest(
                topic_id=request.topic_id, question=request.question, answer=request.answer
            ),
            request_id=request_id,
        )
    except GenerationError as e:
        logger.warning("correction_request_failed", request_id=request_id, error_type=type(e).__name__)
        raise to_http_exception(e) from e

    correction = result.correction
    return CorrectionResponse(
        score=correction.score,
        feedback=correction.feedback,
        improvements=correction.improvements,
        dimensions=correction.dimensions,
        citations=[
            CitationCheck(
                reference=verdict.citation.original_span,
                law_code=verdict.citation.law_resolved,
                article=verdict.citation.article_number,
                verified=verdict.verified,
                failure_reason=verdict.failure_reason.value if verdict.failure_reason else None,
                content_match=verdict.content_match.match if verdict.content_match else None,
                confidence=verdict.content_match.confidence.value if verdict.content_match else None,
            )
            for verdict in result.verdicts
        ],
        verification_score=result.verification_score,
        prompt_version=result.prompt_version,
    )
