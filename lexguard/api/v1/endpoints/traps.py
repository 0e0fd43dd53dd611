"""Trap exercise endpoints."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Header, status

from ....agents.trap_exercises import TrapExerciseService
from ....core.errors import GenerationError
from ....models.trap import Detection
from ..dependencies import get_trap_service
from ..errors import to_http_exception
from ..schemas import (
    TrapCreateRequest,
    TrapExerciseResponse,
    TrapGradeRequest,
    TrapGradeResponse,
    TrapOutcome,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/v1", tags=["traps"])


@router.post(
    "/traps",
    response_model=TrapExerciseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a trap exercise",
    responses={
        422: {"description": "Invalid request or no suitable article"},
        502: {"description": "Provider returned no verifiable exercise"},
        503: {"description": "Provider or corpus temporarily unavailable"},
    },
)
async def create_trap(
    request: TrapCreateRequest,
    service: TrapExerciseService = Depends(get_trap_service),
    x_request_id: str | None = Header(default=None),
) -> TrapExerciseResponse:
    """Inject subtle errors into a random article for the candidate to find."""
    request_id = x_request_id or str(uuid.uuid4())
    try:
        exercise = await service.create(
            topic_id=request.topic_id,
            error_count=request.error_count,
            requester_id=request.requester_id,
            request_id=request_id,
        )
    except GenerationError as e:
        logger.warning("trap_request_failed", request_id=request_id, error_type=type(e).__name__)
        raise to_http_exception(e) from e

    return TrapExerciseResponse(
        trap_id=exercise.id,
        trap_text=exercise.trap_text,
        error_count=exercise.error_count,
        law_name=exercise.law_name,
        article_number=exercise.article_number,
        chapter_heading=exercise.chapter_heading,
    )


@router.post(
    "/traps/{trap_id}/grade",
    response_model=TrapGradeResponse,
    summary="Grade a trap exercise",
    responses={
        403: {"description": "Exercise belongs to another requester"},
        404: {"description": "Unknown exercise"},
        409: {"description": "Exercise already graded"},
    },
)
async def grade_trap(
    trap_id: uuid.UUID,
    request: TrapGradeRequest,
    service: TrapExerciseService = Depends(get_trap_service),
) -> TrapGradeResponse:
    """Compare the detections with the injected errors. No model is involved."""
    detections = [
        Detection(detected_value=d.detected_value, proposed_original=d.proposed_original)
        for d in request.detections
    ]
    try:
        _, result = await service.grade(trap_id, detections, requester_id=request.requester_id)
    except GenerationError as e:
        logger.warning("trap_grade_failed", trap_id=str(trap_id), error_type=type(e).__name__)
        raise to_http_exception(e) from e

    return TrapGradeResponse(
        trap_id=trap_id,
        score=result.score,
        hits=result.hits,
        total=result.total,
        outcomes=[
            TrapOutcome(
                original_value=outcome.error.original_value,
                trap_value=outcome.error.trap_value,
                explanation=outcome.error.explanation,
                detected=outcome.detected,
                correction_right=outcome.correction_right,
            )
            for outcome in result.outcomes
        ],
    )
