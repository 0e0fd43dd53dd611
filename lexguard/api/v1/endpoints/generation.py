"""Batch generation endpoint.

POST /api/v1/batches runs the generation-verification loop for one topic and
persists the verified batch before answering.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Header, status

from ....agents.batch_generator import VerifiedBatchGenerator
from ....core.errors import GenerationError
from ....services.result_assembler import ResultAssembler
from ..dependencies import get_batch_generator, get_result_assembler
from ..errors import to_http_exception
from ..schemas import BatchGenerationRequest, BatchGenerationResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/v1", tags=["batches"])


@router.post(
    "/batches",
    response_model=BatchGenerationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a verified question batch",
    responses={
        201: {"description": "Batch generated and stored"},
        422: {"description": "Invalid topic, count or difficulty"},
        502: {"description": "No question passed verification"},
        503: {"description": "Provider or corpus temporarily unavailable"},
        500: {"description": "Batch could not be stored"},
    },
)
async def create_batch(
    request: BatchGenerationRequest,
    generator: VerifiedBatchGenerator = Depends(get_batch_generator),
    assembler: ResultAssembler = Depends(get_result_assembler),
    x_request_id: str | None = Header(default=None),
) -> BatchGenerationResponse:
    """Generate, verify and store a batch of multiple-choice questions.

    Raises:
        HTTPException: Mapped from the pipeline error taxonomy
    """
    request_id = x_request_id or str(uuid.uuid4())
    try:
        items = await generator.generate_verified_batch(
            request.topic_id, request.count, request.difficulty, request_id=request_id
        )
        batch = await assembler.deliver(
            items, request.topic_id, request.count, requester_id=request.requester_id
        )
    except GenerationError as e:
        logger.warning(
            "batch_request_failed",
            request_id=request_id,
            error_type=type(e).__name__,
            error=str(e),
        )
        raise to_http_exception(e) from e

    return BatchGenerationResponse(
        batch_id=batch.id,
        topic_id=batch.topic_id,
        prompt_version=batch.prompt_version,
        count=len(batch.items),
        items=batch.items,
        created_at=batch.created_at,
    )
