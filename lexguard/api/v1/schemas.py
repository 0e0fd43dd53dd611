"""API request/response schemas for LexGuard endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from ...models.correction import CorrectionDimensions
from ...models.items import Difficulty, GeneratedItem

# ============================================================================
# Batch Generation Schemas
# ============================================================================


class BatchGenerationRequest(BaseModel):
    """Request model for POST /api/v1/batches.

    Attributes:
        topic_id: Syllabus topic UUID
        count: Number of verified questions wanted (1-30)
        difficulty: easy/medium/hard (default medium)
        requester_id: Opaque id of the requesting user, stored with the batch
    """

    topic_id: uuid.UUID = Field(..., description="Syllabus topic id")
    count: int = Field(..., ge=1, le=30, description="Number of questions", examples=[10])
    difficulty: Difficulty = Field(Difficulty.MEDIUM, description="Question difficulty")
    requester_id: str | None = Field(None, max_length=100, description="Requesting user id")


class BatchGenerationResponse(BaseModel):
    """Response model for a generated batch."""

    batch_id: uuid.UUID
    topic_id: uuid.UUID
    prompt_version: str
    count: int = Field(..., description="Number of items delivered")
    items: list[GeneratedItem]
    created_at: datetime


# ============================================================================
# Correction Schemas
# ============================================================================


class CorrectionHttpRequest(BaseModel):
    """Request model for POST /api/v1/corrections."""

    topic_id: uuid.UUID
    question: str = Field(..., min_length=10, max_length=2000)
    answer: str = Field(..., min_length=50, max_length=20000)


class CitationCheck(BaseModel):
    """Verification outcome of one citation found in the feedback."""

    reference: str = Field(..., description="Citation as written")
    law_code: str | None = None
    article: str
    verified: bool
    failure_reason: str | None = None
    content_match: bool | None = None
    confidence: str | None = None


class CorrectionResponse(BaseModel):
    """Response model for a corrected answer."""

    score: float
    feedback: str
    improvements: list[str]
    dimensions: CorrectionDimensions
    citations: list[CitationCheck]
    verification_score: float = Field(..., ge=0, le=1)
    prompt_version: str


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    environment: str
    provider_circuits: dict[str, str] = Field(default_factory=dict)


# ============================================================================
# Trap Exercise Schemas
# ============================================================================


class TrapCreateRequest(BaseModel):
    """Request model for POST /api/v1/traps.

    Attributes:
        topic_id: Only pick articles tagged with this topic (any article when omitted)
        error_count: Number of errors to inject (1-3)
        requester_id: Opaque id of the requesting user; grading must repeat it
    """

    topic_id: uuid.UUID | None = None
    error_count: int = Field(3, ge=1, le=3, description="Errors to inject")
    requester_id: str | None = Field(None, max_length=100, description="Requesting user id")


class TrapExerciseResponse(BaseModel):
    """Exercise as shown to the candidate; the injected errors stay hidden."""

    trap_id: uuid.UUID
    trap_text: str
    error_count: int
    law_name: str
    article_number: str
    chapter_heading: str


class DetectionIn(BaseModel):
    detected_value: str = Field(..., min_length=1, max_length=500)
    proposed_original: str = Field(..., min_length=1, max_length=500)


class TrapGradeRequest(BaseModel):
    """Request model for POST /api/v1/traps/{trap_id}/grade."""

    detections: list[DetectionIn] = Field(..., min_length=1, max_length=10)
    requester_id: str | None = Field(None, max_length=100)


class TrapOutcome(BaseModel):
    original_value: str
    trap_value: str
    explanation: str
    detected: bool
    correction_right: bool


class TrapGradeResponse(BaseModel):
    """Grade of a submission, with every injected error revealed."""

    trap_id: uuid.UUID
    score: float = Field(..., ge=0, le=100)
    hits: int
    total: int
    outcomes: list[TrapOutcome]
