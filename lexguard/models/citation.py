"""Citation extraction and verification data contracts.

These objects live only inside one verification pass and are never persisted.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class ExtractedCitation(BaseModel):
    """Legal citation found in generated text.

    Attributes:
        law_raw: Law reference as it appeared in the text
        law_resolved: Canonical law code, or None if the alias is unknown
        article_number: Article number, possibly with a suffix ("9 bis")
        section: Optional apartado ("1", "1.a")
        original_span: Matched substring, for diagnostics
    """

    law_raw: str
    law_resolved: str | None = None
    article_number: str
    section: str | None = None
    original_span: str

    model_config = {"frozen": True}

    @property
    def is_resolved(self) -> bool:
        return self.law_resolved is not None


class FailureReason(str, Enum):
    """Why a citation could not be verified."""

    UNRESOLVED_LAW = "unresolved_law"
    NOT_FOUND = "not_found"
    LOOKUP_ERROR = "lookup_error"


class Confidence(str, Enum):
    """Strength of the evidence behind a content-match verdict."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ContentMatch(BaseModel):
    """Outcome of comparing a claim with the true article text."""

    match: bool
    confidence: Confidence
    details: str = ""

    model_config = {"frozen": True}

    @property
    def is_rejection(self) -> bool:
        """Only medium/high confidence mismatches reject an item."""
        return not self.match and self.confidence != Confidence.LOW


class VerificationVerdict(BaseModel):
    """Result of looking up one citation in the corpus store."""

    citation: ExtractedCitation
    verified: bool
    matched_article_text: str | None = None
    failure_reason: FailureReason | None = None
    content_match: ContentMatch | None = None

    model_config = {"frozen": True}


class VerificationReport(BaseModel):
    """Aggregated verdicts for a whole text."""

    verdicts: list[VerificationVerdict] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.verdicts)

    @property
    def verified_count(self) -> int:
        return sum(1 for verdict in self.verdicts if verdict.verified)

    @property
    def lookup_failed(self) -> bool:
        return any(v.failure_reason == FailureReason.LOOKUP_ERROR for v in self.verdicts)

    @property
    def score(self) -> float:
        """Fraction of citations found in the store (1.0 when there are none)."""
        if not self.verdicts:
            return 1.0
        return self.verified_count / self.total
