"""Deterministic verification of legal citations against the corpus.

Two checks are applied to every citation:

1. Existence: the cited (law, article[, apartado]) must be an active row.
2. Content consistency: quantities (plazos, percentages) and named organs in
   the claim must also appear in the true article text.

The content check is a hallucination detector, not an equivalence prover:
without concrete evidence it answers ``match`` with ``low`` confidence.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass

import structlog

from ..database.repositories.corpus_repository import CorpusRepository, CorpusStoreError
from ..models.article import ArticleRecord
from ..models.citation import (
    Confidence,
    ContentMatch,
    ExtractedCitation,
    FailureReason,
    VerificationReport,
    VerificationVerdict,
)
from .citation_extractor import extract_citations
from .text_normalizer import fold_text

logger = structlog.get_logger()

INSTITUTIONAL_KEYWORDS: tuple[str, ...] = (
    "Consejo de Ministros",
    "Ministerio",
    "Tribunal",
    "Gobierno",
    "Cortes",
    "Senado",
    "Congreso",
    "Defensor del Pueblo",
    "Tribunal de Cuentas",
)

# Folded (accent-free) Spanish number words
NUMBER_WORDS: dict[str, int] = {
    "un": 1,
    "uno": 1,
    "una": 1,
    "dos": 2,
    "tres": 3,
    "cuatro": 4,
    "cinco": 5,
    "seis": 6,
    "siete": 7,
    "ocho": 8,
    "nueve": 9,
    "diez": 10,
    "quince": 15,
    "veinte": 20,
    "treinta": 30,
    "sesenta": 60,
}

_UNITS = r"(?P<unit>dias?|mes(?:es)?|anos?|horas?)\b"
_NUMBER = r"(?P<value>\d+|" + "|".join(sorted(NUMBER_WORDS, key=len, reverse=True)) + r")"
_DURATION_RE = re.compile(r"\b" + _NUMBER + r"\s+(?:\w+\s+)?" + _UNITS)
_PERCENT_RE = re.compile(r"\b(?P<value>\d+(?:[.,]\d+)?)\s*(?:%|por\s+ciento\b)")

_UNIT_NAMES = {"dia": "día", "mes": "mes", "ano": "año", "hora": "hora"}


@dataclass(frozen=True)
class Quantity:
    """A normalized duration or percentage."""

    value: float
    unit: str  # 'dia', 'mes', 'ano', 'hora' or '%'

    def __str__(self) -> str:
        number = f"{self.value:g}"
        if self.unit == "%":
            return f"{number}%"
        return f"{number} {_UNIT_NAMES[self.unit]}"


def _unit_base(unit: str) -> str:
    if unit.startswith("mes"):
        return "mes"
    return unit.rstrip("s")


def extract_quantities(text: str) -> list[Quantity]:
    """Find durations and percentages in a text.

    Durations accept digits or number words and one optional word between
    number and unit ("tres meses", "dos últimos años" -> value 2, unit año).
    Percentages accept "%" and "por ciento".

    Example:
        >>> [str(q) for q in extract_quantities("el plazo de tres meses y el 15 %")]
        ["3 mes", "15%"]
    """
    folded = fold_text(text)
    found: list[Quantity] = []

    for match in _DURATION_RE.finditer(folded):
        raw_value = match.group("value")
        value = float(raw_value) if raw_value.isdigit() else float(NUMBER_WORDS[raw_value])
        quantity = Quantity(value=value, unit=_unit_base(match.group("unit")))
        if quantity not in found:
            found.append(quantity)

    for match in _PERCENT_RE.finditer(folded):
        quantity = Quantity(value=float(match.group("value").replace(",", ".")), unit="%")
        if quantity not in found:
            found.append(quantity)

    return found


def find_institutions(text: str) -> list[str]:
    """Institutional keywords mentioned in a text (accent and case insensitive)."""
    folded = fold_text(text)
    return [kw for kw in INSTITUTIONAL_KEYWORDS if fold_text(kw) in folded]


def match_content(
    citation: ExtractedCitation,
    claim_text: str,
    article_text: str,
) -> ContentMatch:
    """Check a claim against the true text of the article it cites.

    Quantities stated in the claim must appear in the article; a missing
    one is a high-confidence mismatch. Named organs in the claim must also
    appear in the article; a missing one is a medium-confidence mismatch.
    With neither kind of evidence the verdict is match/low.

    Args:
        citation: Citation being checked (used for diagnostics)
        claim_text: Generated text that makes the claim
        article_text: Full text of the cited article

    Returns:
        ContentMatch verdict with a short human-readable explanation
    """
    claim_quantities = extract_quantities(claim_text)
    if claim_quantities:
        article_quantities = set(extract_quantities(article_text))
        missing = [q for q in claim_quantities if q not in article_quantities]
        if missing:
            return ContentMatch(
                match=False,
                confidence=Confidence.HIGH,
                details=(
                    f"Cantidades no presentes en el artículo {citation.article_number} "
                    f"{citation.law_resolved or citation.law_raw}: "
                    + ", ".join(str(q) for q in missing)
                ),
            )
        return ContentMatch(
            match=True,
            confidence=Confidence.HIGH,
            details="Cantidades verificadas: " + ", ".join(str(q) for q in claim_quantities),
        )

    claim_organs = find_institutions(claim_text)
    if claim_organs:
        folded_article = fold_text(article_text)
        unmatched = [kw for kw in claim_organs if fold_text(kw) not in folded_article]
        if unmatched:
            return ContentMatch(
                match=False,
                confidence=Confidence.MEDIUM,
                details="Órganos no presentes en el artículo: " + ", ".join(unmatched),
            )
        return ContentMatch(
            match=True,
            confidence=Confidence.MEDIUM,
            details="Órganos verificados: " + ", ".join(claim_organs),
        )

    return ContentMatch(
        match=True,
        confidence=Confidence.LOW,
        details="Sin plazos ni órganos que verificar",
    )


def article_number_variant(article_number: str) -> str | None:
    """Alternative spelling of an article number, if any.

    Example:
        >>> article_number_variant("9 bis")
        "9bis"
        >>> article_number_variant("9bis")
        "9 bis"
        >>> article_number_variant("14") is None
        True
    """
    spaced = re.match(r"^(\d+)\s+(bis|ter|quater)$", article_number, re.IGNORECASE)
    if spaced:
        return f"{spaced.group(1)}{spaced.group(2)}"
    joined = re.match(r"^(\d+)(bis|ter|quater)$", article_number, re.IGNORECASE)
    if joined:
        return f"{joined.group(1)} {joined.group(2)}"
    return None


class CitationVerifier:
    """Looks up citations in the corpus and grades their content.

    Lookups run sequentially because the repository shares one session.

    Example:
        >>> verifier = CitationVerifier(CorpusRepository(db=session))
        >>> verdict = await verifier.verify(citation)
        >>> report = await verifier.verify_all_citations(feedback_text)
    """

    def __init__(self, repository: CorpusRepository) -> None:
        self.repository = repository

    async def verify(self, citation: ExtractedCitation) -> VerificationVerdict:
        """Verify that a citation points to an active article.

        Lookup order: exact (with apartado), without apartado, then the
        alternative spelling of suffixed numbers. Store failures are reported
        as ``lookup_error`` and never raised.
        """
        if citation.law_resolved is None:
            return VerificationVerdict(
                citation=citation,
                verified=False,
                failure_reason=FailureReason.UNRESOLVED_LAW,
            )

        lookups: list[tuple[str, str | None]] = []
        if citation.section:
            lookups.append((citation.article_number, citation.section))
        lookups.append((citation.article_number, None))
        variant = article_number_variant(citation.article_number)
        if variant is not None:
            lookups.append((variant, None))

        try:
            for article_number, section in lookups:
                article = await self.repository.get_article(
                    citation.law_resolved, article_number, section
                )
                if article is not None:
                    return self._found(citation, article)
        except CorpusStoreError as e:
            logger.warning(
                "citation_lookup_failed",
                law=citation.law_resolved,
                article=citation.article_number,
                error=str(e),
            )
            return VerificationVerdict(
                citation=citation,
                verified=False,
                failure_reason=FailureReason.LOOKUP_ERROR,
            )

        return VerificationVerdict(
            citation=citation,
            verified=False,
            failure_reason=FailureReason.NOT_FOUND,
        )

    @staticmethod
    def _found(citation: ExtractedCitation, article: ArticleRecord) -> VerificationVerdict:
        return VerificationVerdict(
            citation=citation,
            verified=True,
            matched_article_text=article.full_text,
        )

    async def verify_all_citations(
        self,
        text: str,
        claim_text: str | None = None,
        request_id: str | None = None,
    ) -> VerificationReport:
        """Extract, verify and content-check every citation in a text.

        Args:
            text: Text to scan for citations
            claim_text: Text whose claims are checked (defaults to ``text``)
            request_id: Correlation id for logs

        Returns:
            VerificationReport; verified verdicts carry a content match
        """
        start = time.perf_counter()
        citations = extract_citations(text)
        if not citations:
            return VerificationReport()

        verdicts: list[VerificationVerdict] = []
        for citation in citations:
            verdict = await self.verify(citation)
            if verdict.verified and verdict.matched_article_text is not None:
                verdict = verdict.model_copy(
                    update={
                        "content_match": match_content(
                            citation, claim_text or text, verdict.matched_article_text
                        )
                    }
                )
            verdicts.append(verdict)

        report = VerificationReport(verdicts=verdicts)
        logger.info(
            "citation_verification_kpis",
            request_id=request_id,
            citations_total=report.total,
            citations_verified=report.verified_count,
            citations_failed=report.total - report.verified_count,
            verification_score=round(report.score, 3),
            duration_ms=round((time.perf_counter() - start) * 1000),
        )
        return report
