"""Extraction of legal citations from generated text.

Recognized forms:
    artículo 14 CE
    art. 53.1 LPAC
    Art. 53.1.a de la Ley 39/2015
    artículo 14 de la Constitución Española
    art. 9 bis de la LPAC
    artículo 7 de la Ley Orgánica 3/2018
    artículo 20 del Real Decreto Legislativo 5/2015

Only digit article numbers are matched ("artículo catorce" is ignored) and
non-article provisions ("disposición adicional") are out of scope.
"""

from __future__ import annotations

import re

from ..models.citation import ExtractedCitation
from .citation_aliases import resolve_law_code

# Case-insensitive pieces are scoped with (?i:...) so that the bare
# upper-case code alternative only matches real acronyms (CE, LPAC...).
_ARTICLE_PREFIX = r"\b(?i:art[íi]culo\.?|art\.)\s*"
_ARTICLE_NUMBER = r"(?P<number>\d+(?:\s?(?i:bis|ter|quater)\b)?)"
_SECTION = r"(?:\.(?P<section>\d+(?:\.[a-z])?))?"
_PREPOSITION = r"(?:\s+(?i:de\s+la|del|de))?\s+"
_LAW = (
    r"(?P<law>"
    r"(?i:ley\s+org[áa]nica\s+\d+/\d{4})"
    r"|(?i:real\s+decreto\s+legislativo\s+\d+/\d{4})"
    r"|(?i:ley\s+\d+/\d{4})"
    r"|(?:LO|RDL)\s+\d+/\d{4}"
    r"|(?i:(?:la\s+)?constituci[óo]n(?:\s+espa[ñn]ola)?)"
    r"|[A-Z][A-Z0-9]{1,11}\b"
    r")"
)

CITATION_RE = re.compile(_ARTICLE_PREFIX + _ARTICLE_NUMBER + _SECTION + _PREPOSITION + _LAW)

_SUFFIX_RE = re.compile(r"^(\d+)\s?(bis|ter|quater)$", re.IGNORECASE)


def normalize_article_number(number: str) -> str:
    """Canonical article number: '9bis' / '9 BIS' -> '9 bis'."""
    match = _SUFFIX_RE.match(number.strip())
    if match:
        return f"{match.group(1)} {match.group(2).lower()}"
    return number.strip()


def extract_citations(text: str) -> list[ExtractedCitation]:
    """Extract every legal citation from a text.

    Pure function: same input, same output. Citations whose law cannot be
    resolved are kept with ``law_resolved=None``.

    Args:
        text: Generated text to scan

    Returns:
        Citations in order of appearance, one per distinct matched span

    Example:
        >>> [c.article_number for c in extract_citations("art. 9 bis de la LPAC")]
        ["9 bis"]
    """
    if not text:
        return []

    citations: list[ExtractedCitation] = []
    seen: set[str] = set()

    for match in CITATION_RE.finditer(text):
        span = match.group(0).strip()
        if span in seen:
            continue
        seen.add(span)

        law_raw = " ".join(match.group("law").split())
        citations.append(
            ExtractedCitation(
                law_raw=law_raw,
                law_resolved=resolve_law_code(law_raw),
                article_number=normalize_article_number(match.group("number")),
                section=match.group("section"),
                original_span=span,
            )
        )

    return citations


def citation_from_reference(law: str, article: str, section: str | None = None) -> ExtractedCitation:
    """Build a citation from the structured fields a provider returned.

    Example:
        >>> citation_from_reference("Ley 39/2015", "21", "3").law_resolved
        "LPAC"
    """
    law_raw = " ".join(law.split())
    article_number = normalize_article_number(article)
    section_part = f".{section}" if section else ""
    return ExtractedCitation(
        law_raw=law_raw,
        law_resolved=resolve_law_code(law_raw),
        article_number=article_number,
        section=section or None,
        original_span=f"artículo {article_number}{section_part} {law_raw}",
    )
