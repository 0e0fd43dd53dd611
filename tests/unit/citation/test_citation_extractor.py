"""Tests for citation extraction and law alias resolution."""

from __future__ import annotations

import pytest

from lexguard.utils.citation_aliases import resolve_law_code
from lexguard.utils.citation_extractor import (
    citation_from_reference,
    extract_citations,
    normalize_article_number,
)


@pytest.mark.unit
class TestLawAliases:
    """Alias table lookups."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("CE", "CE"),
            ("la Constitución Española", "CE"),
            ("constitucion", "CE"),
            ("Ley 39/2015", "LPAC"),
            ("LEY 40/2015", "LRJSP"),
            ("Ley Orgánica 3/2018", "LOPDGDD"),
            ("LO 3/2007", "LOIGUALDAD"),
            ("Real Decreto Legislativo 5/2015", "TREBEP"),
            ("  régimen   jurídico del sector público ", "LRJSP"),
            ("Ley 19/2013", "TRANSPARENCIA"),
        ],
    )
    def test_known_aliases_resolve(self, raw, expected):
        assert resolve_law_code(raw) == expected

    @pytest.mark.parametrize("raw", ["Ley 1/1900", "XYZ", "", "   "])
    def test_unknown_aliases_return_none(self, raw):
        assert resolve_law_code(raw) is None


@pytest.mark.unit
class TestExtractCitations:
    """Pattern coverage of extract_citations."""

    def test_suffix_article_with_preposition(self):
        """Given 'art. 9 bis de la LPAC', Then one citation with article '9 bis'."""
        citations = extract_citations("art. 9 bis de la LPAC")

        assert len(citations) == 1
        assert citations[0].article_number == "9 bis"
        assert citations[0].law_resolved == "LPAC"

    def test_article_with_section_and_letter(self):
        citations = extract_citations("Según el Art. 53.1.a de la Ley 39/2015, los interesados...")

        assert len(citations) == 1
        citation = citations[0]
        assert citation.article_number == "53"
        assert citation.section == "1.a"
        assert citation.law_raw == "Ley 39/2015"
        assert citation.law_resolved == "LPAC"

    def test_constitution_full_name(self):
        citations = extract_citations("Como dispone el artículo 14 de la Constitución Española.")

        assert len(citations) == 1
        assert citations[0].law_resolved == "CE"
        assert citations[0].article_number == "14"

    def test_organic_law_reference(self):
        citations = extract_citations("el artículo 7 de la Ley Orgánica 3/2018 regula")

        assert citations[0].law_resolved == "LOPDGDD"

    def test_unresolved_law_is_kept(self):
        """Given an unknown acronym, Then the citation is kept with law_resolved None."""
        citations = extract_citations("artículo 4 LXYZ")

        assert len(citations) == 1
        assert citations[0].law_raw == "LXYZ"
        assert citations[0].law_resolved is None
        assert not citations[0].is_resolved

    def test_spelled_out_numbers_are_not_matched(self):
        assert extract_citations("el artículo catorce CE reconoce la igualdad") == []

    def test_additional_provisions_are_not_matched(self):
        assert extract_citations("la disposición adicional primera de la LPAC") == []

    def test_lowercase_words_are_not_law_codes(self):
        assert extract_citations("el artículo 3 del mismo texto") == []

    def test_multiple_citations_in_order(self):
        text = "El art. 21 LPAC y el artículo 103 CE, así como el artículo 1 del TREBEP."
        citations = extract_citations(text)

        assert [c.law_resolved for c in citations] == ["LPAC", "CE", "TREBEP"]
        assert [c.article_number for c in citations] == ["21", "103", "1"]

    def test_repeated_span_is_deduplicated(self):
        citations = extract_citations("art. 21 LPAC ... y de nuevo art. 21 LPAC")
        assert len(citations) == 1

    def test_extraction_is_idempotent(self):
        text = "artículo 53.1 LPAC y art. 9 bis de la LPAC y artículo 14 CE"
        assert extract_citations(text) == extract_citations(text)

    def test_original_span_is_recorded(self):
        citations = extract_citations("Ver art. 21.3 LPAC.")
        assert citations[0].original_span == "art. 21.3 LPAC"
        assert citations[0].section == "3"

    def test_empty_text(self):
        assert extract_citations("") == []


@pytest.mark.unit
class TestStructuredReferences:
    """Citations built from provider citation fields."""

    def test_reference_is_resolved_and_normalized(self):
        citation = citation_from_reference("Ley 39/2015", "9BIS", "2")

        assert citation.law_resolved == "LPAC"
        assert citation.article_number == "9 bis"
        assert citation.section == "2"

    def test_empty_section_becomes_none(self):
        assert citation_from_reference("CE", "14", "").section is None

    @pytest.mark.parametrize("raw,expected", [("9bis", "9 bis"), ("9 BIS", "9 bis"), ("14", "14")])
    def test_normalize_article_number(self, raw, expected):
        assert normalize_article_number(raw) == expected
