"""
Unit tests for citation formatting, deduplication and ranking of search hits.
"""

from academic_workflow.references.citation import bibtex_for_reference, format_citation_apa, to_bibtex
from academic_workflow.references.dedup import dedup_key, deduplicate_references, sort_by_relevance
from academic_workflow.references.models import Reference, parse_year


class TestCitation:
    def test_apa(self):
        citation = format_citation_apa(["Yoshua Bengio", "Ian Goodfellow"], 2016, "Deep Learning", "MIT Press")

        assert citation == "(Bengio, 2016) Deep Learning. MIT Press."

    def test_apa_placeholders(self):
        assert format_citation_apa([], None, "Untitled") == "(Unknown, n.d.) Untitled"

    def test_bibtex(self):
        ref = Reference(title="Deep {Learning}", authors=["Yoshua Bengio", "Aaron Courville"],
                        year=2016, source="MIT Press", doi="10.1/dl")

        entry = bibtex_for_reference(ref)

        assert entry.startswith("@article{bengio2016,")
        assert "title={Deep Learning}" in entry
        assert "author={Yoshua Bengio and Aaron Courville}" in entry
        assert "doi={10.1/dl}" in entry

    def test_bibtex_many(self):
        refs = [Reference(title="A"), Reference(title="B")]

        assert to_bibtex(refs).count("@article{unknown,") == 2


class TestParseYear:
    def test_values(self):
        assert parse_year(2020) == 2020
        assert parse_year("2019-05-01") == 2019
        assert parse_year("Spring 2018") == 2018
        assert parse_year("n.d.") is None
        assert parse_year(None) is None
        assert parse_year(True) is None


class TestDedup:
    """Test identity of search hits across sources."""

    def test_doi_identity_ignores_case_and_prefix(self):
        a = Reference(title="One", doi="10.1/ABC")
        b = Reference(title="Something else", doi="https://doi.org/10.1/abc")

        assert dedup_key(a) == dedup_key(b)

    def test_title_and_first_author_identity(self):
        a = Reference(title="Deep Learning", authors=["Yoshua Bengio"])
        b = Reference(title="deep  learning", authors=["yoshua bengio", "Other"])

        assert dedup_key(a) == "title:deeplearningyoshua bengio"
        assert dedup_key(a) == dedup_key(b)

    def test_first_occurrence_kept(self):
        first = Reference(title="Deep Learning", authors=["Yoshua Bengio"], source="CrossRef")
        second = Reference(title="Deep Learning", authors=["Yoshua Bengio"], source="ArXiv")
        other = Reference(title="Deep Learning", authors=["Someone Else"], source="ArXiv")

        assert deduplicate_references([first, second, other]) == [first, other]


class TestSortByRelevance:
    def test_newest_first_then_title(self):
        refs = [
            Reference(title="beta", year=2020),
            Reference(title="Undated"),
            Reference(title="Alpha", year=2020),
            Reference(title="Gamma", year=2023),
        ]

        ordered = [r.title for r in sort_by_relevance(refs)]

        assert ordered == ["Gamma", "Alpha", "beta", "Undated"]
