"""Tests for citation building."""
import re

from research_network.agents.citation_agent import MAX_CITATIONS, CitationAgent, derive_title
from research_network.core.types import Finding, SearchResult


def finding_with(links=(), sources=(), agent_id=1):
    search = SearchResult(query="q", results_text="text", sources=list(sources), links=list(links), provider="stub")
    return Finding(agent_id, f"Agent {agent_id}", "content", "stub", 0.9, search=search)


class TestDeriveTitle:
    def test_url_becomes_host_and_last_segment(self):
        assert derive_title("https://www.nature.com/articles/quantum-error-rates") == "nature.com: quantum error rates"

    def test_bare_host(self):
        assert derive_title("https://arxiv.org/") == "arxiv.org"

    def test_plain_source_loses_list_marker_and_inline_url(self):
        assert derive_title("1. IEEE Survey (https://ieee.org/x)") == "IEEE Survey"

    def test_long_titles_are_truncated(self):
        title = derive_title("word " * 60)
        assert title.endswith("...")
        assert len(title) <= 100 + len("...")


class TestCitationAgent:
    def test_links_come_before_sources_and_duplicates_are_dropped(self):
        findings = [
            finding_with(links=["https://a.org/x"], sources=["Source A"], agent_id=1),
            finding_with(links=["https://a.org/x", "https://b.org/y"], sources=["Source A", "Source B"], agent_id=2),
        ]

        citations = CitationAgent().build_citations("s1", findings)

        assert [c.source_title for c in citations] == ["a.org: x", "Source A", "b.org: y", "Source B"]
        assert [c.position for c in citations] == [1, 2, 3, 4]
        # First-seen source keeps its original finding
        assert citations[0].finding_id == findings[0].id
        assert citations[2].finding_id == findings[1].id

    def test_citation_text_format(self):
        citations = CitationAgent().build_citations("s1", [finding_with(links=["https://a.org/x"], sources=["Book"])])

        assert re.fullmatch(
            r"\[1\] a\.org: x\. Available at: https://a\.org/x\. Accessed \d{4}-\d{2}-\d{2}\.",
            citations[0].citation_text,
        )
        assert re.fullmatch(r"\[2\] Book\. Accessed \d{4}-\d{2}-\d{2}\.", citations[1].citation_text)
        assert citations[1].source_url is None
        assert all(c.session_id == "s1" for c in citations)

    def test_capped(self):
        links = [f"https://site{i}.org/page" for i in range(30)]
        citations = CitationAgent().build_citations("s1", [finding_with(links=links)])
        assert len(citations) == MAX_CITATIONS
        assert citations[-1].position == MAX_CITATIONS

    def test_findings_without_search_contribute_nothing(self):
        bare = Finding(1, "A", "content", "x_fallback_analysis", 0.6)
        assert CitationAgent().build_citations("s1", [bare]) == []

    def test_blank_sources_are_skipped(self):
        citations = CitationAgent().build_citations("s1", [finding_with(sources=["  ", "", "Real"])])
        assert [c.source_title for c in citations] == ["Real"]
