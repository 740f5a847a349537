"""Tests for research subagents and the persona roster."""
import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from research_network.agents.roster import (
    GENERIC_FALLBACK_CONFIDENCE,
    SPECIALIZATIONS,
    WORKER_ROSTER,
    build_subtasks,
    get_specialization,
)
from research_network.agents.subagent import ResearchSubagent
from research_network.core.llm import CompletionService
from research_network.core.search import SearchService
from research_network.core.types import WorkerDescriptor

from .conftest import StubSearchBackend, mock_llm_client


def make_subagent(descriptor, completion=None, search=None):
    return ResearchSubagent(
        descriptor,
        completion or CompletionService(),
        search or SearchService(),
        rng=random.Random(3),
    )


class TestRoster:
    def test_each_specialization_has_five_focus_points(self):
        for spec in SPECIALIZATIONS.values():
            assert len(spec.focus_points) == 5
            low, high = spec.confidence_band
            assert 0 <= low <= high <= 1

    def test_subtasks_have_distinct_queries(self):
        subtasks = build_subtasks("solar power", list(WORKER_ROSTER[:4]))
        assert [s.query for s in subtasks] == [
            "solar power background history",
            "solar power latest trends",
            "solar power technical implementation",
            "solar power impact future",
        ]
        assert len({s.role for s in subtasks}) == 4

    def test_cross_domain_subtask(self):
        subtasks = build_subtasks("robotics", list(WORKER_ROSTER))
        assert subtasks[-1].query == "robotics interdisciplinary connections"

    def test_unknown_expertise_gets_generic_profile(self):
        spec = get_specialization("marine_biology")
        assert spec.fallback_confidence == GENERIC_FALLBACK_CONFIDENCE
        assert "marine_biology" in spec.instruction


class TestResearchSubagent:
    @pytest.mark.asyncio
    async def test_successful_research(self):
        client = mock_llm_client("Deep technical findings.")
        search = SearchService(StubSearchBackend())
        subagent = make_subagent(WORKER_ROSTER[2], CompletionService(client), search)

        findings = await subagent.perform_research("grid storage technical implementation", topic="grid storage")

        assert len(findings) == 1
        finding = findings[0]
        assert finding.content == "Deep technical findings."
        assert finding.source == "technical_analysis_ai_analysis_with_stub"
        assert 0.85 <= finding.confidence <= 0.95
        assert not finding.is_fallback
        assert finding.search.links == ["https://example.org/a", "https://example.org/b"]

    @pytest.mark.asyncio
    async def test_prompt_and_system_message(self):
        client = mock_llm_client("ok")
        subagent = make_subagent(WORKER_ROSTER[0], CompletionService(client), SearchService(StubSearchBackend()))

        await subagent.perform_research("grid storage background history", topic="grid storage")

        messages = client.chat.completions.create.call_args.kwargs["messages"]
        system, user = messages[0]["content"], messages[1]["content"]
        assert "Explorer" in system and "background_research" in system and "curious and thorough" in system
        assert "Stub search results about the topic." in user
        assert user.count("\n- ") == 5

    @pytest.mark.asyncio
    async def test_fallback_when_nothing_configured(self):
        subagent = make_subagent(WORKER_ROSTER[0])
        findings = await subagent.perform_research("climate change background history", topic="climate change")

        finding = findings[0]
        assert finding.source == "background_research_fallback_analysis"
        assert finding.confidence == 0.8
        assert finding.content.startswith("Background research on climate change")
        # The fallback search payload is kept for citations
        assert finding.search is not None and finding.search.is_fallback

    @pytest.mark.asyncio
    async def test_fallback_when_completion_raises(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=RuntimeError("rate limited"))
        subagent = make_subagent(WORKER_ROSTER[3], CompletionService(client), SearchService(StubSearchBackend()))

        finding = (await subagent.perform_research("x impact future", topic="x"))[0]

        assert finding.is_fallback
        assert finding.confidence == 0.85
        assert finding.search.provider == "stub"

    @pytest.mark.asyncio
    async def test_fallback_when_search_backend_misbehaves(self):
        search = MagicMock()
        search.search_with_fallback = AsyncMock(side_effect=ValueError("bad payload"))
        subagent = make_subagent(WORKER_ROSTER[1], search=search)

        finding = (await subagent.perform_research("x latest trends", topic="x"))[0]

        assert finding.source == "current_trends_fallback_analysis"
        assert finding.search is None

    @pytest.mark.asyncio
    async def test_unknown_expertise_uses_generic_template(self):
        descriptor = WorkerDescriptor(9, "Diver", "marine_biology", "calm")
        finding = (await make_subagent(descriptor).perform_research("coral reefs", topic="coral reefs"))[0]

        assert finding.source == "marine_biology_fallback_analysis"
        assert "coral reefs" in finding.content and "marine_biology" in finding.content
        assert finding.confidence == GENERIC_FALLBACK_CONFIDENCE
