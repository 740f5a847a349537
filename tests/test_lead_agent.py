"""Tests for the lead researcher's session pipeline."""
import asyncio
import sqlite3
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest

from research_network.agents.lead_agent import (
    LeadResearcher,
    assess_complexity,
    group_by_theme,
    recommend,
)
from research_network.agents.roster import WORKER_ROSTER
from research_network.core.errors import SessionFailedError
from research_network.core.llm import FALLBACK_COMPLETIONS, CompletionService
from research_network.core.search import FALLBACK_SOURCES, SearchService
from research_network.core.types import Finding, SessionStatus
from research_network.storage.database import RecordStore

from .conftest import completion_response

CANNED = dict(FALLBACK_COMPLETIONS)


class TestOfflineSession:
    @pytest.mark.asyncio
    async def test_climate_change_session_completes_on_fallbacks(self, offline_lead):
        session_id = await offline_lead.start_session("climate change")
        session = offline_lead.get_session(session_id)

        assert session.status == SessionStatus.COMPLETED
        assert session.completed_at is not None
        assert len(session.findings) == 4
        assert all(f.source.endswith("_fallback_analysis") for f in session.findings)
        assert CANNED["synthesis"] in session.synthesis.text
        assert session.plan.advisory_text == CANNED["planning"]
        assert len(session.plan.subtasks) == 4

    @pytest.mark.asyncio
    async def test_fallback_citations_are_deduplicated(self, offline_lead):
        session_id = await offline_lead.start_session("climate change")
        session = offline_lead.get_session(session_id)

        assert [c.source_title for c in session.citations] == list(FALLBACK_SOURCES)
        assert [c.position for c in session.citations] == [1, 2]
        assert all(c.source_url is None for c in session.citations)

    @pytest.mark.asyncio
    async def test_events_follow_the_pipeline(self, offline_lead, channel):
        session_id = await offline_lead.start_session("climate change")

        names = channel.names()
        assert names[0] == "session_started"
        assert names[1:3] == ["perplexity_result", "newEmbedding"]
        assert names.count("agent_analysis") == 4
        assert names.count("newEmbedding") == 5
        assert names[-1] == "research_completed"

        phases = [p["phase"] for p in channel.of_type("phase_completed")]
        assert phases == ["planning", "execution", "synthesis", "evaluation"]

        started = channel.of_type("session_started")[0]
        assert started == {"sessionId": session_id, "topic": "climate change", "status": "planning"}

        completed = channel.last("research_completed")
        assert completed["sessionId"] == session_id
        assert completed["embeddingCount"] == 5
        assert len(completed["agentAnalysis"]) == 4

    @pytest.mark.asyncio
    async def test_embedding_points_are_tagged(self, offline_lead):
        session_id = await offline_lead.start_session("climate change")
        types = [p.metadata["type"] for p in offline_lead.get_embedding_space()]
        assert types.count("initial_search") == 1
        assert types.count("subagent_research") == 4
        assert all(p.metadata["session_id"] == session_id for p in offline_lead.get_embedding_space())

    @pytest.mark.asyncio
    async def test_session_is_persisted(self, offline_lead, store):
        session_id = await offline_lead.start_session("quantum computing")
        session = offline_lead.get_session(session_id)

        row = store.get_session(session.record_id)
        assert row["status"] == "completed"
        assert row["end_time"] is not None
        assert len(store.get_messages(session.record_id, "finding")) == 4
        assert len(store.get_messages(session.record_id, "task")) == 4
        assert len(store.get_citations(session.record_id)) == 2
        assert len(store.list_connections()) == 6
        assert store.sessions_missing_citations() == []

    @pytest.mark.asyncio
    async def test_working_memory(self, offline_lead):
        session_id = await offline_lead.start_session("healthcare")
        memory = offline_lead.memory
        assert memory.get_plan(session_id) is not None
        assert memory.get_synthesis(session_id) is not None
        assert memory.retrieve_context(session_id)[0].kind == "initial_search"


class TestLiveSession:
    @pytest.mark.asyncio
    async def test_findings_come_from_the_provider(self, live_lead):
        session_id = await live_lead.start_session("grid storage")
        session = live_lead.get_session(session_id)

        assert session.status == SessionStatus.COMPLETED
        assert {f.source for f in session.findings} == {
            "background_research_ai_analysis_with_stub",
            "current_trends_ai_analysis_with_stub",
            "technical_analysis_ai_analysis_with_stub",
            "impact_assessment_ai_analysis_with_stub",
        }
        assert all(0 <= f.confidence <= 1 for f in session.findings)
        assert len(session.synthesis.key_findings) == 4

    @pytest.mark.asyncio
    async def test_citations_prefer_links_then_sources(self, live_lead):
        session = live_lead.get_session(await live_lead.start_session("grid storage"))

        urls = [c.source_url for c in session.citations]
        assert urls == ["https://example.org/a", "https://example.org/b", None, None]
        assert len({c.citation_text for c in session.citations}) == 4

    @pytest.mark.asyncio
    async def test_workers_run_concurrently(self, channel, store, space):
        in_flight = 0
        peak = 0

        async def slow_completion(**kwargs):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return completion_response("text")

        client = MagicMock()
        client.chat.completions.create = slow_completion
        lead = LeadResearcher(CompletionService(client), SearchService(), space=space, channel=channel, store=store)

        await lead.start_session("ocean currents")

        assert peak == 4

    @pytest.mark.asyncio
    async def test_five_subagents(self, channel, space):
        lead = LeadResearcher(CompletionService(), SearchService(), space=space, channel=channel, subagent_count=5)
        session = lead.get_session(await lead.start_session("robotics"))
        assert len(session.findings) == 5
        assert session.plan.subtasks[-1].name == "cross_domain"


class TestSessionFailures:
    @pytest.mark.asyncio
    async def test_empty_topic_is_rejected(self, offline_lead):
        with pytest.raises(ValueError):
            await offline_lead.start_session("   ")
        assert offline_lead.list_sessions() == []

    @pytest.mark.asyncio
    async def test_initial_search_failure_fails_the_session(self, offline_lead, channel):
        offline_lead.search = MagicMock()
        offline_lead.search.search_with_fallback = AsyncMock(side_effect=RuntimeError("search exploded"))

        with pytest.raises(SessionFailedError) as exc_info:
            await offline_lead.start_session("volcanoes")

        session = offline_lead.get_session(exc_info.value.session_id)
        assert session.status == SessionStatus.FAILED
        assert session.error == "search exploded"
        assert session.completed_at is not None
        assert channel.last("error")["message"] == "search exploded"
        assert "research_completed" not in channel.names()

    @pytest.mark.asyncio
    async def test_store_failures_do_not_change_the_outcome(self, offline_lead):
        broken = MagicMock()
        broken.create_session.side_effect = RuntimeError("disk full")
        offline_lead.store = broken

        session = offline_lead.get_session(await offline_lead.start_session("climate change"))

        assert session.status == SessionStatus.COMPLETED
        assert session.record_id is None

    @pytest.mark.asyncio
    async def test_channel_failures_are_ignored(self, offline_lead):
        offline_lead.channel = MagicMock()
        offline_lead.channel.emit = AsyncMock(side_effect=ConnectionError("socket closed"))

        session = offline_lead.get_session(await offline_lead.start_session("climate change"))

        assert session.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_invalid_subagent_count(self):
        with pytest.raises(ValueError):
            LeadResearcher(CompletionService(), SearchService(), subagent_count=0)
        with pytest.raises(ValueError):
            LeadResearcher(CompletionService(), SearchService(), subagent_count=6)


class CrashingStore(RecordStore):
    """Record store that loses the citation write and the final status update."""

    def save_citations(self, session_key, citations):
        raise sqlite3.OperationalError("disk I/O error")

    def update_session_status(self, record_id, status, finished=False):
        if status == "completed":
            raise sqlite3.OperationalError("disk I/O error")
        super().update_session_status(record_id, status, finished)


class ThreadRecordingStore(RecordStore):
    def __init__(self, path):
        super().__init__(path)
        self.writer_threads = set()

    def save_finding(self, record_id, finding):
        self.writer_threads.add(threading.get_ident())
        return super().save_finding(record_id, finding)


class TestPersistence:
    @pytest.mark.asyncio
    async def test_findings_are_remembered_by_their_agent(self, offline_lead, store):
        session = offline_lead.get_session(await offline_lead.start_session("climate change"))

        finding = next(f for f in session.findings if f.agent_id == 1)
        recalled = store.recall(1)
        assert [row["content"] for row in recalled] == [finding.content]
        assert recalled[0]["memory_type"] == "finding"
        assert recalled[0]["importance"] == pytest.approx(finding.confidence)
        assert store.recall(5) == []

    @pytest.mark.asyncio
    async def test_lost_citation_write_is_detectable(self, channel, space):
        store = CrashingStore(":memory:")
        store.seed_agents(WORKER_ROSTER)
        lead = LeadResearcher(CompletionService(), SearchService(), space=space, channel=channel, store=store)

        session = lead.get_session(await lead.start_session("climate change"))

        assert session.status == SessionStatus.COMPLETED
        missing = store.sessions_missing_citations()
        assert [row["id"] for row in missing] == [session.record_id]
        assert missing[0]["status"] == "synthesizing"
        store.close()

    @pytest.mark.asyncio
    async def test_store_writes_run_off_the_event_loop(self, channel, space):
        store = ThreadRecordingStore(":memory:")
        store.seed_agents(WORKER_ROSTER)
        lead = LeadResearcher(CompletionService(), SearchService(), space=space, channel=channel, store=store)

        await lead.start_session("climate change")

        assert store.writer_threads
        assert threading.get_ident() not in store.writer_threads
        assert store.counts()["messages"] == 8
        store.close()


class TestSessionRetention:
    @pytest.mark.asyncio
    async def test_oldest_finished_sessions_are_evicted(self, channel, space):
        lead = LeadResearcher(CompletionService(), SearchService(), space=space, channel=channel,
                              max_retained_sessions=2)

        first = await lead.start_session("first topic")
        second = await lead.start_session("second topic")
        third = await lead.start_session("third topic")

        assert [s.id for s in lead.list_sessions()] == [second, third]
        assert lead.get_session(first) is None
        assert lead.memory.get_plan(first) is None
        assert lead.memory.get_plan(third) is not None

    @pytest.mark.asyncio
    async def test_live_sessions_are_never_evicted(self, channel, space):
        lead = LeadResearcher(CompletionService(), SearchService(), space=space, channel=channel,
                              max_retained_sessions=1)
        waiting = await lead.create_session("not started yet")

        await lead.start_session("finished topic")

        assert lead.get_session(waiting.id) is waiting

    def test_retention_must_keep_at_least_one_session(self):
        with pytest.raises(ValueError):
            LeadResearcher(CompletionService(), SearchService(), max_retained_sessions=0)


class TestEmbeddingSpaceAccess:
    @pytest.mark.asyncio
    async def test_space_grows_across_sessions_until_cleared(self, offline_lead, channel):
        sizes = []
        for topic in ("climate change", "quantum computing", "cybersecurity"):
            await offline_lead.start_session(topic)
            sizes.append(len(offline_lead.get_embedding_space()))
        assert sizes == sorted(sizes) and sizes[-1] == 15

        await offline_lead.clear_embedding_space()

        assert offline_lead.get_embedding_space() == []
        assert offline_lead.get_concept_clusters() == []
        assert channel.names()[-1] == "embeddingSpace"
        assert channel.last("embeddingSpace") == []

    @pytest.mark.asyncio
    async def test_concurrent_sessions_share_the_space(self, offline_lead):
        ids = await asyncio.gather(
            offline_lead.start_session("climate change"),
            offline_lead.start_session("healthcare"),
        )
        assert len(set(ids)) == 2
        assert len(offline_lead.get_embedding_space()) == 10
        assert all(offline_lead.get_session(i).status == SessionStatus.COMPLETED for i in ids)


class TestSynthesisHelpers:
    def test_complexity(self):
        assert assess_complexity("AI bias in hiring") == "high"
        assert assess_complexity("Climate adaptation") == "medium"
        assert assess_complexity("Simple overview of gardening") == "low"
        assert assess_complexity("Medieval castles") == "medium"

    def test_themes_and_recommendations(self):
        findings = [
            Finding(1, "A", "A new algorithm for scalability", "s", 0.9),
            Finding(2, "B", "Market cost pressures", "s", 0.8),
            Finding(3, "C", "Nothing specific", "s", 0.5),
        ]
        themes = group_by_theme(findings)
        assert themes == {
            "technical": [findings[0].id],
            "economic": [findings[1].id],
            "general": [findings[2].id],
        }
        assert recommend(findings) == ["Plan for scalability and performance optimization"]
