import asyncio
import logging
import random
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from research_network.api.channel import NullChannel
from research_network.core.base_agent import Agent, AgentConfig
from research_network.core.embedding import EmbeddingSpace
from research_network.core.errors import SessionFailedError
from research_network.core.llm import CompletionService
from research_network.core.logger import log_db_operation, log_research_step
from research_network.core.search import SearchService
from research_network.core.types import (
    AgentRole,
    ConceptCluster,
    EmbeddingPoint,
    EmbeddingType,
    EventType,
    Finding,
    Phase,
    ResearchPlan,
    ResearchSession,
    SessionStatus,
    Subtask,
    Synthesis,
    WorkerDescriptor,
)
from research_network.storage.database import RecordStore
from research_network.storage.memory import ContextEntry, ResearchMemory

from .citation_agent import CitationAgent
from .roster import WORKER_ROSTER, build_subtasks
from .subagent import ResearchSubagent

logger = logging.getLogger(__name__)

KEY_FINDING_THRESHOLD = 0.7
MAX_KEY_FINDINGS = 10

COMPLEXITY_KEYWORDS = (
    ("high", ("ethics", "bias", "quantum", "cybersecurity", "privacy")),
    ("medium", ("healthcare", "climate", "energy", "education")),
    ("low", ("basic", "introduction", "overview", "simple")),
)

THEME_KEYWORDS = (
    ("technical", ("algorithm", "technology", "system", "implementation")),
    ("ethical", ("ethics", "bias", "fairness", "privacy", "security")),
    ("social", ("impact", "society", "people", "community")),
    ("economic", ("cost", "benefit", "market", "business", "economic")),
    ("environmental", ("environment", "climate", "sustainability", "green")),
)

RECOMMENDATION_RULES = (
    ("ethical", "Consider ethical implications and bias mitigation strategies"),
    ("security", "Implement robust security measures and privacy protections"),
    ("scalability", "Plan for scalability and performance optimization"),
)

PLANNING_PROMPT = """Create a comprehensive research plan for the topic: "{topic}"

Break the topic into focused research areas covering:
1. Background and historical context
2. Current state and latest trends
3. Technical details and implementation
4. Impact and future implications

For each area, suggest the key questions a specialist should answer."""

SYNTHESIS_PROMPT = """Synthesize the following findings on "{topic}" into one coherent research report.

Structure the report in five parts:
1. Executive Summary
2. Key Findings
3. Analysis
4. Implications
5. Future Directions

Findings:
{findings}"""


def assess_complexity(topic: str) -> str:
    lowered = topic.lower()
    for level, keywords in COMPLEXITY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return level
    return "medium"


def group_by_theme(findings: Sequence[Finding]) -> Dict[str, List[str]]:
    """Finding ids grouped under the first theme whose keywords appear in the content."""
    themes: Dict[str, List[str]] = {}
    for finding in findings:
        content = finding.content.lower()
        theme = "general"
        for name, keywords in THEME_KEYWORDS:
            if any(keyword in content for keyword in keywords):
                theme = name
                break
        themes.setdefault(theme, []).append(finding.id)
    return themes


def recommend(findings: Sequence[Finding]) -> List[str]:
    recommendations = []
    for keyword, recommendation in RECOMMENDATION_RULES:
        if any(keyword in f.content.lower() for f in findings):
            recommendations.append(recommendation)
    return recommendations


def overall_confidence(findings: Sequence[Finding]) -> float:
    if not findings:
        return 0.0
    return sum(f.confidence for f in findings) / len(findings)


class LeadResearcher(Agent):
    """
    Lead Researcher: owns research sessions from planning to completion.

    Responsibilities:
    - Run the initial search and build a fixed-shape research plan
    - Fan subtasks out to research subagents concurrently and fan their findings in
    - Synthesize the findings and build citations
    - Keep the process-wide embedding space and push progress to the live channel

    Session state is authoritative in memory. The record store and the live
    channel are best-effort side effects: their failures are logged and never
    change a session's outcome.
    """

    def __init__(
        self,
        completion: CompletionService,
        search: SearchService,
        space: Optional[EmbeddingSpace] = None,
        channel: Optional[Any] = None,
        store: Optional[RecordStore] = None,
        memory: Optional[ResearchMemory] = None,
        subagent_count: int = 4,
        roster: Sequence[WorkerDescriptor] = WORKER_ROSTER,
        rng: Optional[random.Random] = None,
        citation_agent: Optional[CitationAgent] = None,
        max_retained_sessions: int = 100,
    ):
        super().__init__(
            AgentConfig(
                name="Lead Researcher",
                description="Plans research, coordinates subagents and synthesizes their findings",
                role=AgentRole.LEAD,
            ),
            completion,
        )
        if not 1 <= subagent_count <= len(roster):
            raise ValueError(f"subagent_count must be between 1 and {len(roster)}")
        if max_retained_sessions < 1:
            raise ValueError("max_retained_sessions must be at least 1")

        self.search = search
        self.space = space or EmbeddingSpace()
        self.channel = channel or NullChannel()
        self.store = store
        self.memory = memory or ResearchMemory()
        self.subagent_count = subagent_count
        self.roster = tuple(roster)
        self.rng = rng or random.Random()
        self.citation_agent = citation_agent or CitationAgent()
        self.max_retained_sessions = max_retained_sessions

        # Insertion ordered, oldest first.
        self._sessions: Dict[str, ResearchSession] = {}

    def _default_system_prompt(self) -> str:
        return (
            "You are a lead researcher coordinating a team of specialized research agents. "
            "Break research topics into focused areas, decide what each specialist should "
            "investigate, and combine their findings into clear, well-structured reports."
        )

    @property
    def workers(self) -> List[WorkerDescriptor]:
        return list(self.roster[:self.subagent_count])

    # Session access
    def get_session(self, session_id: str) -> Optional[ResearchSession]:
        return self._sessions.get(session_id)

    def list_sessions(self) -> List[ResearchSession]:
        return list(self._sessions.values())

    def _evict_finished(self) -> None:
        """Drop the oldest terminal sessions beyond `max_retained_sessions`. Live sessions stay."""
        excess = len(self._sessions) - self.max_retained_sessions
        if excess <= 0:
            return
        evicted = [s.id for s in self._sessions.values() if s.is_terminal][:excess]
        for session_id in evicted:
            del self._sessions[session_id]
            self.memory.forget(session_id)
        if evicted:
            logger.debug("Evicted %d finished sessions", len(evicted))

    # Embedding space access
    def get_embedding_space(self) -> List[EmbeddingPoint]:
        """Snapshot of the embedding space. Never waits on writers."""
        return self.space.snapshot()

    def get_concept_clusters(self) -> List[ConceptCluster]:
        return self.space.clusters()

    async def clear_embedding_space(self) -> None:
        self.space.clear()
        logger.info("Embedding space cleared")
        await self._emit(EventType.EMBEDDING_SPACE, [])

    # Session lifecycle
    async def start_session(self, topic: str) -> str:
        """Create a session and run it to a terminal status. Returns the session id."""
        session = await self.create_session(topic)
        await self.run_session(session)
        return session.id

    async def create_session(self, topic: str) -> ResearchSession:
        topic = (topic or "").strip()
        if not topic:
            raise ValueError("Research topic must not be empty")

        session = ResearchSession(topic=topic)
        self._sessions[session.id] = session
        if self.store is not None:
            session.record_id = await self._persist("create session", self.store.create_session, topic)

        log_research_step(session.id, "session", "started", {"topic": topic})
        await self._emit(EventType.SESSION_STARTED, {
            "sessionId": session.id,
            "topic": topic,
            "status": session.status.value,
        })
        return session

    async def run_session(self, session: ResearchSession) -> ResearchSession:
        """
        Run the research pipeline for `session`.

        Subagent failures are absorbed into fallback findings. Anything that
        escapes the pipeline itself marks the session failed and raises
        SessionFailedError.
        """
        start_time = time.time()
        try:
            await self._initial_search(session)
            plan = await self._create_plan(session)

            session.advance(SessionStatus.EXECUTING)
            await self._persist_status(session)
            await self._execute(session, plan)

            session.advance(SessionStatus.SYNTHESIZING)
            await self._persist_status(session)
            await self._synthesize(session)
            await self._build_citations(session)

            session.advance(SessionStatus.COMPLETED)
            await self._persist_status(session)
            if self.store is not None:
                await self._persist(
                    "record collaboration",
                    self.store.record_collaboration,
                    {f.agent_id for f in session.findings},
                )
        except Exception as e:
            logger.exception("Research session %s failed", session.id)
            if not session.is_terminal:
                session.mark_failed(str(e))
                await self._persist_status(session)
            log_research_step(session.id, "session", "failed", {"error": str(e)})
            self._evict_finished()
            await self._emit(EventType.ERROR, {"sessionId": session.id, "message": str(e)})
            raise SessionFailedError(session.id, str(e)) from e

        self._evict_finished()
        log_research_step(session.id, "session", "completed", {
            "findings": len(session.findings),
            "citations": len(session.citations),
            "duration_ms": int((time.time() - start_time) * 1000),
        })
        await self._emit(EventType.RESEARCH_COMPLETED, self._completion_payload(session))
        return session

    # Pipeline steps
    async def _initial_search(self, session: ResearchSession) -> None:
        result = await self.search.search_with_fallback(session.topic)
        result.embedding = await self.space.ingest(session.topic, result.results_text, {
            "session_id": session.id,
            "agent": self.name,
            "type": EmbeddingType.INITIAL_SEARCH.value,
        })
        session.set_initial_search(result)
        self.memory.add_context(session.id, ContextEntry(
            kind="initial_search",
            content=result.results_text,
            metadata={"provider": result.provider, "sources": list(result.sources)},
        ))
        log_research_step(session.id, "initial_search", "completed", {"provider": result.provider})
        await self._emit(EventType.SEARCH_RESULT, result.to_event())
        await self._emit(EventType.NEW_EMBEDDING, result.embedding.to_event())

    async def _create_plan(self, session: ResearchSession) -> ResearchPlan:
        advisory = await self._complete(PLANNING_PROMPT.format(topic=session.topic), fallback_hint="planning")
        plan = ResearchPlan(
            topic=session.topic,
            subtasks=build_subtasks(session.topic, self.workers),
            advisory_text=advisory,
            complexity=assess_complexity(session.topic),
        )
        session.set_plan(plan)
        self.memory.save_plan(session.id, plan)
        log_research_step(session.id, "planning", "completed", {
            "subtasks": [s.name for s in plan.subtasks],
            "complexity": plan.complexity,
        })
        await self._phase_completed(session, Phase.PLANNING, f"Research plan created with {len(plan.subtasks)} subtasks")
        return plan

    async def _execute(self, session: ResearchSession, plan: ResearchPlan) -> None:
        pairs = list(zip(self.workers, plan.subtasks))
        subagents = [
            (ResearchSubagent(worker, self.completion, self.search, rng=self.rng), subtask)
            for worker, subtask in pairs
        ]
        for subagent, subtask in subagents:
            if session.record_id is not None:
                await self._persist(
                    "record task", self.store.add_message, session.record_id, subagent.descriptor.id,
                    f"{subagent.name} will focus on {subtask.role} for {session.topic}", "task",
                )

        # Every subagent is started before any is awaited.
        await asyncio.gather(*(
            self._run_subagent(session, subagent, subtask) for subagent, subtask in subagents
        ))
        log_research_step(session.id, "execution", "completed", {"findings": len(session.findings)})
        await self._phase_completed(
            session, Phase.EXECUTION,
            f"{len(subagents)} subagents returned {len(session.findings)} findings",
        )

    async def _run_subagent(self, session: ResearchSession, subagent: ResearchSubagent, subtask: Subtask) -> List[Finding]:
        findings = await subagent.perform_research(subtask.query, topic=session.topic)
        session.add_findings(findings)

        for finding in findings:
            if session.record_id is not None:
                await self._persist("save finding", self.store.save_finding, session.record_id, finding)
            if self.store is not None:
                await self._persist(
                    "remember finding", self.store.remember,
                    finding.agent_id, "finding", finding.content, finding.confidence,
                )
            point = await self.space.ingest(subtask.query, finding.content, {
                "session_id": session.id,
                "agent": finding.agent_name,
                "agent_id": finding.agent_id,
                "type": EmbeddingType.SUBAGENT_RESEARCH.value,
                "source": finding.source,
            })
            await self._emit(EventType.AGENT_ANALYSIS, {
                "agent": finding.agent_name,
                "analysis": finding.content,
                "confidence": finding.confidence,
                "timestamp": finding.created_at.isoformat(),
            })
            await self._emit(EventType.NEW_EMBEDDING, point.to_event())
        return findings

    async def _synthesize(self, session: ResearchSession) -> Synthesis:
        findings = list(session.findings)
        combined = "\n\n".join(f"[{f.agent_name}] {f.content}" for f in findings)
        text = await self._complete(
            SYNTHESIS_PROMPT.format(topic=session.topic, findings=combined),
            fallback_hint="synthesis",
        )
        key_findings = [f for f in findings if f.confidence > KEY_FINDING_THRESHOLD][:MAX_KEY_FINDINGS]
        synthesis = Synthesis(
            text=text,
            key_findings=tuple(key_findings),
            themes=group_by_theme(findings),
            recommendations=tuple(recommend(findings)),
            overall_confidence=overall_confidence(findings),
        )
        session.set_synthesis(synthesis)
        self.memory.save_synthesis(session.id, synthesis)
        log_research_step(session.id, "synthesis", "completed", {
            "key_findings": len(key_findings),
            "themes": list(synthesis.themes),
        })
        await self._phase_completed(
            session, Phase.SYNTHESIS,
            f"Synthesis completed with {len(key_findings)} key findings",
        )
        return synthesis

    async def _build_citations(self, session: ResearchSession) -> None:
        citations = self.citation_agent.build_citations(session.id, session.findings)
        session.set_citations(citations)
        if session.record_id is not None:
            await self._persist("save citations", self.store.save_citations, session.record_id, citations)
        await self._phase_completed(session, Phase.EVALUATION, f"{len(citations)} citations created")

    # Side effects
    async def _phase_completed(self, session: ResearchSession, phase: Phase, message: str) -> None:
        await self._emit(EventType.PHASE_COMPLETED, {
            "sessionId": session.id,
            "phase": phase.value,
            "message": message,
        })

    async def _emit(self, event: EventType, payload: Any) -> None:
        try:
            await self.channel.emit(event.value, payload)
        except Exception as e:
            logger.warning("Live channel emit of %s failed: %s", event.value, e)

    async def _persist(self, description: str, operation: Callable[..., Any], *args: Any) -> Any:
        """Run one record store write off the event loop; failures are logged and swallowed."""
        try:
            return await asyncio.to_thread(operation, *args)
        except Exception as e:
            log_db_operation(description, "-", "error", error=str(e))
            return None

    async def _persist_status(self, session: ResearchSession) -> None:
        if self.store is None or session.record_id is None:
            return
        await self._persist(
            "update status", self.store.update_session_status,
            session.record_id, session.status.value, session.is_terminal,
        )

    def _completion_payload(self, session: ResearchSession) -> Dict[str, Any]:
        searches = []
        if session.initial_search is not None:
            searches.append(session.initial_search.to_event())
        searches.extend(f.search.to_event() for f in session.findings if f.search is not None)
        return {
            "sessionId": session.id,
            "topic": session.topic,
            "searchResults": searches,
            "agentAnalysis": [
                {"agent": f.agent_name, "analysis": f.content, "confidence": f.confidence}
                for f in session.findings
            ],
            "embeddingCount": len(self.space),
            "synthesis": session.synthesis.text if session.synthesis else None,
            "citations": [c.to_dict() for c in session.citations],
            "completedAt": (session.completed_at or datetime.now()).isoformat(),
        }
