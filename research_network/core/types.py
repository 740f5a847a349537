from enum import Enum
from typing import List, Dict, Any, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime
import uuid

from .errors import InvalidTransitionError, SessionClosedError
from .utils import clamp


class AgentRole(Enum):
    LEAD = "lead"
    SUBAGENT = "subagent"


class SessionStatus(Enum):
    PLANNING = "planning"
    EXECUTING = "executing"
    SYNTHESIZING = "synthesizing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED)


# Forward-only state machine; FAILED is reachable from every live status.
ALLOWED_TRANSITIONS = {
    SessionStatus.PLANNING: {SessionStatus.EXECUTING, SessionStatus.FAILED},
    SessionStatus.EXECUTING: {SessionStatus.SYNTHESIZING, SessionStatus.COMPLETED, SessionStatus.FAILED},
    SessionStatus.SYNTHESIZING: {SessionStatus.COMPLETED, SessionStatus.FAILED},
    SessionStatus.COMPLETED: set(),
    SessionStatus.FAILED: set(),
}


class Phase(Enum):
    PLANNING = "planning"
    EXECUTION = "execution"
    SYNTHESIS = "synthesis"
    EVALUATION = "evaluation"


class CapabilityMode(Enum):
    LIVE = "live"  # Real providers when configured, fallbacks otherwise
    DEMO = "demo"  # Deterministic fallbacks only


class EmbeddingType(Enum):
    INITIAL_SEARCH = "initial_search"
    SUBAGENT_RESEARCH = "subagent_research"


class EventType(Enum):
    """Live channel event names, kept verbatim for browser compatibility."""
    SESSION_STARTED = "session_started"
    PHASE_COMPLETED = "phase_completed"
    SEARCH_RESULT = "perplexity_result"
    AGENT_ANALYSIS = "agent_analysis"
    NEW_EMBEDDING = "newEmbedding"
    EMBEDDING_SPACE = "embeddingSpace"
    AGENTS_DATA = "agentsData"
    AGENT_DETAILS = "agentDetails"
    AGENT_MESSAGES = "agentMessages"
    RESEARCH_COMPLETED = "research_completed"
    ERROR = "error"


@dataclass(frozen=True)
class WorkerDescriptor:
    """Identity and persona of a research subagent. Presentation fields never drive control flow."""
    id: int
    name: str
    expertise: str
    personality: str
    color: str = "#00ff88"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "expertise": self.expertise,
            "personality": self.personality,
            "color": self.color,
        }


@dataclass(frozen=True)
class Subtask:
    """One unit of the research plan, assigned to a single worker role."""
    name: str
    focus: str
    role: str
    query: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "focus": self.focus, "role": self.role, "query": self.query}


@dataclass(frozen=True)
class ResearchPlan:
    topic: str
    subtasks: Tuple[Subtask, ...]
    advisory_text: str = ""
    complexity: str = "medium"
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "subtasks": [s.to_dict() for s in self.subtasks],
            "advisory_text": self.advisory_text,
            "complexity": self.complexity,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class EmbeddingPoint:
    """Heuristic 3-D projection of a piece of text. Used for visualization only."""
    id: str
    x: float
    y: float
    z: float
    concepts: Tuple[str, ...] = ()
    cluster: Optional[str] = None
    novelty: float = 1.0
    importance: float = 0.5
    weight: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "novelty", clamp(self.novelty))
        object.__setattr__(self, "importance", clamp(self.importance))
        object.__setattr__(self, "weight", clamp(self.weight))

    @property
    def coordinates(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def to_event(self) -> Dict[str, Any]:
        """Payload of the `newEmbedding` live event."""
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "z": self.z,
            "metadata": self.metadata,
            "weight": self.weight,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.to_event(),
            "concepts": list(self.concepts),
            "cluster": self.cluster,
            "novelty": self.novelty,
            "importance": self.importance,
        }


@dataclass
class ConceptCluster:
    """Points sharing a concept signature. The centroid is recomputed on every read."""
    key: str
    members: List[EmbeddingPoint] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def centroid(self) -> Tuple[float, float, float]:
        if not self.members:
            return (0.0, 0.0, 0.0)
        n = len(self.members)
        return (
            sum(p.x for p in self.members) / n,
            sum(p.y for p in self.members) / n,
            sum(p.z for p in self.members) / n,
        )

    def to_dict(self) -> Dict[str, Any]:
        x, y, z = self.centroid
        return {
            "key": self.key,
            "size": len(self.members),
            "member_ids": [p.id for p in self.members],
            "centroid": {"x": x, "y": y, "z": z},
        }


@dataclass
class SearchResult:
    """Output of the search capability, real or fallback."""
    query: str
    results_text: str
    sources: List[str] = field(default_factory=list)
    links: List[str] = field(default_factory=list)
    provider: str = "fallback"
    timestamp: datetime = field(default_factory=datetime.now)
    embedding: Optional[EmbeddingPoint] = None

    @property
    def is_fallback(self) -> bool:
        return self.provider == "fallback"

    def to_event(self) -> Dict[str, Any]:
        """Payload of the `perplexity_result` live event."""
        return {
            "query": self.query,
            "results": self.results_text,
            "sources": self.sources,
            "links": self.links,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.to_event(),
            "provider": self.provider,
            "embedding": self.embedding.to_dict() if self.embedding else None,
        }


@dataclass(frozen=True)
class Finding:
    """A single piece of generated research content with provenance and heuristic confidence."""
    agent_id: int
    agent_name: str
    content: str
    source: str
    confidence: float
    search: Optional[SearchResult] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        object.__setattr__(self, "confidence", clamp(self.confidence))

    @property
    def is_fallback(self) -> bool:
        return self.source.endswith("_fallback_analysis")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "agent_name": self.agent_name,
            "content": self.content,
            "source": self.source,
            "confidence": self.confidence,
            "search": self.search.to_dict() if self.search else None,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Citation:
    """A formatted source reference, created once at synthesis time."""
    session_id: str
    finding_id: str
    position: int
    source_title: str
    citation_text: str
    source_url: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "finding_id": self.finding_id,
            "position": self.position,
            "source_url": self.source_url,
            "source_title": self.source_title,
            "citation_text": self.citation_text,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Synthesis:
    text: str
    key_findings: Tuple[Finding, ...] = ()
    themes: Dict[str, List[str]] = field(default_factory=dict)
    recommendations: Tuple[str, ...] = ()
    overall_confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "key_findings": [
                {"finding_id": f.id, "agent": f.agent_name, "confidence": f.confidence, "content": f.content}
                for f in self.key_findings
            ],
            "themes": self.themes,
            "recommendations": list(self.recommendations),
            "overall_confidence": self.overall_confidence,
        }


@dataclass
class ResearchSession:
    """
    One end-to-end research run. Owned by the lead researcher while live;
    read-only once it reaches COMPLETED or FAILED.
    """
    topic: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: SessionStatus = SessionStatus.PLANNING
    findings: List[Finding] = field(default_factory=list)
    plan: Optional[ResearchPlan] = None
    synthesis: Optional[Synthesis] = None
    citations: List[Citation] = field(default_factory=list)
    initial_search: Optional[SearchResult] = None
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    record_id: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def _ensure_open(self) -> None:
        if self.is_terminal:
            raise SessionClosedError(f"Session {self.id} is {self.status.value} and read-only")

    def advance(self, status: SessionStatus) -> None:
        """Move the session forward. Backward or repeated transitions are rejected."""
        self._ensure_open()
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Session {self.id}: cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        if status.is_terminal:
            self.completed_at = datetime.now()

    def mark_failed(self, error: str) -> None:
        self._ensure_open()
        self.error = error
        self.advance(SessionStatus.FAILED)

    def set_plan(self, plan: ResearchPlan) -> None:
        self._ensure_open()
        if self.plan is not None:
            raise SessionClosedError(f"Session {self.id} already has a plan")
        self.plan = plan

    def set_initial_search(self, result: SearchResult) -> None:
        self._ensure_open()
        self.initial_search = result

    def add_findings(self, findings: List[Finding]) -> None:
        self._ensure_open()
        self.findings.extend(findings)

    def set_synthesis(self, synthesis: Synthesis) -> None:
        self._ensure_open()
        self.synthesis = synthesis

    def set_citations(self, citations: List[Citation]) -> None:
        self._ensure_open()
        self.citations = list(citations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "topic": self.topic,
            "status": self.status.value,
            "findings": [f.to_dict() for f in self.findings],
            "plan": self.plan.to_dict() if self.plan else None,
            "synthesis": self.synthesis.to_dict() if self.synthesis else None,
            "citations": [c.to_dict() for c in self.citations],
            "initial_search": self.initial_search.to_dict() if self.initial_search else None,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
        }
