from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime

from research_network.core.types import ResearchPlan, Synthesis


@dataclass
class ContextEntry:
    """A piece of context gathered during a session (search text, notes)."""
    kind: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "content": self.content,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }


class ResearchMemory:
    """
    In-memory working memory for research sessions: plans, context and syntheses.

    Lives for the process lifetime only. The record store holds the durable copy.
    """

    def __init__(self):
        self._plans: Dict[str, ResearchPlan] = {}
        self._context: Dict[str, List[ContextEntry]] = {}
        self._syntheses: Dict[str, Synthesis] = {}

    # Plan methods
    def save_plan(self, session_id: str, plan: ResearchPlan) -> None:
        self._plans[session_id] = plan

    def get_plan(self, session_id: str) -> Optional[ResearchPlan]:
        return self._plans.get(session_id)

    # Context methods
    def add_context(self, session_id: str, entry: ContextEntry) -> None:
        """Append a context entry to a session."""
        self._context.setdefault(session_id, []).append(entry)

    def retrieve_context(self, session_id: str, limit: Optional[int] = None) -> List[ContextEntry]:
        """Get context entries, optionally limited to the most recent."""
        entries = self._context.get(session_id, [])
        if limit:
            return entries[-limit:]
        return list(entries)

    # Synthesis methods
    def save_synthesis(self, session_id: str, synthesis: Synthesis) -> None:
        self._syntheses[session_id] = synthesis

    def get_synthesis(self, session_id: str) -> Optional[Synthesis]:
        return self._syntheses.get(session_id)

    # Utility methods
    def forget(self, session_id: str) -> None:
        """Drop everything held for one session."""
        self._plans.pop(session_id, None)
        self._context.pop(session_id, None)
        self._syntheses.pop(session_id, None)

    def clear(self) -> None:
        """Clear all stored data."""
        self._plans.clear()
        self._context.clear()
        self._syntheses.clear()

    def export_state(self) -> Dict[str, Any]:
        """Export current state as JSON-serializable dict."""
        return {
            "plans": {sid: plan.to_dict() for sid, plan in self._plans.items()},
            "context": {
                sid: [entry.to_dict() for entry in entries]
                for sid, entries in self._context.items()
            },
            "syntheses": {sid: s.to_dict() for sid, s in self._syntheses.items()},
        }
