from .citation_agent import CitationAgent
from .factory import create_lead_researcher
from .lead_agent import LeadResearcher
from .roster import WORKER_ROSTER, get_specialization
from .subagent import ResearchSubagent

__all__ = [
    "LeadResearcher",
    "ResearchSubagent",
    "CitationAgent",
    "WORKER_ROSTER",
    "get_specialization",
    "create_lead_researcher",
]
