from .types import (
    AgentRole,
    SessionStatus,
    Phase,
    CapabilityMode,
    EmbeddingType,
    EventType,
    WorkerDescriptor,
    Subtask,
    ResearchPlan,
    EmbeddingPoint,
    ConceptCluster,
    SearchResult,
    Finding,
    Citation,
    Synthesis,
    ResearchSession,
)
from .errors import (
    ResearchNetworkError,
    CompletionError,
    SearchError,
    SessionFailedError,
    SessionClosedError,
    InvalidTransitionError,
    RateLimitExceeded,
)
from .base_agent import Agent, AgentConfig
from .embedding import EmbeddingProjector, EmbeddingSpace
from .llm import LLMProvider, CompletionService, create_llm_client, get_default_model
from .search import SearchService, PerplexitySearchBackend, TavilySearchBackend
from .rate_limit import RateLimiter

__all__ = [
    "AgentRole",
    "SessionStatus",
    "Phase",
    "CapabilityMode",
    "EmbeddingType",
    "EventType",
    "WorkerDescriptor",
    "Subtask",
    "ResearchPlan",
    "EmbeddingPoint",
    "ConceptCluster",
    "SearchResult",
    "Finding",
    "Citation",
    "Synthesis",
    "ResearchSession",
    "ResearchNetworkError",
    "CompletionError",
    "SearchError",
    "SessionFailedError",
    "SessionClosedError",
    "InvalidTransitionError",
    "RateLimitExceeded",
    "Agent",
    "AgentConfig",
    "EmbeddingProjector",
    "EmbeddingSpace",
    "LLMProvider",
    "CompletionService",
    "create_llm_client",
    "get_default_model",
    "SearchService",
    "PerplexitySearchBackend",
    "TavilySearchBackend",
    "RateLimiter",
]
