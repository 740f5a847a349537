import logging
import random
from typing import Any, Optional

from research_network.config import Config
from research_network.core.embedding import EmbeddingProjector, EmbeddingSpace
from research_network.core.llm import CompletionService, LLMProvider, create_llm_client
from research_network.core.search import PerplexitySearchBackend, SearchService, TavilySearchBackend
from research_network.storage.database import RecordStore
from research_network.storage.memory import ResearchMemory

from .lead_agent import LeadResearcher
from .roster import WORKER_ROSTER

logger = logging.getLogger(__name__)


def create_completion_service(config: Config) -> CompletionService:
    """Completion service for `config`; unconfigured (fallback only) in demo mode or without keys."""
    client = None
    if config.completion_configured:
        client = create_llm_client(
            LLMProvider(config.llm_provider),
            api_key=config.get_api_key(),
            model=config.llm_model,
            endpoint=config.azure_endpoint,
            api_version=config.azure_api_version,
        )
        logger.info("Completion provider: %s (%s)", config.llm_provider, config.llm_model)
    else:
        logger.info("Completion provider not configured, using fallback completions")
    return CompletionService(
        client,
        model=config.llm_model,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        timeout_seconds=config.provider_timeout_seconds,
    )


def create_search_service(config: Config) -> SearchService:
    backend = None
    if config.search_configured:
        if config.search_provider == "perplexity":
            backend = PerplexitySearchBackend(config.perplexity_api_key, model=config.search_model)
        elif config.search_provider == "tavily":
            backend = TavilySearchBackend(config.tavily_api_key)
        logger.info("Search provider: %s", config.search_provider)
    else:
        logger.info("Search provider not configured, using fallback search")
    return SearchService(backend, timeout_seconds=config.provider_timeout_seconds)


def create_record_store(config: Config) -> Optional[RecordStore]:
    """Open and seed the record store. Returns None when the database cannot be opened."""
    try:
        store = RecordStore(config.database_path)
        store.seed_agents(WORKER_ROSTER)
        return store
    except Exception as e:
        logger.warning("Record store unavailable at %s, continuing without persistence: %s",
                       config.database_path, e)
        return None


def create_lead_researcher(
    config: Config,
    channel: Optional[Any] = None,
    store: Optional[RecordStore] = None,
    seed: Optional[int] = None,
) -> LeadResearcher:
    """Wire a lead researcher and its collaborators from configuration."""
    config.validate()
    rng = random.Random(seed)
    return LeadResearcher(
        completion=create_completion_service(config),
        search=create_search_service(config),
        space=EmbeddingSpace(EmbeddingProjector(rng)),
        channel=channel,
        store=store,
        memory=ResearchMemory(),
        subagent_count=config.subagent_count,
        rng=rng,
        max_retained_sessions=config.max_retained_sessions,
    )
