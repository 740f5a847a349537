import random
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from research_network.agents.lead_agent import LeadResearcher
from research_network.agents.roster import WORKER_ROSTER
from research_network.api.channel import RecordingChannel
from research_network.core.embedding import EmbeddingProjector, EmbeddingSpace
from research_network.core.llm import CompletionService
from research_network.core.search import SearchService
from research_network.core.types import SearchResult
from research_network.storage.database import RecordStore
from research_network.storage.memory import ResearchMemory


class ZeroJitter(random.Random):
    """Random source whose uniform draws sit at the midpoint of the range."""

    def uniform(self, a, b):
        return (a + b) / 2


def completion_response(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def mock_llm_client(text="Generated analysis text."):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion_response(text))
    return client


class StubSearchBackend:
    name = "stub"

    def __init__(self, links=None, sources=None, text="Stub search results about the topic."):
        self.links = links if links is not None else ["https://example.org/a", "https://example.org/b"]
        self.sources = sources if sources is not None else ["Example Source A", "Example Source B"]
        self.text = text
        self.queries = []

    async def search(self, query):
        self.queries.append(query)
        return SearchResult(
            query=query,
            results_text=self.text,
            sources=list(self.sources),
            links=list(self.links),
            provider=self.name,
        )


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def store():
    record_store = RecordStore(":memory:")
    record_store.seed_agents(WORKER_ROSTER)
    yield record_store
    record_store.close()


@pytest.fixture
def space():
    return EmbeddingSpace(EmbeddingProjector(random.Random(7)))


@pytest.fixture
def offline_lead(channel, store, space):
    """Lead researcher with no providers configured: every call takes the fallback path."""
    return LeadResearcher(
        completion=CompletionService(),
        search=SearchService(),
        space=space,
        channel=channel,
        store=store,
        memory=ResearchMemory(),
        rng=random.Random(7),
    )


@pytest.fixture
def live_lead(channel, store, space):
    """Lead researcher backed by mocked completion and search providers."""
    return LeadResearcher(
        completion=CompletionService(mock_llm_client(), model="test-model"),
        search=SearchService(StubSearchBackend()),
        space=space,
        channel=channel,
        store=store,
        memory=ResearchMemory(),
        rng=random.Random(7),
    )
