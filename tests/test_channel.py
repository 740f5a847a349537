"""Tests for the live channel broadcaster."""
import asyncio
import json

import pytest

from research_network.agents.lead_agent import LeadResearcher
from research_network.api.channel import LiveChannel
from research_network.core.llm import CompletionService
from research_network.core.search import SearchService
from research_network.core.types import SessionStatus


class FakeSocket:
    def __init__(self):
        self.frames = []

    async def accept(self):
        pass

    async def send_text(self, text):
        self.frames.append(json.loads(text))

    def events(self):
        return [frame["event"] for frame in self.frames]


class StalledSocket(FakeSocket):
    """A browser that stopped reading: sends never complete."""

    def __init__(self):
        super().__init__()
        self.released = asyncio.Event()

    async def send_text(self, text):
        await self.released.wait()


class ClosedSocket(FakeSocket):
    async def send_text(self, text):
        raise ConnectionError("socket closed")


@pytest.fixture
def live_channel():
    return LiveChannel(send_timeout=0.05)


class TestLiveChannel:
    @pytest.mark.asyncio
    async def test_emit_reaches_every_client(self, live_channel):
        first, second = FakeSocket(), FakeSocket()
        await live_channel.connect(first)
        await live_channel.connect(second)

        await live_channel.emit("newEmbedding", {"id": "p1"})

        assert first.frames == second.frames == [{"event": "newEmbedding", "data": {"id": "p1"}}]
        assert live_channel.client_count == 2

    @pytest.mark.asyncio
    async def test_stalled_client_is_dropped_without_holding_up_others(self, live_channel):
        healthy, stalled = FakeSocket(), StalledSocket()
        await live_channel.connect(healthy)
        await live_channel.connect(stalled)

        await asyncio.wait_for(live_channel.emit("error", {"message": "x"}), timeout=1)

        assert healthy.events() == ["error"]
        assert live_channel.clients == {healthy}

    @pytest.mark.asyncio
    async def test_failed_client_is_dropped(self, live_channel):
        closed = ClosedSocket()
        await live_channel.connect(closed)

        await live_channel.emit("error", {"message": "x"})
        await live_channel.send(closed, "error", {"message": "y"})

        assert live_channel.client_count == 0

    @pytest.mark.asyncio
    async def test_session_completes_with_a_stalled_client(self, live_channel, store, space):
        healthy, stalled = FakeSocket(), StalledSocket()
        await live_channel.connect(stalled)
        await live_channel.connect(healthy)
        lead = LeadResearcher(CompletionService(), SearchService(), space=space, channel=live_channel, store=store)

        session_id = await asyncio.wait_for(lead.start_session("climate change"), timeout=5)

        assert lead.get_session(session_id).status == SessionStatus.COMPLETED
        assert stalled not in live_channel.clients
        assert healthy.events()[-1] == "research_completed"
