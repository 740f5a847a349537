import asyncio
import asyncio
import json
import logging
import random
from typing import Any, Dict, List, Optional, Sequence, Set
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, BackgroundTasks, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from research_network import __version__
from research_network.agents.factory import create_lead_researcher, create_record_store
from research_network.agents.lead_agent import LeadResearcher
from research_network.agents.roster import WORKER_ROSTER
from research_network.config import config
from research_network.core.errors import RateLimitExceeded, SessionFailedError
from research_network.core.rate_limit import RateLimiter
from research_network.core.types import EventType, ResearchSession

from .channel import LiveChannel

logger = logging.getLogger(__name__)

AUTO_RESEARCH_TOPICS = (
    "AI Ethics and Bias Detection",
    "Climate Change Impact Analysis",
    "Healthcare AI Applications",
    "Cybersecurity Threat Intelligence",
    "Quantum Computing Research",
    "Sustainable Energy Solutions",
    "Digital Privacy and Security",
    "Space Exploration Technologies",
)

AGENT_MESSAGE_LIMIT = 10

# Shared process state, created lazily
channel = LiveChannel(send_timeout=config.live_send_timeout_seconds)
lead_researcher: Optional[LeadResearcher] = None
rate_limiter: Optional[RateLimiter] = None
background_sessions: Set[asyncio.Task] = set()


def get_lead_researcher() -> LeadResearcher:
    """Get the process-wide lead researcher, wiring it from configuration on first use."""
    global lead_researcher
    if lead_researcher is None:
        lead_researcher = create_lead_researcher(
            config,
            channel=channel,
            store=create_record_store(config),
        )
    return lead_researcher


def get_rate_limiter() -> RateLimiter:
    global rate_limiter
    if rate_limiter is None:
        rate_limiter = RateLimiter(
            per_client=config.rate_limit_per_client,
            global_limit=config.rate_limit_global,
            window_seconds=config.rate_limit_window_seconds,
            enabled=config.rate_limit_enabled,
        )
    return rate_limiter


# Request Models
class ResearchRequest(BaseModel):
    topic: str = Field(..., description="The research topic to investigate")


async def auto_research_loop(
    lead: LeadResearcher,
    interval_seconds: float,
    topics: Sequence[str] = AUTO_RESEARCH_TOPICS,
    rng: Optional[random.Random] = None,
    max_sessions: Optional[int] = None,
) -> int:
    """
    Start a session on a random topic every `interval_seconds`.

    Runs until cancelled, or until `max_sessions` sessions have been started.
    Returns the number of sessions started.
    """
    rng = rng or random.Random()
    started = 0
    while max_sessions is None or started < max_sessions:
        await asyncio.sleep(interval_seconds)
        topic = rng.choice(topics)
        logger.info("Auto research starting: %s", topic)
        started += 1
        try:
            await lead.start_session(topic)
        except SessionFailedError as e:
            logger.warning("Auto research session failed: %s", e)
    return started


# Initialize FastAPI
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Research Network API starting (capability mode: %s)", config.capability_mode)
    lead = get_lead_researcher()
    if lead.store is not None:
        try:
            missing = lead.store.sessions_missing_citations()
        except Exception as e:
            logger.warning("Could not check stored sessions for missing citations: %s", e)
        else:
            if missing:
                logger.warning("%d stored sessions have findings but no citations: %s",
                               len(missing), [row["id"] for row in missing])

    auto_research = None
    if config.auto_research_interval_seconds > 0:
        auto_research = asyncio.create_task(auto_research_loop(lead, config.auto_research_interval_seconds))
    yield
    if auto_research is not None:
        auto_research.cancel()
        try:
            await auto_research
        except asyncio.CancelledError:
            pass
    logger.info("Research Network API shutting down")


app = FastAPI(
    title="Research Network",
    description="""
    A multi-agent research system featuring:
    - **Lead Researcher**: Plans each session, fans out subagents, synthesizes the report
    - **Research Subagents**: Background, trends, technical and impact specialists
    - **Embedding Space**: Heuristic 3-D projection of findings, streamed over WebSocket

    Every completion and search call degrades to deterministic offline content.
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _client_id(request_client) -> str:
    return request_client.host if request_client else "anonymous"


def _check_rate_limit(client_id: str) -> None:
    try:
        get_rate_limiter().check(client_id)
    except RateLimitExceeded as e:
        raise HTTPException(
            status_code=429,
            detail=str(e),
            headers={"Retry-After": str(int(e.retry_after) + 1)},
        )


def _session_summary(session: ResearchSession) -> dict:
    return {
        "session_id": session.id,
        "topic": session.topic,
        "status": session.status.value,
        "findings": len(session.findings),
        "created_at": session.created_at.isoformat(),
        "completed_at": session.completed_at.isoformat() if session.completed_at else None,
    }


async def run_research_session(session: ResearchSession) -> None:
    """Background task to run a created session to completion."""
    try:
        await get_lead_researcher().run_session(session)
    except SessionFailedError as e:
        # Already marked failed and pushed to the live channel
        logger.warning(str(e))


# API Endpoints
@app.get("/api")
async def api_info():
    """API info endpoint."""
    return {
        "name": "Research Network",
        "version": __version__,
        "status": "running",
        "agents": ["lead_researcher"] + [w.expertise for w in WORKER_ROSTER[:config.subagent_count]],
        "features": [
            "Parallel research subagents",
            "Live embedding space over WebSocket",
            "Synthesis and citations",
            "Offline fallbacks for completion and search",
        ],
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    lead = get_lead_researcher()
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "capability_mode": config.capability_mode,
        "llm_provider": config.llm_provider,
        "completion_configured": lead.completion.configured,
        "search_provider": lead.search.provider_name,
        "store_available": lead.store is not None,
        "live_clients": channel.client_count,
        "embedding_points": len(lead.space),
    }


@app.get("/agents")
async def list_agents():
    """List the research personas."""
    lead = get_lead_researcher()
    if lead.store is not None:
        try:
            return {"agents": lead.store.list_agents()}
        except Exception as e:
            logger.warning("Could not read agents from the record store: %s", e)
    return {"agents": [w.to_dict() for w in lead.roster]}


@app.post("/research")
async def create_research_session(request: ResearchRequest, http_request: Request, background_tasks: BackgroundTasks):
    """
    Start a research session.

    The session runs in the background. Progress is pushed over /ws; use the
    returned session_id with /sessions/{session_id} to read the result.
    """
    _check_rate_limit(_client_id(http_request.client))
    try:
        session = await get_lead_researcher().create_session(request.topic)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    background_tasks.add_task(run_research_session, session)
    return {
        "session_id": session.id,
        "status": session.status.value,
        "message": "Research session created. Use /sessions/{session_id} to check progress.",
    }


@app.post("/research/sync")
async def create_research_session_sync(request: ResearchRequest, http_request: Request):
    """
    Run a research session and return the finished session.

    Warning: with live providers this may take 30-60 seconds.
    """
    _check_rate_limit(_client_id(http_request.client))
    lead = get_lead_researcher()
    try:
        session = await lead.create_session(request.topic)
        await lead.run_session(session)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionFailedError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return session.to_dict()


@app.get("/sessions")
async def list_sessions():
    """List all sessions known to this process."""
    return {"sessions": [_session_summary(s) for s in get_lead_researcher().list_sessions()]}


@app.get("/sessions/{session_id}")
async def get_session(session_id: str):
    """Get a session with its findings, synthesis and citations."""
    session = get_lead_researcher().get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session.to_dict()


@app.get("/embeddings")
async def get_embedding_space():
    points = get_lead_researcher().get_embedding_space()
    return {"count": len(points), "points": [p.to_dict() for p in points]}


@app.get("/embeddings/clusters")
async def get_concept_clusters():
    return {"clusters": [c.to_dict() for c in get_lead_researcher().get_concept_clusters()]}


@app.delete("/embeddings")
async def clear_embedding_space():
    await get_lead_researcher().clear_embedding_space()
    return {"status": "cleared"}


def _run_in_background(session: ResearchSession) -> None:
    """Run a created session on the event loop; its failure is reported by the lead researcher."""
    task = asyncio.create_task(run_research_session(session))
    background_sessions.add(task)
    task.add_done_callback(background_sessions.discard)


def _agents_payload(lead: LeadResearcher) -> List[Dict[str, Any]]:
    if lead.store is not None:
        try:
            return [
                {"id": a["id"], "name": a["name"], "expertise": a["personality_type"], "color": a["color"]}
                for a in lead.store.list_agents()
            ]
        except Exception as e:
            logger.warning("Could not read agents from the record store: %s", e)
    return [{"id": w.id, "name": w.name, "expertise": w.expertise, "color": w.color} for w in lead.roster]


def _read_agent_activity(store, agent_id: Any):
    agent = store.get_agent(agent_id)
    if agent is None:
        return None, [], 0
    return agent, store.get_agent_messages(agent_id, AGENT_MESSAGE_LIMIT), store.count_agent_messages(agent_id)


async def _send_agent_activity(websocket: WebSocket, lead: LeadResearcher, agent_id: Any) -> None:
    """Reply to `agentClick` with the agent's details and its latest messages."""
    agent = None
    messages: List[Dict[str, Any]] = []
    total = 0
    error = None
    if lead.store is not None:
        try:
            agent, messages, total = await asyncio.to_thread(_read_agent_activity, lead.store, agent_id)
        except Exception as e:
            logger.warning("Could not read activity for agent %s: %s", agent_id, e)
            error = str(e)
    if agent is None:
        worker = next((w for w in lead.roster if w.id == agent_id), None)
        if worker is not None:
            agent = {"id": worker.id, "name": worker.name, "personality_type": worker.expertise}

    if agent is None:
        payload: Dict[str, Any] = {"agentId": agent_id, "agentName": "Unknown", "messages": [], "totalCount": 0}
        if error:
            payload["error"] = error
        await channel.send(websocket, EventType.AGENT_MESSAGES.value, payload)
        return

    tasks = [m["message"] for m in messages if m["message_type"] == "task"]
    await channel.send(websocket, EventType.AGENT_DETAILS.value, {
        "id": agent["id"],
        "name": agent["name"],
        "expertise": agent["personality_type"],
        "currentTask": tasks[0] if tasks else "Idle",
    })
    payload = {
        "agentId": agent["id"],
        "agentName": agent["name"],
        "messages": messages,
        "totalCount": total,
        "lastUpdated": datetime.now().isoformat(),
    }
    if error:
        payload["error"] = error
    await channel.send(websocket, EventType.AGENT_MESSAGES.value, payload)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Live channel.

    Accepts `userResearchRequest`, `agentClick`, `getEmbeddingSpace` and
    `clearEmbeddingSpace` messages. Sends the agent roster and the current
    embedding space on connect.
    """
    await channel.connect(websocket)
    lead = get_lead_researcher()
    try:
        await channel.send(websocket, EventType.AGENTS_DATA.value, _agents_payload(lead))
        await channel.send(websocket, EventType.EMBEDDING_SPACE.value,
                           [p.to_event() for p in lead.get_embedding_space()])
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                await channel.send(websocket, EventType.ERROR.value, {"message": "Messages must be JSON"})
                continue
            message_type = message.get("type") if isinstance(message, dict) else None

            if message_type == "userResearchRequest":
                topic = (message.get("topic") or "").strip()
                if not topic:
                    await channel.send(websocket, EventType.ERROR.value, {"message": "Research topic must not be empty"})
                    continue
                try:
                    get_rate_limiter().check(_client_id(websocket.client))
                except RateLimitExceeded as e:
                    await channel.send(websocket, EventType.ERROR.value,
                                       {"message": str(e), "retryAfter": int(e.retry_after) + 1})
                    continue
                try:
                    session = await lead.create_session(topic)
                except ValueError as e:
                    await channel.send(websocket, EventType.ERROR.value, {"message": str(e)})
                    continue
                _run_in_background(session)

            elif message_type == "agentClick":
                await _send_agent_activity(websocket, lead, message.get("agentId"))

            elif message_type == "getEmbeddingSpace":
                await channel.send(websocket, EventType.EMBEDDING_SPACE.value,
                                   [p.to_event() for p in lead.get_embedding_space()])

            elif message_type == "clearEmbeddingSpace":
                await lead.clear_embedding_space()

            else:
                await channel.send(websocket, EventType.ERROR.value,
                                   {"message": f"Unknown message type: {message_type}"})
    except WebSocketDisconnect:
        pass
    finally:
        channel.disconnect(websocket)


# Run with: python run.py
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.api_host, port=config.api_port)
