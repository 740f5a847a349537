"""
Live channel gateway: pushes orchestrator events to browser clients.

Delivery is best effort. A socket that fails or stalls on receive is dropped and the
failure never reaches the orchestrator.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Set, Tuple

from fastapi import WebSocket

from research_network.core.logger import log_event

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT = 5.0


def _encode(event: str, payload: Any) -> str:
    return json.dumps({"event": event, "data": payload}, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return str(value)


class LiveChannel:
    """
    WebSocket connection manager broadcasting `{"event", "data"}` frames.

    Every client is sent to concurrently and each send is bounded by
    `send_timeout`, so one stalled browser cannot hold up the others or the
    session that emitted the event.
    """

    def __init__(self, send_timeout: float = DEFAULT_SEND_TIMEOUT):
        self.clients: Set[WebSocket] = set()
        self.send_timeout = send_timeout

    @property
    def client_count(self) -> int:
        return len(self.clients)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.clients.add(websocket)
        log_event("live_client_connected", "Live client connected", clients=len(self.clients))

    def disconnect(self, websocket: WebSocket) -> None:
        self.clients.discard(websocket)
        log_event("live_client_disconnected", "Live client disconnected", clients=len(self.clients))

    async def send(self, websocket: WebSocket, event: str, payload: Any) -> None:
        """Send one event to a single client, dropping it if the send fails."""
        if not await self._deliver(websocket, _encode(event, payload)):
            self.clients.discard(websocket)

    async def emit(self, event: str, payload: Any) -> None:
        if not self.clients:
            return
        message = _encode(event, payload)
        clients = list(self.clients)
        delivered = await asyncio.gather(*(self._deliver(ws, message) for ws in clients))
        for websocket, ok in zip(clients, delivered):
            if not ok:
                self.clients.discard(websocket)

    async def _deliver(self, websocket: WebSocket, message: str) -> bool:
        try:
            await asyncio.wait_for(websocket.send_text(message), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning("Dropping live client that did not accept a frame within %ss", self.send_timeout)
            return False
        except Exception as e:
            logger.debug("Dropping live client after send failure: %s", e)
            return False


class NullChannel:
    """Channel that discards every event."""

    async def emit(self, event: str, payload: Any) -> None:
        return None


class RecordingChannel:
    """Keeps emitted events in memory, in order."""

    def __init__(self):
        self.events: List[Tuple[str, Any]] = []

    async def emit(self, event: str, payload: Any) -> None:
        self.events.append((event, payload))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def of_type(self, event: str) -> List[Any]:
        return [payload for name, payload in self.events if name == event]

    def last(self, event: str) -> Any:
        matches = self.of_type(event)
        return matches[-1] if matches else None

    def clear(self) -> None:
        self.events.clear()

    def as_dicts(self) -> List[Dict[str, Any]]:
        return [{"event": name, "data": payload} for name, payload in self.events]
