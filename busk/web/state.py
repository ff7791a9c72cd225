"""StationState — event channel between the station core and WebSocket clients.

Every broadcast becomes one numbered envelope, {"seq", "type", "data", "at"}.
Envelopes are kept in a bounded history so a client that reconnects can ask
for everything after the last seq it saw.
"""
import asyncio
import itertools
import logging
from collections import deque
from datetime import datetime
from typing import Any, Optional

logger = logging.getLogger(__name__)

CLIENT_BACKLOG = 50


class StationState:
    def __init__(self, history: int = 100, backlog: int = CLIENT_BACKLOG):
        self.on_air: Optional[str] = None
        self.history: deque[dict] = deque(maxlen=history)
        self._seq = itertools.count(1)
        self._backlog = backlog
        self._clients: dict[str, asyncio.Queue] = {}

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def last_seq(self) -> int:
        return self.history[-1]["seq"] if self.history else 0

    def subscribe(self, client_id: str, since: Optional[int] = None) -> asyncio.Queue:
        """Register a client. With `since`, envelopes newer than that seq are queued first."""
        q: asyncio.Queue = asyncio.Queue(maxsize=self._backlog)
        if since is not None:
            for envelope in self.replay(since)[-self._backlog:]:
                q.put_nowait(envelope)
        self._clients[client_id] = q
        return q

    def unsubscribe(self, client_id: str):
        self._clients.pop(client_id, None)

    def replay(self, since: int) -> list[dict]:
        return [e for e in self.history if e["seq"] > since]

    def events(self, name: str) -> list[dict]:
        """Payloads of the recorded events of one type, oldest first."""
        return [e["data"] for e in self.history if e["type"] == name]

    async def broadcast(self, event: str, data: Any) -> dict:
        envelope = {
            "seq": next(self._seq),
            "type": event,
            "data": data,
            "at": datetime.now().isoformat(),
        }
        self.history.append(envelope)
        for client_id, q in list(self._clients.items()):
            if q.full():
                # Too far behind: swap its backlog for one resync marker
                logger.info("Client %s fell behind at seq %d", client_id, envelope["seq"])
                while not q.empty():
                    q.get_nowait()
                q.put_nowait(self._resync(envelope))
                continue
            q.put_nowait(envelope)
        return envelope

    @staticmethod
    def _resync(envelope: dict) -> dict:
        return {
            "seq": envelope["seq"],
            "type": "resync",
            "data": {"since": envelope["seq"] - 1},
            "at": envelope["at"],
        }

    async def set_on_air(self, show_name: Optional[str]):
        self.on_air = show_name
