"""Process-local registry of open SSE connections.

Every worker keeps its own hub. Cross-worker delivery goes through
``app.services.query_stream``, which feeds envelopes into :data:`hub`.
"""
from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import secrets
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from app.core.settings import settings

logger = logging.getLogger(__name__)


def format_sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, default=str)}\n\n"


def isolation_key(update: dict[str, Any]) -> str:
    entity = update.get("queryId") or update.get("id") or update.get("appNo") or "global"
    return f"query_{entity}"


def build_envelope(update: dict[str, Any]) -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    envelope = {"type": "query_update", **update}
    envelope["timestamp"] = now.isoformat()
    envelope["isolationKey"] = isolation_key(update)
    envelope["broadcastId"] = f"broadcast_{int(now.timestamp() * 1000)}_{secrets.token_hex(4)}"
    return envelope


def dedup_key(envelope: dict[str, Any]) -> str:
    """Identity of one publish; a relayed copy of the same publish shares it."""
    broadcast_id = envelope.get("broadcastId")
    if broadcast_id:
        return str(broadcast_id)
    body = {k: v for k, v in envelope.items() if k != "timestamp"}
    digest = hashlib.sha1(json.dumps(body, sort_keys=True, default=str).encode("utf-8")).hexdigest()
    return f"{envelope.get('isolationKey')}:{envelope.get('action')}:{digest}"


@dataclass(eq=False)
class StreamConnection:
    id: str
    queue: asyncio.Queue
    last_ping: float
    # Per-query chat streams only see envelopes for their own query id.
    scope: str | None = None
    recent_keys: deque = field(default_factory=lambda: deque(maxlen=64))
    closed: bool = False

    def wants(self, envelope: dict[str, Any]) -> bool:
        if self.scope is None:
            return True
        return str(envelope.get("queryId") or "") == self.scope or envelope.get("isolationKey") == f"query_{self.scope}"

    def push(self, frame: str) -> None:
        self.queue.put_nowait(frame)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # ``None`` tells the stream loop to stop.
        while True:
            try:
                self.queue.put_nowait(None)
                return
            except asyncio.QueueFull:
                self.queue.get_nowait()


class ConnectionHub:
    def __init__(
        self,
        *,
        stale_after: float | None = None,
        queue_size: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.stale_after = stale_after if stale_after is not None else settings.sse_stale_after_seconds
        self.queue_size = queue_size if queue_size is not None else settings.sse_queue_size
        self.clock = clock
        self.connections: dict[str, StreamConnection] = {}

    def __len__(self) -> int:
        return len(self.connections)

    def open(self, *, scope: str | None = None) -> StreamConnection:
        connection = StreamConnection(
            id=f"conn_{uuid.uuid4().hex[:16]}",
            queue=asyncio.Queue(maxsize=self.queue_size),
            last_ping=self.clock(),
            scope=scope,
        )
        self.connections[connection.id] = connection
        logger.info("SSE connection opened id=%s scope=%s total=%s", connection.id, scope, len(self.connections))
        return connection

    def remove(self, connection_id: str) -> bool:
        connection = self.connections.pop(connection_id, None)
        if connection is None:
            return False
        connection.close()
        logger.info("SSE connection removed id=%s total=%s", connection_id, len(self.connections))
        return True

    def touch(self, connection_id: str) -> None:
        connection = self.connections.get(connection_id)
        if connection is not None:
            connection.last_ping = self.clock()

    def deliver(self, envelope: dict[str, Any], *, exclude_connection_id: str | None = None) -> int:
        """Queue ``envelope`` on every matching connection; returns how many received it."""
        frame = format_sse(envelope)
        key = dedup_key(envelope)
        delivered = 0
        dead: list[str] = []
        for connection in list(self.connections.values()):
            if exclude_connection_id and connection.id == exclude_connection_id:
                continue
            if not connection.wants(envelope):
                continue
            if key in connection.recent_keys:
                continue
            try:
                connection.push(frame)
            except asyncio.QueueFull:
                dead.append(connection.id)
                continue
            connection.recent_keys.append(key)
            delivered += 1
        for connection_id in dead:
            logger.warning("SSE connection dropped on full queue id=%s", connection_id)
            self.remove(connection_id)
        return delivered

    def sweep(self, now: float | None = None) -> list[str]:
        current = self.clock() if now is None else now
        stale = [c.id for c in self.connections.values() if current - c.last_ping > self.stale_after]
        for connection_id in stale:
            self.remove(connection_id)
        if stale:
            logger.info("SSE sweep removed %s stale connections", len(stale))
        return stale

    def clear(self) -> None:
        for connection_id in list(self.connections):
            self.remove(connection_id)


hub = ConnectionHub()
