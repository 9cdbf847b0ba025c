from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from app.core.settings import settings
from app.services.broadcast import ConnectionHub, StreamConnection, build_envelope, format_sse, hub
from app.utils.redis_client import get_redis_client

logger = logging.getLogger(__name__)

_PUBLISH_ERRORS = (RedisError, OSError, TimeoutError, asyncio.TimeoutError)


async def publish_update(
    update: dict[str, Any],
    *,
    exclude_connection_id: str | None = None,
    target: ConnectionHub | None = None,
) -> dict[str, Any]:
    envelope = build_envelope(update)
    if settings.fanout_backend == "local":
        (target or hub).deliver(envelope, exclude_connection_id=exclude_connection_id)
        return envelope
    redis = get_redis_client()
    message = {"envelope": envelope, "excludeConnectionId": exclude_connection_id}
    await redis.publish(settings.fanout_channel, json.dumps(message, default=str))
    return envelope


async def broadcast_update(
    update: dict[str, Any],
    *,
    exclude_connection_id: str | None = None,
) -> dict[str, Any] | None:
    """Best-effort publish; a fan-out failure never fails the caller."""
    try:
        return await publish_update(update, exclude_connection_id=exclude_connection_id)
    except _PUBLISH_ERRORS as exc:
        logger.warning("Query update broadcast failed action=%s: %s", update.get("action"), exc)
        return None


def handle_fanout_message(raw: str | bytes, target: ConnectionHub | None = None) -> int:
    try:
        message = json.loads(raw)
        envelope = message["envelope"]
    except (ValueError, KeyError, TypeError) as exc:
        logger.warning("Dropping malformed fan-out message: %s", exc)
        return 0
    return (target or hub).deliver(envelope, exclude_connection_id=message.get("excludeConnectionId"))


async def _subscribe(channel: str) -> PubSub:
    pubsub = get_redis_client().pubsub()
    await pubsub.subscribe(channel)
    return pubsub


async def _unsubscribe(pubsub: PubSub, channel: str) -> None:
    try:
        await asyncio.wait_for(pubsub.unsubscribe(channel), timeout=2.0)
    except (RedisError, TimeoutError, asyncio.TimeoutError) as exc:
        logger.warning("Fan-out unsubscribe failed: %s", exc)
    finally:
        try:
            await asyncio.wait_for(pubsub.close(), timeout=2.0)
        except (RedisError, TimeoutError, asyncio.TimeoutError) as exc:
            logger.warning("Fan-out pubsub close failed: %s", exc)


async def run_fanout_listener(channel: str | None = None, *, retry_seconds: float = 2.0) -> None:
    """Relay published envelopes from Redis into this worker's hub until cancelled."""
    channel = channel or settings.fanout_channel
    while True:
        try:
            pubsub = await _subscribe(channel)
        except _PUBLISH_ERRORS as exc:
            logger.warning("Fan-out subscribe failed, retrying in %ss: %s", retry_seconds, exc)
            await asyncio.sleep(retry_seconds)
            continue
        logger.info("Fan-out listener subscribed channel=%s", channel)
        try:
            while True:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message and message.get("data"):
                    handle_fanout_message(message["data"])
        except _PUBLISH_ERRORS as exc:
            logger.warning("Fan-out listener lost connection, resubscribing: %s", exc)
        finally:
            await _unsubscribe(pubsub, channel)
        await asyncio.sleep(retry_seconds)


async def event_stream(
    connection: StreamConnection,
    *,
    target: ConnectionHub | None = None,
    heartbeat_seconds: float | None = None,
    is_disconnected=None,
) -> AsyncIterator[str]:
    """Yield SSE frames for ``connection`` until it is closed or the client leaves."""
    registry = target or hub
    interval = heartbeat_seconds or settings.sse_heartbeat_seconds
    try:
        yield format_sse(
            {
                "type": "connected",
                "connectionId": connection.id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )
        registry.touch(connection.id)
        while True:
            if is_disconnected is not None and await is_disconnected():
                break
            try:
                frame = await asyncio.wait_for(connection.queue.get(), timeout=interval)
            except (TimeoutError, asyncio.TimeoutError):
                frame = format_sse({"type": "heartbeat", "timestamp": datetime.now(timezone.utc).isoformat()})
            if frame is None:
                break
            yield frame
            registry.touch(connection.id)
    finally:
        registry.remove(connection.id)
