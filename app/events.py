import asyncio
import contextlib
import logging

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from app.core.settings import settings
from app.db.init_db import init_db
from app.db.session import AsyncSessionLocal
from app.services import query_stream, update_log
from app.services.broadcast import hub
from app.utils.redis_client import close_redis_client

logger = logging.getLogger(__name__)


async def run_maintenance(interval: float | None = None) -> None:
    """Sweep stale SSE connections and prune the update log on a fixed interval."""
    interval = interval or settings.sse_sweep_seconds
    while True:
        await asyncio.sleep(interval)
        hub.sweep()
        try:
            async with AsyncSessionLocal() as session:
                pruned = await update_log.prune_updates(session)
            if pruned:
                logger.info("Pruned %s expired query updates", pruned)
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Update log prune failed: %s", exc)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Application startup fanout_backend=%s", settings.fanout_backend)
        await init_db()
        tasks = [asyncio.create_task(run_maintenance(), name="sse-maintenance")]
        if settings.fanout_backend == "redis":
            tasks.append(asyncio.create_task(query_stream.run_fanout_listener(), name="fanout-listener"))
        app.state.background_tasks = tasks

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Application shutdown")
        tasks = getattr(app.state, "background_tasks", [])
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        hub.clear()
        if settings.fanout_backend == "redis":
            await close_redis_client()
