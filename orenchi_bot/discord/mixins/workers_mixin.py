from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Coroutine

logger = logging.getLogger("orenchi_bot")


class WorkersMixin:
    def _spawn_background(self, coro: Coroutine[Any, Any, None], *, name: str) -> asyncio.Task[None]:
        task = asyncio.create_task(coro, name=name)
        self.background_tasks.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task[None]) -> None:
        self.background_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed: %s", task.get_name(), exc)

    async def cleanup_all_guilds(self) -> int:
        deleted = 0
        for guild in list(self.guilds):
            try:
                deleted += await self.orchestrator.cleanup_inactive_channels(guild)
            except Exception:
                logger.exception("Channel cleanup failed for guild %s", guild.id)
        return deleted

    async def _cleanup_loop(self) -> None:
        interval = self.settings.cleanup_interval_minutes * 60.0
        while True:
            try:
                await asyncio.sleep(interval)
                logger.info("Running periodic channel cleanup task...")
                deleted = await self.cleanup_all_guilds()
                logger.info("[cleanup] deleted=%s", deleted)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Channel cleanup worker error")

    async def _run_shutdown_step(self, label: str, coro: object, *, timeout: float) -> None:
        try:
            await asyncio.wait_for(coro, timeout=timeout)  # type: ignore[arg-type]
        except asyncio.TimeoutError:
            logger.warning("Shutdown step timed out: %s", label)
        except Exception as exc:
            logger.warning("Shutdown step failed: %s (%s)", label, exc)

    async def _cancel_task(self, task: asyncio.Task[None] | None) -> None:
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
