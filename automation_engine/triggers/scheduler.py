"""
Background automation tick.

Every tick:
- Materializes recurring configs that are due
- Dispatches due_date_approaching / task_overdue for open tasks

Due events are remembered per process so a task is not re-dispatched on
every tick; a restart may dispatch them again (delivery is at-least-once).
Events that stop being detected are forgotten on the next tick.
"""

import asyncio
import logging
from typing import Optional, Set, Tuple

from automation_engine.tasks.models import utcnow
from automation_engine.triggers.detector import detect_due_events

logger = logging.getLogger(__name__)


class AutomationScheduler:
    """Runs the automation tick on an asyncio loop."""

    def __init__(self, service, tick_seconds: int = 15 * 60, due_soon_hours: int = 24):
        self.service = service
        self.tick_seconds = tick_seconds
        self.due_soon_hours = due_soon_hours
        self._seen: Set[Tuple[str, str, str]] = set()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def tick(self) -> dict:
        """Run one tick. Returns counts for logging and tests."""
        now = utcnow()

        created = await self.service.run_due_recurrences(now.date())

        open_tasks = await self.service.store.list_tasks(None, completed=False)
        events = detect_due_events(open_tasks, now, self.due_soon_hours)
        keys = [_event_key(event) for event in events]
        # Forget events that no longer apply (task closed, due date moved)
        self._seen &= set(keys)

        dispatched = 0
        for event, key in zip(events, keys):
            if key in self._seen:
                continue
            try:
                await self.service.dispatch_event(event)
                self._seen.add(key)
                dispatched += 1
            except Exception as e:
                logger.error(
                    f"Error dispatching {event.trigger.value} for task {event.task.id}: {e}",
                    exc_info=True,
                )

        return {"occurrences_created": len(created), "events_dispatched": dispatched}

    async def _loop(self):
        logger.info("Automation scheduler started")

        while self._running:
            try:
                summary = await self.tick()
                if any(summary.values()):
                    logger.info(f"Scheduler tick: {summary}")
                await asyncio.sleep(self.tick_seconds)

            except asyncio.CancelledError:
                logger.info("Automation scheduler cancelled")
                break
            except Exception as e:
                logger.error(f"Scheduler error: {e}", exc_info=True)
                await asyncio.sleep(60)  # Wait 1 minute on error

        logger.info("Automation scheduler stopped")

    def start(self):
        """Start the loop on the running event loop."""
        if self._running:
            logger.warning("Scheduler already running")
            return
        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self):
        """Stop the loop and wait for it to exit."""
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None


def _event_key(event) -> Tuple[str, str, str]:
    return (event.task.id, event.trigger.value, event.metadata.get("due_date", ""))
