# erps/services/scheduler.py
"""
Background scheduler for the periodic lifecycle sweeps.

Jobs:
  reminders             inspection reminder tiers
  grace-period          ACTIVE -> LAPSED after the grace period
  activation-reminders  re-send customer activation links
  token-cleanup         deactivate expired tokens

One asyncio.Lock per job keeps each job single-flight: a manual trigger that
arrives while the same job is running is skipped, not queued.
Each run opens its own DB session.
"""

import asyncio
from typing import Awaitable, Callable, Optional
from sqlalchemy.orm import Session
from erps.config import settings
from erps.database import SessionLocal
from erps.services.grace_period_service import run_grace_period_sweep
from erps.services.notification_service import LifecycleNotifier
from erps.services.reminder_service import run_activation_reminders, run_inspection_reminders
from erps.services.token_service import TokenService
from erps.utils.logger import get_logger

logger = get_logger(__name__)

JOB_REMINDERS = "reminders"
JOB_GRACE_PERIOD = "grace-period"
JOB_ACTIVATION_REMINDERS = "activation-reminders"
JOB_TOKEN_CLEANUP = "token-cleanup"


async def _token_cleanup(db: Session, notifier: LifecycleNotifier) -> dict:
    return {"deactivated": TokenService(db).expire_stale()}


class LifecycleScheduler:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal,
                 notifier: Optional[LifecycleNotifier] = None,
                 interval_seconds: Optional[int] = None):
        self.session_factory = session_factory
        self.notifier = notifier or LifecycleNotifier()
        self.interval_seconds = interval_seconds or settings.SCHEDULER_INTERVAL_SECONDS
        self.jobs: dict[str, Callable[[Session, LifecycleNotifier], Awaitable[dict]]] = {
            JOB_REMINDERS: run_inspection_reminders,
            JOB_GRACE_PERIOD: run_grace_period_sweep,
            JOB_ACTIVATION_REMINDERS: run_activation_reminders,
            JOB_TOKEN_CLEANUP: _token_cleanup,
        }
        self._locks = {name: asyncio.Lock() for name in self.jobs}
        self._task: Optional[asyncio.Task] = None

    @property
    def started(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_running(self, name: str) -> bool:
        return self._locks[name].locked()

    async def trigger_job(self, name: str) -> Optional[dict]:
        """Run one job now. Returns its stats, or None if it was already running."""
        if name not in self.jobs:
            raise KeyError(f"Unknown scheduler job: {name}")
        lock = self._locks[name]
        if lock.locked():
            logger.info(f"[SCHEDULER] {name} already running, trigger skipped")
            return None

        async with lock:
            logger.info(f"[SCHEDULER] {name} started")
            db = self.session_factory()
            try:
                stats = await self.jobs[name](db, self.notifier)
            finally:
                db.close()
            logger.info(f"[SCHEDULER] {name} finished: {stats}")
            return stats

    async def run_all(self) -> dict:
        results = {}
        for name in self.jobs:
            try:
                results[name] = await self.trigger_job(name)
            except Exception as e:
                # Keep the loop alive; the next tick retries
                logger.error(f"[SCHEDULER] {name} failed: {e}", exc_info=True)
                results[name] = {"error": str(e)}
        return results

    async def _loop(self):
        while True:
            await self.run_all()
            await asyncio.sleep(self.interval_seconds)

    def start(self):
        if self.started:
            return
        logger.info(f"⏰ Scheduler started (every {self.interval_seconds}s): {', '.join(self.jobs)}")
        self._task = asyncio.create_task(self._loop(), name="lifecycle-scheduler")

    async def stop(self):
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("🛑 Scheduler stopped")
