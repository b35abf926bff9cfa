"""Background lifecycle sweeper.

This module provides the LifecycleSweeper class that periodically applies
every time-driven transition: retiring posts past their availability date,
deleting expired conversations and advancing or cleaning up study sessions.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import redis
from sqlalchemy.orm import Session

from studymate.core.settings import settings
from studymate.db.session import SessionLocal
from studymate.db.time import Clock, utcnow
from studymate.services.conversation_service import ConversationService
from studymate.services.post_availability import PostAvailabilityService, PostSweepReport
from studymate.services.session_lifecycle import SessionLifecycleService, SweepReport

SWEEP_LOCK_NAME = "studymate:lifecycle-sweep"

# Configure logger for this module
logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    """Outcome of one sweep tick."""

    skipped: bool = False
    posts: PostSweepReport = field(default_factory=PostSweepReport)
    conversations_deleted: int = 0
    sessions: SweepReport = field(default_factory=SweepReport)
    failed_steps: list[str] = field(default_factory=list)


class LifecycleSweeper:
    """Runs the lifecycle sweep on a fixed interval in the background.

    Ticks never overlap: the next one is scheduled only after the previous
    one has finished. When the redis lock is enabled only one process in a
    deployment sweeps at a time.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        clock: Clock = utcnow,
        interval_seconds: float | None = None,
        lock_client: redis.Redis | None = None,
    ) -> None:
        """Initialize the sweeper.

        Args:
            session_factory: Callable returning a new database session per tick.
            clock: Source of the current time.
            interval_seconds: Delay between ticks; defaults to the configured value.
            lock_client: Redis client used for the sweep lock when enabled.
        """
        self.session_factory = session_factory
        self.clock = clock
        self.interval = float(
            settings.lifecycle_sweep_interval_seconds
            if interval_seconds is None
            else interval_seconds
        )
        self._lock_client = lock_client
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        """Whether the background loop task is alive."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""

        if not self.running:
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop."""

        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        interval = max(0.1, self.interval)

        while not self._stopping.is_set():
            try:
                await asyncio.to_thread(self.run_tick)
            except redis.RedisError as e:
                logger.warning("LifecycleSweeper could not reach redis: %s", e)
            except Exception:
                logger.exception("LifecycleSweeper tick failed")

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

    def run_tick(self) -> TickReport:
        """Run one sweep, holding the redis lock when it is enabled."""
        if not settings.lifecycle_sweep_lock_enabled:
            return self._sweep()

        lock = self._get_lock_client().lock(
            SWEEP_LOCK_NAME,
            timeout=settings.lifecycle_sweep_lock_ttl_seconds,
            blocking=False,
        )
        if not lock.acquire():
            logger.debug("Lifecycle sweep lock held elsewhere; skipping tick")
            return TickReport(skipped=True)
        try:
            return self._sweep()
        finally:
            try:
                lock.release()
            except redis.exceptions.LockError:
                logger.warning("Lifecycle sweep lock expired before release")

    def _get_lock_client(self) -> redis.Redis:
        if self._lock_client is None:
            self._lock_client = redis.Redis.from_url(settings.redis_url)
        return self._lock_client

    def _sweep(self) -> TickReport:
        now = self.clock()
        report = TickReport()

        with self.session_factory() as db:
            try:
                report.posts = PostAvailabilityService(db).process_due(now)
            except Exception:
                db.rollback()
                report.failed_steps.append("posts")
                logger.exception("Post availability sweep failed")

            try:
                report.conversations_deleted = ConversationService(db).sweep_expired(now)
            except Exception:
                db.rollback()
                report.failed_steps.append("conversations")
                logger.exception("Conversation expiry sweep failed")

            try:
                report.sessions = SessionLifecycleService(db).sweep_once(now)
            except Exception:
                db.rollback()
                report.failed_steps.append("sessions")
                logger.exception("Study session sweep failed")

        return report
