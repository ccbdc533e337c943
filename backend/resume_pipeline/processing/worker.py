"""
Background queue worker
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker

from resume_pipeline.core.config import settings
from resume_pipeline.core.database import transaction, utcnow
from resume_pipeline.processing.processor import DocumentProcessor, ItemOutcome
from resume_pipeline.processing.queue import QueueRepository

logger = structlog.get_logger()


@dataclass
class TickReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    selected: int = 0
    lost_claims: int = 0
    overlapped: bool = False
    outcomes: List[ItemOutcome] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.succeeded)


class QueueWorker:
    """Drains the processing queue on a fixed interval; ticks never overlap"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        processor: DocumentProcessor,
        interval_seconds: Optional[float] = None,
        batch_size: Optional[int] = None,
        stale_after_seconds: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.processor = processor
        self.interval_seconds = interval_seconds or settings.QUEUE_POLL_INTERVAL_SECONDS
        self.batch_size = batch_size or settings.QUEUE_BATCH_SIZE
        self.stale_after_seconds = stale_after_seconds or settings.QUEUE_STALE_AFTER_SECONDS
        self._tick_lock = asyncio.Lock()
        self._stopping = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> TickReport:
        """Process one batch; returns immediately if a tick is already in flight"""
        report = TickReport(started_at=utcnow())
        if self._tick_lock.locked():
            report.overlapped = True
            report.finished_at = utcnow()
            logger.info("queue_tick_skipped_in_flight")
            return report

        async with self._tick_lock:
            async with transaction(self.session_factory) as session:
                batch = await QueueRepository(session).next_batch(self.batch_size)
            report.selected = len(batch)

            for item in batch:
                if not await self.processor.claim(item):
                    # Picked up by a manual "process now" in the meantime
                    report.lost_claims += 1
                    continue
                outcome = await self.processor.run(item.id, item.document_id, item.processing_options)
                report.outcomes.append(outcome)

        report.finished_at = utcnow()
        if report.selected:
            logger.info(
                "queue_tick_completed",
                selected=report.selected,
                completed=report.completed,
                failed=report.failed,
                lost_claims=report.lost_claims,
            )
        return report

    async def recover_stale(self) -> int:
        async with transaction(self.session_factory) as session:
            return await QueueRepository(session).recover_stale(self.stale_after_seconds)

    def start(self) -> None:
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._run(), name="resume-queue-worker")
        logger.info("queue_worker_started", interval_seconds=self.interval_seconds, batch_size=self.batch_size)

    async def stop(self, timeout: float = 30.0) -> None:
        """Let the in-flight tick finish, then end the loop"""
        if self._task is None:
            return
        self._stopping.set()
        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.warning("queue_worker_cancelled", timeout=timeout)
        self._task = None
        logger.info("queue_worker_stopped")

    async def _run(self) -> None:
        try:
            await self.recover_stale()
        except Exception as e:
            logger.exception("queue_stale_recovery_failed", error=str(e))

        while not self._stopping.is_set():
            try:
                await self.tick()
            except Exception as e:
                # A broken tick (e.g. database unavailable) must not kill the loop
                logger.exception("queue_tick_failed", error=str(e))
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
