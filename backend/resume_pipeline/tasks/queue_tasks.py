"""
Queue draining task for celery beat
"""
import asyncio
from typing import Any, Dict, Optional

import structlog
from celery import Task

from resume_pipeline.core.celery_app import celery_app
from resume_pipeline.core.redis_client import create_redis_client, queue_tick_lock
from resume_pipeline.processing.worker import TickReport
from resume_pipeline.services import Services

logger = structlog.get_logger()


async def run_tick(database_url: Optional[str] = None) -> TickReport:
    """One worker tick with a short-lived engine (celery workers are not async)"""
    services = Services.from_settings(database_url)
    try:
        await services.startup()
        await services.worker.recover_stale()
        return await services.worker.tick()
    finally:
        await services.shutdown()


def summarize(report: TickReport) -> Dict[str, Any]:
    return {
        "skipped": False,
        "selected": report.selected,
        "completed": report.completed,
        "failed": report.failed,
        "lost_claims": report.lost_claims,
        "failures": [
            {"document_id": outcome.document_id, "error": outcome.error}
            for outcome in report.outcomes
            if not outcome.succeeded
        ],
    }


@celery_app.task(bind=True, name="resume_pipeline.tasks.queue_tasks.drain_processing_queue")
def drain_processing_queue(self: Task) -> Dict[str, Any]:
    """Process one batch of queued documents unless another tick is running"""
    with queue_tick_lock(create_redis_client()) as acquired:
        if not acquired:
            logger.info("queue_tick_skipped_locked", task_id=self.request.id)
            return {"skipped": True}
        report = asyncio.run(run_tick())

    summary = summarize(report)
    logger.info("queue_tick_task_completed", task_id=self.request.id, **{k: v for k, v in summary.items() if k != "failures"})
    return summary
