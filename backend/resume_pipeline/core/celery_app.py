"""
Celery application for running the queue worker out of process
"""
from celery import Celery

from resume_pipeline.core.config import settings

celery_app = Celery(
    "resume_pipeline",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["resume_pipeline.tasks.queue_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.QUEUE_LOCK_TIMEOUT_SECONDS,
    task_soft_time_limit=settings.QUEUE_LOCK_TIMEOUT_SECONDS - 60,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,  # 1 hour
    beat_schedule={
        "drain-processing-queue": {
            "task": "resume_pipeline.tasks.queue_tasks.drain_processing_queue",
            "schedule": settings.QUEUE_POLL_INTERVAL_SECONDS,
        },
    },
)
