"""
Redis client and the cross-process queue tick lock
"""
from contextlib import contextmanager
from typing import Iterator, Optional

import redis
import structlog

from resume_pipeline.core.config import settings

logger = structlog.get_logger()

QUEUE_TICK_LOCK_KEY = "resume_pipeline:queue_tick"


def create_redis_client(url: Optional[str] = None) -> redis.Redis:
    return redis.from_url(
        url or settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        retry_on_timeout=True,
        health_check_interval=30,
    )


@contextmanager
def queue_tick_lock(client: redis.Redis, timeout: Optional[int] = None) -> Iterator[bool]:
    """Non-blocking lock; yields False when another worker holds the tick"""
    lock = client.lock(
        QUEUE_TICK_LOCK_KEY,
        timeout=timeout or settings.QUEUE_LOCK_TIMEOUT_SECONDS,
        blocking=False,
    )
    acquired = lock.acquire()
    try:
        yield acquired
    finally:
        if acquired:
            try:
                lock.release()
            except redis.exceptions.LockError as e:
                # Expired while the tick was still running
                logger.warning("queue_tick_lock_release_failed", error=str(e))
