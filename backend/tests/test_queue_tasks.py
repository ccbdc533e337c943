"""
Celery queue task and redis tick lock tests (no broker or redis needed)
"""
from datetime import datetime, timezone

import redis

from resume_pipeline.core import redis_client
from resume_pipeline.core.redis_client import QUEUE_TICK_LOCK_KEY, queue_tick_lock
from resume_pipeline.processing.processor import ItemOutcome
from resume_pipeline.processing.worker import TickReport
from resume_pipeline.tasks import queue_tasks


class FakeLock:
    def __init__(self, acquired=True, release_error=False):
        self.acquired = acquired
        self.release_error = release_error
        self.released = False

    def acquire(self):
        return self.acquired

    def release(self):
        if self.release_error:
            raise redis.exceptions.LockError("lock expired")
        self.released = True


class FakeRedis:
    def __init__(self, lock):
        self._lock = lock
        self.lock_args = None

    def lock(self, name, timeout=None, blocking=None):
        self.lock_args = (name, timeout, blocking)
        return self._lock


class TestQueueTickLock:

    def test_acquired_lock_is_released(self):
        lock = FakeLock()
        client = FakeRedis(lock)
        with queue_tick_lock(client, timeout=60) as acquired:
            assert acquired is True
        assert lock.released is True
        assert client.lock_args == (QUEUE_TICK_LOCK_KEY, 60, False)

    def test_held_lock_is_not_released(self):
        lock = FakeLock(acquired=False)
        with queue_tick_lock(FakeRedis(lock)) as acquired:
            assert acquired is False
        assert lock.released is False

    def test_expired_lock_release_is_tolerated(self):
        with queue_tick_lock(FakeRedis(FakeLock(release_error=True))) as acquired:
            assert acquired is True

    def test_client_uses_configured_url(self, monkeypatch):
        calls = {}

        def fake_from_url(url, **kwargs):
            calls["url"] = url
            return "client"

        monkeypatch.setattr(redis_client.redis, "from_url", fake_from_url)
        assert redis_client.create_redis_client("redis://cache:6379/2") == "client"
        assert calls["url"] == "redis://cache:6379/2"


def _report():
    report = TickReport(started_at=datetime.now(timezone.utc), selected=2)
    report.outcomes = [
        ItemOutcome(queue_item_id=1, document_id=10, status="completed"),
        ItemOutcome(queue_item_id=2, document_id=11, status="failed", error="File is empty"),
    ]
    return report


class TestDrainProcessingQueue:

    def test_summary(self):
        summary = queue_tasks.summarize(_report())
        assert summary["selected"] == 2
        assert summary["completed"] == 1
        assert summary["failed"] == 1
        assert summary["failures"] == [{"document_id": 11, "error": "File is empty"}]

    def test_runs_tick_when_lock_acquired(self, monkeypatch):
        lock = FakeLock()
        monkeypatch.setattr(queue_tasks, "create_redis_client", lambda: FakeRedis(lock))

        async def fake_run_tick(database_url=None):
            return _report()

        monkeypatch.setattr(queue_tasks, "run_tick", fake_run_tick)

        result = queue_tasks.drain_processing_queue.apply().get()

        assert result["skipped"] is False
        assert result["completed"] == 1
        assert lock.released is True

    def test_skips_when_another_tick_holds_the_lock(self, monkeypatch):
        monkeypatch.setattr(queue_tasks, "create_redis_client", lambda: FakeRedis(FakeLock(acquired=False)))

        async def fail_run_tick(database_url=None):
            raise AssertionError("tick must not run")

        monkeypatch.setattr(queue_tasks, "run_tick", fail_run_tick)

        assert queue_tasks.drain_processing_queue.apply().get() == {"skipped": True}
