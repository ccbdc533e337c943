"""
Processing queue, processor and background worker tests
"""
import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError

from resume_pipeline.core.database import transaction, utcnow
from resume_pipeline.core.exceptions import ConflictError, ExtractionFailure, ProcessingError
from resume_pipeline.models import (
    Document,
    DocumentAsset,
    DocumentStatus,
    ProcessingNeededStatus,
    ProcessingQueueItem,
    ProcessingResult,
    QueueStatus,
)
from resume_pipeline.processing.queue import QueueRepository
from resume_pipeline.processing.results import ResultsStore
from resume_pipeline.processing.worker import QueueWorker
from resume_pipeline.resumes.state_cache import ResumeStateCache


async def _queue_items(session_factory, document_id: int):
    async with transaction(session_factory) as session:
        stmt = (
            select(ProcessingQueueItem)
            .where(ProcessingQueueItem.document_id == document_id)
            .order_by(ProcessingQueueItem.id)
        )
        return list((await session.execute(stmt)).scalars().all())


async def _document(session_factory, document_id: int) -> Document:
    async with transaction(session_factory) as session:
        return await session.get(Document, document_id)


class TestQueueRepository:

    async def test_priority_then_fifo(self, upload, session_factory):
        low = await upload("u1", priority=9)
        urgent = await upload("u2", priority=1)
        normal_first = await upload("u3")
        normal_second = await upload("u4")

        async with transaction(session_factory) as session:
            batch = await QueueRepository(session).next_batch(10)

        assert [item.document_id for item in batch] == [
            urgent.id,
            normal_first.id,
            normal_second.id,
            low.id,
        ]

    async def test_batch_limit(self, upload, session_factory):
        for owner in ("u1", "u2", "u3"):
            await upload(owner)
        async with transaction(session_factory) as session:
            assert len(await QueueRepository(session).next_batch(2)) == 2

    async def test_one_outstanding_item_per_document(self, upload, session_factory):
        document = await upload("u1")
        async with transaction(session_factory) as session:
            with pytest.raises(ConflictError):
                await QueueRepository(session).enqueue(document.id)

    async def test_claim_is_exclusive(self, upload, session_factory):
        document = await upload("u1")
        item = (await _queue_items(session_factory, document.id))[0]

        async with transaction(session_factory) as session:
            assert await QueueRepository(session).claim(item.id) is True
        async with transaction(session_factory) as session:
            assert await QueueRepository(session).claim(item.id) is False

    async def test_status_filter(self, services, upload, session_factory):
        done = await upload("u1")
        await upload("u2")
        await services.processor.process_now("u1", done.id)

        async with transaction(session_factory) as session:
            queue = QueueRepository(session)
            completed = await queue.list_items(status=QueueStatus.COMPLETED)
            everything = await queue.list_items()

        assert [item.document_id for item in completed] == [done.id]
        assert len(everything) == 2


class TestProcessNow:

    async def test_success_stores_result_and_assets(self, services, upload, session_factory, storage, fake_engine):
        fake_engine.screenshots = True
        document = await upload("u1")

        outcome = await services.processor.process_now("u1", document.id)

        assert outcome.succeeded
        assert outcome.page_count == 2
        assert outcome.state_refreshed is True

        stored = await _document(session_factory, document.id)
        assert stored.processing_status == DocumentStatus.COMPLETED
        assert stored.processed_at is not None

        async with transaction(session_factory) as session:
            result = (
                await session.execute(select(ProcessingResult).where(ProcessingResult.document_id == document.id))
            ).scalar_one()
            assets = (
                await session.execute(select(DocumentAsset).where(DocumentAsset.document_id == document.id))
            ).scalars().all()

        assert result.pdf_title == "Jane Doe Resume"
        assert result.text_length == len(fake_engine.text)
        assert result.screenshot_paths == [str(storage.screenshot_path(document.id, 1))]
        assert result.text_file_path == str(storage.text_path(document.id))
        assert storage.text_path(document.id).read_text() == fake_engine.text
        assert sorted(asset.asset_type for asset in assets) == ["extracted_text", "screenshot"]

        items = await _queue_items(session_factory, document.id)
        assert [item.status for item in items] == [QueueStatus.COMPLETED]

    async def test_failure_marks_document_and_item(self, services, upload, session_factory):
        document = await upload("u1", content=b"")

        with pytest.raises(ExtractionFailure):
            await services.processor.process_now("u1", document.id)

        stored = await _document(session_factory, document.id)
        assert stored.processing_status == DocumentStatus.FAILED
        assert stored.processing_error == "File is empty"
        items = await _queue_items(session_factory, document.id)
        assert items[0].status == QueueStatus.FAILED
        assert items[0].last_error == "File is empty"

    async def test_reprocessing_replaces_single_result(self, services, upload, session_factory):
        document = await upload("u1")
        await services.processor.process_now("u1", document.id)
        await services.processor.process_now("u1", document.id)

        async with transaction(session_factory) as session:
            results = (
                await session.execute(select(ProcessingResult).where(ProcessingResult.document_id == document.id))
            ).scalars().all()
        assert len(results) == 1

        items = await _queue_items(session_factory, document.id)
        assert [item.retry_count for item in items] == [0, 1]

    async def test_requeue_sets_queued(self, services, upload, session_factory):
        document = await upload("u1")
        await services.processor.process_now("u1", document.id)

        item = await services.processor.requeue("u1", document.id, priority=2)

        assert item.status == QueueStatus.QUEUED
        assert item.priority == 2
        assert item.retry_count == 1
        assert (await _document(session_factory, document.id)).processing_status == DocumentStatus.QUEUED

        with pytest.raises(ConflictError):
            await services.processor.requeue("u1", document.id)

    async def test_failed_rerun_keeps_files_of_previous_result(
        self, services, upload, session_factory, storage, fake_engine, monkeypatch
    ):
        fake_engine.screenshots = True
        document = await upload("u1")
        await services.processor.process_now("u1", document.id)

        async def broken_upsert(self, *args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(ResultsStore, "upsert_result", broken_upsert)
        with pytest.raises(ProcessingError):
            await services.processor.process_now("u1", document.id)

        assert storage.screenshot_path(document.id, 1).exists()
        assert storage.text_path(document.id).exists()
        async with transaction(session_factory) as session:
            result = (
                await session.execute(select(ProcessingResult).where(ProcessingResult.document_id == document.id))
            ).scalar_one()
        assert result.text_file_path == str(storage.text_path(document.id))


class TestWorkerTick:

    async def test_tick_processes_in_priority_order(self, services, upload, fake_engine):
        first = await upload("u1", content=b"%PDF-1.4 one", priority=5)
        second = await upload("u2", content=b"%PDF-1.4 two", priority=1)

        report = await services.worker.tick()

        assert report.selected == 2
        assert report.completed == 2
        assert [o.document_id for o in report.outcomes] == [second.id, first.id]
        assert fake_engine.calls == [b"%PDF-1.4 two", b"%PDF-1.4 one"]

    async def test_one_failure_does_not_stop_the_batch(self, services, upload, session_factory):
        broken = await upload("u1", content=b"", priority=1)
        healthy = await upload("u2")

        report = await services.worker.tick()

        assert report.completed == 1
        assert report.failed == 1
        failed = next(o for o in report.outcomes if not o.succeeded)
        assert failed.document_id == broken.id
        assert failed.error_type == "ExtractionFailure"
        assert (await _document(session_factory, healthy.id)).processing_status == DocumentStatus.COMPLETED
        assert (await _document(session_factory, broken.id)).processing_status == DocumentStatus.FAILED

    async def test_missing_file_fails_item(self, services, upload, session_factory, storage):
        document = await upload("u1")
        await storage.remove(document.file_path)

        report = await services.worker.tick()

        assert report.failed == 1
        stored = await _document(session_factory, document.id)
        assert stored.processing_status == DocumentStatus.FAILED
        assert stored.processing_error == "Stored file not found"

    async def test_overlapping_tick_is_skipped(self, services, upload, fake_engine):
        await upload("u1")
        fake_engine.gate = asyncio.Event()

        running = asyncio.create_task(services.worker.tick())
        await asyncio.wait_for(fake_engine.entered.wait(), timeout=5)

        overlapped = await services.worker.tick()
        assert overlapped.overlapped is True
        assert overlapped.selected == 0

        fake_engine.gate.set()
        report = await running
        assert report.completed == 1
        assert len(fake_engine.calls) == 1

    async def test_process_now_conflicts_with_running_item(self, services, upload, fake_engine, session_factory):
        document = await upload("u1")
        fake_engine.gate = asyncio.Event()

        running = asyncio.create_task(services.worker.tick())
        await asyncio.wait_for(fake_engine.entered.wait(), timeout=5)

        with pytest.raises(ConflictError):
            await services.processor.process_now("u1", document.id)

        fake_engine.gate.set()
        report = await running
        assert report.completed == 1
        assert len(fake_engine.calls) == 1
        items = await _queue_items(session_factory, document.id)
        assert [item.status for item in items] == [QueueStatus.COMPLETED]

    async def test_manually_claimed_item_is_skipped_by_worker(self, services, upload, session_factory):
        document = await upload("u1")
        async with transaction(session_factory) as session:
            batch = await QueueRepository(session).next_batch(10)

        # Claimed elsewhere between selection and claim
        async with transaction(session_factory) as session:
            await QueueRepository(session).claim(batch[0].id)

        assert await services.processor.claim(batch[0]) is False
        assert (await _document(session_factory, document.id)).processing_status == DocumentStatus.PENDING

    async def test_empty_queue(self, services):
        report = await services.worker.tick()
        assert report.selected == 0
        assert report.outcomes == []
        assert report.finished_at is not None


class TestStaleRecovery:

    async def test_interrupted_items_are_failed(self, services, upload, session_factory):
        document = await upload("u1")
        async with transaction(session_factory) as session:
            await session.execute(
                update(ProcessingQueueItem)
                .where(ProcessingQueueItem.document_id == document.id)
                .values(status=QueueStatus.PROCESSING, started_at=utcnow() - timedelta(hours=2))
            )
            await session.execute(
                update(Document).where(Document.id == document.id).values(processing_status=DocumentStatus.PROCESSING)
            )

        recovered = await services.worker.recover_stale()

        assert recovered == 1
        items = await _queue_items(session_factory, document.id)
        assert items[0].status == QueueStatus.FAILED
        assert items[0].last_error.startswith("Interrupted")
        assert (await _document(session_factory, document.id)).processing_status == DocumentStatus.FAILED

        # The document can be queued again
        item = await services.processor.requeue("u1", document.id)
        assert item.retry_count == 1

    async def test_recent_items_are_left_alone(self, services, upload, session_factory):
        document = await upload("u1")
        async with transaction(session_factory) as session:
            await QueueRepository(session).claim(
                (await QueueRepository(session).next_batch(1))[0].id
            )

        assert await services.worker.recover_stale() == 0
        items = await _queue_items(session_factory, document.id)
        assert items[0].status == QueueStatus.PROCESSING


class TestWorkerLoop:

    async def test_start_drains_queue_and_stops(self, session_factory, services, upload):
        document = await upload("u1")
        worker = QueueWorker(session_factory, services.processor, interval_seconds=0.05)

        worker.start()
        assert worker.running
        for _ in range(100):
            if (await _document(session_factory, document.id)).processing_status == DocumentStatus.COMPLETED:
                break
            await asyncio.sleep(0.05)
        await worker.stop(timeout=5)

        assert not worker.running
        assert (await _document(session_factory, document.id)).processing_status == DocumentStatus.COMPLETED

    async def test_stop_without_start(self, session_factory, services):
        worker = QueueWorker(session_factory, services.processor)
        await worker.stop()
        assert not worker.running


class TestEndToEnd:

    async def test_upload_process_state(self, services, upload, session_factory):
        """u1 uploads, the queue processes the resume and the cache is up to date"""
        document = await upload("u1")

        async with transaction(session_factory) as session:
            before = await ResumeStateCache(session).get_state("u1")
        assert before.processing_needed_status == ProcessingNeededStatus.NEEDS_PROCESSING

        report = await services.worker.tick()
        assert report.completed == 1

        async with transaction(session_factory) as session:
            after = await ResumeStateCache(session).get_state("u1")
        assert after.processing_needed_status == ProcessingNeededStatus.UP_TO_DATE
        assert after.state.active_document_id == document.id
        assert after.state.word_count > 0
