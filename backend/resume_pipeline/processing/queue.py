"""
Processing queue persistence
State machine per item: queued -> processing -> completed | failed (terminal)
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from resume_pipeline.core.config import settings
from resume_pipeline.core.database import utcnow
from resume_pipeline.core.exceptions import ConflictError
from resume_pipeline.models import Document, DocumentStatus, ProcessingQueueItem, QueueStatus
from resume_pipeline.resumes.repository import BaseRepository

logger = structlog.get_logger()


class QueueRepository(BaseRepository):
    async def get(self, item_id: int) -> Optional[ProcessingQueueItem]:
        return await self.db.get(ProcessingQueueItem, item_id)

    async def outstanding_for_document(self, document_id: int) -> Optional[ProcessingQueueItem]:
        stmt = select(ProcessingQueueItem).where(
            ProcessingQueueItem.document_id == document_id,
            ProcessingQueueItem.status.in_(QueueStatus.OUTSTANDING),
        )
        return (await self.db.execute(stmt)).scalars().first()

    async def _attempts(self, document_id: int) -> int:
        stmt = select(func.count(ProcessingQueueItem.id)).where(
            ProcessingQueueItem.document_id == document_id
        )
        return (await self.db.execute(stmt)).scalar_one()

    async def enqueue(
        self,
        document_id: int,
        options: Optional[Dict[str, Any]] = None,
        priority: Optional[int] = None,
        status: str = QueueStatus.QUEUED,
    ) -> ProcessingQueueItem:
        """Insert a work item; a document may only have one outstanding item"""
        if await self.outstanding_for_document(document_id) is not None:
            raise ConflictError(
                "Document already has an outstanding queue item",
                details={"document_id": document_id},
            )

        now = utcnow()
        item = ProcessingQueueItem(
            document_id=document_id,
            status=status,
            priority=settings.DEFAULT_QUEUE_PRIORITY if priority is None else priority,
            processing_options=options or {},
            retry_count=await self._attempts(document_id),
            created_at=now,
            started_at=now if status == QueueStatus.PROCESSING else None,
        )
        self.db.add(item)
        try:
            async with self.db.begin_nested():
                await self.db.flush()
        except IntegrityError:
            raise ConflictError(
                "Document already has an outstanding queue item",
                details={"document_id": document_id},
            )
        return item

    async def next_batch(self, limit: int) -> List[ProcessingQueueItem]:
        """Queued items, most urgent first, FIFO within a priority band"""
        stmt = (
            select(ProcessingQueueItem)
            .where(ProcessingQueueItem.status == QueueStatus.QUEUED)
            .order_by(
                ProcessingQueueItem.priority.asc(),
                ProcessingQueueItem.created_at.asc(),
                ProcessingQueueItem.id.asc(),
            )
            .limit(limit)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def claim(self, item_id: int) -> bool:
        """queued -> processing; returns False when someone else got there first"""
        stmt = (
            update(ProcessingQueueItem)
            .where(
                ProcessingQueueItem.id == item_id,
                ProcessingQueueItem.status == QueueStatus.QUEUED,
            )
            .values(status=QueueStatus.PROCESSING, started_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def claim_for_document(
        self,
        document_id: int,
        options: Optional[Dict[str, Any]] = None,
    ) -> ProcessingQueueItem:
        """Claim the document's queued item, or open a new one already in processing"""
        item = await self.outstanding_for_document(document_id)
        if item is None:
            return await self.enqueue(document_id, options=options, status=QueueStatus.PROCESSING)

        if item.status == QueueStatus.PROCESSING or not await self.claim(item.id):
            raise ConflictError(
                "Document is already being processed",
                details={"document_id": document_id, "queue_item_id": item.id},
            )
        await self.db.refresh(item)
        return item

    async def _finish(self, item_id: int, status: str, error: Optional[str] = None) -> None:
        stmt = (
            update(ProcessingQueueItem)
            .where(ProcessingQueueItem.id == item_id)
            .values(status=status, last_error=error, completed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)

    async def mark_completed(self, item_id: int) -> None:
        await self._finish(item_id, QueueStatus.COMPLETED)

    async def mark_failed(self, item_id: int, error: str) -> None:
        await self._finish(item_id, QueueStatus.FAILED, error=error)

    async def recover_stale(self, older_than_seconds: int) -> int:
        """Fail items left in processing by a worker that died mid-run"""
        cutoff: datetime = utcnow() - timedelta(seconds=older_than_seconds)
        stmt = select(ProcessingQueueItem).where(
            ProcessingQueueItem.status == QueueStatus.PROCESSING,
            ProcessingQueueItem.started_at < cutoff,
        )
        stale = list((await self.db.execute(stmt)).scalars().all())
        for item in stale:
            await self.mark_failed(item.id, "Interrupted: processing did not finish")
            await self.db.execute(
                update(Document)
                .where(
                    Document.id == item.document_id,
                    Document.processing_status == DocumentStatus.PROCESSING,
                )
                .values(
                    processing_status=DocumentStatus.FAILED,
                    processing_error="Interrupted: processing did not finish",
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
        if stale:
            logger.warning("stale_queue_items_recovered", count=len(stale))
        return len(stale)

    async def list_items(self, status: Optional[str] = None, limit: int = 100) -> List[ProcessingQueueItem]:
        stmt = select(ProcessingQueueItem)
        if status:
            stmt = stmt.where(ProcessingQueueItem.status == status)
        stmt = stmt.order_by(
            ProcessingQueueItem.priority.asc(),
            ProcessingQueueItem.created_at.asc(),
            ProcessingQueueItem.id.asc(),
        ).limit(limit)
        return list((await self.db.execute(stmt)).scalars().all())
