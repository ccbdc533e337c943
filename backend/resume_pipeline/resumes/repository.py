"""
Document store queries
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from resume_pipeline.core.exceptions import NotFoundError
from resume_pipeline.core.field_updates import FieldUpdateBuilder
from resume_pipeline.models import (
    Document,
    DocumentAsset,
    DocumentKind,
    DocumentStatus,
    ProcessingQueueItem,
    ProcessingResult,
    QueueStatus,
    ResumeAnalysis,
)

document_status_update = FieldUpdateBuilder(
    Document,
    ["processing_status", "processing_error", "processed_at", "updated_at"],
)


class BaseRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()


class DocumentRepository(BaseRepository):
    def _resumes(self, owner_id: str):
        return select(Document).where(
            Document.owner_id == owner_id,
            Document.document_kind == DocumentKind.RESUME,
            Document.deleted_at.is_(None),
        )

    async def get(self, document_id: int) -> Optional[Document]:
        return await self.db.get(Document, document_id)

    async def get_owned(self, owner_id: str, document_id: int, for_update: bool = False) -> Document:
        """Load a resume and verify it belongs to the owner"""
        stmt = self._resumes(owner_id).where(Document.id == document_id)
        if for_update:
            stmt = stmt.with_for_update()
        document = (await self.db.execute(stmt)).scalar_one_or_none()
        if document is None:
            raise NotFoundError("Resume", str(document_id))
        return document

    async def list_for_owner(self, owner_id: str, include_inactive: bool = True) -> List[Document]:
        stmt = self._resumes(owner_id)
        if not include_inactive:
            stmt = stmt.where(Document.is_active.is_(True))
        stmt = stmt.order_by(Document.is_active.desc(), Document.uploaded_at.desc(), Document.id.desc())
        return list((await self.db.execute(stmt)).scalars().all())

    async def lock_owner_resumes(self, owner_id: str) -> List[Document]:
        """Row-lock every resume of the owner for the rest of the transaction"""
        stmt = self._resumes(owner_id).order_by(Document.id).with_for_update()
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_active(self, owner_id: str) -> Optional[Document]:
        stmt = self._resumes(owner_id).where(Document.is_active.is_(True))
        return (await self.db.execute(stmt)).scalars().first()

    async def count_for_owner(self, owner_id: str, active_only: bool = False) -> int:
        stmt = select(func.count(Document.id)).where(
            Document.owner_id == owner_id,
            Document.document_kind == DocumentKind.RESUME,
            Document.deleted_at.is_(None),
        )
        if active_only:
            stmt = stmt.where(Document.is_active.is_(True))
        return (await self.db.execute(stmt)).scalar_one()

    async def add(self, document: Document) -> Document:
        self.db.add(document)
        await self.db.flush()
        return document

    async def update_status(self, document_id: int, **changes: Any) -> None:
        await self.db.execute(document_status_update.statement(changes, Document.id == document_id))

    async def get_result(self, document_id: int) -> Optional[ProcessingResult]:
        stmt = select(ProcessingResult).where(ProcessingResult.document_id == document_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get_analysis(self, document_id: int) -> Optional[ResumeAnalysis]:
        stmt = select(ResumeAnalysis).where(ResumeAnalysis.document_id == document_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def list_assets(self, document_id: int) -> List[DocumentAsset]:
        stmt = (
            select(DocumentAsset)
            .where(DocumentAsset.document_id == document_id)
            .order_by(DocumentAsset.asset_type, DocumentAsset.page_number, DocumentAsset.asset_index)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def delete_document_rows(self, document_id: int) -> None:
        """Remove the document and every row that references it"""
        for model in (ProcessingQueueItem, DocumentAsset, ProcessingResult, ResumeAnalysis):
            await self.db.execute(delete(model).where(model.document_id == document_id))
        await self.db.execute(delete(Document).where(Document.id == document_id))

    async def statistics(self) -> Dict[str, Any]:
        """Counts by status plus queue and result aggregates"""
        status_rows = await self.db.execute(
            select(Document.processing_status, func.count(Document.id))
            .where(Document.deleted_at.is_(None))
            .group_by(Document.processing_status)
        )
        by_status = {status: 0 for status in DocumentStatus.ALL}
        by_status.update({status: count for status, count in status_rows.all()})

        queue_size = (
            await self.db.execute(
                select(func.count(ProcessingQueueItem.id)).where(
                    ProcessingQueueItem.status == QueueStatus.QUEUED
                )
            )
        ).scalar_one()

        aggregates = (
            await self.db.execute(
                select(
                    func.count(ProcessingResult.id),
                    func.avg(ProcessingResult.processing_time_ms),
                    func.coalesce(func.sum(ProcessingResult.text_length), 0),
                    func.max(ProcessingResult.processed_at),
                )
            )
        ).one()

        return {
            "total_documents": sum(by_status.values()),
            "by_status": by_status,
            "queue_size": queue_size,
            "processed_documents": aggregates[0],
            "avg_processing_time_ms": round(float(aggregates[1]), 2) if aggregates[1] is not None else None,
            "total_text_length": int(aggregates[2] or 0),
            "last_processed_at": aggregates[3],
        }
