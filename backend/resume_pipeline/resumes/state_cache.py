"""
Per-owner resume processing state cache

The cache row holds a denormalized copy of the active resume and its latest
processing result. ``processing_needed_status`` is never stored; it is derived
on every read from the cached row and the owner's current active document.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from resume_pipeline.core.database import ensure_utc, utcnow
from resume_pipeline.core.exceptions import NotFoundError, StaleResumeStateError
from resume_pipeline.core.field_updates import FieldUpdateBuilder
from resume_pipeline.models import (
    Document,
    ProcessingNeededStatus,
    ProcessingResult,
    UserResumeProcessingState,
)
from resume_pipeline.resumes.repository import BaseRepository, DocumentRepository

logger = structlog.get_logger()

SNAPSHOT_FIELDS = (
    "active_document_id",
    "document_filename",
    "document_original_filename",
    "document_file_size_bytes",
    "document_uploaded_at",
    "pdf_title",
    "pdf_author",
    "pdf_creator",
    "pdf_producer",
    "pdf_total_pages",
    "extracted_text",
    "text_length",
    "word_count",
    "line_count",
    "screenshot_path",
    "processed_at",
    "processing_completed_at",
)

state_update = FieldUpdateBuilder(
    UserResumeProcessingState,
    SNAPSHOT_FIELDS + ("has_parsed_resume", "updated_at"),
)


@dataclass
class ResumeStateView:
    state: UserResumeProcessingState
    active_document: Optional[Document]
    processing_needed_status: str


def derive_status(state: UserResumeProcessingState, active_document: Optional[Document]) -> str:
    if active_document is None:
        return ProcessingNeededStatus.NO_RESUME
    if (
        not state.has_parsed_resume
        or state.processed_at is None
        or state.active_document_id != active_document.id
    ):
        return ProcessingNeededStatus.NEEDS_PROCESSING
    if ensure_utc(state.processed_at) < ensure_utc(active_document.uploaded_at):
        return ProcessingNeededStatus.NEEDS_REPROCESSING
    return ProcessingNeededStatus.UP_TO_DATE


class ResumeStateCache(BaseRepository):
    async def _get_or_create(self, owner_id: str) -> UserResumeProcessingState:
        state = await self.db.get(UserResumeProcessingState, owner_id)
        if state is not None:
            return state

        state = UserResumeProcessingState(owner_id=owner_id, has_parsed_resume=False)
        try:
            async with self.db.begin_nested():
                self.db.add(state)
                await self.db.flush()
        except IntegrityError:
            # Created concurrently by another request
            state = await self.db.get(UserResumeProcessingState, owner_id, populate_existing=True)
        return state

    async def lock_owner(self, owner_id: str) -> UserResumeProcessingState:
        """Row-lock the owner's state row, creating it first if needed

        The row exists however many documents the owner has, so it serializes
        per-owner writers where locking the document rows alone would not.
        """
        await self._get_or_create(owner_id)
        return await self.db.get(
            UserResumeProcessingState,
            owner_id,
            with_for_update=True,
            populate_existing=True,
        )

    async def get_state(self, owner_id: str) -> ResumeStateView:
        state = await self._get_or_create(owner_id)
        active = await DocumentRepository(self.db).get_active(owner_id)
        return ResumeStateView(
            state=state,
            active_document=active,
            processing_needed_status=derive_status(state, active),
        )

    async def update_state(self, owner_id: str, document_id: int) -> UserResumeProcessingState:
        """Overwrite the snapshot from the document's latest result"""
        active = await DocumentRepository(self.db).get_active(owner_id)
        if active is None or active.id != document_id:
            raise StaleResumeStateError(owner_id, document_id)

        stmt = (
            select(Document, ProcessingResult)
            .join(ProcessingResult, ProcessingResult.document_id == Document.id)
            .where(Document.id == document_id)
        )
        row = (await self.db.execute(stmt)).first()
        if row is None:
            raise NotFoundError("Processing result", str(document_id))
        document, result = row

        state = await self._get_or_create(owner_id)
        screenshots = result.screenshot_paths or []
        state_update.apply(
            state,
            {
                "active_document_id": document.id,
                "has_parsed_resume": True,
                "document_filename": document.stored_filename,
                "document_original_filename": document.original_filename,
                "document_file_size_bytes": document.file_size_bytes,
                "document_uploaded_at": document.uploaded_at,
                "pdf_title": result.pdf_title,
                "pdf_author": result.pdf_author,
                "pdf_creator": result.pdf_creator,
                "pdf_producer": result.pdf_producer,
                "pdf_total_pages": result.pdf_total_pages,
                "extracted_text": result.extracted_text,
                "text_length": result.text_length,
                "word_count": result.word_count,
                "line_count": result.line_count,
                "screenshot_path": screenshots[0] if screenshots else None,
                "processed_at": result.processed_at,
                "processing_completed_at": utcnow(),
                "updated_at": utcnow(),
            },
        )
        await self.db.flush()
        logger.info("resume_state_updated", owner_id=owner_id, document_id=document_id)
        return state

    async def clear_state(self, owner_id: str) -> None:
        """Null the snapshot so nothing stale is ever served as current"""
        state = await self.db.get(UserResumeProcessingState, owner_id)
        if state is None:
            return
        changes: Dict[str, Any] = {name: None for name in SNAPSHOT_FIELDS}
        changes.update(has_parsed_resume=False, updated_at=utcnow())
        state_update.apply(state, changes)
        await self.db.flush()
        logger.info("resume_state_cleared", owner_id=owner_id)

    async def needs_processing(self, owner_id: str) -> Dict[str, Any]:
        view = await self.get_state(owner_id)
        status = view.processing_needed_status
        reasons = {
            ProcessingNeededStatus.NO_RESUME: (False, "No active resume"),
            ProcessingNeededStatus.NEEDS_PROCESSING: (True, "Active resume has not been processed"),
            ProcessingNeededStatus.NEEDS_REPROCESSING: (True, "Resume was updated after it was last processed"),
            ProcessingNeededStatus.UP_TO_DATE: (False, "Resume processing is up to date"),
        }
        needed, reason = reasons[status]
        return {
            "needs_processing": needed,
            "reason": reason,
            "processing_needed_status": status,
            "active_document_id": view.active_document.id if view.active_document else None,
        }
