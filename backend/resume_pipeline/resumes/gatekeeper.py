"""
Upload intake: validation, quota, storage, document row and queue item in one transaction
"""
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from resume_pipeline.core.config import settings
from resume_pipeline.core.database import transaction, utcnow
from resume_pipeline.core.exceptions import ConflictError, QuotaExceededError, ValidationError
from resume_pipeline.models import Document, DocumentKind, DocumentStatus, ProcessingQueueItem, QueueStatus
from resume_pipeline.processing.options import ProcessingOptions
from resume_pipeline.processing.queue import QueueRepository
from resume_pipeline.resumes.repository import DocumentRepository
from resume_pipeline.resumes.state_cache import ResumeStateCache
from resume_pipeline.resumes.storage import FileStorage, StoredFile

logger = structlog.get_logger()


@dataclass
class UploadReceipt:
    document: Document
    queue_item: ProcessingQueueItem


class UploadGatekeeper:
    """Entry point for new resume files"""

    def __init__(self, session_factory: async_sessionmaker, storage: FileStorage):
        self.session_factory = session_factory
        self.storage = storage

    def validate(self, owner_id: Optional[str], filename: Optional[str], content: bytes, mime_type: Optional[str]) -> None:
        """Reject bad input before anything is written"""
        if not owner_id or not owner_id.strip():
            raise ValidationError("Owner id is required")
        if not filename:
            raise ValidationError("Filename is required")
        if mime_type not in settings.ALLOWED_MIME_TYPES:
            raise ValidationError(
                "File type not allowed",
                details={"mime_type": mime_type, "allowed": settings.ALLOWED_MIME_TYPES},
            )
        if len(content) > settings.max_upload_size_bytes:
            raise ValidationError(
                f"File size exceeds maximum allowed size of {settings.MAX_UPLOAD_SIZE_MB}MB",
                details={"size_bytes": len(content), "max_bytes": settings.max_upload_size_bytes},
            )

    async def upload(
        self,
        owner_id: str,
        filename: str,
        content: bytes,
        mime_type: str,
        options: Optional[ProcessingOptions] = None,
        priority: Optional[int] = None,
    ) -> UploadReceipt:
        self.validate(owner_id, filename, content, mime_type)
        options = options or ProcessingOptions()

        stored: Optional[StoredFile] = None
        try:
            async with transaction(self.session_factory) as session:
                await ResumeStateCache(session).lock_owner(owner_id)
                documents = DocumentRepository(session)
                existing = await documents.lock_owner_resumes(owner_id)
                if len(existing) >= settings.MAX_RESUMES_PER_OWNER:
                    raise QuotaExceededError(owner_id, settings.MAX_RESUMES_PER_OWNER)

                stored = await self.storage.save_upload(content, filename)
                document = await documents.add(
                    Document(
                        owner_id=owner_id,
                        stored_filename=stored.stored_filename,
                        original_filename=filename,
                        file_path=stored.file_path,
                        file_size_bytes=stored.size_bytes,
                        mime_type=mime_type,
                        document_kind=DocumentKind.RESUME,
                        is_active=not any(doc.is_active for doc in existing),
                        processing_status=DocumentStatus.PENDING,
                        uploaded_at=utcnow(),
                    )
                )
                item = await QueueRepository(session).enqueue(
                    document.id, options=options.model_dump(), priority=priority
                )
        except IntegrityError as e:
            await self._discard(stored)
            raise ConflictError("Concurrent upload conflict, please retry", details={"error": str(e.orig)})
        except Exception:
            await self._discard(stored)
            raise

        logger.info(
            "resume_uploaded",
            owner_id=owner_id,
            document_id=document.id,
            stored_filename=document.stored_filename,
            is_active=document.is_active,
            queue_item_id=item.id,
        )
        return UploadReceipt(document=document, queue_item=item)

    async def reupload(
        self,
        owner_id: str,
        document_id: int,
        filename: str,
        content: bytes,
        mime_type: str,
        options: Optional[ProcessingOptions] = None,
        priority: Optional[int] = None,
    ) -> UploadReceipt:
        """Replace an existing resume's file; its last result stays until reprocessed"""
        self.validate(owner_id, filename, content, mime_type)
        options = options or ProcessingOptions()

        stored: Optional[StoredFile] = None
        try:
            async with transaction(self.session_factory) as session:
                document = await DocumentRepository(session).get_owned(owner_id, document_id, for_update=True)
                queue = QueueRepository(session)
                item = await queue.outstanding_for_document(document.id)
                if item is not None and item.status == QueueStatus.PROCESSING:
                    raise ConflictError(
                        "Document is being processed, retry after it finishes",
                        details={"document_id": document_id},
                    )

                stored = await self.storage.save_upload(content, filename)
                previous_path = document.file_path
                document.stored_filename = stored.stored_filename
                document.original_filename = filename
                document.file_path = stored.file_path
                document.file_size_bytes = stored.size_bytes
                document.mime_type = mime_type
                document.uploaded_at = utcnow()
                document.processing_status = DocumentStatus.PENDING
                document.processing_error = None
                await session.flush()

                if item is None:
                    item = await queue.enqueue(document.id, options=options.model_dump(), priority=priority)
        except Exception:
            await self._discard(stored)
            raise

        await self.storage.remove(previous_path)
        logger.info("resume_reuploaded", owner_id=owner_id, document_id=document_id, queue_item_id=item.id)
        return UploadReceipt(document=document, queue_item=item)

    async def _discard(self, stored: Optional[StoredFile]) -> None:
        if stored is not None:
            await self.storage.remove(stored.file_path)
            logger.info("upload_rolled_back", stored_filename=stored.stored_filename)
