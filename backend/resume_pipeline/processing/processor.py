"""
Document processing pipeline shared by the queue worker and manual processing
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from resume_pipeline.core.database import transaction, utcnow
from resume_pipeline.core.exceptions import NotFoundError, ProcessingError, ResumePipelineError
from resume_pipeline.models import Document, DocumentStatus, ProcessingQueueItem
from resume_pipeline.processing.enrichment import AIEnrichmentClient
from resume_pipeline.processing.extraction import ExtractionOutcome, PdfExtractionEngine
from resume_pipeline.processing.options import ProcessingOptions
from resume_pipeline.processing.queue import QueueRepository
from resume_pipeline.processing.results import Artifacts, ResultsStore, should_enrich, write_artifacts
from resume_pipeline.resumes.repository import DocumentRepository
from resume_pipeline.resumes.state_cache import ResumeStateCache
from resume_pipeline.resumes.storage import FileStorage

logger = structlog.get_logger()


class EnrichmentStatus:
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ItemOutcome:
    """Result of processing one queue item"""

    queue_item_id: int
    document_id: int
    status: str
    error: Optional[str] = None
    error_type: Optional[str] = None
    processing_time_ms: Optional[int] = None
    text_length: Optional[int] = None
    page_count: Optional[int] = None
    warnings: List[str] = field(default_factory=list)
    enrichment: str = EnrichmentStatus.SKIPPED
    state_refreshed: bool = False
    exception: Optional[BaseException] = field(default=None, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.status == DocumentStatus.COMPLETED


class DocumentProcessor:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        storage: FileStorage,
        engine: PdfExtractionEngine,
        ai_client: Optional[AIEnrichmentClient] = None,
    ):
        self.session_factory = session_factory
        self.storage = storage
        self.engine = engine
        self.ai_client = ai_client

    async def process_now(
        self,
        owner_id: str,
        document_id: int,
        options: Optional[ProcessingOptions] = None,
    ) -> ItemOutcome:
        """Process a document immediately, outside queue order

        Claims through the same single-writer transition as the worker, so a
        document already being processed raises ConflictError.
        """
        async with transaction(self.session_factory) as session:
            document = await DocumentRepository(session).get_owned(owner_id, document_id)
            item = await QueueRepository(session).claim_for_document(
                document.id,
                options=options.model_dump() if options else None,
            )
            await self._mark_processing(session, document.id)

        if options is None:
            options = ProcessingOptions.model_validate(item.processing_options or {})
        outcome = await self.run(item.id, document_id, options.model_dump())
        if not outcome.succeeded:
            if isinstance(outcome.exception, ResumePipelineError):
                raise outcome.exception
            raise ProcessingError(outcome.error or "Processing failed", details={"document_id": document_id})
        return outcome

    async def requeue(
        self,
        owner_id: str,
        document_id: int,
        options: Optional[ProcessingOptions] = None,
        priority: Optional[int] = None,
    ) -> ProcessingQueueItem:
        """Put an already processed (or failed) document back on the queue"""
        async with transaction(self.session_factory) as session:
            document = await DocumentRepository(session).get_owned(owner_id, document_id)
            item = await QueueRepository(session).enqueue(
                document.id,
                options=(options or ProcessingOptions()).model_dump(),
                priority=priority,
            )
            await DocumentRepository(session).update_status(
                document.id,
                processing_status=DocumentStatus.QUEUED,
                processing_error=None,
                updated_at=utcnow(),
            )
        logger.info("document_requeued", document_id=document_id, queue_item_id=item.id, retry_count=item.retry_count)
        return item

    async def claim(self, item: ProcessingQueueItem) -> bool:
        """Worker-side claim of a queued item"""
        async with transaction(self.session_factory) as session:
            if not await QueueRepository(session).claim(item.id):
                return False
            await self._mark_processing(session, item.document_id)
        return True

    @staticmethod
    async def _mark_processing(session, document_id: int) -> None:
        await DocumentRepository(session).update_status(
            document_id,
            processing_status=DocumentStatus.PROCESSING,
            processing_error=None,
            updated_at=utcnow(),
        )

    async def run(self, queue_item_id: int, document_id: int, options: Optional[Dict[str, Any]] = None) -> ItemOutcome:
        """Extract, store and cache one claimed item; failures are recorded, not raised"""
        started = time.perf_counter()
        log = logger.bind(queue_item_id=queue_item_id, document_id=document_id)
        log.info("document_processing_started")

        artifacts = None
        try:
            parsed_options = ProcessingOptions.model_validate(options or {})
            async with self.session_factory() as session:
                document = await session.get(Document, document_id)
            if document is None:
                raise NotFoundError("Document", str(document_id))

            content = await self.storage.read(document.file_path, document.stored_filename)
            extraction = await self.engine.extract(content, parsed_options)
            artifacts = await write_artifacts(self.storage, document_id, extraction, parsed_options)
            elapsed_ms = int((time.perf_counter() - started) * 1000)

            async with transaction(self.session_factory) as session:
                results = ResultsStore(session)
                orphaned = await results.replace_assets(document_id, artifacts.assets)
                await results.upsert_result(document_id, extraction, artifacts, elapsed_ms)
                await DocumentRepository(session).update_status(
                    document_id,
                    processing_status=DocumentStatus.COMPLETED,
                    processing_error=None,
                    processed_at=utcnow(),
                    updated_at=utcnow(),
                )
                await QueueRepository(session).mark_completed(queue_item_id)
                refreshed = await self._refresh_state(session, document.owner_id, document_id)
        except Exception as e:
            if artifacts is not None:
                await self._discard_artifacts(document_id, artifacts)
            return await self._record_failure(queue_item_id, document_id, e, started)

        for path in orphaned:
            await self.storage.remove(path)

        outcome = ItemOutcome(
            queue_item_id=queue_item_id,
            document_id=document_id,
            status=DocumentStatus.COMPLETED,
            processing_time_ms=elapsed_ms,
            text_length=extraction.text_length,
            page_count=extraction.page_count,
            warnings=list(extraction.warnings),
            state_refreshed=refreshed,
        )
        outcome.enrichment = await self._enrich(document.owner_id, document_id, extraction, artifacts)
        log.info(
            "document_processing_completed",
            processing_time_ms=elapsed_ms,
            text_length=extraction.text_length,
            pages=extraction.page_count,
            enrichment=outcome.enrichment,
        )
        return outcome

    async def _discard_artifacts(self, document_id: int, artifacts: Artifacts) -> None:
        """Remove files written by a run whose result transaction did not commit

        Paths are deterministic per document, so files still referenced by a
        previous run's rows are left alone.
        """
        written = list(artifacts.screenshot_paths)
        if artifacts.text_file_path:
            written.append(artifacts.text_file_path)
        if not written:
            return
        try:
            async with self.session_factory() as session:
                referenced = await ResultsStore(session).referenced_paths(written)
        except SQLAlchemyError as e:
            logger.warning("artifact_cleanup_skipped", document_id=document_id, error=str(e))
            return
        for path in written:
            if path not in referenced:
                await self.storage.remove(path)
        logger.info("artifacts_discarded", document_id=document_id, count=len(set(written) - referenced))

    @staticmethod
    async def _refresh_state(session, owner_id: str, document_id: int) -> bool:
        active = await DocumentRepository(session).get_active(owner_id)
        if active is None or active.id != document_id:
            return False
        await ResumeStateCache(session).update_state(owner_id, document_id)
        return True

    async def _record_failure(self, queue_item_id: int, document_id: int, error: Exception, started: float) -> ItemOutcome:
        message = error.message if isinstance(error, ResumePipelineError) else (str(error) or error.__class__.__name__)
        logger.error(
            "document_processing_failed",
            queue_item_id=queue_item_id,
            document_id=document_id,
            error=message,
            error_type=error.__class__.__name__,
        )
        try:
            async with transaction(self.session_factory) as session:
                await QueueRepository(session).mark_failed(queue_item_id, message)
                await DocumentRepository(session).update_status(
                    document_id,
                    processing_status=DocumentStatus.FAILED,
                    processing_error=message,
                    updated_at=utcnow(),
                )
        except SQLAlchemyError as e:
            logger.error("failure_status_not_recorded", queue_item_id=queue_item_id, error=str(e))

        return ItemOutcome(
            queue_item_id=queue_item_id,
            document_id=document_id,
            status=DocumentStatus.FAILED,
            error=message,
            error_type=error.__class__.__name__,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
            exception=error,
        )

    async def _enrich(self, owner_id: str, document_id: int, extraction: ExtractionOutcome, artifacts: Artifacts) -> str:
        """Soft step: never changes the document's completed status"""
        if self.ai_client is None or not should_enrich(extraction.text_length):
            return EnrichmentStatus.SKIPPED

        try:
            result = await asyncio.wait_for(
                self.ai_client.analyze(extraction.text, artifacts.first_screenshot),
                timeout=self.ai_client.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("ai_enrichment_timed_out", document_id=document_id, timeout=self.ai_client.timeout)
            return EnrichmentStatus.FAILED
        except Exception as e:
            logger.warning(
                "ai_enrichment_crashed",
                document_id=document_id,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            return EnrichmentStatus.FAILED

        if not result.ok:
            return EnrichmentStatus.FAILED

        try:
            async with transaction(self.session_factory) as session:
                await ResultsStore(session).upsert_analysis(document_id, result.analysis, result.model)
        except SQLAlchemyError as e:
            logger.warning("resume_analysis_not_saved", owner_id=owner_id, document_id=document_id, error=str(e))
            return EnrichmentStatus.FAILED
        return EnrichmentStatus.COMPLETED
