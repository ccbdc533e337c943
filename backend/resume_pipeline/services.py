"""
Component wiring

Every component receives the session factory explicitly; nothing imports a
module-level engine.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from resume_pipeline.core.config import settings
from resume_pipeline.core.database import create_engine, create_session_factory, init_db
from resume_pipeline.processing.enrichment import AIEnrichmentClient
from resume_pipeline.processing.extraction import PdfExtractionEngine
from resume_pipeline.processing.processor import DocumentProcessor
from resume_pipeline.processing.worker import QueueWorker
from resume_pipeline.resumes.deletion import DeletionOrchestrator
from resume_pipeline.resumes.gatekeeper import UploadGatekeeper
from resume_pipeline.resumes.selector import ActiveResumeSelector
from resume_pipeline.resumes.storage import FileStorage


class Services:
    def __init__(
        self,
        engine: AsyncEngine,
        storage: Optional[FileStorage] = None,
        extraction_engine: Optional[PdfExtractionEngine] = None,
        ai_client: Optional[AIEnrichmentClient] = None,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        self.engine = engine
        self.session_factory = session_factory or create_session_factory(engine)
        self.storage = storage or FileStorage()
        self.extraction_engine = extraction_engine or PdfExtractionEngine()
        if ai_client is None and settings.AI_ENRICHMENT_ENABLED:
            ai_client = AIEnrichmentClient()
        self.ai_client = ai_client

        self.gatekeeper = UploadGatekeeper(self.session_factory, self.storage)
        self.selector = ActiveResumeSelector(self.session_factory)
        self.deletion = DeletionOrchestrator(self.session_factory, self.storage)
        self.processor = DocumentProcessor(
            self.session_factory,
            self.storage,
            self.extraction_engine,
            self.ai_client,
        )
        self.worker = QueueWorker(self.session_factory, self.processor)

    @classmethod
    def from_settings(cls, database_url: Optional[str] = None) -> "Services":
        return cls(create_engine(database_url))

    async def startup(self) -> None:
        self.storage.ensure_directories()
        await init_db(self.engine)

    async def shutdown(self) -> None:
        if self.worker.running:
            await self.worker.stop()
        await self.engine.dispose()
