"""
Hard deletion of a resume, its rows and its files
"""
from dataclasses import dataclass, field
from typing import List

import structlog
from sqlalchemy.ext.asyncio import async_sessionmaker

from resume_pipeline.core.database import transaction
from resume_pipeline.core.exceptions import StorageIOError
from resume_pipeline.resumes.repository import DocumentRepository
from resume_pipeline.resumes.state_cache import ResumeStateCache
from resume_pipeline.resumes.storage import FileStorage

logger = structlog.get_logger()


@dataclass
class DeletionReport:
    document_id: int
    was_active: bool
    removed_files: List[str] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)


class DeletionOrchestrator:
    """Rows go in one transaction; files are removed afterwards, best-effort"""

    def __init__(self, session_factory: async_sessionmaker, storage: FileStorage):
        self.session_factory = session_factory
        self.storage = storage

    async def hard_delete(self, owner_id: str, document_id: int) -> DeletionReport:
        async with transaction(self.session_factory) as session:
            documents = DocumentRepository(session)
            document = await documents.get_owned(owner_id, document_id, for_update=True)
            result = await documents.get_result(document_id)
            assets = await documents.list_assets(document_id)

            paths = [self._primary_path(document.file_path, document.stored_filename)]
            paths.extend(asset.file_path for asset in assets)
            if result is not None:
                paths.extend(result.screenshot_paths or [])
                paths.append(result.text_file_path)

            was_active = document.is_active
            if was_active:
                await ResumeStateCache(session).clear_state(owner_id)
            await documents.delete_document_rows(document_id)

        report = DeletionReport(document_id=document_id, was_active=was_active)
        for path in dict.fromkeys(p for p in paths if p):
            if await self.storage.remove(path):
                report.removed_files.append(path)
            else:
                report.failed_files.append(path)

        logger.info(
            "resume_deleted",
            owner_id=owner_id,
            document_id=document_id,
            was_active=was_active,
            files_removed=len(report.removed_files),
            files_failed=len(report.failed_files),
        )
        return report

    def _primary_path(self, file_path: str, stored_filename: str) -> str:
        try:
            return str(self.storage.resolve(file_path, stored_filename))
        except StorageIOError:
            return file_path
