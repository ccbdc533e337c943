"""
Active resume selection
"""
import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from resume_pipeline.core.database import transaction, utcnow
from resume_pipeline.core.exceptions import NotFoundError
from resume_pipeline.models import Document, DocumentKind
from resume_pipeline.resumes.repository import DocumentRepository
from resume_pipeline.resumes.state_cache import ResumeStateCache

logger = structlog.get_logger()


class ActiveResumeSelector:
    """Keeps at most one active resume per owner"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def set_active(self, owner_id: str, document_id: int) -> Document:
        async with transaction(self.session_factory) as session:
            return await self.activate(session, owner_id, document_id)

    async def activate(self, session: AsyncSession, owner_id: str, document_id: int) -> Document:
        """Deactivate-then-activate inside the caller's transaction"""
        # The owner lock serializes activations against concurrent uploads
        await ResumeStateCache(session).lock_owner(owner_id)
        resumes = await DocumentRepository(session).lock_owner_resumes(owner_id)
        target = next((doc for doc in resumes if doc.id == document_id), None)
        if target is None:
            raise NotFoundError("Resume", str(document_id))

        others_active = [doc.id for doc in resumes if doc.is_active and doc.id != document_id]
        if target.is_active and not others_active:
            return target

        now = utcnow()
        await session.execute(
            update(Document)
            .where(
                Document.owner_id == owner_id,
                Document.document_kind == DocumentKind.RESUME,
                Document.id != document_id,
                Document.is_active.is_(True),
            )
            .values(is_active=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await session.execute(
            update(Document)
            .where(Document.id == document_id)
            .values(is_active=True, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await ResumeStateCache(session).clear_state(owner_id)

        await session.refresh(target)
        logger.info(
            "active_resume_changed",
            owner_id=owner_id,
            document_id=document_id,
            deactivated=others_active,
        )
        return target
