"""
Per-owner processing state cache tests
"""
from datetime import timedelta

import pytest

from resume_pipeline.core.database import transaction, utcnow
from resume_pipeline.core.exceptions import NotFoundError, StaleResumeStateError
from resume_pipeline.models import Document, ProcessingNeededStatus, UserResumeProcessingState
from resume_pipeline.resumes.state_cache import ResumeStateCache, derive_status


class TestDeriveStatus:
    """Status is computed from the cached row and the current active document"""

    def _document(self, doc_id=1, uploaded_at=None):
        return Document(id=doc_id, uploaded_at=uploaded_at or utcnow())

    def test_no_active_document(self):
        state = UserResumeProcessingState(owner_id="u1", has_parsed_resume=True, processed_at=utcnow())
        assert derive_status(state, None) == ProcessingNeededStatus.NO_RESUME

    def test_never_parsed(self):
        state = UserResumeProcessingState(owner_id="u1", has_parsed_resume=False)
        assert derive_status(state, self._document()) == ProcessingNeededStatus.NEEDS_PROCESSING

    def test_cached_for_another_document(self):
        now = utcnow()
        state = UserResumeProcessingState(
            owner_id="u1", has_parsed_resume=True, active_document_id=2, processed_at=now
        )
        document = self._document(doc_id=1, uploaded_at=now - timedelta(hours=1))
        assert derive_status(state, document) == ProcessingNeededStatus.NEEDS_PROCESSING

    def test_file_newer_than_processing(self):
        now = utcnow()
        state = UserResumeProcessingState(
            owner_id="u1", has_parsed_resume=True, active_document_id=1, processed_at=now - timedelta(minutes=5)
        )
        assert derive_status(state, self._document(uploaded_at=now)) == ProcessingNeededStatus.NEEDS_REPROCESSING

    def test_up_to_date(self):
        now = utcnow()
        state = UserResumeProcessingState(
            owner_id="u1", has_parsed_resume=True, active_document_id=1, processed_at=now
        )
        document = self._document(uploaded_at=now - timedelta(minutes=5))
        assert derive_status(state, document) == ProcessingNeededStatus.UP_TO_DATE

    def test_naive_and_aware_timestamps_compare(self):
        now = utcnow()
        state = UserResumeProcessingState(
            owner_id="u1", has_parsed_resume=True, active_document_id=1, processed_at=now.replace(tzinfo=None)
        )
        document = self._document(uploaded_at=now - timedelta(minutes=5))
        assert derive_status(state, document) == ProcessingNeededStatus.UP_TO_DATE


class TestStateCache:

    async def test_state_created_lazily(self, session_factory):
        async with transaction(session_factory) as session:
            view = await ResumeStateCache(session).get_state("new-owner")

        assert view.state.owner_id == "new-owner"
        assert view.state.has_parsed_resume is False
        assert view.active_document is None
        assert view.processing_needed_status == ProcessingNeededStatus.NO_RESUME

        async with transaction(session_factory) as session:
            assert await session.get(UserResumeProcessingState, "new-owner") is not None

    async def test_uploaded_but_unprocessed(self, upload, session_factory):
        document = await upload("u1")
        async with transaction(session_factory) as session:
            view = await ResumeStateCache(session).get_state("u1")
        assert view.active_document.id == document.id
        assert view.processing_needed_status == ProcessingNeededStatus.NEEDS_PROCESSING

    async def test_processing_fills_snapshot(self, services, upload, session_factory):
        document = await upload("u1", filename="jane.pdf")
        await services.processor.process_now("u1", document.id)

        async with transaction(session_factory) as session:
            view = await ResumeStateCache(session).get_state("u1")

        state = view.state
        assert view.processing_needed_status == ProcessingNeededStatus.UP_TO_DATE
        assert state.active_document_id == document.id
        assert state.has_parsed_resume is True
        assert state.document_original_filename == "jane.pdf"
        assert state.document_filename == document.stored_filename
        assert state.pdf_title == "Jane Doe Resume"
        assert state.pdf_total_pages == 2
        assert state.text_length == len(state.extracted_text)
        assert state.processed_at is not None
        assert state.processing_completed_at is not None

    async def test_update_for_inactive_document_is_stale(self, services, upload, session_factory):
        await upload("u1")
        inactive = await upload("u1")
        await services.processor.process_now("u1", inactive.id)

        async with transaction(session_factory) as session:
            with pytest.raises(StaleResumeStateError):
                await ResumeStateCache(session).update_state("u1", inactive.id)

    async def test_update_without_result_is_not_found(self, upload, session_factory):
        document = await upload("u1")
        async with transaction(session_factory) as session:
            with pytest.raises(NotFoundError):
                await ResumeStateCache(session).update_state("u1", document.id)

    async def test_processing_inactive_document_leaves_cache_alone(self, services, upload, session_factory):
        await upload("u1")
        inactive = await upload("u1")

        outcome = await services.processor.process_now("u1", inactive.id)

        assert outcome.state_refreshed is False
        async with transaction(session_factory) as session:
            view = await ResumeStateCache(session).get_state("u1")
        assert view.state.has_parsed_resume is False

    async def test_clear_state(self, services, upload, session_factory):
        document = await upload("u1")
        await services.processor.process_now("u1", document.id)

        async with transaction(session_factory) as session:
            await ResumeStateCache(session).clear_state("u1")

        async with transaction(session_factory) as session:
            view = await ResumeStateCache(session).get_state("u1")
        assert view.state.has_parsed_resume is False
        assert view.state.active_document_id is None
        assert view.state.extracted_text is None
        assert view.processing_needed_status == ProcessingNeededStatus.NEEDS_PROCESSING

    async def test_clear_missing_state_is_a_no_op(self, session_factory):
        async with transaction(session_factory) as session:
            await ResumeStateCache(session).clear_state("nobody")
            assert await session.get(UserResumeProcessingState, "nobody") is None


class TestNeedsProcessing:

    async def test_reasons(self, services, upload, session_factory):
        async with transaction(session_factory) as session:
            result = await ResumeStateCache(session).needs_processing("u1")
        assert result["needs_processing"] is False
        assert result["processing_needed_status"] == ProcessingNeededStatus.NO_RESUME
        assert result["active_document_id"] is None

        document = await upload("u1")
        async with transaction(session_factory) as session:
            result = await ResumeStateCache(session).needs_processing("u1")
        assert result["needs_processing"] is True
        assert result["active_document_id"] == document.id

        await services.processor.process_now("u1", document.id)
        async with transaction(session_factory) as session:
            result = await ResumeStateCache(session).needs_processing("u1")
        assert result["needs_processing"] is False
        assert result["processing_needed_status"] == ProcessingNeededStatus.UP_TO_DATE
