"""
Per-owner resume processing state
"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, Boolean

from resume_pipeline.core.database import Base, UTCDateTime, utcnow


class ProcessingNeededStatus:
    NO_RESUME = "no_resume"
    NEEDS_PROCESSING = "needs_processing"
    NEEDS_REPROCESSING = "needs_reprocessing"
    UP_TO_DATE = "up_to_date"


class UserResumeProcessingState(Base):
    """Denormalized snapshot of the owner's active resume and its latest result"""

    __tablename__ = "user_resume_processing_state"

    owner_id = Column(String(255), primary_key=True)
    active_document_id = Column(Integer, ForeignKey("documents.id", ondelete="SET NULL"))
    has_parsed_resume = Column(Boolean, nullable=False, default=False)

    # Document snapshot
    document_filename = Column(String(255))
    document_original_filename = Column(String(255))
    document_file_size_bytes = Column(Integer)
    document_uploaded_at = Column(UTCDateTime)

    # Result snapshot
    pdf_title = Column(String(500))
    pdf_author = Column(String(500))
    pdf_creator = Column(String(500))
    pdf_producer = Column(String(500))
    pdf_total_pages = Column(Integer)
    extracted_text = Column(Text)
    text_length = Column(Integer)
    word_count = Column(Integer)
    line_count = Column(Integer)
    screenshot_path = Column(String(1000))

    processed_at = Column(UTCDateTime)
    processing_completed_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)
