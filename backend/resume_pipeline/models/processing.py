"""
Processing queue and result models
"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, JSON, Index, text

from resume_pipeline.core.database import Base, UTCDateTime, utcnow


class QueueStatus:
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    OUTSTANDING = (QUEUED, PROCESSING)


class ProcessingQueueItem(Base):
    """Unit of extraction work for one document"""

    __tablename__ = "document_processing_queue"
    __table_args__ = (
        # One outstanding (queued/processing) item per document
        Index(
            "uq_queue_one_outstanding_per_document",
            "document_id",
            unique=True,
            sqlite_where=text("status IN ('queued', 'processing')"),
            postgresql_where=text("status IN ('queued', 'processing')"),
        ),
        Index("ix_queue_status_priority_created", "status", "priority", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(50), nullable=False, default=QueueStatus.QUEUED)
    priority = Column(Integer, nullable=False, default=5)  # lower = more urgent
    processing_options = Column(JSON, nullable=False, default=dict)
    retry_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    started_at = Column(UTCDateTime)
    completed_at = Column(UTCDateTime)


class ProcessingResult(Base):
    """Extraction output, one row per document"""

    __tablename__ = "document_processing_results"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(
        Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )

    # Text
    extracted_text = Column(Text)
    text_length = Column(Integer, nullable=False, default=0)
    word_count = Column(Integer, nullable=False, default=0)
    line_count = Column(Integer, nullable=False, default=0)
    text_file_path = Column(String(1000))

    # PDF info
    pdf_total_pages = Column(Integer)
    pdf_title = Column(String(500))
    pdf_author = Column(String(500))
    pdf_creator = Column(String(500))
    pdf_producer = Column(String(500))
    pdf_metadata = Column(JSON)

    # Best-effort artifacts
    screenshot_paths = Column(JSON, default=list)
    images = Column(JSON, default=list)
    tables = Column(JSON, default=list)
    contact_info = Column(JSON)  # Heuristic, low confidence
    warnings = Column(JSON, default=list)

    processing_time_ms = Column(Integer)
    processed_at = Column(UTCDateTime, nullable=False, default=utcnow)


class ResumeAnalysis(Base):
    """AI enrichment output, present only when the AI call succeeded"""

    __tablename__ = "resume_analysis"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(
        Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    contact_info = Column(JSON)
    skills = Column(JSON)  # technical, soft, tools, certifications
    quality_score = Column(Integer)  # 0-100
    ats_score = Column(Integer)  # 0-100
    aesthetic_score = Column(Integer)  # 0-100
    recommendations = Column(JSON)
    strengths = Column(JSON)
    improvements = Column(JSON)
    aesthetic_assessment = Column(Text)
    model = Column(String(255))
    raw_response = Column(JSON)
    analyzed_at = Column(UTCDateTime, nullable=False, default=utcnow)
