"""
Document models
"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, Boolean, Index, text

from resume_pipeline.core.database import Base, UTCDateTime, utcnow


class DocumentKind:
    RESUME = "resume"


class DocumentStatus:
    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    ALL = (PENDING, QUEUED, PROCESSING, COMPLETED, FAILED)


class Document(Base):
    """Uploaded file with its processing status"""

    __tablename__ = "documents"
    __table_args__ = (
        # At most one active document per owner and kind
        Index(
            "uq_documents_one_active_per_owner",
            "owner_id",
            "document_kind",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(255), nullable=False, index=True)
    stored_filename = Column(String(255), nullable=False, unique=True)
    original_filename = Column(String(255), nullable=False)
    file_path = Column(String(1000), nullable=False)
    file_size_bytes = Column(Integer, nullable=False)
    mime_type = Column(String(100), nullable=False)
    document_kind = Column(String(50), nullable=False, default=DocumentKind.RESUME)
    is_active = Column(Boolean, nullable=False, default=False)
    processing_status = Column(String(50), nullable=False, default=DocumentStatus.PENDING)
    processing_error = Column(Text)
    uploaded_at = Column(UTCDateTime, nullable=False, default=utcnow)
    processed_at = Column(UTCDateTime)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(UTCDateTime)


class AssetType:
    SCREENSHOT = "screenshot"
    EXTRACTED_TEXT = "extracted_text"


class DocumentAsset(Base):
    """Artifact generated while processing a document, recorded at creation time"""

    __tablename__ = "document_assets"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    asset_type = Column(String(50), nullable=False)
    page_number = Column(Integer)
    asset_index = Column(Integer, nullable=False, default=0)
    file_path = Column(String(1000), nullable=False)
    file_size_bytes = Column(Integer)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
