"""
Database models
"""
from resume_pipeline.models.document import (
    AssetType,
    Document,
    DocumentAsset,
    DocumentKind,
    DocumentStatus,
)
from resume_pipeline.models.processing import (
    ProcessingQueueItem,
    ProcessingResult,
    QueueStatus,
    ResumeAnalysis,
)
from resume_pipeline.models.resume_state import ProcessingNeededStatus, UserResumeProcessingState

__all__ = [
    "AssetType",
    "Document",
    "DocumentAsset",
    "DocumentKind",
    "DocumentStatus",
    "ProcessingNeededStatus",
    "ProcessingQueueItem",
    "ProcessingResult",
    "QueueStatus",
    "ResumeAnalysis",
    "UserResumeProcessingState",
]
