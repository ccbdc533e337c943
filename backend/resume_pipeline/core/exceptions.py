"""
Custom exception classes for the application
"""
from typing import Optional, Dict, Any


class ResumePipelineError(Exception):
    """Base exception for the resume pipeline"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ResumePipelineError):
    """Validation errors, raised before any mutation happens"""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


class QuotaExceededError(ValidationError):
    """Owner already holds the maximum number of resumes"""

    def __init__(self, owner_id: str, limit: int):
        super().__init__(
            f"Resume limit reached: maximum {limit} resumes per owner",
            details={"owner_id": owner_id, "limit": limit},
        )


class NotFoundError(ResumePipelineError):
    """Resource not found errors"""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found"
        if identifier:
            message += f": {identifier}"
        super().__init__(message, status_code=404)


class ConflictError(ResumePipelineError):
    """State conflicts such as a queue item already being processed"""

    def __init__(self, message: str = "Conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=409, details=details)


class StaleResumeStateError(ConflictError):
    """A cache refresh was attempted for a document that is not the active resume"""

    def __init__(self, owner_id: str, document_id: int):
        super().__init__(
            "Document is not the owner's active resume",
            details={"owner_id": owner_id, "document_id": document_id},
        )


class ProcessingError(ResumePipelineError):
    """File/resume processing errors"""

    def __init__(self, message: str = "Processing failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


class ExtractionFailure(ProcessingError):
    """The file cannot be read or parsed as a PDF at all"""


class StorageIOError(ResumePipelineError):
    """Filesystem read/write failures"""

    def __init__(self, message: str = "Storage operation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=500, details=details)


class AIEngineError(ResumePipelineError):
    """AI engine related errors"""

    def __init__(self, message: str = "AI processing failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=502, details=details)


class AIEnrichmentFailure(AIEngineError):
    """Timeout, transport error or malformed response from the AI service"""
