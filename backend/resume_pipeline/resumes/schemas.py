"""
Resume Pydantic schemas
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime

from resume_pipeline.processing.options import ProcessingOptions


class OwnerRequest(BaseModel):
    """Request body identifying the owner"""
    owner_id: str = Field(min_length=1, max_length=255)


class ProcessRequest(OwnerRequest):
    options: Optional[ProcessingOptions] = None


class EnqueueRequest(OwnerRequest):
    options: Optional[ProcessingOptions] = None
    priority: Optional[int] = Field(default=None, ge=0, le=100)


class DocumentResponse(BaseModel):
    """Resume document response schema"""
    id: int
    owner_id: str
    stored_filename: str
    original_filename: str
    file_size_bytes: int
    mime_type: str
    document_kind: str
    is_active: bool
    processing_status: str
    processing_error: Optional[str] = None
    uploaded_at: datetime
    processed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UploadResponse(BaseModel):
    document_id: int
    stored_filename: str
    original_filename: str
    file_size_bytes: int
    processing_status: str
    is_active: bool
    queue_item_id: int


class QueueItemResponse(BaseModel):
    id: int
    document_id: int
    status: str
    priority: int
    processing_options: Dict[str, Any]
    retry_count: int
    last_error: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProcessingResultResponse(BaseModel):
    extracted_text: Optional[str] = None
    text_length: int
    word_count: int
    line_count: int
    text_file_path: Optional[str] = None
    pdf_total_pages: Optional[int] = None
    pdf_title: Optional[str] = None
    pdf_author: Optional[str] = None
    pdf_creator: Optional[str] = None
    pdf_producer: Optional[str] = None
    pdf_metadata: Optional[Dict[str, Any]] = None
    screenshot_paths: List[str] = Field(default_factory=list)
    images: List[Dict[str, Any]] = Field(default_factory=list)
    tables: List[Dict[str, Any]] = Field(default_factory=list)
    contact_info: Optional[Dict[str, Any]] = None
    warnings: List[str] = Field(default_factory=list)
    processing_time_ms: Optional[int] = None
    processed_at: datetime

    class Config:
        from_attributes = True


class ResumeAnalysisResponse(BaseModel):
    contact_info: Optional[Dict[str, Any]] = None
    skills: Optional[Dict[str, List[str]]] = None
    quality_score: Optional[int] = None
    ats_score: Optional[int] = None
    aesthetic_score: Optional[int] = None
    aesthetic_assessment: Optional[str] = None
    recommendations: Optional[List[str]] = None
    strengths: Optional[List[str]] = None
    improvements: Optional[List[str]] = None
    model: Optional[str] = None
    analyzed_at: datetime

    class Config:
        from_attributes = True


class ResultsResponse(BaseModel):
    document: DocumentResponse
    result: Optional[ProcessingResultResponse] = None
    analysis: Optional[ResumeAnalysisResponse] = None


class ProcessOutcomeResponse(BaseModel):
    queue_item_id: int
    document_id: int
    status: str
    processing_time_ms: Optional[int] = None
    text_length: Optional[int] = None
    page_count: Optional[int] = None
    warnings: List[str] = Field(default_factory=list)
    enrichment: str
    state_refreshed: bool


class ActivateResponse(BaseModel):
    document: DocumentResponse
    message: str


class DeletionResponse(BaseModel):
    document_id: int
    deleted: bool = True
    was_active: bool
    removed_files: int
    failed_files: List[str] = Field(default_factory=list)


class AssetResponse(BaseModel):
    id: int
    asset_type: str
    page_number: Optional[int] = None
    asset_index: int
    file_path: str
    file_size_bytes: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ResumeStateResponse(BaseModel):
    """Cached processing state with the derived status"""
    owner_id: str
    processing_needed_status: str
    active_document_id: Optional[int] = None
    has_parsed_resume: bool
    document_filename: Optional[str] = None
    document_original_filename: Optional[str] = None
    document_file_size_bytes: Optional[int] = None
    document_uploaded_at: Optional[datetime] = None
    pdf_title: Optional[str] = None
    pdf_author: Optional[str] = None
    pdf_creator: Optional[str] = None
    pdf_producer: Optional[str] = None
    pdf_total_pages: Optional[int] = None
    extracted_text: Optional[str] = None
    text_length: Optional[int] = None
    word_count: Optional[int] = None
    line_count: Optional[int] = None
    screenshot_path: Optional[str] = None
    processed_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    active_document: Optional[DocumentResponse] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_view(cls, view) -> "ResumeStateResponse":
        state = view.state
        data = {name: getattr(state, name) for name in cls.model_fields if hasattr(state, name)}
        data["processing_needed_status"] = view.processing_needed_status
        if view.active_document is not None:
            data["active_document"] = DocumentResponse.model_validate(view.active_document)
        return cls(**data)


class NeedsProcessingResponse(BaseModel):
    needs_processing: bool
    reason: str
    processing_needed_status: str
    active_document_id: Optional[int] = None


class StatisticsResponse(BaseModel):
    total_documents: int
    by_status: Dict[str, int]
    queue_size: int
    processed_documents: int
    avg_processing_time_ms: Optional[float] = None
    total_text_length: int
    last_processed_at: Optional[datetime] = None
