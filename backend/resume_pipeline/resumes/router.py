"""
Resume processing routes
"""
from typing import List, Optional

import structlog
from fastapi import APIRouter, Body, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from resume_pipeline.core.exceptions import NotFoundError, StorageIOError, ValidationError
from resume_pipeline.processing.options import ProcessingOptions
from resume_pipeline.processing.queue import QueueRepository
from resume_pipeline.resumes.dependencies import get_services, get_transaction
from resume_pipeline.resumes.gatekeeper import UploadReceipt
from resume_pipeline.resumes.repository import DocumentRepository
from resume_pipeline.resumes.schemas import (
    ActivateResponse,
    AssetResponse,
    DeletionResponse,
    DocumentResponse,
    EnqueueRequest,
    NeedsProcessingResponse,
    OwnerRequest,
    ProcessOutcomeResponse,
    ProcessRequest,
    ProcessingResultResponse,
    QueueItemResponse,
    ResultsResponse,
    ResumeAnalysisResponse,
    ResumeStateResponse,
    StatisticsResponse,
    UploadResponse,
)
from resume_pipeline.resumes.state_cache import ResumeStateCache
from resume_pipeline.services import Services

router = APIRouter(prefix="/api/v1/resumes", tags=["Resumes"])
logger = structlog.get_logger()


def _parse_options(raw: Optional[str]) -> Optional[ProcessingOptions]:
    if not raw:
        return None
    try:
        return ProcessingOptions.model_validate_json(raw)
    except PydanticValidationError as e:
        raise ValidationError("Invalid processing options", details={"errors": [error["msg"] for error in e.errors()]})


def _upload_response(receipt: UploadReceipt) -> UploadResponse:
    document = receipt.document
    return UploadResponse(
        document_id=document.id,
        stored_filename=document.stored_filename,
        original_filename=document.original_filename,
        file_size_bytes=document.file_size_bytes,
        processing_status=document.processing_status,
        is_active=document.is_active,
        queue_item_id=receipt.queue_item.id,
    )


@router.post("", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_resume(
    owner_id: str = Form(...),
    file: UploadFile = File(...),
    priority: Optional[int] = Form(None),
    processing_options: Optional[str] = Form(None),
    services: Services = Depends(get_services),
):
    """Upload a resume and queue it for processing"""
    content = await file.read()
    receipt = await services.gatekeeper.upload(
        owner_id=owner_id,
        filename=file.filename,
        content=content,
        mime_type=file.content_type,
        options=_parse_options(processing_options),
        priority=priority,
    )
    return _upload_response(receipt)


@router.get("/queue", response_model=List[QueueItemResponse])
async def list_queue(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_transaction),
):
    """Processing queue, most urgent first"""
    items = await QueueRepository(db).list_items(status=status_filter, limit=limit)
    return [QueueItemResponse.model_validate(item) for item in items]


@router.get("/statistics", response_model=StatisticsResponse)
async def processing_statistics(db: AsyncSession = Depends(get_transaction)):
    """Document counts by status and processing aggregates"""
    return StatisticsResponse(**await DocumentRepository(db).statistics())


@router.get("/state/{owner_id}", response_model=ResumeStateResponse)
async def get_processing_state(owner_id: str, db: AsyncSession = Depends(get_transaction)):
    """Cached processing state with the derived processing_needed_status"""
    view = await ResumeStateCache(db).get_state(owner_id)
    return ResumeStateResponse.from_view(view)


@router.get("/needs-processing/{owner_id}", response_model=NeedsProcessingResponse)
async def needs_processing(owner_id: str, db: AsyncSession = Depends(get_transaction)):
    return NeedsProcessingResponse(**await ResumeStateCache(db).needs_processing(owner_id))


@router.get("/owners/{owner_id}", response_model=List[DocumentResponse])
async def list_resumes(
    owner_id: str,
    include_inactive: bool = Query(True),
    db: AsyncSession = Depends(get_transaction),
):
    """List an owner's resumes, active first"""
    documents = await DocumentRepository(db).list_for_owner(owner_id, include_inactive=include_inactive)
    return [DocumentResponse.model_validate(doc) for doc in documents]


@router.get("/owners/{owner_id}/active", response_model=DocumentResponse)
async def get_active_resume(owner_id: str, db: AsyncSession = Depends(get_transaction)):
    document = await DocumentRepository(db).get_active(owner_id)
    if document is None:
        raise NotFoundError("Active resume", owner_id)
    return DocumentResponse.model_validate(document)


@router.post("/{document_id}/activate", response_model=ActivateResponse)
async def activate_resume(
    document_id: int,
    request: OwnerRequest,
    services: Services = Depends(get_services),
):
    """Make this resume the owner's active one"""
    document = await services.selector.set_active(request.owner_id, document_id)
    return ActivateResponse(
        document=DocumentResponse.model_validate(document),
        message="Resume activated",
    )


@router.post("/{document_id}/process", response_model=ProcessOutcomeResponse)
async def process_resume_now(
    document_id: int,
    request: ProcessRequest,
    services: Services = Depends(get_services),
):
    """Process synchronously, bypassing queue order"""
    outcome = await services.processor.process_now(request.owner_id, document_id, request.options)
    return ProcessOutcomeResponse(
        queue_item_id=outcome.queue_item_id,
        document_id=outcome.document_id,
        status=outcome.status,
        processing_time_ms=outcome.processing_time_ms,
        text_length=outcome.text_length,
        page_count=outcome.page_count,
        warnings=outcome.warnings,
        enrichment=outcome.enrichment,
        state_refreshed=outcome.state_refreshed,
    )


@router.post("/{document_id}/enqueue", response_model=QueueItemResponse, status_code=status.HTTP_201_CREATED)
async def enqueue_resume(
    document_id: int,
    request: EnqueueRequest,
    services: Services = Depends(get_services),
):
    """Queue a processed or failed resume again"""
    item = await services.processor.requeue(
        request.owner_id, document_id, options=request.options, priority=request.priority
    )
    return QueueItemResponse.model_validate(item)


@router.put("/{document_id}/file", response_model=UploadResponse)
async def replace_resume_file(
    document_id: int,
    owner_id: str = Form(...),
    file: UploadFile = File(...),
    priority: Optional[int] = Form(None),
    processing_options: Optional[str] = Form(None),
    services: Services = Depends(get_services),
):
    """Upload a new version of an existing resume"""
    content = await file.read()
    receipt = await services.gatekeeper.reupload(
        owner_id=owner_id,
        document_id=document_id,
        filename=file.filename,
        content=content,
        mime_type=file.content_type,
        options=_parse_options(processing_options),
        priority=priority,
    )
    return _upload_response(receipt)


@router.get("/{document_id}/results", response_model=ResultsResponse)
async def get_results(
    document_id: int,
    owner_id: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_transaction),
):
    """Extraction result plus AI analysis when available"""
    documents = DocumentRepository(db)
    document = await documents.get_owned(owner_id, document_id)
    result = await documents.get_result(document_id)
    analysis = await documents.get_analysis(document_id)
    return ResultsResponse(
        document=DocumentResponse.model_validate(document),
        result=ProcessingResultResponse.model_validate(result) if result else None,
        analysis=ResumeAnalysisResponse.model_validate(analysis) if analysis else None,
    )


@router.get("/{document_id}/assets", response_model=List[AssetResponse])
async def list_assets(
    document_id: int,
    owner_id: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_transaction),
):
    documents = DocumentRepository(db)
    await documents.get_owned(owner_id, document_id)
    return [AssetResponse.model_validate(asset) for asset in await documents.list_assets(document_id)]


@router.get("/{document_id}/download")
async def download_resume(
    document_id: int,
    owner_id: str = Query(..., min_length=1),
    services: Services = Depends(get_services),
    db: AsyncSession = Depends(get_transaction),
):
    """Stream the stored file back under its original name"""
    document = await DocumentRepository(db).get_owned(owner_id, document_id)
    try:
        path = services.storage.resolve(document.file_path, document.stored_filename)
    except StorageIOError:
        raise NotFoundError("Resume file", document.stored_filename)
    return FileResponse(path, media_type=document.mime_type, filename=document.original_filename)


@router.delete("/{document_id}", response_model=DeletionResponse)
async def delete_resume(
    document_id: int,
    request: OwnerRequest = Body(...),
    services: Services = Depends(get_services),
):
    """Permanently delete a resume with its results and files"""
    report = await services.deletion.hard_delete(request.owner_id, document_id)
    return DeletionResponse(
        document_id=report.document_id,
        was_active=report.was_active,
        removed_files=len(report.removed_files),
        failed_files=report.failed_files,
    )
