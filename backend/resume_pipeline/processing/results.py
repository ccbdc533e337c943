"""
Results store: extraction output, generated assets and AI analysis
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import delete, select

from resume_pipeline.core.config import settings
from resume_pipeline.core.database import utcnow
from resume_pipeline.core.exceptions import StorageIOError
from resume_pipeline.models import AssetType, DocumentAsset, ProcessingResult, ResumeAnalysis
from resume_pipeline.processing.enrichment import AnalysisPayload
from resume_pipeline.processing.extraction import ExtractionOutcome
from resume_pipeline.processing.options import ProcessingOptions
from resume_pipeline.resumes.repository import BaseRepository
from resume_pipeline.resumes.storage import FileStorage

logger = structlog.get_logger()


@dataclass
class Artifacts:
    """Files written for one processing run"""

    screenshot_paths: List[str] = field(default_factory=list)
    text_file_path: Optional[str] = None
    assets: List[Dict[str, Any]] = field(default_factory=list)
    first_screenshot: Optional[bytes] = None


async def write_artifacts(
    storage: FileStorage,
    document_id: int,
    outcome: ExtractionOutcome,
    options: ProcessingOptions,
) -> Artifacts:
    """Persist screenshots and the text file; write failures become warnings"""
    artifacts = Artifacts()

    for shot in outcome.screenshots:
        path = storage.screenshot_path(document_id, shot.page_number)
        try:
            await storage.write_bytes(path, shot.png_bytes)
        except StorageIOError as e:
            outcome.warnings.append(f"screenshot page {shot.page_number}: {e}")
            continue
        artifacts.screenshot_paths.append(str(path))
        artifacts.assets.append(
            {
                "asset_type": AssetType.SCREENSHOT,
                "page_number": shot.page_number,
                "asset_index": shot.page_number - 1,
                "file_path": str(path),
                "file_size_bytes": len(shot.png_bytes),
            }
        )
        if artifacts.first_screenshot is None:
            artifacts.first_screenshot = shot.png_bytes

    if options.text and outcome.text:
        path = storage.text_path(document_id)
        encoded = outcome.text.encode("utf-8")
        try:
            await storage.write_bytes(path, encoded)
        except StorageIOError as e:
            outcome.warnings.append(f"text file: {e}")
        else:
            artifacts.text_file_path = str(path)
            artifacts.assets.append(
                {
                    "asset_type": AssetType.EXTRACTED_TEXT,
                    "page_number": None,
                    "asset_index": 0,
                    "file_path": str(path),
                    "file_size_bytes": len(encoded),
                }
            )

    return artifacts


def should_enrich(text_length: int) -> bool:
    return settings.AI_ENRICHMENT_ENABLED and text_length > settings.AI_ENRICHMENT_MIN_TEXT_LENGTH


class ResultsStore(BaseRepository):
    async def replace_assets(self, document_id: int, assets: List[Dict[str, Any]]) -> List[str]:
        """Swap the document's asset rows; returns paths no longer referenced"""
        existing = (
            await self.db.execute(select(DocumentAsset.file_path).where(DocumentAsset.document_id == document_id))
        ).scalars().all()
        await self.db.execute(delete(DocumentAsset).where(DocumentAsset.document_id == document_id))
        for asset in assets:
            self.db.add(DocumentAsset(document_id=document_id, **asset))
        await self.db.flush()

        kept = {asset["file_path"] for asset in assets}
        return [path for path in existing if path not in kept]

    async def referenced_paths(self, paths: List[str]) -> set:
        """Subset of ``paths`` still pointed at by an asset or result row"""
        if not paths:
            return set()
        assets = (
            await self.db.execute(select(DocumentAsset.file_path).where(DocumentAsset.file_path.in_(paths)))
        ).scalars().all()
        results = (
            await self.db.execute(
                select(ProcessingResult.text_file_path).where(ProcessingResult.text_file_path.in_(paths))
            )
        ).scalars().all()
        return set(assets) | set(results)

    async def upsert_result(
        self,
        document_id: int,
        outcome: ExtractionOutcome,
        artifacts: Artifacts,
        processing_time_ms: int,
    ) -> ProcessingResult:
        """Replace-on-conflict by document id"""
        values = {
            "extracted_text": outcome.text,
            "text_length": outcome.text_length,
            "word_count": outcome.word_count,
            "line_count": outcome.line_count,
            "text_file_path": artifacts.text_file_path,
            "pdf_total_pages": outcome.page_count,
            "pdf_title": outcome.title,
            "pdf_author": outcome.author,
            "pdf_creator": outcome.creator,
            "pdf_producer": outcome.producer,
            "pdf_metadata": outcome.raw_metadata,
            "screenshot_paths": artifacts.screenshot_paths,
            "images": outcome.images,
            "tables": outcome.tables,
            "contact_info": outcome.contact_info,
            "warnings": list(outcome.warnings),
            "processing_time_ms": processing_time_ms,
            "processed_at": utcnow(),
        }

        stmt = select(ProcessingResult).where(ProcessingResult.document_id == document_id)
        result = (await self.db.execute(stmt)).scalar_one_or_none()
        if result is None:
            result = ProcessingResult(document_id=document_id, **values)
            self.db.add(result)
        else:
            for key, value in values.items():
                setattr(result, key, value)
        await self.db.flush()
        return result

    async def upsert_analysis(self, document_id: int, analysis: AnalysisPayload, model: Optional[str]) -> ResumeAnalysis:
        values = {
            "contact_info": analysis.contact_info.model_dump(),
            "skills": analysis.skills.model_dump(),
            "quality_score": analysis.quality_score,
            "ats_score": analysis.ats_score,
            "aesthetic_score": analysis.aesthetic_score,
            "aesthetic_assessment": analysis.aesthetic_assessment,
            "recommendations": analysis.recommendations,
            "strengths": analysis.strengths,
            "improvements": analysis.improvements,
            "model": model,
            "raw_response": analysis.model_dump(),
            "analyzed_at": utcnow(),
        }

        stmt = select(ResumeAnalysis).where(ResumeAnalysis.document_id == document_id)
        row = (await self.db.execute(stmt)).scalar_one_or_none()
        if row is None:
            row = ResumeAnalysis(document_id=document_id, **values)
            self.db.add(row)
        else:
            for key, value in values.items():
                setattr(row, key, value)
        await self.db.flush()
        logger.info("resume_analysis_saved", document_id=document_id, model=model)
        return row
