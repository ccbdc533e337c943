"""
PDF extraction engine
Text and metadata are required; screenshots, embedded images and tables are best-effort
"""
import asyncio
import io
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pdf2image
import pdfplumber
import structlog

from resume_pipeline.core.exceptions import ExtractionFailure
from resume_pipeline.processing.contact import extract_contact_info
from resume_pipeline.processing.options import ProcessingOptions

logger = structlog.get_logger()

PDF_HEADER = b"%PDF-"
# Some producers prepend junk before the header; readers accept it within the first KB
HEADER_SEARCH_WINDOW = 1024
METADATA_FIELDS = ("title", "author", "creator", "producer")


@dataclass
class PageScreenshot:
    page_number: int
    png_bytes: bytes
    width: int
    height: int


@dataclass
class ExtractionOutcome:
    """Successful extraction, possibly with soft failures listed in ``warnings``"""

    text: str
    page_count: int
    title: Optional[str] = None
    author: Optional[str] = None
    creator: Optional[str] = None
    producer: Optional[str] = None
    raw_metadata: Optional[Dict[str, Any]] = None
    screenshots: List[PageScreenshot] = field(default_factory=list)
    images: List[Dict[str, Any]] = field(default_factory=list)
    tables: List[Dict[str, Any]] = field(default_factory=list)
    contact_info: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def text_length(self) -> int:
        return len(self.text)

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    @property
    def line_count(self) -> int:
        return len(self.text.splitlines())


class PdfExtractionEngine:
    """Wraps pdfplumber (text, metadata, images, tables) and pdf2image (screenshots)"""

    async def extract(self, content: bytes, options: Optional[ProcessingOptions] = None) -> ExtractionOutcome:
        options = options or ProcessingOptions()
        # pdfplumber and poppler are blocking
        return await asyncio.to_thread(self.extract_sync, content, options)

    def extract_sync(self, content: bytes, options: ProcessingOptions) -> ExtractionOutcome:
        self._check_readable(content)

        try:
            pdf = pdfplumber.open(io.BytesIO(content))
        except Exception as e:
            raise ExtractionFailure("File could not be parsed as a PDF", details={"error": str(e)})

        with pdf:
            try:
                text = "\n".join(page.extract_text() or "" for page in pdf.pages).strip()
                page_count = len(pdf.pages)
            except Exception as e:
                raise ExtractionFailure("Failed to extract text from PDF", details={"error": str(e)})

            raw_metadata = _clean_metadata(pdf.metadata or {})
            outcome = ExtractionOutcome(
                text=text,
                page_count=page_count,
                raw_metadata=raw_metadata if options.metadata else None,
                **{name: _metadata_value(raw_metadata, name) for name in METADATA_FIELDS},
            )

            if options.images:
                self._best_effort(outcome, "images", self._extract_images, pdf, options)
            if options.tables:
                self._best_effort(outcome, "tables", self._extract_tables, pdf)

        if options.screenshots:
            self._best_effort(outcome, "screenshots", self._render_screenshots, content, page_count, options)

        outcome.contact_info = extract_contact_info(text)
        logger.info(
            "pdf_extracted",
            pages=page_count,
            text_length=outcome.text_length,
            screenshots=len(outcome.screenshots),
            warnings=len(outcome.warnings),
        )
        return outcome

    @staticmethod
    def _check_readable(content: bytes) -> None:
        if not content:
            raise ExtractionFailure("File is empty")
        if PDF_HEADER not in content[:HEADER_SEARCH_WINDOW]:
            raise ExtractionFailure("File does not have a PDF header")

    @staticmethod
    def _best_effort(outcome: ExtractionOutcome, step: str, func, *args) -> None:
        try:
            setattr(outcome, step, func(*args))
        except Exception as e:
            logger.warning("pdf_extraction_step_failed", step=step, error=str(e))
            outcome.warnings.append(f"{step}: {e}")

    @staticmethod
    def _extract_images(pdf, options: ProcessingOptions) -> List[Dict[str, Any]]:
        images = []
        for page_number, page in enumerate(pdf.pages, start=1):
            for index, image in enumerate(page.images):
                width = float(image.get("width") or 0)
                height = float(image.get("height") or 0)
                if width < options.image_threshold or height < options.image_threshold:
                    continue
                images.append(
                    {
                        "page_number": page_number,
                        "index": index,
                        "width": round(width, 2),
                        "height": round(height, 2),
                        "x0": round(float(image.get("x0") or 0), 2),
                        "top": round(float(image.get("top") or 0), 2),
                    }
                )
        return images

    @staticmethod
    def _extract_tables(pdf) -> List[Dict[str, Any]]:
        tables = []
        for page_number, page in enumerate(pdf.pages, start=1):
            for index, rows in enumerate(page.extract_tables()):
                tables.append({"page_number": page_number, "index": index, "rows": rows})
        return tables

    @staticmethod
    def _render_screenshots(content: bytes, page_count: int, options: ProcessingOptions) -> List[PageScreenshot]:
        last_page = min(options.screenshot_pages, page_count)
        if last_page < 1:
            return []
        images = pdf2image.convert_from_bytes(
            content,
            dpi=int(72 * options.screenshot_scale),
            fmt="png",
            first_page=1,
            last_page=last_page,
        )
        screenshots = []
        for page_number, image in enumerate(images, start=1):
            buffer = io.BytesIO()
            image.save(buffer, format="PNG")
            screenshots.append(
                PageScreenshot(
                    page_number=page_number,
                    png_bytes=buffer.getvalue(),
                    width=image.width,
                    height=image.height,
                )
            )
        return screenshots


def _clean_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """pdfminer can return bytes or PSLiteral values; keep JSON-safe strings"""
    cleaned = {}
    for key, value in metadata.items():
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        elif not isinstance(value, (str, int, float, bool)) and value is not None:
            value = str(value)
        cleaned[str(key)] = value
    return cleaned


def _metadata_value(metadata: Dict[str, Any], name: str) -> Optional[str]:
    value = metadata.get(name.capitalize()) or metadata.get(name)
    if value is None:
        return None
    value = str(value).strip()
    return value or None
