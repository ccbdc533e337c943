"""
Pytest configuration
Temporary SQLite database, temporary storage, a fake extraction engine and a PDF builder
"""
import asyncio
from typing import List, Optional

import pytest
from sqlalchemy import func, select

from resume_pipeline.core.config import settings
from resume_pipeline.core.database import create_engine, create_session_factory, init_db, transaction
from resume_pipeline.core.exceptions import ExtractionFailure
from resume_pipeline.models import Document
from resume_pipeline.processing.extraction import ExtractionOutcome, PageScreenshot
from resume_pipeline.processing.options import ProcessingOptions
from resume_pipeline.resumes.storage import FileStorage
from resume_pipeline.services import Services

RESUME_TEXT = ("Jane Doe\njane.doe@example.com\n" + "Experienced backend engineer. " * 60)[:1200]


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Keep tests offline and deterministic"""
    monkeypatch.setattr(settings, "AI_ENRICHMENT_ENABLED", False)
    monkeypatch.setattr(settings, "MAX_RESUMES_PER_OWNER", 3)
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_MB", 10)
    monkeypatch.setattr(settings, "ALLOWED_MIME_TYPES", ["application/pdf"])
    return settings


# ==================== Database ====================

@pytest.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


# ==================== Storage ====================

@pytest.fixture
def storage(tmp_path):
    storage = FileStorage(
        upload_dir=str(tmp_path / "uploads" / "resumes"),
        fallback_dir=str(tmp_path / "fallback"),
        assets_dir=str(tmp_path / "assets"),
    )
    storage.ensure_directories()
    return storage


# ==================== Extraction ====================

class FakeExtractionEngine:
    """Returns a fixed outcome; empty or non-PDF content fails like the real engine"""

    def __init__(self, text: str = RESUME_TEXT, page_count: int = 2, screenshots: bool = False):
        self.text = text
        self.page_count = page_count
        self.screenshots = screenshots
        self.calls: List[bytes] = []
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()

    async def extract(self, content: bytes, options: Optional[ProcessingOptions] = None) -> ExtractionOutcome:
        self.calls.append(content)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if not content:
            raise ExtractionFailure("File is empty")
        if not content.startswith(b"%PDF-"):
            raise ExtractionFailure("File does not have a PDF header")

        outcome = ExtractionOutcome(
            text=self.text,
            page_count=self.page_count,
            title="Jane Doe Resume",
            author="Jane Doe",
            creator="Writer",
            producer="Test Producer",
            raw_metadata={"Title": "Jane Doe Resume"},
        )
        if self.screenshots and (options is None or options.screenshots):
            outcome.screenshots = [
                PageScreenshot(page_number=1, png_bytes=b"\x89PNG fake page", width=10, height=10)
            ]
        return outcome


@pytest.fixture
def fake_engine():
    return FakeExtractionEngine()


@pytest.fixture
async def services(engine, session_factory, storage, fake_engine):
    services = Services(
        engine,
        storage=storage,
        extraction_engine=fake_engine,
        ai_client=None,
        session_factory=session_factory,
    )
    yield services
    if services.worker.running:
        await services.worker.stop()


@pytest.fixture
def upload(services):
    """Upload helper with sensible defaults"""

    async def _upload(owner_id: str = "u1", content: bytes = b"%PDF-1.4 fake", filename: str = "resume.pdf", **kwargs):
        receipt = await services.gatekeeper.upload(
            owner_id=owner_id,
            filename=filename,
            content=content,
            mime_type=kwargs.pop("mime_type", "application/pdf"),
            **kwargs,
        )
        return receipt.document

    return _upload


@pytest.fixture
def active_count(session_factory):
    """Number of active resumes for an owner"""

    async def _count(owner_id: str) -> int:
        async with transaction(session_factory) as session:
            stmt = select(func.count(Document.id)).where(Document.owner_id == owner_id, Document.is_active.is_(True))
            return (await session.execute(stmt)).scalar_one()

    return _count


# ==================== PDF builder ====================

def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_pdf(pages: List[List[str]], title: str = "Test Resume", author: str = "Jane Doe") -> bytes:
    """Minimal valid PDF with one Helvetica text stream per page"""
    page_count = len(pages)
    first_page_obj = 5
    objects = {
        1: "<< /Type /Catalog /Pages 2 0 R >>",
        2: "<< /Type /Pages /Kids [{}] /Count {} >>".format(
            " ".join(f"{first_page_obj + i * 2} 0 R" for i in range(page_count)), page_count
        ),
        3: "<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        4: f"<< /Title ({_escape(title)}) /Author ({_escape(author)}) /Producer (resume-pipeline tests) >>",
    }
    for index, lines in enumerate(pages):
        page_obj = first_page_obj + index * 2
        stream = "BT /F1 12 Tf 14 TL 72 720 Td " + " ".join(f"({_escape(line)}) Tj T*" for line in lines) + " ET"
        objects[page_obj] = (
            "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Contents {page_obj + 1} 0 R /Resources << /Font << /F1 3 0 R >> >> >>"
        )
        objects[page_obj + 1] = f"<< /Length {len(stream)} >>\nstream\n{stream}\nendstream"

    out = bytearray(b"%PDF-1.4\n")
    offsets = {}
    for number in sorted(objects):
        offsets[number] = len(out)
        out += f"{number} 0 obj\n{objects[number]}\nendobj\n".encode("latin-1")

    xref_offset = len(out)
    size = max(objects) + 1
    out += f"xref\n0 {size}\n0000000000 65535 f \n".encode("latin-1")
    for number in range(1, size):
        out += f"{offsets[number]:010d} 00000 n \n".encode("latin-1")
    out += f"trailer\n<< /Size {size} /Root 1 0 R /Info 4 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n".encode("latin-1")
    return bytes(out)


@pytest.fixture
def pdf_bytes():
    return build_pdf(
        [
            ["Jane Doe", "jane.doe@example.com | (555) 123-4567", "linkedin.com/in/janedoe"],
            ["Experience", "Senior Engineer at Example Corp"],
        ]
    )
