"""
PDF extraction engine tests against real (generated) PDF bytes
"""
import pytest
from PIL import Image

from resume_pipeline.core.exceptions import ExtractionFailure
from resume_pipeline.processing import extraction
from resume_pipeline.processing.extraction import PdfExtractionEngine
from resume_pipeline.processing.options import ProcessingOptions

NO_SCREENSHOTS = ProcessingOptions(screenshots=False)


@pytest.fixture
def extractor():
    return PdfExtractionEngine()


class TestHardFailures:
    """Only unreadable input is a hard failure"""

    async def test_empty_buffer(self, extractor):
        with pytest.raises(ExtractionFailure, match="empty"):
            await extractor.extract(b"", NO_SCREENSHOTS)

    async def test_missing_header(self, extractor):
        with pytest.raises(ExtractionFailure, match="header"):
            await extractor.extract(b"this is a text file, not a pdf", NO_SCREENSHOTS)

    async def test_corrupt_body(self, extractor):
        with pytest.raises(ExtractionFailure):
            await extractor.extract(b"%PDF-1.4\nthis is not a pdf body at all", NO_SCREENSHOTS)


class TestTextAndMetadata:

    async def test_text_pages_and_metadata(self, extractor, pdf_bytes):
        outcome = await extractor.extract(pdf_bytes, NO_SCREENSHOTS)

        assert outcome.page_count == 2
        assert "Jane Doe" in outcome.text
        assert "Senior Engineer" in outcome.text
        assert outcome.title == "Test Resume"
        assert outcome.author == "Jane Doe"
        assert outcome.producer == "resume-pipeline tests"
        assert outcome.text_length == len(outcome.text)
        assert outcome.word_count == len(outcome.text.split())
        assert outcome.line_count >= 2
        assert outcome.warnings == []

    async def test_contact_info_seeded(self, extractor, pdf_bytes):
        outcome = await extractor.extract(pdf_bytes, NO_SCREENSHOTS)
        assert outcome.contact_info["email"] == "jane.doe@example.com"
        assert outcome.contact_info["name"] == "Jane Doe"

    async def test_raw_metadata_respects_toggle(self, extractor, pdf_bytes):
        with_meta = await extractor.extract(pdf_bytes, NO_SCREENSHOTS)
        without_meta = await extractor.extract(pdf_bytes, ProcessingOptions(screenshots=False, metadata=False))
        assert with_meta.raw_metadata["Title"] == "Test Resume"
        assert without_meta.raw_metadata is None
        assert without_meta.title == "Test Resume"


class TestBestEffortSteps:
    """Screenshot/image/table failures become warnings"""

    async def test_screenshot_failure_is_a_warning(self, extractor, pdf_bytes, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("poppler not installed")

        monkeypatch.setattr(extraction.pdf2image, "convert_from_bytes", broken)
        outcome = await extractor.extract(pdf_bytes, ProcessingOptions(screenshots=True))

        assert outcome.screenshots == []
        assert any("screenshots" in warning for warning in outcome.warnings)
        assert "Jane Doe" in outcome.text

    async def test_screenshots_rendered_at_scale(self, extractor, pdf_bytes, monkeypatch):
        calls = {}

        def fake_convert(content, **kwargs):
            calls.update(kwargs)
            return [Image.new("RGB", (30, 40), "white")]

        monkeypatch.setattr(extraction.pdf2image, "convert_from_bytes", fake_convert)
        outcome = await extractor.extract(
            pdf_bytes, ProcessingOptions(screenshots=True, screenshot_scale=2.0, screenshot_pages=1)
        )

        assert calls["dpi"] == 144
        assert calls["first_page"] == 1
        assert calls["last_page"] == 1
        assert len(outcome.screenshots) == 1
        assert outcome.screenshots[0].png_bytes.startswith(b"\x89PNG")
        assert outcome.screenshots[0].width == 30

    async def test_table_failure_is_a_warning(self, extractor, pdf_bytes, monkeypatch):
        def broken(pdf):
            raise ValueError("bad table")

        monkeypatch.setattr(PdfExtractionEngine, "_extract_tables", staticmethod(broken))
        outcome = await extractor.extract(pdf_bytes, NO_SCREENSHOTS)

        assert outcome.tables == []
        assert "tables: bad table" in outcome.warnings
        assert outcome.page_count == 2
