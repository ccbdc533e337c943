"""
Processing option toggles stored with each queue item
"""
from pydantic import BaseModel, Field

from resume_pipeline.core.config import settings


class ProcessingOptions(BaseModel):
    """
    Toggles for one extraction run.

    Text, page count and the title/author/creator/producer fields are always
    extracted. ``text`` controls whether the extracted text is also written to
    an asset file and ``metadata`` whether the raw metadata dict is kept.
    """

    text: bool = True
    metadata: bool = True
    screenshots: bool = True
    images: bool = True
    tables: bool = True
    screenshot_scale: float = Field(default_factory=lambda: settings.SCREENSHOT_SCALE, gt=0, le=5)
    screenshot_pages: int = Field(default_factory=lambda: settings.SCREENSHOT_PAGES, ge=1, le=50)
    image_threshold: int = Field(default_factory=lambda: settings.IMAGE_SIZE_THRESHOLD, ge=0)
