"""
Durable file storage for uploaded resumes and generated assets
"""
import asyncio
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import structlog

from resume_pipeline.core.config import settings
from resume_pipeline.core.exceptions import StorageIOError

logger = structlog.get_logger()


@dataclass
class StoredFile:
    stored_filename: str
    file_path: str
    size_bytes: int


class FileStorage:
    """Stores blobs under generated names and resolves stored paths back to files"""

    def __init__(
        self,
        upload_dir: Optional[str] = None,
        fallback_dir: Optional[str] = None,
        assets_dir: Optional[str] = None,
    ):
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
        self.fallback_dir = Path(fallback_dir or settings.FALLBACK_STORAGE_DIR)
        self.assets_dir = Path(assets_dir or settings.ASSETS_DIR)

    def ensure_directories(self) -> None:
        for directory in (self.upload_dir, self.screenshots_dir, self.texts_dir):
            directory.mkdir(parents=True, exist_ok=True)

    @property
    def screenshots_dir(self) -> Path:
        return self.assets_dir / "screenshots"

    @property
    def texts_dir(self) -> Path:
        return self.assets_dir / "texts"

    @staticmethod
    def generate_filename(original_filename: str) -> str:
        """Collision-free name; the original name is only kept for display"""
        ext = Path(original_filename or "").suffix.lower() or ".pdf"
        return f"resume-{uuid.uuid4().hex}{ext}"

    def screenshot_path(self, document_id: int, page_number: int) -> Path:
        return self.screenshots_dir / f"resume_{document_id}_page{page_number}.png"

    def text_path(self, document_id: int) -> Path:
        return self.texts_dir / f"resume_{document_id}_extracted.txt"

    async def save_upload(self, content: bytes, original_filename: str) -> StoredFile:
        stored_filename = self.generate_filename(original_filename)
        path = self.upload_dir / stored_filename
        await self.write_bytes(path, content)
        logger.info("file_stored", stored_filename=stored_filename, size_bytes=len(content))
        return StoredFile(stored_filename=stored_filename, file_path=str(path), size_bytes=len(content))

    async def write_bytes(self, path: Path, content: bytes) -> None:
        try:
            await asyncio.to_thread(_write_file, Path(path), content)
        except OSError as e:
            logger.error("file_write_failed", path=str(path), error=str(e))
            raise StorageIOError("Failed to write file", details={"path": str(path), "error": str(e)})

    def candidate_paths(self, file_path: str, stored_filename: Optional[str] = None) -> List[Path]:
        """Lookup order: stored path, upload root, fallback directory"""
        stored = Path(file_path)
        name = stored_filename or stored.name
        candidates = [stored]
        if not stored.is_absolute():
            candidates.append(self.upload_dir / stored)
        candidates.append(self.upload_dir / name)
        candidates.append(self.fallback_dir / name)
        candidates.append(self.fallback_dir / "resumes" / name)

        unique = []
        for candidate in candidates:
            if candidate not in unique:
                unique.append(candidate)
        return unique

    def resolve(self, file_path: str, stored_filename: Optional[str] = None) -> Path:
        candidates = self.candidate_paths(file_path, stored_filename)
        for candidate in candidates:
            if candidate.is_file():
                if candidate != candidates[0]:
                    logger.info("file_path_resolved_via_fallback", stored_path=file_path, resolved=str(candidate))
                return candidate
        raise StorageIOError(
            "Stored file not found",
            details={"file_path": file_path, "searched": [str(c) for c in candidates]},
        )

    async def read(self, file_path: str, stored_filename: Optional[str] = None) -> bytes:
        path = self.resolve(file_path, stored_filename)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise StorageIOError("Failed to read file", details={"path": str(path), "error": str(e)})

    async def remove(self, path: Optional[str]) -> bool:
        """Best-effort delete; a missing file counts as removed"""
        if not path:
            return True
        try:
            await asyncio.to_thread(os.remove, path)
            logger.debug("file_removed", path=path)
            return True
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning("file_remove_failed", path=path, error=str(e))
            return False


def _write_file(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(content)
