"""
NoteForge Backend - Image Storage Service
==========================================

What:  Validates and stores images dropped or pasted into the editor, and
       resolves stored paths for serving.
How:   Extension check, size check, MIME check on the magic bytes
       (python-magic), then an aiofiles write to YYYY/MM/DD/<uuid>.<ext>
       under the storage root.
Who:   POST/GET /api/uploads; FileServiceUploader for the editor surface;
       the parse routes reuse the size check for PDF and DOCX bodies.

Security Model:
    1. Extension check:  fast rejection of obviously wrong files
    2. MIME check:       libmagic reads the header bytes; renamed files fail
    3. Size check:       bounded by MAX_FILE_SIZE
    4. UUID filename:    no user input reaches the file system path
    5. Path resolution:  served paths must stay inside the storage root
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles

from noteforge.exceptions import FileStorageError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}

# Paste events carry no file name; the extension comes from the MIME type
MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

UPLOAD_URL_PREFIX = "/api/uploads"


class FileService:
    """
    Image upload validation and storage.

    Directory Structure:
        storage/
        └── 2025/
            └── 01/
                └── 15/
                    ├── a1b2c3d4-....png
                    └── e5f6g7h8-....jpg
    """

    def __init__(self, storage_root: str, max_file_size: int = 10_485_760):
        self.storage_root = Path(storage_root).resolve()
        self.max_file_size = max_file_size
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    def validate_extension(self, filename: str) -> str:
        """Returns the lowercase extension; ValidationError when not an image type."""
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="file",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Checks the declared Content-Length and the actual byte count.

        Raises:
            ValidationError with a human-readable size limit message.
        """
        max_mb = self.max_file_size / (1024 * 1024)

        if content_length and content_length > self.max_file_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > self.max_file_size:
            raise ValidationError(
                message=(
                    f"File size ({actual_size / (1024 * 1024):.1f}MB) exceeds "
                    f"maximum of {max_mb:.0f}MB."
                ),
                field="file",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_mime_type(self, file_content: bytes) -> str:
        """
        Detects the MIME type from the content's magic bytes.

        Raises:
            ValidationError: Detected type is not an allowed image type.
            FileStorageError: libmagic is unavailable or failed.
        """
        try:
            import magic
            mime_type = magic.from_buffer(file_content[:2048], mime=True)
        except Exception as e:
            logger.error("MIME type detection failed: %s", str(e))
            raise FileStorageError(
                message="Could not verify file type. Please try again.",
                context={"error": str(e)},
            ) from e

        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File content type '{mime_type}' is not supported. "
                    f"The file must be a PNG, JPEG, GIF or WebP image."
                ),
                field="file",
                context={"detected_mime": mime_type, "allowed": list(ALLOWED_MIME_TYPES)},
            )
        return mime_type

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        """Returns (absolute_path, relative_path) for YYYY/MM/DD/<uuid><ext>."""
        now = datetime.now(timezone.utc)
        relative_path = f"{now.strftime('%Y/%m/%d')}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def store_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """
        Writes validated bytes to disk.

        Raises:
            FileStorageError if directory creation or the write fails.
        """
        absolute_path, relative_path = self._generate_storage_path(extension)
        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"os_error": str(e)},
            ) from e

        logger.info("File stored: %s (%d bytes)", relative_path, len(content))
        return str(absolute_path), relative_path

    async def cleanup_file(self, file_path: str) -> None:
        """Best-effort removal of a stored file; failures are only logged."""
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))

    async def validate_and_store(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Tuple[str, str]:
        """
        Full pipeline: extension, size, MIME, then store.

        Returns:
            (absolute_path, relative_path)
        """
        ext = self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        self.validate_mime_type(content)
        return await self.store_file(content, ext)

    def resolve_stored_path(self, relative_path: str) -> Path:
        """
        Maps a served path back to a file inside the storage root.

        Raises:
            ValidationError: The path escapes the storage root.
            NotFoundError:   No such file.
        """
        file_path = (self.storage_root / relative_path).resolve()
        if not file_path.is_relative_to(self.storage_root):
            logger.warning("Path traversal attempt blocked: %s", relative_path)
            raise ValidationError(message="Invalid file path", field="path")
        if not file_path.is_file():
            raise NotFoundError(resource="upload", resource_id=relative_path)
        return file_path

    @staticmethod
    def url_for(relative_path: str) -> str:
        return f"{UPLOAD_URL_PREFIX}/{relative_path}"


class FileServiceUploader:
    """
    Adapts FileService to the editor's uploader interface:
    `await uploader.upload(data, filename, mime_type) -> url`.
    """

    def __init__(self, file_service: FileService):
        self.file_service = file_service

    async def upload(self, data: bytes, filename: Optional[str], mime_type: str) -> str:
        if not filename or not Path(filename).suffix:
            filename = f"pasted{MIME_EXTENSIONS.get(mime_type, '.png')}"
        _, relative_path = await self.file_service.validate_and_store(filename, data)
        return self.file_service.url_for(relative_path)
