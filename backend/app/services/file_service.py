"""
School Directory Backend: Upload Storage Service
=================================================

What:  Validates an uploaded school image and stores it on local disk.
How:   Extension check, size check, MIME sniffing from the file header, then
       an async write under a generated name.
Who:   Called by the create/update school routes before the repository.

The returned metadata dict is handed to SchoolService as the `image` value;
the validation rules treat it as opaque upload metadata and persist its
`path` (e.g. "schools/school-3f2a....jpg").

Security:
    - Generated filenames: no user input reaches the filesystem path
    - MIME check on content bytes: a renamed .exe is rejected
    - Size limit: bounded memory per upload
    - resolve() refuses paths that escape the storage root
"""

import logging
import os
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import aiofiles

from app.config import settings
from app.exceptions import FileStorageError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}

# Sub-directory of the storage root that holds school images
UPLOAD_SUBDIR = "schools"

EXTENSION_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

# Keys produced by store_file(); nothing else is ever deleted from disk
STORED_KEY_PATTERN = re.compile(
    rf"{UPLOAD_SUBDIR}/school-[0-9a-f]{{8}}-[0-9a-f]{{4}}-[0-9a-f]{{4}}-[0-9a-f]{{4}}-[0-9a-f]{{12}}"
    r"\.(?:png|jpg|jpeg|gif|webp)"
)

PUBLIC_URL_PREFIX = "/api/schools/uploads"


class FileService:
    """
    Manages the school image upload lifecycle.

    Directory Structure:
        uploads/
        └── schools/
            ├── school-1b4e28ba-2fa1-11d2-883f-0016d3cca427.jpg
            └── school-6fa459ea-ee8a-3ca4-894e-db77e160355e.png
    """

    def __init__(self, storage_root: Optional[str] = None):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    def validate_extension(self, filename: str) -> str:
        """
        Returns the normalized extension (lowercase with dot).

        Raises:
            ValidationError if the extension is not an allowed image type.
        """
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message="Only image files are allowed",
                field="image",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Checks both the reported Content-Length and the actual byte count.

        Raises:
            ValidationError for empty files and files over settings.max_file_size.
        """
        max_mb = settings.max_file_size / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(message="Uploaded image is empty", field="image")

        if (content_length and content_length > settings.max_file_size) or (
            actual_size > settings.max_file_size
        ):
            raise ValidationError(
                message=f"Image size should not exceed {max_mb:.0f}MB",
                field="image",
                context={
                    "max_size_mb": max_mb,
                    "reported_size": content_length,
                    "actual_size": actual_size,
                },
            )

    def validate_mime_type(self, file_content: bytes, filename: str) -> str:
        """
        Detect the real MIME type from the file header bytes.

        Returns:
            The detected MIME type, e.g. "image/jpeg".

        Raises:
            ValidationError if the content is not an allowed image type.
        """
        try:
            import magic
            mime_type = magic.from_buffer(file_content, mime=True)
        except ImportError:
            # python-magic needs the libmagic system library; without it we
            # trust the extension
            logger.warning(
                "python-magic not available, falling back to extension-based type detection"
            )
            ext = Path(filename).suffix.lower()
            mime_type = EXTENSION_MIME_TYPES.get(ext, "application/octet-stream")
        except Exception as e:
            raise FileStorageError(
                message="Could not verify file type. Please try again.",
                context={"error": str(e)},
            ) from e

        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message="Only image files are allowed",
                field="image",
                context={"detected_mime": mime_type},
            )
        return mime_type

    def resolve(self, relative_path: str) -> Path:
        """
        Absolute path for a stored key.

        Raises:
            ValidationError if the key points outside the storage root.
        """
        full_path = (self.storage_root / relative_path).resolve()
        if full_path != self.storage_root and self.storage_root not in full_path.parents:
            raise ValidationError(message="Invalid file path", field="path")
        return full_path

    async def store_file(self, content: bytes, extension: str) -> Dict[str, str]:
        """
        Write validated content as schools/school-<uuid><ext>.

        Raises:
            FileStorageError if the directory or file cannot be written.
        """
        filename = f"school-{uuid.uuid4()}{extension}"
        relative_path = f"{UPLOAD_SUBDIR}/{filename}"
        absolute_path = self.storage_root / relative_path

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            ) from e

        logger.info("Image stored: %s (%d bytes)", relative_path, len(content))
        return {
            "filename": filename,
            "path": relative_path,
            "absolute_path": str(absolute_path),
        }

    async def cleanup_file(self, file_path: str) -> None:
        """
        Best-effort removal of a stored image after a failed create/update.

        Never raises: a leftover file is not a user-facing error.
        """
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
            else:
                logger.debug("Cleanup: file already gone: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))

    async def validate_and_store(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Full pipeline: extension → size → MIME → write.

        Returns:
            Upload metadata: filename, path (storage key), absolute_path,
            content_type, size, original_filename.
        """
        ext = self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        mime_type = self.validate_mime_type(content, filename)

        stored = await self.store_file(content, ALLOWED_MIME_TYPES.get(mime_type, ext))
        return {
            **stored,
            "content_type": mime_type,
            "size": len(content),
            "original_filename": filename,
        }

    # ── Stored Images ─────────────────────────────────────────────────────

    @staticmethod
    def is_stored_key(value: Optional[str]) -> bool:
        """True if `value` is a key this service generated (not a URL)."""
        return isinstance(value, str) and STORED_KEY_PATTERN.fullmatch(value) is not None

    @staticmethod
    def public_url(key: str) -> str:
        """URL path the API serves a stored key from."""
        return f"{PUBLIC_URL_PREFIX}/{key}"

    def describe(self, key: str) -> Dict[str, Any]:
        """
        Metadata of one stored image.

        Raises:
            ValidationError for keys this service would never generate.
            NotFoundError if no file is stored under the key.
        """
        path = self._stored_path(key)
        if not path.is_file():
            raise NotFoundError(resource="image", resource_id=key)

        stat = path.stat()
        ext = path.suffix.lower()
        return {
            "key": key,
            "url": self.public_url(key),
            "filename": path.name,
            "format": ext.lstrip("."),
            "content_type": EXTENSION_MIME_TYPES.get(ext, "application/octet-stream"),
            "bytes": stat.st_size,
            "created_at": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        }

    def list_stored(
        self, max_results: int = 50, after: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], int, Optional[str]]:
        """
        Page through stored school images in key order.

        Args:
            max_results: Page size.
            after:       Cursor; the last key of the previous page.

        Returns:
            (images, total_count, next_cursor). next_cursor is None on the
            last page.
        """
        upload_dir = self.storage_root / UPLOAD_SUBDIR
        keys = []
        if upload_dir.is_dir():
            keys = sorted(
                f"{UPLOAD_SUBDIR}/{entry.name}"
                for entry in upload_dir.iterdir()
                if entry.is_file() and self.is_stored_key(f"{UPLOAD_SUBDIR}/{entry.name}")
            )

        remaining = [key for key in keys if after is None or key > after]
        page = remaining[:max_results]
        next_cursor = page[-1] if len(remaining) > len(page) else None
        return [self.describe(key) for key in page], len(keys), next_cursor

    async def delete_stored(self, key: str) -> bool:
        """
        Delete a stored image.

        Returns:
            False if nothing was stored under the key.

        Raises:
            ValidationError for keys this service would never generate.
            FileStorageError if the file exists but cannot be removed.
        """
        path = self._stored_path(key)
        if not path.is_file():
            return False
        try:
            os.remove(path)
        except OSError as e:
            raise FileStorageError(
                message="Failed to delete image. Please try again.",
                context={"path": str(path), "os_error": str(e)},
            ) from e
        logger.info("Image deleted: %s", key)
        return True

    async def discard_stored(self, value: Optional[str]) -> None:
        """
        Best-effort removal of a school's previous image.

        URLs and anything else not generated here are left alone.
        """
        if self.is_stored_key(value):
            await self.cleanup_file(str(self.resolve(value)))

    def _stored_path(self, key: str) -> Path:
        if not self.is_stored_key(key):
            raise ValidationError(message="Invalid image key", field="key")
        return self.resolve(key)


file_service = FileService()
