"""
School Directory Backend: File Service Unit Tests
==================================================

What:  Tests for FileService validation (extension, size, MIME type),
       storage naming, path resolution and cleanup.
How:   Each test gets a FileService rooted at a temporary directory.

Test Strategy:
    ✅ Allowed extensions (.png, .jpg, .jpeg, .gif, .webp), any case
    ✅ Rejected extensions (.pdf, .exe, none)
    ✅ Size limits (empty, over settings.max_file_size)
    ✅ Generated storage key schools/school-<uuid><ext>
    ✅ Paths escaping the storage root are refused
    ✅ Stored images: key recognition, metadata, paging, deletion
"""

import pytest
from pathlib import Path
from unittest.mock import patch

from app.config import settings
from app.exceptions import ValidationError
from app.services.file_service import FileService


class TestFileValidation:
    """Tests for file validation logic in FileService."""

    @pytest.fixture(autouse=True)
    def service(self, temp_storage):
        self.service = FileService(storage_root=temp_storage)

    # ── Extension Validation ──────────────────────────────────────────────

    @pytest.mark.parametrize("filename", ["a.png", "a.jpg", "a.jpeg", "a.gif", "a.webp"])
    def test_allowed_extensions(self, filename):
        assert self.service.validate_extension(filename) == Path(filename).suffix

    def test_extension_is_case_insensitive(self):
        assert self.service.validate_extension("campus.JPG") == ".jpg"
        assert self.service.validate_extension("campus.WebP") == ".webp"

    @pytest.mark.parametrize("filename", ["brochure.pdf", "setup.exe", "noextension"])
    def test_rejected_extensions(self, filename):
        with pytest.raises(ValidationError, match="Only image files are allowed") as exc_info:
            self.service.validate_extension(filename)
        assert exc_info.value.fields == ["image"]

    # ── Size Validation ───────────────────────────────────────────────────

    def test_size_within_limit(self):
        self.service.validate_size(1000, 1000)

    def test_size_at_limit(self):
        self.service.validate_size(settings.max_file_size, settings.max_file_size)

    def test_size_over_limit(self):
        with pytest.raises(ValidationError, match="Image size should not exceed 5MB"):
            self.service.validate_size(None, settings.max_file_size + 1)

    def test_reported_size_over_limit(self):
        """A Content-Length over the limit is rejected even if the body is small."""
        with pytest.raises(ValidationError, match="should not exceed"):
            self.service.validate_size(settings.max_file_size + 1, 100)

    def test_empty_file(self):
        with pytest.raises(ValidationError, match="empty"):
            self.service.validate_size(0, 0)

    # ── MIME Validation ───────────────────────────────────────────────────

    def test_mime_type_of_jpeg(self, sample_image_bytes):
        assert self.service.validate_mime_type(sample_image_bytes, "campus.jpg") == "image/jpeg"

    def test_mime_type_fallback_without_libmagic(self):
        with patch.dict("sys.modules", {"magic": None}):
            assert self.service.validate_mime_type(b"\x89PNG....", "logo.png") == "image/png"

    # ── Storage ───────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_validate_and_store(self, temp_storage, sample_image_bytes):
        stored = await self.service.validate_and_store(
            filename="Campus Photo.JPEG",
            content=sample_image_bytes,
            content_length=len(sample_image_bytes),
        )

        assert stored["path"].startswith("schools/school-")
        assert stored["path"].endswith(".jpg")
        assert stored["content_type"] == "image/jpeg"
        assert stored["size"] == len(sample_image_bytes)
        assert stored["original_filename"] == "Campus Photo.JPEG"
        assert (Path(temp_storage) / stored["path"]).read_bytes() == sample_image_bytes

    @pytest.mark.asyncio
    async def test_stored_names_are_unique(self, sample_image_bytes):
        first = await self.service.store_file(sample_image_bytes, ".jpg")
        second = await self.service.store_file(sample_image_bytes, ".jpg")
        assert first["path"] != second["path"]

    def test_resolve_inside_root(self, temp_storage):
        resolved = self.service.resolve("schools/school-1.jpg")
        assert resolved == Path(temp_storage).resolve() / "schools" / "school-1.jpg"

    def test_resolve_refuses_traversal(self):
        with pytest.raises(ValidationError, match="Invalid file path"):
            self.service.resolve("../../etc/passwd")

    # ── Cleanup ───────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_cleanup_file_removes_file(self, tmp_path):
        test_file = tmp_path / "test.jpg"
        test_file.write_bytes(b"test content")

        await self.service.cleanup_file(str(test_file))
        assert not test_file.exists()

    @pytest.mark.asyncio
    async def test_cleanup_file_nonexistent(self, tmp_path):
        # Should not raise
        await self.service.cleanup_file(str(tmp_path / "nonexistent.jpg"))


class TestStoredImages:
    """Listing, describing and removing files written by store_file()."""

    @pytest.fixture(autouse=True)
    def service(self, temp_storage):
        self.service = FileService(storage_root=temp_storage)

    @pytest.mark.asyncio
    async def test_is_stored_key(self, sample_image_bytes):
        stored = await self.service.store_file(sample_image_bytes, ".png")

        assert self.service.is_stored_key(stored["path"])
        assert not self.service.is_stored_key("https://images.oakhill.edu/campus.jpg")
        assert not self.service.is_stored_key("schools/campus.jpg")
        assert not self.service.is_stored_key(None)

    @pytest.mark.asyncio
    async def test_describe(self, sample_image_bytes):
        stored = await self.service.store_file(sample_image_bytes, ".webp")

        meta = self.service.describe(stored["path"])

        assert meta["url"] == f"/api/schools/uploads/{stored['path']}"
        assert meta["filename"] == stored["filename"]
        assert meta["content_type"] == "image/webp"
        assert meta["bytes"] == len(sample_image_bytes)
        assert meta["created_at"].tzinfo is not None

    def test_describe_rejects_foreign_key(self):
        with pytest.raises(ValidationError, match="Invalid image key"):
            self.service.describe("../secrets.jpg")

    @pytest.mark.asyncio
    async def test_list_stored_pages_in_key_order(self, temp_storage, sample_image_bytes):
        keys = sorted([
            (await self.service.store_file(sample_image_bytes, ".jpg"))["path"]
            for _ in range(3)
        ])
        # Stray files are not listed
        (Path(temp_storage) / "schools" / "notes.txt").write_text("x")

        images, total, cursor = self.service.list_stored(max_results=2)
        assert [i["key"] for i in images] == keys[:2]
        assert total == 3
        assert cursor == keys[1]

        images, _, cursor = self.service.list_stored(max_results=2, after=cursor)
        assert [i["key"] for i in images] == keys[2:]
        assert cursor is None

    def test_list_stored_without_uploads(self):
        assert self.service.list_stored() == ([], 0, None)

    @pytest.mark.asyncio
    async def test_delete_stored(self, temp_storage, sample_image_bytes):
        stored = await self.service.store_file(sample_image_bytes, ".gif")

        assert await self.service.delete_stored(stored["path"]) is True
        assert not (Path(temp_storage) / stored["path"]).exists()
        assert await self.service.delete_stored(stored["path"]) is False

    @pytest.mark.asyncio
    async def test_discard_stored_leaves_urls_alone(self, sample_image_bytes):
        stored = await self.service.store_file(sample_image_bytes, ".jpg")

        await self.service.discard_stored("https://images.oakhill.edu/campus.jpg")
        await self.service.discard_stored(None)
        assert self.service.resolve(stored["path"]).exists()

        await self.service.discard_stored(stored["path"])
        assert not self.service.resolve(stored["path"]).exists()
