"""
School Directory Backend: Image API Schemas
============================================

Response models for the /api/images endpoints. Stored images are the files
written by FileService under `schools/`; a school's `image` column holds
either such a storage key or an external URL.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class StoredImage(BaseModel):
    """Metadata of one image file in upload storage."""

    key: str = Field(description="Storage key, e.g. schools/school-<uuid>.jpg")
    url: str = Field(description="Path the image is served from")
    filename: str
    format: str
    content_type: str
    bytes: int
    created_at: datetime


class StoredImageEnvelope(BaseModel):
    success: bool = True
    message: str
    data: StoredImage


class StoredImagePage(BaseModel):
    images: List[StoredImage]
    total_count: int
    next_cursor: Optional[str] = None


class StoredImageListEnvelope(BaseModel):
    success: bool = True
    message: str
    data: StoredImagePage


class SchoolImage(BaseModel):
    """
    Where a school's image can be fetched.

    `url` is the served path for stored uploads and the value itself for
    external URLs.
    """

    school_id: int
    school_name: str
    original_url: str = Field(description="The school's stored image value")
    url: str
    key: Optional[str] = Field(default=None, description="Storage key for local uploads")


class SchoolImageEnvelope(BaseModel):
    success: bool = True
    message: str
    data: SchoolImage


class DeletedImage(BaseModel):
    key: str


class DeletedImageEnvelope(BaseModel):
    success: bool = True
    message: str
    data: DeletedImage
