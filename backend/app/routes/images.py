"""
School Directory Backend: Image Route Handlers
===============================================

What:  The /api/images endpoints: where to fetch a school's image, and
       listing, inspecting and deleting stored uploads.
How:   Stored images live in upload storage (FileService); the school
       lookup goes through SchoolService. Errors propagate to the global
       handlers in main.py.

Route Inventory:
    GET    /api/images/school/{school_id}     image location for a school
    GET    /api/images/schools/all            page through stored images
    GET    /api/images/{key}/metadata         metadata of one stored image
    DELETE /api/images/{key}                  delete a stored image
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.exceptions import NotFoundError
from app.routes.schools import get_file_service, get_school_service
from app.schemas.image import (
    DeletedImageEnvelope,
    SchoolImage,
    SchoolImageEnvelope,
    StoredImage,
    StoredImageEnvelope,
    StoredImageListEnvelope,
    StoredImagePage,
)
from app.schemas.school import ErrorResponse
from app.services.file_service import FileService
from app.services.school_service import SchoolService

router = APIRouter(prefix="/api/images", tags=["Images"])


@router.get(
    "/school/{school_id}",
    response_model=SchoolImageEnvelope,
    responses={
        400: {"description": "Invalid id", "model": ErrorResponse},
        404: {"description": "School or image not found", "model": ErrorResponse},
    },
    summary="Get a school's image location",
)
async def get_school_image(
    school_id: str,
    schools: SchoolService = Depends(get_school_service),
    files: FileService = Depends(get_file_service),
) -> SchoolImageEnvelope:
    school = await schools.find_by_id(school_id)
    if school is None:
        raise NotFoundError(resource="school", resource_id=school_id)
    if not school.image:
        raise NotFoundError(resource="image")

    key: Optional[str] = school.image if files.is_stored_key(school.image) else None
    return SchoolImageEnvelope(
        message="School image URL generated successfully",
        data=SchoolImage(
            school_id=school.id,
            school_name=school.name,
            original_url=school.image,
            url=files.public_url(key) if key else school.image,
            key=key,
        ),
    )


@router.get(
    "/schools/all",
    response_model=StoredImageListEnvelope,
    summary="List stored school images",
)
async def list_school_images(
    max_results: int = Query(default=50, ge=1, le=500, alias="maxResults"),
    next_cursor: Optional[str] = Query(default=None, alias="nextCursor"),
    files: FileService = Depends(get_file_service),
) -> StoredImageListEnvelope:
    """Stored uploads in key order; pass `nextCursor` to get the next page."""
    images, total, cursor = files.list_stored(max_results=max_results, after=next_cursor)
    return StoredImageListEnvelope(
        message="School images retrieved successfully",
        data=StoredImagePage(
            images=[StoredImage(**image) for image in images],
            total_count=total,
            next_cursor=cursor,
        ),
    )


@router.get(
    "/{key:path}/metadata",
    response_model=StoredImageEnvelope,
    responses={
        400: {"description": "Invalid image key", "model": ErrorResponse},
        404: {"description": "Image not found", "model": ErrorResponse},
    },
    summary="Get stored image metadata",
)
async def get_image_metadata(
    key: str,
    files: FileService = Depends(get_file_service),
) -> StoredImageEnvelope:
    return StoredImageEnvelope(
        message="Image metadata retrieved successfully",
        data=StoredImage(**files.describe(key)),
    )


@router.delete(
    "/{key:path}",
    response_model=DeletedImageEnvelope,
    responses={
        400: {"description": "Invalid image key", "model": ErrorResponse},
        404: {"description": "Image not found", "model": ErrorResponse},
    },
    summary="Delete a stored image",
)
async def delete_image(
    key: str,
    files: FileService = Depends(get_file_service),
) -> DeletedImageEnvelope:
    """
    Remove the file only. A school still pointing at the key keeps the
    value; GET /api/schools/uploads/{key} then answers 404.
    """
    if not await files.delete_stored(key):
        raise NotFoundError(resource="image", resource_id=key)
    return DeletedImageEnvelope(message="Image deleted successfully", data={"key": key})
