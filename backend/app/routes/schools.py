"""
School Directory Backend: School Route Handlers
================================================

What:  The /api/schools endpoints used by the admin frontend.
How:   Each handler reads the request, calls SchoolService (and, where
       needed, the upload storage or the description generator) and wraps
       the result in the {"success", "message", "data"} envelope.
       Failures are raised, never caught here: the global handlers in
       main.py map each exception type to its status code.

Route Inventory:
    POST   /api/schools/add                          create (multipart or JSON)
    GET    /api/schools/getschools                   list all
    GET    /api/schools/get/{school_id}              get one
    PUT    /api/schools/{school_id}                  update (multipart or JSON)
    DELETE /api/schools/{school_id}                  delete
    GET    /api/schools/city/{city}                  list by city
    GET    /api/schools/state/{state}                list by state
    POST   /api/schools/{school_id}/regenerate-description
    GET    /api/schools/uploads/{file_path}          serve an uploaded image
"""

import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse
from starlette.datastructures import UploadFile

from app.database import async_session_factory
from app.exceptions import NotFoundError, ValidationError
from app.schemas.school import (
    DeleteEnvelope,
    DescriptionResponse,
    ErrorResponse,
    SchoolEnvelope,
    SchoolListEnvelope,
    SchoolResponse,
)
from app.services.file_service import FileService, file_service
from app.services.gemini_service import gemini_service
from app.services.llm_base import LLMService
from app.services.school_service import SchoolService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/schools", tags=["Schools"])

SCHOOL_FIELDS = ("name", "address", "city", "state", "contact", "email_id")


# ══════════════════════════════════════════════════════════════════════════
# Dependencies
# ══════════════════════════════════════════════════════════════════════════

# One repository for the process, bound to the shared pool
school_service = SchoolService(async_session_factory)


def get_school_service() -> SchoolService:
    return school_service


def get_file_service() -> FileService:
    return file_service


def get_description_service() -> LLMService:
    return gemini_service


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

async def read_candidate(request: Request) -> Tuple[Dict[str, Any], Optional[UploadFile]]:
    """
    Extract School fields from a JSON or form body.

    Returns:
        (candidate, upload) where upload is the `image` file part if one was
        sent. A plain-string `image` stays in the candidate.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError(field="__root__", message="Request body is not valid JSON")
        if not isinstance(body, dict):
            raise ValidationError(field="__root__", message="School data must be an object")
        candidate = {key: body[key] for key in (*SCHOOL_FIELDS, "image") if key in body}
        return candidate, None

    form = await request.form()
    candidate: Dict[str, Any] = {key: form[key] for key in SCHOOL_FIELDS if key in form}
    image = form.get("image")
    if isinstance(image, UploadFile):
        # Browsers send an empty part when no file is picked
        if image.filename:
            return candidate, image
    elif isinstance(image, str):
        candidate["image"] = image
    return candidate, None


async def store_upload(files: FileService, upload: UploadFile) -> Dict[str, Any]:
    try:
        content = await upload.read()
        return await files.validate_and_store(
            filename=upload.filename or "upload.jpg",
            content=content,
            content_length=upload.size,
        )
    finally:
        await upload.close()


def validate_place_argument(value: str, label: str) -> str:
    value = value.strip()
    if len(value) < 2:
        raise ValidationError(
            field=label.lower(),
            message=f"{label} name must be at least 2 characters long",
        )
    return value


# ══════════════════════════════════════════════════════════════════════════
# Writes
# ══════════════════════════════════════════════════════════════════════════

@router.post(
    "/add",
    status_code=201,
    response_model=SchoolEnvelope,
    responses={
        400: {"description": "Validation failed", "model": ErrorResponse},
        409: {"description": "Email already exists", "model": ErrorResponse},
    },
    summary="Create a school",
)
async def create_school(
    request: Request,
    schools: SchoolService = Depends(get_school_service),
    files: FileService = Depends(get_file_service),
) -> SchoolEnvelope:
    """
    Create a school from form fields (or JSON), with an optional image file.

    An uploaded file is validated and stored first; if the school then fails
    to save, the stored file is removed again.
    """
    candidate, upload = await read_candidate(request)

    stored: Optional[Dict[str, Any]] = None
    if upload is not None:
        stored = await store_upload(files, upload)
        candidate["image"] = stored

    try:
        school = await schools.create(candidate)
    except Exception:
        if stored:
            await files.cleanup_file(stored["absolute_path"])
        raise

    return SchoolEnvelope(
        message="School created successfully",
        data=SchoolResponse.model_validate(school),
    )


@router.put(
    "/{school_id}",
    response_model=SchoolEnvelope,
    responses={
        400: {"description": "Validation failed or invalid id", "model": ErrorResponse},
        404: {"description": "School not found", "model": ErrorResponse},
        409: {"description": "Email already exists", "model": ErrorResponse},
    },
    summary="Update a school",
)
async def update_school(
    school_id: str,
    request: Request,
    schools: SchoolService = Depends(get_school_service),
    files: FileService = Depends(get_file_service),
) -> SchoolEnvelope:
    """
    Replace all fields of a school; the image is kept if none is sent.

    When the image changes, the previous upload (if it was one) is removed
    from storage after the update has committed.
    """
    candidate, upload = await read_candidate(request)
    previous = await schools.find_by_id(school_id)

    stored: Optional[Dict[str, Any]] = None
    if upload is not None:
        stored = await store_upload(files, upload)
        candidate["image"] = stored

    try:
        school = await schools.update_by_id(school_id, candidate)
    except Exception:
        if stored:
            await files.cleanup_file(stored["absolute_path"])
        raise

    if previous is not None and previous.image != school.image:
        await files.discard_stored(previous.image)

    return SchoolEnvelope(
        message="School updated successfully",
        data=SchoolResponse.model_validate(school),
    )


@router.delete(
    "/{school_id}",
    response_model=DeleteEnvelope,
    responses={
        400: {"description": "Invalid id", "model": ErrorResponse},
        404: {"description": "School not found", "model": ErrorResponse},
    },
    summary="Delete a school",
)
async def delete_school(
    school_id: str,
    schools: SchoolService = Depends(get_school_service),
    files: FileService = Depends(get_file_service),
) -> DeleteEnvelope:
    school = await schools.find_by_id(school_id)
    deleted = await schools.delete_by_id(school_id)
    if not deleted:
        # Removed by a concurrent request after our existence check
        raise NotFoundError(resource="school", resource_id=school_id)
    if school is not None:
        await files.discard_stored(school.image)
    return DeleteEnvelope(message="School deleted successfully", data={"id": int(school_id)})


# ══════════════════════════════════════════════════════════════════════════
# Reads
# ══════════════════════════════════════════════════════════════════════════

@router.get("/getschools", response_model=SchoolListEnvelope, summary="List all schools")
async def list_schools(
    schools: SchoolService = Depends(get_school_service),
) -> SchoolListEnvelope:
    """All schools, newest first."""
    records = await schools.find_all()
    return SchoolListEnvelope(
        message="Schools retrieved successfully",
        data=[SchoolResponse.model_validate(r) for r in records],
    )


@router.get(
    "/get/{school_id}",
    response_model=SchoolEnvelope,
    responses={
        400: {"description": "Invalid id", "model": ErrorResponse},
        404: {"description": "School not found", "model": ErrorResponse},
    },
    summary="Get a school by id",
)
async def get_school(
    school_id: str,
    schools: SchoolService = Depends(get_school_service),
) -> SchoolEnvelope:
    school = await schools.find_by_id(school_id)
    if school is None:
        raise NotFoundError(resource="school", resource_id=school_id)
    return SchoolEnvelope(
        message="School retrieved successfully",
        data=SchoolResponse.model_validate(school),
    )


@router.get("/city/{city}", response_model=SchoolListEnvelope, summary="List schools in a city")
async def list_schools_by_city(
    city: str,
    schools: SchoolService = Depends(get_school_service),
) -> SchoolListEnvelope:
    """Exact city match, ordered by name."""
    city = validate_place_argument(city, "City")
    records = await schools.find_by_city(city)
    return SchoolListEnvelope(
        message=f"Schools in {city} retrieved successfully",
        data=[SchoolResponse.model_validate(r) for r in records],
        count=len(records),
    )


@router.get("/state/{state}", response_model=SchoolListEnvelope, summary="List schools in a state")
async def list_schools_by_state(
    state: str,
    schools: SchoolService = Depends(get_school_service),
) -> SchoolListEnvelope:
    state = validate_place_argument(state, "State")
    records = await schools.find_by_state(state)
    return SchoolListEnvelope(
        message=f"Schools in {state} retrieved successfully",
        data=[SchoolResponse.model_validate(r) for r in records],
        count=len(records),
    )


# ══════════════════════════════════════════════════════════════════════════
# Description and Images
# ══════════════════════════════════════════════════════════════════════════

@router.post(
    "/{school_id}/regenerate-description",
    response_model=DescriptionResponse,
    responses={
        404: {"description": "School not found", "model": ErrorResponse},
        503: {"description": "AI service unavailable", "model": ErrorResponse},
    },
    summary="Generate a fresh AI description for a school",
)
async def regenerate_description(
    school_id: str,
    schools: SchoolService = Depends(get_school_service),
    describer: LLMService = Depends(get_description_service),
) -> DescriptionResponse:
    """The description is returned only; it is not stored."""
    school = await schools.find_by_id(school_id)
    if school is None:
        raise NotFoundError(resource="school", resource_id=school_id)

    description = await describer.generate_description(school.to_dict())
    return DescriptionResponse(description=description)


@router.get(
    "/uploads/{file_path:path}",
    summary="Serve an uploaded school image",
    responses={404: {"description": "File not found", "model": ErrorResponse}},
)
async def serve_upload(
    file_path: str,
    files: FileService = Depends(get_file_service),
) -> FileResponse:
    full_path = files.resolve(file_path)
    if not full_path.is_file():
        raise NotFoundError(resource="file", resource_id=file_path)
    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
