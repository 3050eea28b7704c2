"""
School Directory Backend: School Validation Rules and API Schemas
==================================================================

What:  The declarative constraints on a School candidate, the ImageRef
       variant for the image field, and the Pydantic response models.
Why:   One place owns what a valid School looks like. SchoolService calls
       `validate_school()` before every write; routes use the response
       models for serialization and OpenAPI docs.
How:   `SchoolCandidate` is a Pydantic model whose before-validators trim,
       check and normalize each field. Pydantic checks every field, and each
       field reports every rule it breaks: city "1" yields both the length
       and the letters-only message. A missing, blank or non-string value
       reports only that, since the other rules cannot apply to it.

Per-field rules:
    name      2-255 chars
    address   5-500 chars
    city      2-100 chars, letters and spaces only
    state     2-100 chars, letters and spaces only
    contact   exactly 10 digits (not trimmed)
    email_id  valid syntax, <=255 chars, lower-cased after the syntax check
    image     optional; a string must be <=500 chars, anything else passes
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Pattern, Union

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from app.exceptions import FieldError, ValidationError


# ══════════════════════════════════════════════════════════════════════════
# ImageRef: None | ImageUrl | OpaqueImage
# ══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ImageUrl:
    """A URL or storage key supplied as a plain string."""

    value: str

    @property
    def storage_value(self) -> Optional[str]:
        return self.value


@dataclass(frozen=True)
class OpaqueImage:
    """
    Already-processed upload metadata (e.g. what the upload storage returns).

    Passed through without validation. The persisted value is the first
    string found under one of STORAGE_KEYS; metadata without one counts as
    "no image supplied".
    """

    metadata: Any

    STORAGE_KEYS = ("secure_url", "url", "path", "filename")

    @property
    def storage_value(self) -> Optional[str]:
        if isinstance(self.metadata, Mapping):
            for key in self.STORAGE_KEYS:
                candidate = self.metadata.get(key)
                if isinstance(candidate, str) and candidate:
                    return candidate
        return None


ImageRef = Optional[Union[ImageUrl, OpaqueImage]]


def image_storage_value(image: ImageRef) -> Optional[str]:
    """Column value for an ImageRef; None means nothing was supplied."""
    if image is None:
        return None
    return image.storage_value


# ══════════════════════════════════════════════════════════════════════════
# Field Rules
# ══════════════════════════════════════════════════════════════════════════


LETTERS_AND_SPACES = re.compile(r"^[a-zA-Z\s]+$")
TEN_DIGITS = re.compile(r"^[0-9]{10}$")

IMAGE_MAX_LENGTH = 500


@dataclass(frozen=True)
class TextRule:
    """Length and pattern constraints for one required string field."""

    label: str
    required_message: str
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[Pattern[str]] = None
    pattern_message: Optional[str] = None
    trim: bool = True

    def check(self, value: Any) -> str:
        if value is None:
            raise PydanticCustomError("required", self.required_message)
        if not isinstance(value, str):
            raise PydanticCustomError("string_type", f"{self.label} must be a string")
        if self.trim:
            value = value.strip()
        if value == "":
            raise PydanticCustomError("string_empty", self.required_message)

        violations = []
        if self.min_length is not None and len(value) < self.min_length:
            violations.append(f"{self.label} must be at least {self.min_length} characters long")
        if self.max_length is not None and len(value) > self.max_length:
            violations.append(f"{self.label} cannot exceed {self.max_length} characters")
        if self.pattern is not None and not self.pattern.match(value):
            violations.append(self.pattern_message or "")
        raise_violations(violations)
        return value


def raise_violations(violations: List[str]) -> None:
    """
    Raise one Pydantic error carrying every rule a field broke.

    The individual messages travel in ctx["messages"]; validate_school()
    turns each into its own FieldError.
    """
    if not violations:
        return
    raise PydanticCustomError(
        "school_rules",
        "{summary}",
        {"summary": ", ".join(violations), "messages": tuple(violations)},
    )


TEXT_RULES: Dict[str, TextRule] = {
    "name": TextRule(
        label="School name",
        required_message="School name is required",
        min_length=2,
        max_length=255,
    ),
    "address": TextRule(
        label="Address",
        required_message="Address is required",
        min_length=5,
        max_length=500,
    ),
    "city": TextRule(
        label="City",
        required_message="City is required",
        min_length=2,
        max_length=100,
        pattern=LETTERS_AND_SPACES,
        pattern_message="City should only contain letters and spaces",
    ),
    "state": TextRule(
        label="State",
        required_message="State is required",
        min_length=2,
        max_length=100,
        pattern=LETTERS_AND_SPACES,
        pattern_message="State should only contain letters and spaces",
    ),
    "contact": TextRule(
        label="Contact number",
        required_message="Contact number is required",
        pattern=TEN_DIGITS,
        pattern_message="Contact number must be exactly 10 digits",
        trim=False,
    ),
    "email_id": TextRule(
        label="Email",
        required_message="Email is required",
        max_length=255,
    ),
}


# ══════════════════════════════════════════════════════════════════════════
# Candidate Model
# ══════════════════════════════════════════════════════════════════════════


class SchoolCandidate(BaseModel):
    """
    A normalized, validated School ready to be written.

    Unknown keys in the input are ignored. Construct through
    `validate_school()` to get the application's ValidationError instead of
    Pydantic's.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str
    address: str
    city: str
    state: str
    contact: str
    email_id: str
    image: ImageRef = None

    @field_validator("name", "address", "city", "state", "contact", mode="before")
    @classmethod
    def check_text(cls, value: Any, info: ValidationInfo) -> str:
        return TEXT_RULES[info.field_name].check(value)

    @field_validator("email_id", mode="before")
    @classmethod
    def check_email(cls, value: Any) -> str:
        rule = TEXT_RULES["email_id"]
        if value is None:
            raise PydanticCustomError("required", rule.required_message)
        if not isinstance(value, str):
            raise PydanticCustomError("string_type", f"{rule.label} must be a string")
        value = value.strip()
        if value == "":
            raise PydanticCustomError("string_empty", rule.required_message)
        violations = []
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            violations.append("Please enter a valid email address")
        if len(value) > rule.max_length:
            violations.append(f"Email cannot exceed {rule.max_length} characters")
        raise_violations(violations)
        return value.lower()

    @field_validator("image", mode="before")
    @classmethod
    def check_image(cls, value: Any) -> ImageRef:
        if value is None or isinstance(value, OpaqueImage):
            return value
        if isinstance(value, ImageUrl):
            value = value.value
        if isinstance(value, str):
            value = value.strip()
            if value == "":
                return None
            if len(value) > IMAGE_MAX_LENGTH:
                raise PydanticCustomError(
                    "string_too_long",
                    f"Image URL cannot exceed {IMAGE_MAX_LENGTH} characters",
                )
            return ImageUrl(value)
        return OpaqueImage(value)

    def column_values(self) -> Dict[str, Any]:
        """Values for the mutable School columns (image resolved to its string)."""
        return {
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "contact": self.contact,
            "email_id": self.email_id,
            "image": image_storage_value(self.image),
        }


# Messages for fields that are absent from the candidate altogether
REQUIRED_MESSAGES = {field: rule.required_message for field, rule in TEXT_RULES.items()}


def _to_field_errors(error: Mapping[str, Any]) -> List[FieldError]:
    field = str(error["loc"][0]) if error.get("loc") else "__root__"
    if error["type"] == "missing":
        return [FieldError(field=field, message=REQUIRED_MESSAGES.get(field, f"{field} is required"))]
    messages = (error.get("ctx") or {}).get("messages") or [error["msg"]]
    return [FieldError(field=field, message=message) for message in messages]


def validate_school(candidate: Mapping[str, Any]) -> SchoolCandidate:
    """
    Validate and normalize a School candidate.

    Every field is checked and every broken rule is reported; all failures
    are raised together.

    Args:
        candidate: Caller-supplied data (partial or full), e.g. form fields.

    Returns:
        SchoolCandidate with trimmed strings, lower-cased email_id and the
        image resolved to an ImageRef.

    Raises:
        ValidationError: with one FieldError per broken rule, in field order.
    """
    if not isinstance(candidate, Mapping):
        raise ValidationError(field="__root__", message="School data must be an object")
    try:
        return SchoolCandidate.model_validate(dict(candidate))
    except PydanticValidationError as exc:
        errors = [
            field_error
            for error in exc.errors()
            for field_error in _to_field_errors(error)
        ]
    raise ValidationError(errors=errors)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class SchoolResponse(BaseModel):
    """Full representation of a stored School."""

    id: int = Field(description="Server-assigned school identifier")
    name: str
    address: str
    city: str
    state: str
    contact: str
    email_id: str
    image: Optional[str] = Field(default=None, description="Image URL or upload storage key")
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SchoolEnvelope(BaseModel):
    """Envelope for single-school responses."""

    success: bool = True
    message: str
    data: SchoolResponse


class SchoolListEnvelope(BaseModel):
    """
    Envelope for list responses.

    `count` is only filled for the by-city and by-state listings, matching
    what the admin UI reads.
    """

    success: bool = True
    message: str
    data: List[SchoolResponse]
    count: Optional[int] = None


class DeletedSchool(BaseModel):
    id: int


class DeleteEnvelope(BaseModel):
    success: bool = True
    message: str
    data: DeletedSchool


class DescriptionResponse(BaseModel):
    """Response of the regenerate-description endpoint. Not persisted."""

    success: bool = True
    description: str


class ErrorResponse(BaseModel):
    """
    Standardized error envelope for every API error.

    Fields:
        message:    Short summary ("Validation failed", "School not found")
        error:      Human-readable detail
        details:    Field errors for validation failures
        request_id: Correlation ID for tracing this error in server logs
    """

    success: bool = False
    message: str
    error: Optional[str] = None
    details: Optional[Any] = None
    request_id: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""

    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    gemini: str = Field(description="Gemini API status: available, unavailable, circuit_open")
    uptime_seconds: float = Field(description="Seconds since service started")
