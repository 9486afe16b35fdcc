"""Common schemas used across the application."""

from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from fieldops.utils.clock import ensure_utc
from fieldops.utils.errors import ValidationError

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class BaseSchema(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
    )

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready camelCase dict for events and cache entries."""
        return self.model_dump(by_alias=True, mode="json")


def utc_or_none(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


class ErrorDetail(BaseModel):
    """Error detail structure."""

    code: str = Field(..., description="Error code (e.g., VALIDATION_ERROR)")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional error details")


class ErrorResponse(BaseModel):
    """Standard error response format."""

    model_config = ConfigDict(populate_by_name=True)

    error: ErrorDetail
    trace_id: str = Field(..., alias="traceId", description="Distributed tracing ID")


class PaginationMeta(BaseSchema):
    """Pagination metadata in response."""

    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        return cls(page=page, limit=limit, total=total, pages=(total + limit - 1) // limit)


class MessageResponse(BaseModel):
    """Generic success response."""

    message: str = "Operation completed successfully"


def field_issues(exc: PydanticValidationError | Any) -> list[dict[str, str]]:
    """Flatten pydantic errors into ``[{field, message}]``."""
    issues = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        issues.append({
            "field": ".".join(loc) or "body",
            "message": error.get("msg", "Invalid value"),
        })
    return issues


def parse_payload(schema: type[SchemaT], data: Any) -> SchemaT:
    """Validate an untyped payload (e.g. a socket frame) against a schema.

    Raises:
        ValidationError: With field-level issues
    """
    if not isinstance(data, dict):
        raise ValidationError([{"field": "payload", "message": "Payload must be an object"}])
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(field_issues(e)) from e
