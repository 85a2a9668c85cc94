"""
Base Schema Classes for Pydantic Models

This module provides base classes that handle common patterns like UUID serialization,
ensuring consistency across all response schemas.

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
"""

from datetime import datetime
from typing import Generic, List, Optional, TypeVar
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class PayrollResponse(BaseResponseSchema):
            id: UUID
            pay_period: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        # Serialize UUIDs as strings in JSON output
        json_encoders={
            UUID: str,
            datetime: lambda v: v.isoformat() if v else None,
        },
        # Allow population by field name or alias
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Unknown fields are ignored (forward compatibility).
    """
    model_config = ConfigDict(
        extra='ignore',
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional; only fields present in the request are applied
    (read them with ``model_dump(exclude_unset=True)``).
    """
    model_config = ConfigDict(
        extra='ignore',
    )


T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Page of records returned by list endpoints."""
    data: List[T]
    total: int
    page: int = 1
    limit: int = 10
    total_pages: int = 0


class BulkItemError(BaseModel):
    """Failure of one item in a bulk request."""
    index: int
    error: str
    reference: Optional[str] = None


class BulkResult(BaseModel):
    """Outcome of a bulk request that continues past item failures."""
    success: int = 0
    failed: int = 0
    errors: List[BulkItemError] = Field(default_factory=list)


class MessageResponse(BaseModel):
    """Plain acknowledgement."""
    message: str


# Type aliases for common UUID patterns
OptionalUUID = Optional[UUID]
