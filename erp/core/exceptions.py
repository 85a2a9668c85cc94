"""Service-layer error taxonomy.

Services raise these instead of HTTPException so they can be exercised without
a request. The handler registered in ``erp.main`` turns them into
``{"detail": message}`` responses with the matching status code.
"""
from fastapi import status


class ERPError(Exception):
    """Base class for business rule failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ERPError):
    """Referenced record does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class BadRequestError(ERPError):
    """Validation failure, duplicate, overlap or invalid state transition."""

    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenError(ERPError):
    """Caller does not own the record or lacks the role."""

    status_code = status.HTTP_403_FORBIDDEN


class GoneError(ERPError):
    """Resource existed but is no longer available (expired download)."""

    status_code = status.HTTP_410_GONE
