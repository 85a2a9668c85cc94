"""Shared helpers for tests that need a caller identity."""

from erp.core.permissions import RequestContext
from erp.core.security import create_access_token
from erp.models import User


def auth_headers(user: User) -> dict:
    token = create_access_token(user.id, additional_claims={"role": user.role})
    return {"Authorization": f"Bearer {token}"}


def context_for(user: User, employee=None) -> RequestContext:
    return RequestContext(
        user_id=user.id,
        email=user.email,
        role=user.role,
        employee_id=employee.id if employee else None,
    )
