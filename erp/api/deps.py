from typing import Annotated
import uuid
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.database import get_db
from erp.core.security import verify_access_token
from erp.core.permissions import RequestContext, authorize
from erp.models.user import User, UserRole
from erp.models.hr import Employee


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user.
    Validates the JWT token and returns the user object.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = credentials.credentials
    user_id = verify_access_token(token)

    if user_id is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise credentials_exception

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        logger.warning(f"Invalid user_id in token: {user_id}")
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_uuid))
    user = result.scalar_one_or_none()

    if user is None:
        logger.warning(f"User {user_id} not found")
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated"
        )

    return user


async def get_request_context(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> RequestContext:
    """
    Identity of the caller: user id, role and linked employee record.
    """
    result = await db.execute(select(Employee.id).where(Employee.user_id == user.id))
    employee_id = result.scalar_one_or_none()

    return RequestContext(
        user_id=user.id,
        email=user.email,
        role=user.role,
        employee_id=employee_id,
    )


def require_roles(*roles: UserRole):
    """
    Dependency factory to restrict a route to the given roles (ADMIN always passes).

    Usage:
        @router.put("/{id}/approve", dependencies=[Depends(require_roles(*APPROVER_ROLES))])
        async def approve(...):
            ...
    """
    async def role_dependency(
        context: Annotated[RequestContext, Depends(get_request_context)]
    ) -> RequestContext:
        decision = authorize(context, roles)
        if not decision.allowed:
            logger.info(f"Access denied for {context.email} ({context.role}): {decision.reason}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=decision.reason,
            )
        return context

    return role_dependency


# Type aliases for cleaner endpoint signatures
CurrentUser = Annotated[User, Depends(get_current_user)]
DB = Annotated[AsyncSession, Depends(get_db)]
Context = Annotated[RequestContext, Depends(get_request_context)]
