from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.models.user import User
from erp.core.exceptions import BadRequestError
from erp.core.security import verify_password, get_password_hash, create_access_token
from erp.schemas.auth import UserCreate
from erp.config import settings

logger = logging.getLogger(__name__)


class AuthService:
    """Authentication service for user login and token management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Returns:
            User object if authentication successful, None otherwise
        """
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        user = result.scalar_one_or_none()

        if user is None or not user.is_active:
            return None

        if not verify_password(password, user.password_hash):
            logger.info(f"Failed login for {email}")
            return None

        user.last_login_at = datetime.now(timezone.utc)
        await self.db.commit()
        return user

    def create_token(self, user: User) -> Tuple[str, int]:
        """Access token carrying the user's role; returns (token, expires_in seconds)."""
        expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        token = create_access_token(
            user.id,
            expires_delta=expires,
            additional_claims={"role": user.role, "email": user.email},
        )
        return token, int(expires.total_seconds())

    async def create_user(self, data: UserCreate) -> User:
        email = data.email.lower()
        existing = await self.db.execute(select(User).where(User.email == email))
        if existing.scalar_one_or_none():
            raise BadRequestError("User with this email already exists")

        user = User(
            email=email,
            password_hash=get_password_hash(data.password),
            full_name=data.full_name,
            role=data.role.value,
            is_active=True,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)

        logger.info(f"Created user {user.email} with role {user.role}")
        return user
