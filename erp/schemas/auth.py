from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from erp.schemas.base import BaseResponseSchema
from erp.models.user import UserRole


class LoginRequest(BaseModel):
    """Login request schema."""
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, description="User password")


class TokenResponse(BaseModel):
    """Token response schema."""
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration in seconds")


class UserCreate(BaseModel):
    """Admin-created user account."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=1, max_length=200)
    role: UserRole = UserRole.EMPLOYEE


class UserResponse(BaseResponseSchema):
    """User account without credentials."""
    id: UUID
    email: str
    full_name: str
    role: str
    is_active: bool
    employee_id: Optional[UUID] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime
