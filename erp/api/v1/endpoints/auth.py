from fastapi import APIRouter, Depends, HTTPException, status

from erp.api.deps import DB, CurrentUser, Context, require_roles
from erp.core.permissions import RequestContext
from erp.models.user import User, UserRole
from erp.schemas.auth import LoginRequest, TokenResponse, UserCreate, UserResponse
from erp.services.auth_service import AuthService

router = APIRouter(tags=["Authentication"])


def _user_response(user: User, employee_id=None) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        is_active=user.is_active,
        employee_id=employee_id,
        last_login_at=user.last_login_at,
        created_at=user.created_at,
    )


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, db: DB):
    """
    Authenticate user and return an access token.
    """
    auth_service = AuthService(db)
    user = await auth_service.authenticate_user(data.email, data.password)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token, expires_in = auth_service.create_token(user)
    return TokenResponse(access_token=access_token, token_type="bearer", expires_in=expires_in)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: CurrentUser, context: Context):
    """
    Get current authenticated user's information.
    """
    return _user_response(current_user, context.employee_id)


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    db: DB,
    context: RequestContext = Depends(require_roles(UserRole.ADMIN)),
):
    """Create a user account. Admin only."""
    user = await AuthService(db).create_user(data)
    return _user_response(user)
