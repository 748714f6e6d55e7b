"""Business authentication endpoints"""

from fastapi import APIRouter, Depends, status
import structlog

from invoicing.api.deps import get_auth_service, get_current_business
from invoicing.models.user import User
from invoicing.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    SettingsUpdate,
    TokenResponse,
    UserResponse,
)
from invoicing.services.auth_service import AuthService

router = APIRouter()
logger = structlog.get_logger()


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Register a business account"""
    user, token = await auth_service.register(data)
    return TokenResponse(
        message="User registered successfully",
        token=token,
        user=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    user, token = await auth_service.login(data.email, data.password)
    return TokenResponse(
        message="Login successful",
        token=token,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_business)):
    return UserResponse.model_validate(current_user)


@router.put("/settings", response_model=UserResponse)
async def update_settings(
    data: SettingsUpdate,
    current_user: User = Depends(get_current_business),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Update invoice prefix, currency or default payment terms"""
    user = await auth_service.update_settings(current_user.id, data)
    return UserResponse.model_validate(user)
