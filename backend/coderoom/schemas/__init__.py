"""Pydantic schemas for API validation"""

from coderoom.schemas.user import (
    UserRole,
    RegisterRequest,
    LoginRequest,
    RefreshTokenRequest,
    ChangePasswordRequest,
    TokenResponse,
    MeResponse,
    AdminUserResponse,
    SetUserRoleRequest,
    SetUserActiveRequest,
)
from coderoom.schemas.response import ErrorResponse, HealthResponse

__all__ = [
    "UserRole", "RegisterRequest", "LoginRequest", "RefreshTokenRequest", "ChangePasswordRequest",
    "TokenResponse", "MeResponse", "AdminUserResponse", "SetUserRoleRequest", "SetUserActiveRequest",
    "ErrorResponse", "HealthResponse",
]
