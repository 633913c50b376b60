"""User and session schemas"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    """Global user role"""
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"


class CamelModel(BaseModel):
    """Request/response bodies use camelCase on the wire"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class _EmailBody(CamelModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def _strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v


class RegisterRequest(_EmailBody):
    """Registration body"""
    password: str = Field(..., min_length=8, max_length=128)


class LoginRequest(_EmailBody):
    """Login body"""
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(CamelModel):
    """Body carrying a raw refresh token (refresh, logout, logout-all)"""
    refresh_token: str = Field(..., min_length=1)


class ChangePasswordRequest(CamelModel):
    """Password change body"""
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)


class TokenResponse(CamelModel):
    """Access/refresh token pair"""
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int


class MeResponse(CamelModel):
    """Current identity"""
    user_id: str
    email: Optional[str] = None
    role: UserRole
    is_root: bool = False


class AdminUserResponse(CamelModel):
    """User as listed by the admin surface"""
    user_id: str
    email: str
    role: UserRole
    is_root: bool
    is_active: bool
    created_at: datetime


class SetUserRoleRequest(_EmailBody):
    """Admin role change"""
    role: UserRole


class SetUserActiveRequest(_EmailBody):
    """Admin activation toggle"""
    is_active: bool
