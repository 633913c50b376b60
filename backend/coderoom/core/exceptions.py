"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Validation Errors
class ValidationError(BaseAPIException):
    """Malformed input"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details)


# Session Errors
class InvalidCredentialsError(BaseAPIException):
    """
    Bad password, unknown or inactive user, unknown/revoked/expired refresh token.

    Every case carries the same message so callers cannot enumerate accounts
    or test refresh-token validity.
    """
    def __init__(self):
        super().__init__("Invalid credentials", status_code=400)


class AlreadyRegisteredError(BaseAPIException):
    """Email already registered"""
    def __init__(self):
        super().__init__("Email already registered", status_code=400)


class UserNotFoundError(BaseAPIException):
    """Referenced user vanished mid-operation"""
    def __init__(self):
        super().__init__("User not found", status_code=400)


# Authentication Errors
class UnauthorizedError(BaseAPIException):
    """No or invalid bearer credential at a protected route"""
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401)


class TokenInvalidError(UnauthorizedError):
    """Access token failed signature, structure or expiry checks"""
    def __init__(self, reason: str = "Invalid token"):
        super().__init__("Invalid token")
        self.reason = reason


# Authorization Errors
class ForbiddenError(BaseAPIException):
    """Authenticated but lacking the required capability"""
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, status_code=403)


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


# Business Logic Errors
class BusinessLogicError(BaseAPIException):
    """Business logic error"""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class RateLimitExceededError(BaseAPIException):
    """Rate limit exceeded"""
    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(message, status_code=429)


# Startup Errors
class BootstrapError(RuntimeError):
    """Root user cannot be provisioned; the service must not start"""
