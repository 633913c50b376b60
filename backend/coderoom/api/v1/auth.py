"""Authentication routes"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from coderoom.api.deps import client_ip
from coderoom.config import settings
from coderoom.core.database import get_db
from coderoom.core.exceptions import RateLimitExceededError
from coderoom.schemas.user import (
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
)
from coderoom.services.rate_limiter import rate_limiter
from coderoom.services.session_service import TokenPair, session_service

router = APIRouter()


def _token_response(pair: TokenPair) -> TokenResponse:
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type="Bearer",
        expires_in=session_service.codec.access_ttl_seconds,
    )


def _enforce_rate_limit(scope: str, request: Request, subject: str, per_minute: int, per_hour: int) -> None:
    ip = client_ip(request)
    if not rate_limiter.allow(f"{scope}:min:{ip}:{subject}", per_minute, 60):
        raise RateLimitExceededError("Too many attempts. Please wait a minute.")
    if not rate_limiter.allow(f"{scope}:hour:{ip}:{subject}", per_hour, 3600):
        raise RateLimitExceededError("Too many attempts. Please try again later.")


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def register(
    body: RegisterRequest,
    db: Session = Depends(get_db),
):
    """
    Register a new student account and return its first token pair

    Raises:
        AlreadyRegisteredError: Email already taken (400)
    """
    pair = session_service.register(db, body.email, body.password)
    return _token_response(pair)


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def login(
    body: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Authenticate with email and password

    Raises:
        InvalidCredentialsError: Undifferentiated failure (400)
        RateLimitExceededError: Too many attempts (429)
    """
    _enforce_rate_limit(
        "login",
        request,
        body.email.strip().lower(),
        settings.LOGIN_RATE_LIMIT_PER_MINUTE,
        settings.LOGIN_RATE_LIMIT_PER_HOUR,
    )
    pair = session_service.login(db, body.email, body.password)
    return _token_response(pair)


@router.post("/refresh", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def refresh(
    body: RefreshTokenRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Exchange a refresh token for a new pair; the presented token is consumed

    Raises:
        InvalidCredentialsError: Unknown, revoked or expired token, or inactive owner (400)
        UserNotFoundError: Owner deleted (400)
    """
    _enforce_rate_limit(
        "refresh",
        request,
        "-",
        settings.REFRESH_RATE_LIMIT_PER_MINUTE,
        settings.REFRESH_RATE_LIMIT_PER_HOUR,
    )
    pair = session_service.refresh(db, body.refresh_token)
    return _token_response(pair)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def logout(
    body: RefreshTokenRequest,
    db: Session = Depends(get_db),
):
    """Revoke one refresh token. Always 204."""
    session_service.logout(db, body.refresh_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/logout-all", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def logout_all(
    body: RefreshTokenRequest,
    db: Session = Depends(get_db),
):
    """Revoke every refresh token of the presented token's owner. Always 204."""
    session_service.logout_all(db, body.refresh_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
