"""API dependencies - request identity and capability checks"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from typing import Callable, Optional

from coderoom.config import settings
from coderoom.core.database import get_db
from coderoom.core.exceptions import ForbiddenError, UnauthorizedError
from coderoom.core.identity import (
    AuthMiddleware,
    Capability,
    RequestIdentity,
    build_auth_middleware,
    has_capability,
)
from coderoom.core.security import token_codec

auth_middleware = build_auth_middleware(token_codec, trust_gateway_headers=settings.TRUST_GATEWAY_HEADERS)


def get_auth_middleware() -> AuthMiddleware:
    """Overridable in tests and in deployments with a different strategy list"""
    return auth_middleware


def get_request_identity(
    request: Request,
    db: Session = Depends(get_db),
    middleware: AuthMiddleware = Depends(get_auth_middleware),
) -> Optional[RequestIdentity]:
    """
    Resolve the caller's identity, or None when unauthenticated

    The identity is also kept on request.state for handlers and logging.
    """
    identity = getattr(request.state, "identity", None)
    if identity is None:
        identity = middleware.authenticate(request.headers, db)
        request.state.identity = identity
    return identity


def require_identity(
    identity: Optional[RequestIdentity] = Depends(get_request_identity),
) -> RequestIdentity:
    """
    Require an authenticated caller

    Raises:
        UnauthorizedError: No valid credential on the request
    """
    if identity is None:
        raise UnauthorizedError()
    return identity


def require_capability(required: Capability) -> Callable[..., RequestIdentity]:
    """
    Build a dependency that requires a capability

    Raises:
        UnauthorizedError: Anonymous caller
        ForbiddenError: Authenticated caller lacking the capability
    """

    def _dependency(identity: RequestIdentity = Depends(require_identity)) -> RequestIdentity:
        if not has_capability(identity, required):
            raise ForbiddenError()
        return identity

    return _dependency


require_root = require_capability(Capability.ROOT)


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"
