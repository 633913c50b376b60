"""Request identity resolution - bearer tokens, trusted gateway headers, capability checks"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Protocol, Union
import logging
import uuid

from sqlalchemy.orm import Session

from coderoom.core.exceptions import TokenInvalidError
from coderoom.core.security import TokenCodec
from coderoom.schemas.user import UserRole
from coderoom.services.user_service import UserDirectory, user_directory

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "
GATEWAY_USER_ID_HEADER = "x-user-id"
GATEWAY_USER_ROLE_HEADER = "x-user-role"


class Capability(str, Enum):
    """What a route may require of the caller"""
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ROOT = "ROOT"


_ROLE_RANK = {
    UserRole.STUDENT: 0,
    UserRole.TEACHER: 1,
}


@dataclass(frozen=True)
class RequestIdentity:
    """Authenticated caller, scoped to a single request"""

    user_id: str
    role: UserRole
    email: Optional[str] = None
    is_root: bool = False
    source: str = "bearer"

    @property
    def capabilities(self) -> List[Capability]:
        caps = [Capability(role.value) for role, rank in _ROLE_RANK.items() if rank <= _ROLE_RANK[self.role]]
        if self.is_root:
            caps.append(Capability.ROOT)
        return caps


def has_capability(identity: Optional[RequestIdentity], required: Union[Capability, UserRole]) -> bool:
    """
    Single authorization predicate used by every protected route.

    Root holds every capability, TEACHER implies STUDENT, an anonymous
    caller holds none.
    """
    if identity is None:
        return False
    if identity.is_root:
        return True

    required = Capability(required.value)
    if required is Capability.ROOT:
        return False
    return _ROLE_RANK[identity.role] >= _ROLE_RANK[UserRole(required.value)]


def _lower_headers(headers: Mapping[str, str]) -> Mapping[str, str]:
    return {key.lower(): value for key, value in headers.items()}


def _parse_role(raw: Optional[str]) -> Optional[UserRole]:
    try:
        return UserRole(raw)
    except ValueError:
        return None


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return False
    return True


def extract_bearer_token(headers: Mapping[str, str]) -> Optional[str]:
    """Token from an `Authorization: Bearer <token>` header, or None."""
    auth_header = _lower_headers(headers).get("authorization")
    if not auth_header or not auth_header.lower().startswith(BEARER_PREFIX):
        return None
    token = auth_header[len(BEARER_PREFIX):].strip()
    return token or None


class IdentityStrategy(Protocol):
    name: str

    def resolve(self, headers: Mapping[str, str], db: Optional[Session]) -> Optional[RequestIdentity]:
        ...


class BearerTokenStrategy:
    """
    Identity from a locally verified access token.

    With load_user the subject must be an existing, active user and the
    stored role/root flag win over the token claims. Without it (services
    that do not own the users table) identity is built from the claims.
    """

    name = "bearer"

    def __init__(self, codec: TokenCodec, users: UserDirectory = user_directory, load_user: bool = True):
        self.codec = codec
        self.users = users
        self.load_user = load_user

    def resolve(self, headers: Mapping[str, str], db: Optional[Session]) -> Optional[RequestIdentity]:
        token = extract_bearer_token(headers)
        if token is None:
            return None

        try:
            claims = self.codec.parse_claims(token)
        except TokenInvalidError as exc:
            logger.debug(f"Ignoring bearer token: {exc.reason}")
            return None

        if not _is_uuid(claims.subject):
            return None

        if not self.load_user:
            role = _parse_role(claims.role)
            if role is None:
                return None
            return RequestIdentity(user_id=claims.subject, role=role, email=claims.email, source=self.name)

        if db is None:
            raise RuntimeError("BearerTokenStrategy with load_user requires a database session")

        user = self.users.get_by_id(db, claims.subject)
        if user is None or not user.is_active:
            return None
        role = _parse_role(user.role)
        if role is None:
            return None

        return RequestIdentity(
            user_id=user.id,
            role=role,
            email=user.email,
            is_root=bool(user.is_root),
            source=self.name,
        )


class GatewayHeaderStrategy:
    """Identity asserted by a trusted upstream proxy via X-User-Id / X-User-Role."""

    name = "gateway"

    def resolve(self, headers: Mapping[str, str], db: Optional[Session] = None) -> Optional[RequestIdentity]:
        lowered = _lower_headers(headers)
        user_id = (lowered.get(GATEWAY_USER_ID_HEADER) or "").strip()
        role = _parse_role((lowered.get(GATEWAY_USER_ROLE_HEADER) or "").strip())
        if not user_id or role is None or not _is_uuid(user_id):
            return None
        return RequestIdentity(user_id=str(uuid.UUID(user_id)), role=role, source=self.name)


class AuthMiddleware:
    """
    Ordered identity strategies; the first one that yields an identity wins.

    Never rejects a request: failing every strategy simply leaves the
    request unauthenticated and route-level checks decide.
    """

    def __init__(self, strategies: Iterable[IdentityStrategy]):
        self.strategies = list(strategies)

    def authenticate(self, headers: Mapping[str, str], db: Optional[Session] = None) -> Optional[RequestIdentity]:
        for strategy in self.strategies:
            identity = strategy.resolve(headers, db)
            if identity is not None:
                return identity
        return None


def build_auth_middleware(codec: TokenCodec, trust_gateway_headers: bool = False) -> AuthMiddleware:
    strategies: List[IdentityStrategy] = [BearerTokenStrategy(codec)]
    if trust_gateway_headers:
        strategies.append(GatewayHeaderStrategy())
    return AuthMiddleware(strategies)
