"""Security utilities - password hashing, JWT access tokens, refresh token values"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import hashlib
import secrets

from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt

from coderoom.config import settings
from coderoom.core.clock import utcnow
from coderoom.core.exceptions import TokenInvalidError

# bcrypt only consumes the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode('utf-8')[:_BCRYPT_MAX_BYTES]


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Stored bcrypt digest

    Returns:
        bool: True if password matches; a malformed digest never matches
    """
    try:
        return bcrypt.checkpw(
            _password_bytes(plain_password),
            hashed_password.encode('utf-8')
        )
    except (ValueError, TypeError, AttributeError):
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt with a random salt

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        _password_bytes(password),
        bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    ).decode('utf-8')


def new_refresh_token_value(num_bytes: int = 32) -> str:
    """Opaque refresh token: random bytes, URL-safe base64 without padding."""
    return secrets.token_urlsafe(num_bytes)


def hash_refresh_token(value: str) -> str:
    """SHA-256 hex digest; the only form in which refresh tokens are stored."""
    return hashlib.sha256(value.encode('utf-8')).hexdigest()


def _epoch_seconds(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def _from_epoch(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class AccessClaims:
    """Verified contents of an access token"""

    subject: str
    email: str
    role: str
    issued_at: datetime
    expires_at: datetime


class TokenCodec:
    """Signs and verifies stateless HMAC access tokens."""

    REQUIRED_CLAIMS = ("sub", "email", "role", "iat", "exp")

    def __init__(self, secret: str, algorithm: str = "HS256", access_ttl_seconds: int = 3600):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.access_ttl_seconds = access_ttl_seconds

    @classmethod
    def from_settings(cls, app_settings=settings) -> "TokenCodec":
        return cls(
            secret=app_settings.JWT_SECRET,
            algorithm=app_settings.JWT_ALGORITHM,
            access_ttl_seconds=app_settings.ACCESS_TOKEN_TTL_SECONDS,
        )

    def issue_access_token(
        self,
        user_id: Any,
        email: str,
        role: Any,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Create a signed access token

        Args:
            user_id: Subject identifier
            email: Email claim
            role: Role claim (enum or name)
            now: Issue time, defaults to current UTC time

        Returns:
            str: Encoded JWT
        """
        issued_at = _epoch_seconds(now or utcnow())
        to_encode: Dict[str, Any] = {
            "sub": str(user_id),
            "email": email,
            "role": getattr(role, "value", role),
            "iat": issued_at,
            "exp": issued_at + self.access_ttl_seconds,
            "jti": secrets.token_urlsafe(16),  # Unique token ID
        }
        return jwt.encode(to_encode, self._secret, algorithm=self.algorithm)

    def parse_claims(self, token: str) -> AccessClaims:
        """
        Decode and verify an access token

        Raises:
            TokenInvalidError: bad signature, malformed, missing claims or expired
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise TokenInvalidError("expired")
        except (JWTError, AttributeError, TypeError):
            raise TokenInvalidError("malformed or bad signature")

        missing = [claim for claim in self.REQUIRED_CLAIMS if payload.get(claim) in (None, "")]
        if missing:
            raise TokenInvalidError(f"missing claims: {', '.join(missing)}")

        try:
            return AccessClaims(
                subject=str(payload["sub"]),
                email=str(payload["email"]),
                role=str(payload["role"]),
                issued_at=_from_epoch(int(payload["iat"])),
                expires_at=_from_epoch(int(payload["exp"])),
            )
        except (TypeError, ValueError, OverflowError):
            raise TokenInvalidError("malformed claims")


token_codec = TokenCodec.from_settings()
