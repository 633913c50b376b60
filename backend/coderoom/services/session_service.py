"""Session lifecycle - register, login, refresh-token rotation, logout, password change."""

from __future__ import annotations

from datetime import datetime, timedelta
from functools import lru_cache
from typing import Callable, NamedTuple, Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coderoom.config import settings
from coderoom.core.clock import utcnow
from coderoom.core.exceptions import (
    AlreadyRegisteredError,
    InvalidCredentialsError,
    UserNotFoundError,
    ValidationError,
)
from coderoom.core.security import (
    TokenCodec,
    get_password_hash,
    hash_refresh_token,
    new_refresh_token_value,
    token_codec,
    verify_password,
)
from coderoom.models.security import RefreshToken
from coderoom.models.user import User
from coderoom.schemas.user import UserRole
from coderoom.services.token_service import RefreshTokenStore, refresh_token_store
from coderoom.services.user_service import UserDirectory, user_directory

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str


def _check_password_policy(password: str) -> None:
    if not MIN_PASSWORD_LENGTH <= len(password or "") <= MAX_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be between {MIN_PASSWORD_LENGTH} and {MAX_PASSWORD_LENGTH} characters",
            details={"field": "password"},
        )


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    # Verified against when the email is unknown so login timing is uniform.
    return get_password_hash("this_is_a_fake_user_that_never_exists")


class SessionService:
    """
    Orchestrates credential checks and the refresh-token rotation chain.

    Refresh tokens are single use: redeeming one revokes it and issues a
    replacement. Raw refresh values only ever leave this service in a
    TokenPair; storage sees their SHA-256 digest.
    """

    def __init__(
        self,
        codec: TokenCodec,
        refresh_ttl_seconds: int,
        users: UserDirectory = user_directory,
        tokens: RefreshTokenStore = refresh_token_store,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.codec = codec
        self.refresh_ttl_seconds = refresh_ttl_seconds
        self.users = users
        self.tokens = tokens
        self._clock = clock

    def register(self, db: Session, email: str, password: str) -> TokenPair:
        """
        Create a STUDENT account and open its first session

        Raises:
            ValidationError: Password outside the length policy
            AlreadyRegisteredError: If the email (any casing) already exists
        """
        _check_password_policy(password)
        now = self._clock()
        normalized = self.users.normalize_email(email)
        if self.users.exists_by_email(db, normalized):
            raise AlreadyRegisteredError()

        user = User(
            email=normalized,
            password_hash=get_password_hash(password),
            role=UserRole.STUDENT.value,
            is_root=False,
            is_active=True,
            created_at=now,
        )
        try:
            self.users.save(db, user)
        except IntegrityError:
            # Lost a race against a concurrent registration of the same email.
            db.rollback()
            raise AlreadyRegisteredError()

        pair = self._issue_token_pair(db, user, now)
        db.commit()

        logger.info(f"Registered user {user.id}")
        return pair

    def login(self, db: Session, email: str, password: str) -> TokenPair:
        """
        Verify credentials and open a session

        Raises:
            InvalidCredentialsError: Unknown email, inactive account or wrong password
        """
        now = self._clock()
        user = self.users.get_by_email(db, email)
        password_ok = verify_password(
            password, user.password_hash if user is not None else _dummy_password_hash()
        )

        if user is None or not user.is_active or not password_ok:
            logger.warning("Failed login attempt")
            raise InvalidCredentialsError()

        pair = self._issue_token_pair(db, user, now)
        db.commit()

        logger.info(f"User authenticated: {user.id}")
        return pair

    def refresh(self, db: Session, refresh_token: str) -> TokenPair:
        """
        Redeem a refresh token for a new pair

        The presented token is revoked and committed before the owner is
        loaded, so it stays consumed even if the rest of the call fails.

        Raises:
            InvalidCredentialsError: Unknown, revoked or expired token, a lost
                concurrent redemption, or an inactive owner
            UserNotFoundError: The owner no longer exists
        """
        now = self._clock()
        stored = self.tokens.find_by_token_hash(db, hash_refresh_token(refresh_token))
        if stored is None or not stored.is_valid(now):
            raise InvalidCredentialsError()

        token_id, user_id = stored.id, stored.user_id
        if not self.tokens.revoke_if_active(db, token_id, now):
            db.rollback()
            logger.warning(f"Refresh token {token_id} redeemed concurrently")
            raise InvalidCredentialsError()
        db.commit()

        user = self.users.get_by_id(db, user_id)
        if user is None:
            raise UserNotFoundError()
        if not user.is_active:
            raise InvalidCredentialsError()

        pair = self._issue_token_pair(db, user, now)
        db.commit()

        logger.info(f"Rotated refresh token {token_id} for user {user_id}")
        return pair

    def logout(self, db: Session, refresh_token: str) -> None:
        """Revoke one refresh token; unknown or already revoked tokens are a no-op."""
        stored = self.tokens.find_by_token_hash(db, hash_refresh_token(refresh_token))
        if stored is None or stored.revoked_at is not None:
            return

        if self.tokens.revoke(db, stored, self._clock()):
            db.commit()
            logger.info(f"Revoked refresh token {stored.id}")

    def logout_all(self, db: Session, refresh_token: str) -> int:
        """
        Revoke every active refresh token of the presented token's owner

        Returns:
            Number of tokens revoked (0 when the token is unknown)
        """
        stored = self.tokens.find_by_token_hash(db, hash_refresh_token(refresh_token))
        if stored is None:
            return 0

        user_id = stored.user_id
        count = self.tokens.revoke_all_by_user_id(db, user_id, self._clock())
        db.commit()

        logger.info(f"Revoked {count} refresh token(s) for user {user_id}")
        return count

    def change_password(self, db: Session, user_id: str, old_password: str, new_password: str) -> None:
        """
        Replace the password and end every session of the user

        Raises:
            UserNotFoundError: Unknown user id
            ValidationError: New password outside the length policy
            InvalidCredentialsError: Old password does not verify
        """
        _check_password_policy(new_password)
        user = self.users.get_by_id(db, user_id)
        if user is None:
            raise UserNotFoundError()
        if not verify_password(old_password, user.password_hash):
            raise InvalidCredentialsError()

        user.password_hash = get_password_hash(new_password)
        self.users.save(db, user)
        count = self.tokens.revoke_all_by_user_id(db, user.id, self._clock())
        db.commit()

        logger.info(f"Password changed for user {user_id}; revoked {count} refresh token(s)")

    def _issue_token_pair(self, db: Session, user: User, now: Optional[datetime] = None) -> TokenPair:
        now = now or self._clock()
        access_token = self.codec.issue_access_token(user.id, user.email, user.role, now=now)

        raw_refresh = new_refresh_token_value()
        self.tokens.save(
            db,
            RefreshToken(
                user_id=user.id,
                token_hash=hash_refresh_token(raw_refresh),
                created_at=now,
                expires_at=now + timedelta(seconds=self.refresh_ttl_seconds),
                revoked_at=None,
            ),
        )
        return TokenPair(access_token=access_token, refresh_token=raw_refresh)


session_service = SessionService(
    codec=token_codec,
    refresh_ttl_seconds=settings.REFRESH_TOKEN_TTL_SECONDS,
)
