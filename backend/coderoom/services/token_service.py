"""Refresh token persistence: lookup, revocation and bulk revoke-by-user."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from coderoom.models.security import RefreshToken


class RefreshTokenStore:
    """Refresh-token records keyed by the hash of the opaque token value."""

    @staticmethod
    def find_by_token_hash(db: Session, token_hash: str) -> Optional[RefreshToken]:
        return db.query(RefreshToken).filter(RefreshToken.token_hash == token_hash).first()

    @staticmethod
    def save(db: Session, token: RefreshToken) -> RefreshToken:
        """Insert or update; the caller owns the transaction."""
        db.add(token)
        db.flush()
        return token

    @staticmethod
    def revoke_if_active(db: Session, token_id: str, now: datetime) -> bool:
        """
        Conditionally revoke a single token.

        The UPDATE only matches an unrevoked, unexpired row, so among
        concurrent callers holding the same token exactly one sees a
        rowcount of 1.

        Returns:
            bool: True if this call revoked the token
        """
        updated = (
            db.query(RefreshToken)
            .filter(
                RefreshToken.id == token_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .update({RefreshToken.revoked_at: now}, synchronize_session="fetch")
        )
        return updated == 1

    @staticmethod
    def revoke(db: Session, token: RefreshToken, now: datetime) -> bool:
        """Revoke a loaded token if still unrevoked. Returns False when it already was."""
        updated = (
            db.query(RefreshToken)
            .filter(RefreshToken.id == token.id, RefreshToken.revoked_at.is_(None))
            .update({RefreshToken.revoked_at: now}, synchronize_session="fetch")
        )
        return updated == 1

    @staticmethod
    def revoke_all_by_user_id(db: Session, user_id: str, now: datetime) -> int:
        """
        Revoke every unrevoked token of a user in one statement.

        Idempotent: once all tokens are revoked further calls return 0.
        """
        return (
            db.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .update({RefreshToken.revoked_at: now}, synchronize_session="fetch")
        )


refresh_token_store = RefreshTokenStore()
