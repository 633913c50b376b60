"""Security-related persistence models."""

import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Index
from sqlalchemy.orm import relationship

from coderoom.core.clock import utcnow
from coderoom.core.database import Base


class RefreshToken(Base):
    """Refresh token record for rotation/revocation.

    Only the SHA-256 digest of the opaque token value is stored. Rows are
    revoked, never deleted, including when the owning user is removed.
    """

    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # No foreign key: rows survive deletion of the owner.
    user_id = Column(String(36), nullable=False)
    token_hash = Column(String(64), unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)

    user = relationship(
        "User",
        primaryjoin="foreign(RefreshToken.user_id) == User.id",
        back_populates="refresh_tokens",
        viewonly=True,
    )

    __table_args__ = (
        Index("idx_refresh_tokens_user_revoked", "user_id", "revoked_at"),
    )

    def is_valid(self, now: datetime) -> bool:
        return self.revoked_at is None and self.expires_at > now

    def __repr__(self):
        return f"<RefreshToken(id={self.id}, user_id={self.user_id}, revoked={self.revoked_at is not None})>"
