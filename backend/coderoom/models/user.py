"""User model"""

import uuid

from sqlalchemy import Column, String, Boolean, DateTime, Index, inspect, text
from sqlalchemy.orm import relationship, validates

from coderoom.core.clock import utcnow
from coderoom.core.database import Base


class User(Base):
    """Identity record for authentication and authorization"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default="STUDENT", nullable=False, index=True)
    is_root = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    refresh_tokens = relationship(
        "RefreshToken",
        primaryjoin="User.id == foreign(RefreshToken.user_id)",
        back_populates="user",
        viewonly=True,
    )

    __table_args__ = (
        # At most one root user.
        Index(
            "uq_users_single_root",
            "is_root",
            unique=True,
            postgresql_where=text("is_root"),
            sqlite_where=text("is_root = 1"),
        ),
    )

    @validates("email")
    def _lowercase_email(self, key, value):
        return value.strip().lower() if value else value

    @validates("is_root")
    def _root_is_immutable(self, key, value):
        if inspect(self).persistent and bool(self.is_root) != bool(value):
            raise ValueError("is_root cannot be changed once set")
        return value

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
