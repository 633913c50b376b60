"""Audit trail for credential changes and account administration."""

import json
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Index

from coderoom.core.clock import utcnow
from coderoom.core.database import Base


class AuditAction(str, Enum):
    """Recorded account events"""
    PASSWORD_CHANGED = "user.password_changed"
    ROLE_CHANGED = "admin.user_role_changed"
    ACTIVATION_CHANGED = "admin.user_activation_changed"


class AuditEvent(Base):
    """One account event: who did what to which user, from where."""

    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(64), nullable=False, index=True)
    # No foreign key: history outlives the account.
    target_user_id = Column(String(36), nullable=True, index=True)
    ip_address = Column(String(64), nullable=True)
    details_json = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_audit_events_created_at", "created_at"),
    )

    @property
    def details(self) -> dict:
        return json.loads(self.details_json or "{}")

    def __repr__(self):
        return f"<AuditEvent(action='{self.action}', actor={self.actor_id}, target={self.target_user_id})>"
