"""Database models"""

from coderoom.models.user import User
from coderoom.models.security import RefreshToken
from coderoom.models.audit import AuditAction, AuditEvent

__all__ = ["User", "RefreshToken", "AuditAction", "AuditEvent"]
