"""Account audit trail: password changes and root-initiated role/activation changes."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from coderoom.models.audit import AuditAction, AuditEvent

logger = logging.getLogger(__name__)


class AuditService:
    """Appends events; rows are never updated."""

    @staticmethod
    def record(
        db: Session,
        action: AuditAction,
        *,
        actor_id: Optional[str],
        target_user_id: str,
        ip_address: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """
        Persist and commit one audit event

        Args:
            db: Database session
            action: What happened
            actor_id: User who performed it
            target_user_id: Account it happened to
            ip_address: Caller address as seen by the API
            details: Extra JSON-serializable context (never secrets)

        Returns:
            AuditEvent: The stored event
        """
        event = AuditEvent(
            actor_id=actor_id,
            action=action.value,
            target_user_id=target_user_id,
            ip_address=ip_address,
            details_json=json.dumps(details or {}, sort_keys=True),
        )
        db.add(event)
        db.commit()
        db.refresh(event)

        logger.info(f"Audit {action.value}: actor={actor_id} target={target_user_id}")
        return event


audit_service = AuditService()
