"""Admin routes - root-only user management"""

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session
from typing import List
import logging

from coderoom.api.deps import client_ip, require_root
from coderoom.core.clock import utcnow
from coderoom.core.database import get_db
from coderoom.core.exceptions import BusinessLogicError, ResourceNotFoundError
from coderoom.core.identity import RequestIdentity
from coderoom.models.audit import AuditAction
from coderoom.models.user import User
from coderoom.schemas.user import AdminUserResponse, SetUserActiveRequest, SetUserRoleRequest
from coderoom.services.audit_service import audit_service
from coderoom.services.token_service import refresh_token_store
from coderoom.services.user_service import user_directory

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(user: User) -> AdminUserResponse:
    return AdminUserResponse(
        user_id=user.id,
        email=user.email,
        role=user.role,
        is_root=user.is_root,
        is_active=user.is_active,
        created_at=user.created_at,
    )


def _require_target(db: Session, email: str) -> User:
    target = user_directory.get_by_email(db, email)
    if target is None:
        raise ResourceNotFoundError("User")
    return target


@router.get("/users", response_model=List[AdminUserResponse])
def list_users(
    q: str = "",
    page: int = Query(0),
    size: int = Query(50),
    current_user: RequestIdentity = Depends(require_root),
    db: Session = Depends(get_db),
):
    """
    List users (root only)

    Args:
        q: Case-insensitive email fragment
        page: Zero-based page
        size: Page size, clamped to 1..200

    Returns:
        List of users
    """
    return [_to_response(user) for user in user_directory.search(db, q, page, size)]


@router.put("/users/role", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def set_role(
    body: SetUserRoleRequest,
    request: Request,
    current_user: RequestIdentity = Depends(require_root),
    db: Session = Depends(get_db),
):
    """
    Change a user's global role (root only)

    Raises:
        ResourceNotFoundError: Unknown email (404)
        BusinessLogicError: Target is the root user (400)
    """
    target = _require_target(db, body.email)
    if target.is_root:
        raise BusinessLogicError("Cannot change root user role")

    target_id, previous_role = target.id, target.role
    if user_directory.update_role(db, target_id, body.role) == 0:
        raise ResourceNotFoundError("User")
    db.commit()

    audit_service.record(
        db,
        AuditAction.ROLE_CHANGED,
        actor_id=current_user.user_id,
        target_user_id=target_id,
        ip_address=client_ip(request),
        details={"from": previous_role, "to": body.role.value},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/users/active", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def set_active(
    body: SetUserActiveRequest,
    request: Request,
    current_user: RequestIdentity = Depends(require_root),
    db: Session = Depends(get_db),
):
    """
    Activate or deactivate a user (root only)

    Deactivation also revokes every refresh token of the user.

    Raises:
        ResourceNotFoundError: Unknown email (404)
        BusinessLogicError: Attempt to deactivate the root user (400)
    """
    target = _require_target(db, body.email)
    if target.is_root and not body.is_active:
        raise BusinessLogicError("Cannot deactivate root user")

    target_id = target.id
    if user_directory.update_active(db, target_id, body.is_active) == 0:
        raise ResourceNotFoundError("User")

    revoked = 0
    if not body.is_active:
        revoked = refresh_token_store.revoke_all_by_user_id(db, target_id, utcnow())
    db.commit()

    logger.info(f"User {target_id} active={body.is_active}; revoked {revoked} refresh token(s)")
    audit_service.record(
        db,
        AuditAction.ACTIVATION_CHANGED,
        actor_id=current_user.user_id,
        target_user_id=target_id,
        ip_address=client_ip(request),
        details={"is_active": body.is_active, "revoked_refresh_tokens": revoked},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
