"""Current-user routes"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from coderoom.api.deps import client_ip, require_identity
from coderoom.core.database import get_db
from coderoom.core.identity import RequestIdentity
from coderoom.models.audit import AuditAction
from coderoom.schemas.user import ChangePasswordRequest, MeResponse
from coderoom.services.audit_service import audit_service
from coderoom.services.session_service import session_service

router = APIRouter()


@router.get("", response_model=MeResponse)
def get_me(
    identity: RequestIdentity = Depends(require_identity),
):
    """Return the authenticated identity"""
    return MeResponse(
        user_id=identity.user_id,
        email=identity.email,
        role=identity.role,
        is_root=identity.is_root,
    )


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def change_password(
    body: ChangePasswordRequest,
    request: Request,
    identity: RequestIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
):
    """
    Change the caller's password and sign out every session

    Raises:
        InvalidCredentialsError: Old password does not match (400)
        UserNotFoundError: Account vanished (400)
    """
    session_service.change_password(db, identity.user_id, body.old_password, body.new_password)
    audit_service.record(
        db,
        AuditAction.PASSWORD_CHANGED,
        actor_id=identity.user_id,
        target_user_id=identity.user_id,
        ip_address=client_ip(request),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
