"""Root user bootstrap - provisions the single root account on first startup."""

from typing import Optional
import logging

from sqlalchemy.orm import Session

from coderoom.core.clock import utcnow
from coderoom.core.exceptions import BootstrapError
from coderoom.core.security import get_password_hash
from coderoom.models.user import User
from coderoom.schemas.user import UserRole
from coderoom.services.user_service import user_directory

logger = logging.getLogger(__name__)


def ensure_root_user(db: Session, email: str, password: str) -> Optional[User]:
    """
    Create the root user unless one already exists

    Args:
        db: Database session
        email: Configured root email
        password: Configured root password

    Returns:
        The created root user, or None when a root user already exists

    Raises:
        BootstrapError: No root user exists and credentials are not configured
    """
    if user_directory.get_root(db) is not None:
        return None

    email = (email or "").strip().lower()
    if not email or not password:
        raise BootstrapError(
            "Root user is not configured. Set BOOTSTRAP_ROOT_EMAIL and BOOTSTRAP_ROOT_PASSWORD."
        )

    if user_directory.exists_by_email(db, email):
        raise BootstrapError(
            f"Cannot create root user: email {email} already belongs to a regular account."
        )

    root = User(
        email=email,
        password_hash=get_password_hash(password),
        role=UserRole.TEACHER.value,
        is_root=True,
        is_active=True,
        created_at=utcnow(),
    )
    user_directory.save(db, root)
    db.commit()

    logger.info(f"Created root user: {email}")
    return root
