"""User directory - lookups, search and admin updates over the users table"""

from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from coderoom.models.user import User
from coderoom.schemas.user import UserRole

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


class UserDirectory:
    """Persistence-backed user directory used by sessions and the admin surface"""

    @staticmethod
    def normalize_email(email: str) -> str:
        return email.strip().lower()

    @staticmethod
    def get_by_id(db: Session, user_id: str) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == str(user_id)).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email (case-insensitive)"""
        return db.query(User).filter(User.email == UserDirectory.normalize_email(email)).first()

    @staticmethod
    def exists_by_email(db: Session, email: str) -> bool:
        normalized = UserDirectory.normalize_email(email)
        return db.query(User.id).filter(User.email == normalized).first() is not None

    @staticmethod
    def get_root(db: Session) -> Optional[User]:
        return db.query(User).filter(User.is_root.is_(True)).first()

    @staticmethod
    def save(db: Session, user: User) -> User:
        """Insert or update; the caller owns the transaction."""
        db.add(user)
        db.flush()
        return user

    @staticmethod
    def search(db: Session, q: str = "", page: int = 0, size: int = 50) -> List[User]:
        """
        Page through users, optionally filtered by an email substring

        Args:
            db: Database session
            q: Case-insensitive email fragment; blank means all users
            page: Zero-based page index (negative values are treated as 0)
            size: Page size, clamped to 1..200

        Returns:
            List of users ordered by creation time
        """
        safe_size = min(max(size, 1), MAX_PAGE_SIZE)
        safe_page = max(page, 0)

        query = db.query(User)
        term = q.strip()
        if term:
            query = query.filter(User.email.ilike(f"%{term}%"))

        return (
            query.order_by(User.created_at.asc(), User.id.asc())
            .offset(safe_page * safe_size)
            .limit(safe_size)
            .all()
        )

    @staticmethod
    def update_role(db: Session, user_id: str, role: UserRole) -> int:
        count = (
            db.query(User)
            .filter(User.id == user_id)
            .update({User.role: role.value}, synchronize_session="fetch")
        )
        logger.info(f"Role update for user {user_id} -> {role.value} ({count} row(s))")
        return count

    @staticmethod
    def update_active(db: Session, user_id: str, is_active: bool) -> int:
        count = (
            db.query(User)
            .filter(User.id == user_id)
            .update({User.is_active: is_active}, synchronize_session="fetch")
        )
        logger.info(f"Active flag update for user {user_id} -> {is_active} ({count} row(s))")
        return count


# Singleton instance
user_directory = UserDirectory()
