"""Repository for user data access operations."""

from typing import Optional

from sqlalchemy.orm import Session

from oracyn.db.models import User, utcnow


class UserRepository:
    """Repository for User entity operations."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.lower()).first()

    def get_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username.lower()).first()

    def get_by_verification_token(self, token: str) -> Optional[User]:
        return self.db.query(User).filter(User.verification_token == token).first()

    def get_by_reset_token(self, token: str) -> Optional[User]:
        return self.db.query(User).filter(User.reset_token == token).first()

    def create(self, **fields) -> User:
        """Insert a user and return it refreshed from the database."""
        user = User(**fields)
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def update(self, user: User, **fields) -> User:
        for name, value in fields.items():
            setattr(user, name, value)
        user.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(user)
        return user

    def deactivate(self, user: User, stamp: int) -> User:
        """Soft-delete a user.

        The unique email and username are rewritten with a
        `deleted_<stamp>_` prefix so the originals can be registered again
        straight away.

        Args:
            user: Account to deactivate
            stamp: Unix time in milliseconds used in the prefix
        """
        prefix = f"deleted_{stamp}_"
        return self.update(
            user,
            is_active=False,
            email=f"{prefix}{user.email}",
            username=f"{prefix}{user.username}",
            verification_token=None,
            reset_token=None,
        )
