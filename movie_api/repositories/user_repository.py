from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from movie_api.core.errors import ConflictError, PersistenceError
from movie_api.models.user import User, UserRole


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository:
    def get_by_email(self, db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == normalize_email(email)).first()

    def get(self, db: Session, user_id: str) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    def get_by_reset_token(self, db: Session, token_hash: str, now: datetime) -> Optional[User]:
        return (
            db.query(User)
            .filter(User.password_reset_token == token_hash, User.password_reset_expires > now)
            .first()
        )

    def create(
        self,
        db: Session,
        username: str,
        email: str,
        hashed_password: str,
        role: UserRole = UserRole.USER,
        commit: bool = True,
    ) -> User:
        """Insert a user; with ``commit=False`` the row is only flushed into the open transaction."""
        user = User(
            username=username,
            email=normalize_email(email),
            hashed_password=hashed_password,
            role=role,
        )
        try:
            db.add(user)
            if commit:
                db.commit()
            else:
                db.flush()
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError(f"email {user.email} already registered") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError(f"could not store user: {exc}") from exc
        db.refresh(user)
        return user

    def update_role(self, db: Session, user: User, role: UserRole) -> User:
        user.role = role
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    def set_reset_token(self, db: Session, user: User, token_hash: Optional[str], expires: Optional[datetime]) -> None:
        user.password_reset_token = token_hash
        user.password_reset_expires = expires
        db.add(user)
        db.commit()

    def update_password(self, db: Session, user: User, hashed_password: str) -> User:
        user.hashed_password = hashed_password
        user.password_reset_token = None
        user.password_reset_expires = None
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
