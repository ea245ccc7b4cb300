from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from movie_api.core.errors import PersistenceError
from movie_api.core.security import utcnow
from movie_api.models.refresh_token import RefreshToken


class RefreshTokenRepository:
    def create(self, db: Session, token: str, user_id: str, expires_at: datetime) -> RefreshToken:
        record = RefreshToken(token=token, user_id=user_id, expires_at=expires_at)
        try:
            db.add(record)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError(f"could not store refresh token: {exc}") from exc
        db.refresh(record)
        return record

    def get_by_token(self, db: Session, token: str) -> Optional[RefreshToken]:
        return db.query(RefreshToken).filter(RefreshToken.token == token).first()

    def revoke(self, db: Session, token: str, when: Optional[datetime] = None) -> bool:
        """Set ``revoked_at`` once; returns False when nothing was left to revoke."""
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.token == token, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=when or utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.execute(stmt)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError(f"could not revoke refresh token: {exc}") from exc
        return result.rowcount > 0

    def purge_expired(self, db: Session) -> int:
        """Delete expired refresh tokens; returns the number of removed rows."""
        deleted = (
            db.query(RefreshToken).filter(RefreshToken.expires_at < utcnow()).delete(synchronize_session=False)
        )
        db.commit()
        return deleted

    def revoke_all_for_user(self, db: Session, user_id: str, when: Optional[datetime] = None) -> int:
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=when or utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.execute(stmt)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError(f"could not revoke refresh tokens of {user_id}: {exc}") from exc
        return result.rowcount
