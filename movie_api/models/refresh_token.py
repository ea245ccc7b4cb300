import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, String

from movie_api.core.security import utcnow
from movie_api.models.base import Base


class RefreshToken(Base):
    """One issued refresh credential; valid while present, unrevoked and unexpired."""

    __tablename__ = "refresh_tokens"

    id: str = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    token: str = Column(String, unique=True, nullable=False, index=True)
    user_id: str = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    expires_at: datetime = Column(DateTime, nullable=False)
    revoked_at: Optional[datetime] = Column(DateTime, nullable=True)
    created_at: datetime = Column(DateTime, default=utcnow, nullable=False)
