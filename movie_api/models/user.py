import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, Enum as SqlEnum, String

from movie_api.core.security import utcnow
from movie_api.models.base import Base


class UserRole(str, Enum):
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id: str = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    username: str = Column(String(50), nullable=False)
    # Stored lower-cased; lookups normalise the same way.
    email: str = Column(String, unique=True, nullable=False, index=True)
    hashed_password: str = Column(String, nullable=False)
    role: UserRole = Column(
        SqlEnum(UserRole, name="user_roles", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.USER,
    )
    avatar: str = Column(String, nullable=False, default="")
    is_email_verified: bool = Column(Boolean, nullable=False, default=False)
    # SHA-256 of the emailed reset token; the raw token is never stored.
    password_reset_token: Optional[str] = Column(String(64), nullable=True, index=True)
    password_reset_expires: Optional[datetime] = Column(DateTime, nullable=True)
    created_at: datetime = Column(DateTime, default=utcnow, nullable=False)
    updated_at: datetime = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
