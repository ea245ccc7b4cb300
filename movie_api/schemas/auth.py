import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from movie_api.models.user import UserRole

_PASSWORD_MIX = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


class CamelModel(BaseModel):
    """Wire models use camelCase keys and also accept snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserCreate(CamelModel):
    username: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    confirm_password: Optional[str] = None

    @model_validator(mode="after")
    def passwords_match(self) -> "UserCreate":
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("confirmPassword must match password")
        return self


class UserLogin(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    username: str
    email: str
    role: UserRole
    avatar: str = ""
    is_email_verified: bool = False
    created_at: datetime
    updated_at: datetime


class AccessTokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"


class AuthResponse(AccessTokenResponse):
    user: UserOut
    refresh_token: str


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class MessageResponse(CamelModel):
    message: str


class RoleUpdate(CamelModel):
    role: UserRole


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ForgotPasswordResponse(MessageResponse):
    reset_token: Optional[str] = None


class ResetPasswordRequest(CamelModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=6, max_length=128)

    @field_validator("password")
    @classmethod
    def password_mix(cls, value: str) -> str:
        if not _PASSWORD_MIX.match(value):
            raise ValueError("password must contain an uppercase letter, a lowercase letter and a number")
        return value
