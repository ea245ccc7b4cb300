from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from movie_api.core.config import settings
from movie_api.core.database import get_db
from movie_api.core.errors import InvalidTokenError
from movie_api.core.security import bearer_scheme, get_current_payload
from movie_api.schemas.auth import (
    AccessTokenResponse,
    AuthResponse,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    MessageResponse,
    RefreshRequest,
    ResetPasswordRequest,
    UserCreate,
    UserLogin,
    UserOut,
)
from movie_api.services.auth import AuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])
auth_service = AuthService()
TOKEN_TYPE = "bearer"
RESET_REQUESTED_MESSAGE = "If an account with that email exists, a password reset link has been sent"


def get_auth_service() -> AuthService:
    return auth_service


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _logout_token(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        value = body.get("refreshToken", body.get("refresh_token"))
        return value if isinstance(value, str) and value else None
    return None


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    user_in: UserCreate,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    user, access, refresh = service.register_user(db, user_in)
    return AuthResponse(user=UserOut.model_validate(user), access_token=access, refresh_token=refresh, token_type=TOKEN_TYPE)


@router.post("/login", response_model=AuthResponse)
def login(
    credentials: UserLogin,
    request: Request,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    user, access, refresh = service.login(db, credentials.email, credentials.password, client_address(request))
    return AuthResponse(user=UserOut.model_validate(user), access_token=access, refresh_token=refresh, token_type=TOKEN_TYPE)


@router.post("/logout", response_model=MessageResponse)
def logout(
    body: Any = Body(None),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    # Any JSON body is accepted; only a string refresh token is acted on.
    token = _logout_token(body)
    if token is None and credentials is not None:
        token = credentials.credentials
    service.logout(db, token)
    return MessageResponse(message="Logged out")


@router.post("/refresh", response_model=AccessTokenResponse)
def refresh(
    request: Optional[RefreshRequest] = None,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> AccessTokenResponse:
    if request is None or not request.refresh_token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing refresh token")
    access = service.refresh(db, request.refresh_token)
    return AccessTokenResponse(access_token=access, token_type=TOKEN_TYPE)


@router.post("/forgot-password", response_model=ForgotPasswordResponse, response_model_exclude_none=True)
def forgot_password(
    request: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> ForgotPasswordResponse:
    token = service.request_password_reset(db, request.email)
    return ForgotPasswordResponse(
        message=RESET_REQUESTED_MESSAGE,
        reset_token=token if settings.expose_reset_token else None,
    )


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    request: ResetPasswordRequest,
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.reset_password(db, request.token, request.password)
    return MessageResponse(message="Password reset successful")


@router.get("/profile", response_model=UserOut)
def profile(
    payload: Dict[str, Any] = Depends(get_current_payload),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> UserOut:
    user = service.user_repo.get(db, payload["sub"])
    if user is None:
        raise InvalidTokenError(f"token subject {payload['sub']} has no user")
    return UserOut.model_validate(user)
