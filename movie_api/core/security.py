import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from movie_api.core.config import settings
from movie_api.core.errors import InvalidTokenError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password with bcrypt (passlib)."""
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return pwd_context.verify(password, hashed_password)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the database columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def create_access_token(
    subject: str,
    role: str,
    username: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    now = utcnow()
    expires_delta = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": subject,
        "role": role,
        "username": username,
        "iss": settings.token_issuer,
        "aud": settings.token_audience,
        "iat": now,
        "exp": now + expires_delta,
        "type": ACCESS_TOKEN_TYPE,
    }
    return jwt.encode(claims, settings.access_token_secret, algorithm=settings.jwt_algorithm)


def create_refresh_token(subject: str, expires_delta: Optional[timedelta] = None) -> Tuple[str, datetime]:
    """Mint a refresh token and return it with the expiry encoded in its ``exp`` claim."""
    now = utcnow()
    expires_delta = expires_delta or timedelta(days=settings.refresh_token_expire_days)
    token = jwt.encode(
        {
            "sub": subject,
            "iat": now,
            "exp": now + expires_delta,
            "jti": str(uuid.uuid4()),
            "type": REFRESH_TOKEN_TYPE,
        },
        settings.refresh_token_secret,
        algorithm=settings.jwt_algorithm,
    )
    exp = jwt.get_unverified_claims(token)["exp"]
    expires_at = datetime.fromtimestamp(exp, tz=timezone.utc).replace(tzinfo=None)
    return token, expires_at


def new_reset_token() -> str:
    return secrets.token_hex(32)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            settings.access_token_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.token_audience,
            issuer=settings.token_issuer,
        )
    except JWTError as exc:
        raise InvalidTokenError(f"access token rejected: {exc}") from exc
    if payload.get("type") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
        raise InvalidTokenError("access token has wrong type or no subject")
    return payload


def decode_refresh_token(token: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.refresh_token_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise InvalidTokenError(f"refresh token rejected: {exc}") from exc
    if payload.get("type") != REFRESH_TOKEN_TYPE:
        raise InvalidTokenError("refresh token has wrong type")
    return payload


bearer_scheme = HTTPBearer(auto_error=False)


def get_current_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    # InvalidTokenError propagates to the app-level handler as a generic 401.
    return decode_access_token(credentials.credentials)


def require_roles(roles: set[str]) -> Callable:
    def dependency(payload: Dict[str, Any] = Depends(get_current_payload)) -> Dict[str, Any]:
        if payload.get("role") not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden",
            )
        return payload

    return dependency
