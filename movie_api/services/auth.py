import logging
from datetime import timedelta
from typing import Callable, Optional, Tuple

from sqlalchemy.orm import Session

from movie_api.core.config import settings
from movie_api.core.errors import (
    AuthenticationError,
    ConflictError,
    InvalidResetTokenError,
    InvalidTokenError,
    NotFoundError,
    RevokedError,
    SelfRoleChangeError,
    UserNotFoundError,
)
from movie_api.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    hash_reset_token,
    new_reset_token,
    utcnow,
    verify_password,
)
from movie_api.core.throttle import LoginThrottle, TTLCacheStore
from movie_api.models.refresh_token import RefreshToken
from movie_api.models.user import User, UserRole
from movie_api.repositories.refresh_token_repository import RefreshTokenRepository
from movie_api.repositories.user_repository import UserRepository
from movie_api.schemas.auth import UserCreate

module_logger = logging.getLogger(__name__)

ResetNotifier = Callable[[User, str], None]


class AuthService:
    """Login, logout and refresh flows on top of the user and refresh-token stores."""

    def __init__(
        self,
        user_repo: UserRepository | None = None,
        refresh_repo: RefreshTokenRepository | None = None,
        throttle: LoginThrottle | None = None,
        logger: logging.Logger | None = None,
        reset_notifier: ResetNotifier | None = None,
    ):
        self.user_repo = user_repo or UserRepository()
        self.refresh_repo = refresh_repo or RefreshTokenRepository()
        self.throttle = throttle or LoginThrottle(
            TTLCacheStore(),
            max_attempts=settings.login_max_attempts,
            lockout_seconds=settings.login_lockout_seconds,
        )
        self.logger = logger or module_logger
        self.reset_notifier = reset_notifier or self._log_reset_request

    def _log_reset_request(self, user: User, token: str) -> None:
        # No mail transport is configured; deployments inject one.
        self.logger.info("Password reset token issued for user %s", user.id)

    def issue_access_token(self, user: User) -> str:
        return create_access_token(user.id, UserRole(user.role).value, user.username)

    def issue_refresh_token(self, db: Session, user: User) -> str:
        token, expires_at = create_refresh_token(user.id)
        # PersistenceError propagates: a token the store never saw must not reach the client.
        self.refresh_repo.create(db, token=token, user_id=user.id, expires_at=expires_at)
        return token

    def verify_refresh_token(self, db: Session, token: str) -> RefreshToken:
        """Return the stored record if ``token`` may be exchanged for an access token.

        The store is consulted before the signature so that revocation wins
        over every other check.
        """
        record = self.refresh_repo.get_by_token(db, token)
        if record is None:
            raise NotFoundError("refresh token not found")
        if record.revoked_at is not None:
            raise RevokedError(f"refresh token revoked at {record.revoked_at.isoformat()}")
        claims = decode_refresh_token(token)
        if claims.get("sub") != record.user_id:
            raise InvalidTokenError("refresh token subject does not match its record")
        return record

    def _issue_pair(self, db: Session, user: User) -> Tuple[str, str]:
        access = self.issue_access_token(user)
        refresh = self.issue_refresh_token(db, user)
        return access, refresh

    def register_user(self, db: Session, user_in: UserCreate) -> Tuple[User, str, str]:
        if self.user_repo.get_by_email(db, user_in.email):
            raise ConflictError(f"email {user_in.email} already registered")

        # The user row is only flushed; storing the refresh token commits both or neither.
        user = self.user_repo.create(
            db,
            username=user_in.username,
            email=user_in.email,
            hashed_password=hash_password(user_in.password),
            commit=False,
        )
        access, refresh = self._issue_pair(db, user)
        self.logger.info("Registered user %s", user.id)
        return user, access, refresh

    def login(self, db: Session, email: str, password: str, client_ip: str = "unknown") -> Tuple[User, str, str]:
        self.throttle.check(email, client_ip)

        user = self.user_repo.get_by_email(db, email)
        if not user or not verify_password(password, user.hashed_password):
            failures = self.throttle.register_failure(email, client_ip)
            self.logger.warning("Failed login for %s from %s (%d consecutive)", email, client_ip, failures)
            raise AuthenticationError()

        self.throttle.reset(email, client_ip)
        access, refresh = self._issue_pair(db, user)
        self.logger.info("User %s logged in", user.id)
        return user, access, refresh

    def logout(self, db: Session, token: Optional[str]) -> None:
        if not token:
            return
        if self.refresh_repo.revoke(db, token):
            self.logger.info("Refresh token revoked")
        else:
            self.logger.debug("Logout with unknown or already revoked refresh token")

    def refresh(self, db: Session, token: str) -> str:
        try:
            record = self.verify_refresh_token(db, token)
        except InvalidTokenError as exc:
            self.logger.info("Refresh rejected (%s): %s", type(exc).__name__, exc)
            raise

        user = self.user_repo.get(db, record.user_id)
        if user is None:
            self.logger.warning("Refresh token %s points at missing user %s", record.id, record.user_id)
            raise InvalidTokenError("refresh token owner no longer exists")
        return self.issue_access_token(user)

    def change_role(self, db: Session, user_id: str, role: UserRole, actor_id: Optional[str] = None) -> User:
        user = self.user_repo.get(db, user_id)
        if user is None:
            raise UserNotFoundError(f"user {user_id} not found")
        if actor_id is not None and user.id == actor_id and role != UserRole.ADMIN:
            raise SelfRoleChangeError(f"admin {actor_id} tried to change their own role to {role.value}")
        previous = user.role
        user = self.user_repo.update_role(db, user, role)
        self.logger.info("Role of user %s changed from %s to %s", user.id, UserRole(previous).value, role.value)
        return user

    def request_password_reset(self, db: Session, email: str) -> Optional[str]:
        """Store a short-lived reset token and hand it to the notifier.

        Returns the raw token, or None for an unknown address; callers must
        answer both cases the same way.
        """
        user = self.user_repo.get_by_email(db, email)
        if user is None:
            self.logger.info("Password reset requested for unknown address")
            return None

        token = new_reset_token()
        expires = utcnow() + timedelta(minutes=settings.password_reset_expire_minutes)
        self.user_repo.set_reset_token(db, user, hash_reset_token(token), expires)
        self.reset_notifier(user, token)
        return token

    def reset_password(self, db: Session, token: str, new_password: str) -> User:
        user = self.user_repo.get_by_reset_token(db, hash_reset_token(token), utcnow())
        if user is None:
            raise InvalidResetTokenError("reset token unknown or expired")

        user = self.user_repo.update_password(db, user, hash_password(new_password))
        revoked = self.refresh_repo.revoke_all_for_user(db, user.id)
        self.logger.info("Password of user %s reset, %d sessions revoked", user.id, revoked)
        return user
