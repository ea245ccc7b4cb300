import logging
from datetime import timedelta
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from movie_api.core.errors import (
    AuthenticationError,
    ConflictError,
    InvalidResetTokenError,
    InvalidTokenError,
    NotFoundError,
    PersistenceError,
    RevokedError,
    SelfRoleChangeError,
    TooManyAttemptsError,
    UserNotFoundError,
)
from movie_api.core.security import create_refresh_token, decode_access_token, utcnow
from movie_api.models.refresh_token import RefreshToken
from movie_api.models.user import User, UserRole
from movie_api.schemas.auth import UserCreate
from movie_api.services.auth import AuthService


def make_user(service: AuthService, db: Session, email: str = "unit@example.com"):
    user_in = UserCreate(username="unit", email=email, password="secret123", confirm_password="secret123")
    return service.register_user(db, user_in)


def test_register_and_login_issue_tokens_for_user(db: Session, auth_service: AuthService):
    user, access, refresh = make_user(auth_service, db)
    assert user.hashed_password != "secret123"
    assert user.role == UserRole.USER
    assert access and refresh

    authed_user, access2, refresh2 = auth_service.login(db, "unit@example.com", "secret123")
    assert authed_user.id == user.id
    claims = decode_access_token(access2)
    assert claims["sub"] == user.id
    assert claims["role"] == "user"
    assert refresh2 != refresh
    assert db.query(RefreshToken).filter(RefreshToken.user_id == user.id).count() == 2


def test_register_duplicate_email_conflicts(db: Session, auth_service: AuthService):
    make_user(auth_service, db)
    with pytest.raises(ConflictError):
        make_user(auth_service, db, email="UNIT@example.com")


def test_login_unknown_email_and_wrong_password_raise_same_error(db: Session, auth_service: AuthService):
    make_user(auth_service, db)

    with pytest.raises(AuthenticationError) as unknown:
        auth_service.login(db, "ghost@example.com", "secret123")
    with pytest.raises(AuthenticationError) as wrong:
        auth_service.login(db, "unit@example.com", "wrong-password")

    assert str(unknown.value) == str(wrong.value) == "Invalid credentials"


def test_verify_refresh_token_unknown_token(db: Session, auth_service: AuthService):
    with pytest.raises(NotFoundError):
        auth_service.verify_refresh_token(db, "not-a-token")


def test_verify_refresh_token_revoked(db: Session, auth_service: AuthService):
    _, _, refresh = make_user(auth_service, db)
    auth_service.logout(db, refresh)

    with pytest.raises(RevokedError):
        auth_service.verify_refresh_token(db, refresh)
    with pytest.raises(InvalidTokenError):
        auth_service.refresh(db, refresh)


def test_verify_refresh_token_expired(db: Session, auth_service: AuthService):
    user, _, _ = make_user(auth_service, db)
    token, expires_at = create_refresh_token(user.id, expires_delta=timedelta(seconds=-5))
    auth_service.refresh_repo.create(db, token=token, user_id=user.id, expires_at=expires_at)

    with pytest.raises(InvalidTokenError) as exc_info:
        auth_service.verify_refresh_token(db, token)
    assert not isinstance(exc_info.value, (NotFoundError, RevokedError))


def test_revocation_is_reported_before_expiry(db: Session, auth_service: AuthService):
    user, _, _ = make_user(auth_service, db)
    token, expires_at = create_refresh_token(user.id, expires_delta=timedelta(seconds=-5))
    auth_service.refresh_repo.create(db, token=token, user_id=user.id, expires_at=expires_at)
    auth_service.logout(db, token)

    with pytest.raises(RevokedError):
        auth_service.verify_refresh_token(db, token)


def test_token_signed_with_access_secret_is_not_a_refresh_token(db: Session, auth_service: AuthService):
    user, access, _ = make_user(auth_service, db)
    # even if it somehow lands in the store, the signature check rejects it
    auth_service.refresh_repo.create(db, token=access, user_id=user.id, expires_at=utcnow() + timedelta(days=1))

    with pytest.raises(InvalidTokenError):
        auth_service.verify_refresh_token(db, access)


def test_refresh_reflects_current_role(db: Session, auth_service: AuthService):
    user, _, refresh = make_user(auth_service, db)

    before = decode_access_token(auth_service.refresh(db, refresh))
    assert before["role"] == "user"

    auth_service.change_role(db, user.id, UserRole.MODERATOR)

    after = decode_access_token(auth_service.refresh(db, refresh))
    assert after["role"] == "moderator"
    assert after["sub"] == user.id


def test_change_role_unknown_user(db: Session, auth_service: AuthService):
    with pytest.raises(UserNotFoundError):
        auth_service.change_role(db, "missing", UserRole.ADMIN)


def test_logout_is_idempotent_and_keeps_first_revocation_time(db: Session, auth_service: AuthService):
    _, _, refresh = make_user(auth_service, db)

    auth_service.logout(db, refresh)
    first = auth_service.refresh_repo.get_by_token(db, refresh).revoked_at
    auth_service.logout(db, refresh)
    auth_service.logout(db, "never-issued")
    auth_service.logout(db, None)

    assert first is not None
    assert auth_service.refresh_repo.get_by_token(db, refresh).revoked_at == first


def test_store_failure_during_issuance_returns_no_token(db: Session, auth_service: AuthService, monkeypatch):
    make_user(auth_service, db)

    def failing_commit():
        raise OperationalError("INSERT INTO refresh_tokens", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(PersistenceError):
        auth_service.login(db, "unit@example.com", "secret123")

    monkeypatch.undo()
    assert db.query(RefreshToken).count() == 1


def test_injected_logger_records_failed_logins(db: Session):
    logger = Mock(spec=logging.Logger)
    service = AuthService(logger=logger)
    make_user(service, db)

    with pytest.raises(AuthenticationError):
        service.login(db, "unit@example.com", "nope")

    logger.warning.assert_called_once()
    logged = " ".join(str(arg) for arg in logger.warning.call_args.args)
    assert "nope" not in logged


def test_admin_cannot_demote_themselves(db: Session, auth_service: AuthService):
    admin, _, _ = make_user(auth_service, db)
    auth_service.change_role(db, admin.id, UserRole.ADMIN)

    with pytest.raises(SelfRoleChangeError):
        auth_service.change_role(db, admin.id, UserRole.USER, actor_id=admin.id)

    assert auth_service.user_repo.get(db, admin.id).role == UserRole.ADMIN


def test_lockout_is_scoped_to_the_failing_client(db: Session, auth_service: AuthService):
    make_user(auth_service, db)

    for _ in range(3):
        with pytest.raises(AuthenticationError):
            auth_service.login(db, "unit@example.com", "guess", client_ip="10.0.0.1")
    with pytest.raises(TooManyAttemptsError):
        auth_service.login(db, "unit@example.com", "secret123", client_ip="10.0.0.1")

    user, _, _ = auth_service.login(db, "unit@example.com", "secret123", client_ip="10.0.0.2")
    assert user.email == "unit@example.com"


def test_duplicate_insert_after_lookup_is_conflict(db: Session, auth_service: AuthService, monkeypatch):
    make_user(auth_service, db)
    monkeypatch.setattr(auth_service.user_repo, "get_by_email", lambda db, email: None)

    with pytest.raises(ConflictError):
        make_user(auth_service, db, email="unit@example.com")

    monkeypatch.undo()
    assert db.query(User).count() == 1


def test_registration_is_rolled_back_when_token_cannot_be_stored(db: Session, auth_service: AuthService, monkeypatch):
    def failing_commit():
        raise OperationalError("INSERT INTO refresh_tokens", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(PersistenceError):
        make_user(auth_service, db)

    monkeypatch.undo()
    assert db.query(User).count() == 0
    assert db.query(RefreshToken).count() == 0


def test_password_reset_token_is_stored_hashed_and_expires(db: Session, auth_service: AuthService):
    user, _, _ = make_user(auth_service, db)

    token = auth_service.request_password_reset(db, "UNIT@example.com")
    assert token
    db.refresh(user)
    assert user.password_reset_token != token
    assert user.password_reset_expires <= utcnow() + timedelta(minutes=10)

    user.password_reset_expires = utcnow() - timedelta(seconds=1)
    db.commit()

    with pytest.raises(InvalidResetTokenError):
        auth_service.reset_password(db, token, "NewSecret1")
    auth_service.login(db, "unit@example.com", "secret123")


def test_password_reset_for_unknown_email_notifies_nobody(db: Session):
    notifier = Mock()
    service = AuthService(reset_notifier=notifier)

    assert service.request_password_reset(db, "ghost@example.com") is None
    notifier.assert_not_called()
