import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REFRESH_CLEANUP_INTERVAL_SECONDS", "0")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret")

from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import movie_api.models  # noqa: F401,E402
from movie_api.core.database import get_db  # noqa: E402
from movie_api.core.throttle import LoginThrottle, TTLCacheStore  # noqa: E402
from movie_api.main import create_app  # noqa: E402
from movie_api.models.base import Base  # noqa: E402
from movie_api.routers.auth import get_auth_service  # noqa: E402
from movie_api.services.auth import AuthService  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def session_factory() -> Generator[sessionmaker, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        future=True,
        poolclass=StaticPool,
    )
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    finally:
        engine.dispose()


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def auth_service() -> AuthService:
    throttle = LoginThrottle(TTLCacheStore(), max_attempts=3, lockout_seconds=60)
    return AuthService(throttle=throttle)


@pytest.fixture
def app(session_factory: sessionmaker, auth_service: AuthService) -> FastAPI:
    def override_get_db() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application = create_app()
    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_auth_service] = lambda: auth_service
    return application


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client
