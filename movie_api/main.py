import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from movie_api.core.config import settings
from movie_api.core.database import SessionLocal, init_db
from movie_api.core.errors import AuthError
from movie_api.core.logging import setup_logging
from movie_api.core.security import utcnow
from movie_api.core.tasks import start_refresh_token_cleanup, stop_refresh_token_cleanup
from movie_api.repositories.refresh_token_repository import RefreshTokenRepository
from movie_api.routers import auth as auth_router
from movie_api.routers import users as users_router

logger = logging.getLogger(__name__)
_refresh_repo = RefreshTokenRepository()

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    init_db()
    start_refresh_token_cleanup(
        session_factory=SessionLocal,
        repo=_refresh_repo,
        interval_seconds=settings.refresh_cleanup_interval_seconds,
    )
    try:
        yield
    finally:
        stop_refresh_token_cleanup()


async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    else:
        logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    headers = {}
    if exc.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    retry_after = getattr(exc, "retry_after", 0)
    if retry_after:
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    return JSONResponse(status_code=400, content={"detail": ", ".join(messages) or "Invalid request"})


def create_app() -> FastAPI:
    application = FastAPI(title="Movie API", lifespan=lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            # Unhandled errors end here as a generic 500.
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            response = JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    application.add_exception_handler(AuthError, handle_auth_error)
    application.add_exception_handler(RequestValidationError, handle_validation_error)

    @application.get("/health", tags=["health"])
    def health() -> dict:
        return {"status": "ok", "time": utcnow().isoformat() + "Z"}

    application.include_router(auth_router.router)
    application.include_router(users_router.router)
    return application


app = create_app()
