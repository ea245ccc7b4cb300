import logging
import threading
from typing import Optional

from sqlalchemy.orm import sessionmaker

from movie_api.repositories.refresh_token_repository import RefreshTokenRepository

logger = logging.getLogger(__name__)
_cleanup_thread: Optional[threading.Thread] = None
_stop_event = threading.Event()
_lock = threading.Lock()


def purge_once(session_factory: sessionmaker, repo: RefreshTokenRepository) -> int:
    with session_factory() as db:
        deleted = repo.purge_expired(db)
    if deleted:
        logger.info("Purged %d expired refresh tokens", deleted)
    return deleted


def start_refresh_token_cleanup(
    session_factory: sessionmaker, repo: RefreshTokenRepository, interval_seconds: float
) -> Optional[threading.Thread]:
    """Start the background purge of expired refresh tokens (idempotent).

    Expired tokens already fail validation; this only keeps the table small.
    """
    global _cleanup_thread

    if interval_seconds <= 0:
        return None

    with _lock:
        if _cleanup_thread and _cleanup_thread.is_alive():
            return _cleanup_thread

        _stop_event.clear()

        def _worker():
            while not _stop_event.is_set():
                try:
                    purge_once(session_factory, repo)
                except Exception as exc:  # keeps the worker alive
                    logger.warning("Failed to purge expired refresh tokens: %s", exc)
                _stop_event.wait(interval_seconds)

        _cleanup_thread = threading.Thread(target=_worker, name="refresh-token-cleanup", daemon=True)
        _cleanup_thread.start()
        return _cleanup_thread


def stop_refresh_token_cleanup(timeout: float = 5.0) -> None:
    global _cleanup_thread

    with _lock:
        thread = _cleanup_thread
        _cleanup_thread = None
    _stop_event.set()
    if thread is not None:
        thread.join(timeout)
