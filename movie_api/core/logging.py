import logging
import sys

_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stdout handler to the package logger (only once)."""
    logger = logging.getLogger("movie_api")
    logger.setLevel(level.upper())
    if not any(getattr(h, "_movie_api", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._movie_api = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
