import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from roomchat.core.config import settings


def configure_logging(level: Optional[int] = None) -> None:
    """Configure root logging for the application.

    - Creates the log directory if missing.
    - Adds a stream handler and rotating file handler.
    - Sets uvicorn loggers to use the same handlers.
    """
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level or (logging.DEBUG if settings.DEBUG else logging.INFO))

    fmt = "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d - %(message)s"
    formatter = logging.Formatter(fmt)

    ch = logging.StreamHandler()
    ch.setFormatter(formatter)
    ch.setLevel(root.level)

    fh = logging.handlers.RotatingFileHandler(
        log_dir / "app.log",
        maxBytes=5 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    fh.setFormatter(formatter)
    fh.setLevel(root.level)

    # Avoid duplicate handlers on reconfigure
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        root.addHandler(ch)
    if not any(isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers):
        root.addHandler(fh)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.handlers = root.handlers
        logger.setLevel(root.level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
