"""Shared utility functions for the Savings Jars project."""

import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

import colorlog

from savings_jars.core.errors import PersistenceError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Get a logger with a colorized format for the project."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = colorlog.ColoredFormatter(
            f"%(log_color)s{LOG_FORMAT}",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def ensure_dir(path: str | Path) -> None:
    """Ensure a directory exists (like mkdir -p)."""
    Path(path).mkdir(parents=True, exist_ok=True)


def utcnow() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def utcnow_iso() -> str:
    """Get the current UTC time as an ISO8601 string."""
    return utcnow().isoformat()


def atomic_write_bytes(path: str | Path, data: bytes) -> None:
    """Write ``data`` to ``path`` so readers only ever see the old or the new content.

    The bytes go to a temporary file in the target directory, which is flushed to disk and then
    renamed over the destination. On failure the temporary file is removed, the previous file is
    left untouched, and a PersistenceError is raised.
    """
    target = Path(path)
    ensure_dir(target.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, target)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        msg = f"Could not write {target}: {exc}"
        raise PersistenceError(msg) from exc
