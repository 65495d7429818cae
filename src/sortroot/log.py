"""Logging setup for the SortRoot CLI."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from sortroot.config.models import LoggingSettings

PACKAGE_LOGGER = "sortroot"
_FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(
    settings: LoggingSettings,
    log_path: Path | None = None,
    *,
    console: Console | None = None,
) -> logging.Logger:
    """Attach console and rotating file handlers to the package logger.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        settings: Level and rotation settings.
        log_path: Log file location; file logging is skipped when None.
        console: Rich console for the stderr handler.

    Returns:
        logging.Logger: The configured ``sortroot`` logger.
    """

    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.WARNING

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if getattr(handler, "_sortroot_managed", False):
            logger.removeHandler(handler)
            handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
    )
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    _install(logger, rich_handler, level)

    if log_path is not None:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=settings.max_size_mb * 1024 * 1024,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
        except OSError as exc:  # pragma: no cover - logging best effort
            logger.warning("File logging disabled for %s: %s", log_path, exc)
        else:
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
            _install(logger, file_handler, level)

    return logger


def _install(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler._sortroot_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)


__all__ = ["configure_logging"]
