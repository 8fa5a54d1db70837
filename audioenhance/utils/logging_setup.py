"""Logging initialization helpers."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from audioenhance.config import LoggingSettings, Settings

ROOT_LOGGER = "audioenhance"
_CONFIGURED_FLAG = "_audioenhance_configured"


def _log_file_path(settings: Settings) -> Path | None:
    if not settings.logging.file:
        return None
    path = Path(str(settings.logging.file))
    return path if path.is_absolute() else Path(settings.log_dir) / path


def _build_handlers(settings: Settings, formatter: logging.Formatter) -> list[logging.Handler]:
    cfg: LoggingSettings = settings.logging
    handlers: list[logging.Handler] = []
    if cfg.console:
        handlers.append(logging.StreamHandler())

    file_path = _log_file_path(settings)
    if file_path is not None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                file_path,
                maxBytes=int(cfg.max_bytes),
                backupCount=int(cfg.backup_count),
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(settings: Settings, *, level_override: str | None = None) -> logging.Logger:
    """Attach console/rotating-file handlers to the `audioenhance` logger.

    Only the package logger is touched; a second call returns it unchanged.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    if getattr(logger, _CONFIGURED_FLAG, False):
        return logger

    level_name = str(level_override or settings.logging.level or "INFO").upper()
    formatter = logging.Formatter(fmt=settings.logging.format, datefmt=settings.logging.datefmt)

    logger.handlers = _build_handlers(settings, formatter)
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    logger.propagate = False
    setattr(logger, _CONFIGURED_FLAG, True)
    return logger


def reset_logging() -> None:
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    setattr(logger, _CONFIGURED_FLAG, False)
