"""Logging helpers for the settlement engine."""

from __future__ import annotations

import logging
from pathlib import Path

AUDIT_LOGGER = "jackpot_engine.settlement.audit"
_LIFECYCLE_LOGGERS = ("jackpot_engine.settlement.rounds", "jackpot_engine.settlement.degen", AUDIT_LOGGER)


class NarrativeFilter(logging.Filter):
    """Pass warnings, records flagged ``narrative`` and round/degen lifecycle lines."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if record.levelno >= logging.WARNING:
            return True
        if getattr(record, "narrative", False):
            return True
        return record.name.startswith(_LIFECYCLE_LOGGERS)


class AuditFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        return record.name == AUDIT_LOGGER


def _file_handler(path_value: str, log_filter: logging.Filter) -> logging.Handler:
    path = Path(path_value)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.addFilter(log_filter)
    return handler


def configure_logging(level: int = logging.INFO, log_paths: list[str] | None = None) -> None:
    """Configure default logging if no handlers are present.

    ``log_paths[0]`` receives the narrative stream, ``log_paths[1]`` (when
    given) receives only committed audit events.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    paths = list(log_paths or [])
    if paths and paths[0]:
        handlers.append(_file_handler(paths[0], NarrativeFilter()))
    if len(paths) > 1 and paths[1]:
        handlers.append(_file_handler(paths[1], AuditFilter()))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )
