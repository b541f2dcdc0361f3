from __future__ import annotations

import contextvars
import pathlib
import sys
import uuid
from contextlib import contextmanager
from typing import Any, Optional

from loguru import logger as _base_logger

from streamfetch.config import LoggingSettings

_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)
_attempt_no: contextvars.ContextVar[int] = contextvars.ContextVar(
    "attempt_no", default=0
)


def _default_extra(record: dict[str, Any]) -> None:
    correlation = _correlation_id.get() or "-"
    attempt_value = _attempt_no.get()

    record["extra"].setdefault("correlation_id", correlation)
    record["extra"].setdefault("attempt", attempt_value)

    context_parts = []
    if correlation != "-":
        context_parts.append(f"@{correlation[:6]}")
    if attempt_value:
        context_parts.append(f"A{attempt_value}")

    record["extra"]["context"] = " ".join(context_parts) if context_parts else "-"


def setup_logging(settings: LoggingSettings) -> None:
    """Configure loguru sinks for console + structured file output."""
    _base_logger.remove()

    console_format = (
        "<green>{time:HH:mm:ss}</green> "
        "<level>{level.icon} {level.name:<7}</level> "
        "{extra[context]:<12} "
        "<level>{message}</level>"
    )

    _base_logger.configure(patcher=_default_extra)
    _base_logger.add(
        sys.stderr,
        level=settings.level.upper(),
        format=console_format,
        filter=_console_filter,
    )

    if not settings.file:
        return

    log_path = pathlib.Path(settings.file).expanduser()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    if settings.purge_previous:
        _purge_old_logs(log_path)
    _base_logger.add(
        log_path,
        level=settings.level.upper(),
        rotation="10 MB",
        compression="zip",
        enqueue=True,
        serialize=True,
    )


logger = _base_logger


def new_correlation_id() -> str:
    return uuid.uuid4().hex


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Any:
    token = _correlation_id.set(correlation_id or new_correlation_id())
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


@contextmanager
def attempt_scope(attempt: int) -> Any:
    token = _attempt_no.set(max(1, attempt))
    try:
        yield
    finally:
        _attempt_no.reset(token)


def _purge_old_logs(log_path: pathlib.Path) -> None:
    """Delete previous log files (including rotations) before a new run."""
    for candidate in log_path.parent.glob(f"{log_path.name}*"):
        if candidate.is_file():
            try:
                candidate.unlink()
            except OSError as exc:
                _base_logger.warning("Could not purge old log", path=str(candidate), error=str(exc))


def _console_filter(record: dict[str, Any]) -> bool:
    """Show warnings, business events and CLI output on the console."""
    if record["level"].no >= 30:
        return True

    if (record.get("module", ""), record.get("function", "")) == ("main", "main"):
        return True

    message = record.get("message", "")
    return message.startswith("[BUSINESS]")


__all__ = [
    "logger",
    "setup_logging",
    "new_correlation_id",
    "correlation_scope",
    "attempt_scope",
]
