from .errors import (
    DownloadError,
    FinalizationError,
    HttpStatusError,
    SourceContractError,
    TempFileDeletionError,
)
from .events import EventEmitter
from .logging import attempt_scope, correlation_scope, logger, setup_logging
from .progress import DownloadProgress, DownloadSnapshot

__all__ = [
    "DownloadError",
    "FinalizationError",
    "HttpStatusError",
    "SourceContractError",
    "TempFileDeletionError",
    "EventEmitter",
    "attempt_scope",
    "correlation_scope",
    "logger",
    "setup_logging",
    "DownloadProgress",
    "DownloadSnapshot",
]
