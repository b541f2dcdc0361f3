from __future__ import annotations

from pathlib import Path
from typing import Any


class DownloadError(Exception):
    """Base exception for download runtime failures."""


class FinalizationError(DownloadError):
    """Raised when a stage failed to close after streaming stopped."""

    def __init__(self, stage: Any, cause: BaseException) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"Failed to finalize {type(stage).__name__}: {cause}")


class TempFileDeletionError(DownloadError):
    """Raised when a discarded temp file cannot be removed (never retried)."""

    def __init__(self, path: str | Path, reason: str = "") -> None:
        self.path = Path(path)
        message = f"Could not delete temp file {self.path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SourceContractError(DownloadError):
    """Raised when a source breaks the retry/close signalling order."""


class HttpStatusError(DownloadError):
    """Raised by HTTP sources for an error status code."""

    def __init__(self, url: str, status_code: int) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(f"HTTP {status_code} for {url}")


__all__ = [
    "DownloadError",
    "FinalizationError",
    "TempFileDeletionError",
    "SourceContractError",
    "HttpStatusError",
]
