from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DownloadSnapshot:
    attempts: int
    retries: int
    discarded: int
    elapsed_sec: float


class DownloadProgress:
    """Attempt counters for a single download, with elapsed time."""

    def __init__(self) -> None:
        self._attempts = 0
        self._retries = 0
        self._discarded = 0
        self._start_ts: Optional[float] = None

    def begin_attempt(self) -> int:
        if self._start_ts is None:
            self._start_ts = time.monotonic()
        self._attempts += 1
        return self._attempts

    def mark_retry(self) -> None:
        self._retries += 1

    def mark_discarded(self) -> None:
        self._discarded += 1

    def snapshot(self) -> DownloadSnapshot:
        elapsed = 0.0
        if self._start_ts is not None:
            elapsed = time.monotonic() - self._start_ts
        return DownloadSnapshot(
            attempts=self._attempts,
            retries=self._retries,
            discarded=self._discarded,
            elapsed_sec=elapsed,
        )


__all__ = ["DownloadProgress", "DownloadSnapshot"]
