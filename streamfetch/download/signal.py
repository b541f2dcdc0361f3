from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

from streamfetch.download.source import CLOSE, END, RETRY
from streamfetch.runtime.events import EventEmitter


@dataclass(frozen=True)
class RetryOutcome:
    """Retry decision of one attempt; ``retry_count=None`` means terminal."""

    retry_count: Optional[int] = None

    @property
    def should_retry(self) -> bool:
        return self.retry_count is not None


class RetrySignal:
    """
    One-shot bridge from a source's retry/close/end events to a future.

    The first of "retry", "close" or "end" settles ``outcome`` and detaches
    all three listeners. A retry always precedes closure on a well-behaved
    source, so a retry decision wins the race. The future is never failed.
    """

    def __init__(self, source: EventEmitter, retry_count: int = 0) -> None:
        self.source = source
        self.retry_count = retry_count
        source.retry_count = retry_count
        self.outcome: asyncio.Future[RetryOutcome] = (
            asyncio.get_running_loop().create_future()
        )
        source.once(RETRY, self._on_retry)
        source.once(CLOSE, self._on_terminal)
        source.once(END, self._on_terminal)

    def _on_retry(self, retry_count: Optional[int] = None) -> None:
        self._settle(RetryOutcome(retry_count=retry_count))

    def _on_terminal(self, *_: Any) -> None:
        self._settle(RetryOutcome())

    def _settle(self, outcome: RetryOutcome) -> None:
        self.detach()
        if not self.outcome.done():
            self.outcome.set_result(outcome)

    def detach(self) -> None:
        self.source.off(RETRY, self._on_retry)
        self.source.off(CLOSE, self._on_terminal)
        self.source.off(END, self._on_terminal)

    async def wait(self) -> RetryOutcome:
        return await asyncio.shield(self.outcome)


def watch_retry(source: EventEmitter, retry_count: int = 0) -> RetrySignal:
    """Tag ``source`` with ``retry_count`` and watch it for a retry decision."""
    return RetrySignal(source, retry_count)


__all__ = ["RetryOutcome", "RetrySignal", "watch_retry"]
