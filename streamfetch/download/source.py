from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import aclosing
from typing import AsyncIterator

from streamfetch.runtime.errors import SourceContractError
from streamfetch.runtime.events import EventEmitter

RETRY = "retry"
CLOSE = "close"
END = "end"


class RetryableSource(EventEmitter, ABC):
    """
    Byte producer that can decide to restart itself.

    Lifecycle events:
        "retry"(next_count): the source gave up on this attempt and wants a
            new one started with ``next_count``. Always emitted before
            "close"/"end".
        "end": every chunk was produced.
        "close": the source was closed (normally at pipeline finalization).

    Subclasses implement ``_iter_chunks`` and call ``request_retry`` when
    their own policy decides to restart.
    """

    def __init__(self) -> None:
        super().__init__()
        self.retry_count = 0
        self._ended = False
        self._closed = False

    @property
    def finished(self) -> bool:
        return self._ended or self._closed

    @abstractmethod
    def _iter_chunks(self) -> AsyncIterator[bytes]:
        """Yield the payload bytes for this attempt."""

    async def chunks(self) -> AsyncIterator[bytes]:
        if self._closed:
            raise SourceContractError(f"{type(self).__name__} is already closed")
        async with aclosing(self._iter_chunks()) as chunks:
            async for chunk in chunks:
                yield chunk
        self._ended = True
        self.emit(END)

    def request_retry(self, next_count: int) -> None:
        if self.finished:
            raise SourceContractError(
                f"{type(self).__name__} requested retry {next_count} after it had finished"
            )
        self.emit(RETRY, next_count)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._release()
        finally:
            self.emit(CLOSE)

    async def _release(self) -> None:
        """Free transport resources; called once from ``aclose``."""


__all__ = ["RetryableSource", "RETRY", "CLOSE", "END"]
