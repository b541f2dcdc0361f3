"""
Shared fakes for download tests.

Sources are scripted per attempt; the recording sink manager keeps track of
every temp file allocated and removed, and whether the sink had been closed
when its file was removed.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Iterable, List, Optional

import pytest

from streamfetch.config import TempFileSettings
from streamfetch.download import BaseTransform, RetryableSource, TempFileSink, TempSinkManager
from streamfetch.runtime.events import EventEmitter


class ScriptedSource(RetryableSource):
    """
    Yields ``chunks``; optionally fails with ``error`` before chunk ``fail_at``
    (default: after the last chunk) and optionally requests ``retry_to``.
    A retry without an error is requested after the last chunk.
    """

    def __init__(
        self,
        chunks: Iterable[bytes],
        *,
        error: Optional[Exception] = None,
        fail_at: Optional[int] = None,
        retry_to: Optional[int] = None,
    ) -> None:
        super().__init__()
        self._chunks = list(chunks)
        self._error = error
        self._fail_at = fail_at
        if error is not None and fail_at is None:
            self._fail_at = len(self._chunks)
        self._retry_to = retry_to
        self.released = False

    async def _iter_chunks(self):
        for index, chunk in enumerate(self._chunks):
            if index == self._fail_at:
                self._fail()
            await asyncio.sleep(0)
            yield chunk
        if self._fail_at == len(self._chunks):
            self._fail()
        if self._retry_to is not None:
            self.request_retry(self._retry_to)

    def _fail(self) -> None:
        if self._retry_to is not None:
            self.request_retry(self._retry_to)
        raise self._error

    async def _release(self) -> None:
        self.released = True


class SilentSource(EventEmitter):
    """Breaks the source contract: never emits retry, close or end."""

    def __init__(self, chunks: Iterable[bytes]) -> None:
        super().__init__()
        self.retry_count = 0
        self._chunks = list(chunks)

    async def chunks(self):
        for chunk in self._chunks:
            yield chunk

    async def aclose(self) -> None:
        return None


class SourceFactory:
    """Hands out pre-built sources, one per attempt."""

    def __init__(self, *sources) -> None:
        self._pending = list(sources)
        self.created: List = []

    def __call__(self):
        source = self._pending.pop(0)
        self.created.append(source)
        return source


class UpperTransform(BaseTransform):
    async def transform(self, chunk: bytes) -> bytes:
        return chunk.upper()


class TrailerTransform(BaseTransform):
    def __init__(self, trailer: bytes) -> None:
        super().__init__()
        self.trailer = trailer

    async def flush(self) -> bytes:
        return self.trailer


class ExplodingTransform(BaseTransform):
    """Raises ``error`` on the ``at``-th chunk (0-based)."""

    def __init__(self, error: Exception, at: int = 0) -> None:
        super().__init__()
        self.error = error
        self.at = at
        self.seen = 0

    async def transform(self, chunk: bytes) -> bytes:
        if self.seen == self.at:
            raise self.error
        self.seen += 1
        return chunk


class BadCloseTransform(BaseTransform):
    def __init__(self, error: Exception) -> None:
        super().__init__()
        self.error = error

    async def aclose(self) -> None:
        await super().aclose()
        raise self.error


class MemorySink:
    def __init__(self, close_error: Optional[Exception] = None) -> None:
        self.path = Path("memory")
        self.data = bytearray()
        self.closed = False
        self._close_error = close_error

    async def write(self, chunk: bytes) -> None:
        self.data.extend(chunk)

    async def aclose(self) -> None:
        self.closed = True
        if self._close_error is not None:
            raise self._close_error


class RecordingSinkManager(TempSinkManager):
    def __init__(self, settings: TempFileSettings) -> None:
        super().__init__(settings)
        self.allocated: List[Path] = []
        self.removed: List[Path] = []
        self.closed_at_removal: List[bool] = []
        self.sinks = {}

    async def allocate(self) -> TempFileSink:
        sink = await super().allocate()
        self.allocated.append(sink.path)
        self.sinks[sink.path] = sink
        return sink

    async def remove(self, path: Path) -> None:
        self.closed_at_removal.append(self.sinks[path].closed)
        await super().remove(path)
        self.removed.append(path)


@pytest.fixture
def temp_dir(tmp_path):
    """Directory that receives every temp file of a test."""
    return tmp_path / "downloads"


@pytest.fixture
def sinks(temp_dir):
    """Recording temp sink manager writing under ``temp_dir``."""
    return RecordingSinkManager(TempFileSettings(directory=str(temp_dir)))
