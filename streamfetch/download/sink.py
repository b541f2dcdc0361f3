from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional, Protocol

from streamfetch.config import TempFileSettings
from streamfetch.runtime.errors import TempFileDeletionError
from streamfetch.runtime.logging import logger


class TempFileSink:
    """Write end of one attempt's temp file."""

    def __init__(self, path: Path, fh: BinaryIO, fsync: bool = False) -> None:
        self.path = path
        self._fh = fh
        self._fsync = fsync
        self.bytes_written = 0

    @property
    def closed(self) -> bool:
        return self._fh.closed

    async def write(self, chunk: bytes) -> None:
        await asyncio.to_thread(self._fh.write, chunk)
        self.bytes_written += len(chunk)

    async def aclose(self) -> None:
        if self._fh.closed:
            return
        await asyncio.to_thread(self._close)

    def _close(self) -> None:
        try:
            self._fh.flush()
            if self._fsync:
                os.fsync(self._fh.fileno())
        finally:
            self._fh.close()


class SinkAllocator(Protocol):
    async def allocate(self) -> TempFileSink:  # pragma: no cover - protocol
        ...

    async def remove(self, path: Path) -> None:  # pragma: no cover - protocol
        ...


class TempSinkManager:
    """
    Allocates a uniquely named temp file per attempt and deletes discarded ones.

    Deletion failures are raised as TempFileDeletionError and never retried.
    """

    def __init__(self, settings: Optional[TempFileSettings] = None) -> None:
        self.settings = settings or TempFileSettings()

    @property
    def directory(self) -> Optional[Path]:
        if self.settings.directory is None:
            return None
        return Path(self.settings.directory).expanduser()

    async def allocate(self) -> TempFileSink:
        directory = self.directory
        if directory is not None:
            await asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True)
        fd, raw_path = await asyncio.to_thread(
            tempfile.mkstemp,
            suffix=self.settings.suffix,
            prefix=self.settings.prefix,
            dir=str(directory) if directory is not None else None,
        )
        path = Path(raw_path).resolve()
        logger.debug("Allocated temp file", path=str(path))
        return TempFileSink(path, os.fdopen(fd, "wb"), fsync=self.settings.fsync)

    async def remove(self, path: Path) -> None:
        try:
            await asyncio.to_thread(os.unlink, path)
        except OSError as exc:
            logger.error("Temp file deletion failed", path=str(path), error=str(exc))
            raise TempFileDeletionError(path, exc.strerror or str(exc)) from exc
        logger.debug("Deleted temp file", path=str(path))


__all__ = ["TempFileSink", "SinkAllocator", "TempSinkManager"]
