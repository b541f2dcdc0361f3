from __future__ import annotations

import hashlib
import zlib


class BaseTransform:
    """Pass-through stage; subclasses override ``transform`` and ``flush``."""

    def __init__(self) -> None:
        self.closed = False

    async def transform(self, chunk: bytes) -> bytes:
        return chunk

    async def flush(self) -> bytes:
        return b""

    async def aclose(self) -> None:
        self.closed = True


class PassthroughTransform(BaseTransform):
    """Identity stage, useful as a placeholder in transform factories."""


class DigestTransform(BaseTransform):
    """Hashes the bytes flowing through it without altering them."""

    def __init__(self, algorithm: str = "sha256") -> None:
        super().__init__()
        self.algorithm = algorithm
        self._hash = hashlib.new(algorithm)
        self.size = 0

    async def transform(self, chunk: bytes) -> bytes:
        self._hash.update(chunk)
        self.size += len(chunk)
        return chunk

    @property
    def hexdigest(self) -> str:
        return self._hash.hexdigest()


class GunzipTransform(BaseTransform):
    """
    Inflates a gzip (or zlib) stream.

    Concatenated gzip members are inflated one after another, like ``gzip -d``.
    Bytes after a member that do not start a new one, or a stream cut short
    before its end-of-stream marker, raise ``zlib.error``.
    """

    def __init__(self) -> None:
        super().__init__()
        self._decompressor = self._new_member()
        self.members = 0

    @staticmethod
    def _new_member():
        # 32 + MAX_WBITS accepts both gzip and zlib headers
        return zlib.decompressobj(32 + zlib.MAX_WBITS)

    async def transform(self, chunk: bytes) -> bytes:
        inflated = []
        data = chunk
        while data:
            if self._decompressor.eof:
                self._decompressor = self._new_member()
            inflated.append(self._decompressor.decompress(data))
            if not self._decompressor.eof:
                break
            self.members += 1
            data = self._decompressor.unused_data
        return b"".join(inflated)

    async def flush(self) -> bytes:
        tail = self._decompressor.flush()
        if not self._decompressor.eof:
            raise zlib.error("compressed stream ended before the end-of-stream marker")
        if self._decompressor.unused_data:
            raise zlib.error("trailing data after the last compressed member")
        return tail


__all__ = [
    "BaseTransform",
    "PassthroughTransform",
    "DigestTransform",
    "GunzipTransform",
]
