"""Tests for the bundled transform stages."""

import gzip
import hashlib
import zlib

import pytest

from streamfetch.download import DigestTransform, GunzipTransform, run_pipeline

from tests.conftest import MemorySink, ScriptedSource


def _split(data: bytes, size: int):
    return [data[i : i + size] for i in range(0, len(data), size)]


class TestDigestTransform:
    @pytest.mark.asyncio
    async def test_digest_does_not_alter_bytes(self):
        payload = b"checksum me" * 100
        digest = DigestTransform("sha256")
        sink = MemorySink()

        await run_pipeline([ScriptedSource(_split(payload, 64)), digest, sink])

        assert bytes(sink.data) == payload
        assert digest.size == len(payload)
        assert digest.hexdigest == hashlib.sha256(payload).hexdigest()

    def test_unknown_algorithm_rejected(self):
        with pytest.raises(ValueError):
            DigestTransform("not-a-hash")


class TestGunzipTransform:
    @pytest.mark.asyncio
    async def test_inflates_gzip_stream(self):
        payload = b"line of text\n" * 500
        sink = MemorySink()

        await run_pipeline(
            [ScriptedSource(_split(gzip.compress(payload), 97)), GunzipTransform(), sink]
        )

        assert bytes(sink.data) == payload

    @pytest.mark.asyncio
    async def test_digest_after_gunzip_sees_inflated_bytes(self):
        payload = b"abc" * 1000
        digest = DigestTransform("sha1")

        await run_pipeline(
            [ScriptedSource([gzip.compress(payload)]), GunzipTransform(), digest, MemorySink()]
        )

        assert digest.hexdigest == hashlib.sha1(payload).hexdigest()

    @pytest.mark.asyncio
    async def test_truncated_stream_fails(self):
        compressed = gzip.compress(b"x" * 10_000)
        sink = MemorySink()

        with pytest.raises(zlib.error):
            await run_pipeline(
                [ScriptedSource([compressed[: len(compressed) // 2]]), GunzipTransform(), sink]
            )

        assert sink.closed is True

    @pytest.mark.asyncio
    async def test_concatenated_members_all_inflated(self):
        body = gzip.compress(b"first-") + gzip.compress(b"second")
        gunzip = GunzipTransform()
        sink = MemorySink()

        await run_pipeline([ScriptedSource([body]), gunzip, sink])

        assert bytes(sink.data) == b"first-second"
        assert gunzip.members == 2

    @pytest.mark.asyncio
    async def test_member_boundary_split_across_chunks(self):
        body = gzip.compress(b"alpha" * 50) + gzip.compress(b"beta" * 50)
        sink = MemorySink()

        await run_pipeline([ScriptedSource(_split(body, 7)), GunzipTransform(), sink])

        assert bytes(sink.data) == b"alpha" * 50 + b"beta" * 50

    @pytest.mark.asyncio
    async def test_trailing_garbage_fails(self):
        sink = MemorySink()

        with pytest.raises(zlib.error):
            await run_pipeline(
                [ScriptedSource([gzip.compress(b"ok") + b"GARBAGE"]), GunzipTransform(), sink]
            )

        assert sink.closed is True
