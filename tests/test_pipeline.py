"""
Tests for the pipeline runner.

Test coverage:
- bytes flow source -> transforms -> sink, flush tails included
- stage errors abort the pump but every stage is still closed
- pump errors take precedence over finalization errors
"""

import pytest

from streamfetch.download import PassthroughTransform, run_pipeline
from streamfetch.runtime.errors import FinalizationError

from tests.conftest import (
    BadCloseTransform,
    ExplodingTransform,
    MemorySink,
    ScriptedSource,
    TrailerTransform,
    UpperTransform,
)


class TestRunPipelineSuccess:
    @pytest.mark.asyncio
    async def test_source_straight_to_sink(self):
        source = ScriptedSource([b"abc", b"def"])
        sink = MemorySink()

        await run_pipeline([source, sink])

        assert bytes(sink.data) == b"abcdef"
        assert sink.closed is True
        assert source.released is True

    @pytest.mark.asyncio
    async def test_transforms_applied_in_order(self):
        source = ScriptedSource([b"abc"])
        sink = MemorySink()

        await run_pipeline([source, TrailerTransform(b"-tail"), UpperTransform(), sink])

        assert bytes(sink.data) == b"ABC-TAIL"

    @pytest.mark.asyncio
    async def test_every_transform_closed(self):
        transforms = [PassthroughTransform(), UpperTransform()]
        sink = MemorySink()

        await run_pipeline([ScriptedSource([b"x"]), *transforms, sink])

        assert all(transform.closed for transform in transforms)

    @pytest.mark.asyncio
    async def test_requires_source_and_sink(self):
        with pytest.raises(ValueError):
            await run_pipeline([MemorySink()])


class TestRunPipelineFailure:
    @pytest.mark.asyncio
    async def test_transform_error_raised_after_finalization(self):
        error = ValueError("bad chunk")
        transform = ExplodingTransform(error, at=1)
        source = ScriptedSource([b"a", b"b", b"c"])
        sink = MemorySink()

        with pytest.raises(ValueError) as excinfo:
            await run_pipeline([source, transform, sink])

        assert excinfo.value is error
        assert bytes(sink.data) == b"a"
        assert sink.closed is True
        assert transform.closed is True
        assert source.finished is True

    @pytest.mark.asyncio
    async def test_source_error_raised(self):
        error = ConnectionResetError("reset")
        source = ScriptedSource([b"a", b"b"], error=error, fail_at=1)
        sink = MemorySink()

        with pytest.raises(ConnectionResetError):
            await run_pipeline([source, sink])

        assert bytes(sink.data) == b"a"
        assert sink.closed is True

    @pytest.mark.asyncio
    async def test_finalization_error_surfaces_when_pump_succeeds(self):
        close_error = OSError("flush failed")
        transform = BadCloseTransform(close_error)
        sink = MemorySink()

        with pytest.raises(FinalizationError) as excinfo:
            await run_pipeline([ScriptedSource([b"a"]), transform, sink])

        assert excinfo.value.stage is transform
        assert excinfo.value.__cause__ is close_error
        assert sink.closed is True

    @pytest.mark.asyncio
    async def test_pump_error_wins_over_finalization_error(self):
        pump_error = ValueError("bad chunk")
        sink = MemorySink(close_error=OSError("close failed"))

        with pytest.raises(ValueError) as excinfo:
            await run_pipeline(
                [ScriptedSource([b"a"]), ExplodingTransform(pump_error), sink]
            )

        assert excinfo.value is pump_error
        assert sink.closed is True

    @pytest.mark.asyncio
    async def test_first_finalization_error_in_stage_order(self):
        first = BadCloseTransform(OSError("first"))
        second = BadCloseTransform(OSError("second"))

        with pytest.raises(FinalizationError) as excinfo:
            await run_pipeline([ScriptedSource([b"a"]), first, second, MemorySink()])

        assert excinfo.value.stage is first
