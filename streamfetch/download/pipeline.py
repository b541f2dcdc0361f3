"""
Byte pipeline: source -> transforms -> sink.

The pump stops at the first stage error. Every stage is then closed,
pass or fail, so the sink's file handle is released before the caller
touches the file again.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from typing import Any, AsyncIterator, Optional, Protocol, Sequence, runtime_checkable

from streamfetch.runtime.errors import FinalizationError
from streamfetch.runtime.logging import logger


@runtime_checkable
class Stage(Protocol):
    async def aclose(self) -> None:  # pragma: no cover - protocol
        ...


class SourceStage(Stage, Protocol):
    def chunks(self) -> AsyncIterator[bytes]:  # pragma: no cover - protocol
        ...


class Transform(Stage, Protocol):
    async def transform(self, chunk: bytes) -> bytes:  # pragma: no cover - protocol
        ...

    async def flush(self) -> bytes:  # pragma: no cover - protocol
        ...


class Sink(Stage, Protocol):
    async def write(self, chunk: bytes) -> None:  # pragma: no cover - protocol
        ...


async def run_pipeline(stages: Sequence[Any]) -> None:
    """
    Drive bytes from ``stages[0]`` through ``stages[1:-1]`` into ``stages[-1]``.

    Raises:
        The pump's own error if streaming failed, otherwise FinalizationError
        for the first stage that failed to close.
    """
    if len(stages) < 2:
        raise ValueError("a pipeline needs at least a source and a sink")

    source, *transforms, sink = stages
    pipe_error: Optional[Exception] = None
    try:
        await _pump(source, transforms, sink)
    except Exception as exc:
        pipe_error = exc
        logger.debug("Pipeline aborted", error=repr(exc))
    finally:
        finalize_error = await finalize_stages(stages)

    if pipe_error is not None:
        raise pipe_error
    if finalize_error is not None:
        raise finalize_error


async def finalize_stages(stages: Sequence[Stage]) -> Optional[FinalizationError]:
    """Close every stage concurrently; return the first failure in stage order."""
    results = await asyncio.gather(
        *(stage.aclose() for stage in stages), return_exceptions=True
    )
    for stage, result in zip(stages, results):
        if isinstance(result, Exception):
            logger.debug(
                "Stage failed to finalize",
                stage=type(stage).__name__,
                error=repr(result),
            )
            error = FinalizationError(stage, result)
            error.__cause__ = result
            return error
    return None


async def _pump(source: SourceStage, transforms: Sequence[Transform], sink: Sink) -> None:
    async with aclosing(source.chunks()) as chunks:
        async for chunk in chunks:
            await _push(chunk, transforms, sink)

    for index, transform in enumerate(transforms):
        tail = await transform.flush()
        await _push(tail, transforms[index + 1 :], sink)


async def _push(chunk: bytes, transforms: Sequence[Transform], sink: Sink) -> None:
    for transform in transforms:
        if not chunk:
            return
        chunk = await transform.transform(chunk)
    if chunk:
        await sink.write(chunk)


__all__ = ["Stage", "SourceStage", "Transform", "Sink", "run_pipeline", "finalize_stages"]
