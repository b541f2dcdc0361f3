"""
Attempt loop: repeat source -> transforms -> temp file until the source
stops asking for retries.

Each attempt reconciles two signals: the pipeline's own error, and the
source's retry decision (delivered through RetrySignal). A requested retry
beats any pipeline error. Every attempt that does not become the result has
its temp file deleted, and only after all its stages have been closed.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Generic, Optional, Sequence, Tuple, TypeVar, Union

from streamfetch.config import DownloadSettings
from streamfetch.download.signal import RetryOutcome, RetrySignal, watch_retry
from streamfetch.download.pipeline import Transform, finalize_stages, run_pipeline
from streamfetch.download.sink import SinkAllocator, TempSinkManager
from streamfetch.download.source import RetryableSource
from streamfetch.runtime.errors import SourceContractError
from streamfetch.runtime.logging import attempt_scope, correlation_scope, logger
from streamfetch.runtime.progress import DownloadProgress, DownloadSnapshot

T = TypeVar("T")
TransformsT = TypeVar("TransformsT", bound=Sequence[Transform])

MaybeAwaitable = Union[T, Awaitable[T]]
SourceFactory = Callable[[], MaybeAwaitable[RetryableSource]]
TransformsFactory = Callable[[], MaybeAwaitable[TransformsT]]


class AttemptState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    SUCCESS = "success"
    RETRYING = "retrying"
    FAILED = "failed"


@dataclass
class Attempt:
    number: int
    retry_count: int
    source: RetryableSource
    transforms: Optional[Sequence[Transform]]
    file_path: Optional[Path] = None
    state: AttemptState = AttemptState.STARTING

    def transition(self, state: AttemptState) -> None:
        logger.debug(
            "Attempt state {} -> {}",
            self.state.value,
            state.value,
            retry_count=self.retry_count,
        )
        self.state = state


@dataclass(frozen=True)
class DownloadResult(Generic[TransformsT]):
    file_path: Path
    transforms: Optional[TransformsT]
    stats: DownloadSnapshot


async def download_to_temp_file(
    create_source: SourceFactory,
    create_transforms: Optional[TransformsFactory] = None,
    *,
    sinks: Optional[SinkAllocator] = None,
    signal_timeout: Optional[float] = None,
) -> DownloadResult:
    """
    Download a retryable source into a fresh temp file.

    Args:
        create_source: Called once per attempt; returns a RetryableSource
            (or an awaitable of one).
        create_transforms: Optional, called once per attempt; returns the
            ordered transform stages placed between source and sink.
        sinks: Temp file allocator (default: TempSinkManager()).
        signal_timeout: Seconds to wait, once the pipeline has settled, for
            the source to signal retry/close/end before treating it as broken.

    Returns:
        DownloadResult of the attempt that finished without error and without
        a retry request.

    Raises:
        The error that ended the last non-retried attempt,
        TempFileDeletionError if a discarded temp file could not be removed,
        SourceContractError if the source never signalled a decision.
    """
    sinks = sinks or TempSinkManager()
    if signal_timeout is None:
        signal_timeout = DownloadSettings().signal_timeout_sec

    progress = DownloadProgress()
    retry_count = 0

    with correlation_scope():
        while True:
            number = progress.begin_attempt()
            with attempt_scope(number):
                attempt, signal = await _start_attempt(
                    number, retry_count, create_source, create_transforms
                )
                logger.info("Starting attempt", retry_count=retry_count)
                try:
                    sink = await sinks.allocate()
                except Exception:
                    signal.detach()
                    await _close_quietly([attempt.source, *(attempt.transforms or ())])
                    raise
                attempt.file_path = sink.path
                attempt.transition(AttemptState.RUNNING)

                stages = [attempt.source, *(attempt.transforms or ()), sink]
                try:
                    settled = asyncio.Event()
                    pipeline_error, outcome = await asyncio.gather(
                        _run_stages(stages, settled),
                        _await_outcome(signal, settled, signal_timeout),
                    )
                except SourceContractError:
                    attempt.transition(AttemptState.FAILED)
                    await sinks.remove(sink.path)
                    progress.mark_discarded()
                    raise

                if not outcome.should_retry and pipeline_error is None:
                    attempt.transition(AttemptState.SUCCESS)
                    stats = progress.snapshot()
                    logger.info(
                        "[BUSINESS] Download completed | attempts={} bytes={} elapsed={:.2f}s",
                        stats.attempts,
                        getattr(sink, "bytes_written", "-"),
                        stats.elapsed_sec,
                        path=str(sink.path),
                    )
                    return DownloadResult(
                        file_path=sink.path,
                        transforms=attempt.transforms,
                        stats=stats,
                    )

                await sinks.remove(sink.path)
                progress.mark_discarded()

                if not outcome.should_retry:
                    attempt.transition(AttemptState.FAILED)
                    logger.error("Download failed", error=repr(pipeline_error))
                    raise pipeline_error

                attempt.transition(AttemptState.RETRYING)
                progress.mark_retry()
                logger.warning(
                    "Source requested retry | next_retry_count={} discarded_error={}",
                    outcome.retry_count,
                    repr(pipeline_error) if pipeline_error is not None else "-",
                )
                retry_count = outcome.retry_count


async def _start_attempt(
    number: int,
    retry_count: int,
    create_source: SourceFactory,
    create_transforms: Optional[TransformsFactory],
) -> Tuple[Attempt, RetrySignal]:
    transforms = None
    if create_transforms is not None:
        transforms = await _resolve(create_transforms())
    try:
        source = await _resolve(create_source())
    except Exception:
        await _close_quietly(transforms or ())
        raise
    signal = watch_retry(source, retry_count)
    attempt = Attempt(
        number=number,
        retry_count=retry_count,
        source=source,
        transforms=transforms,
    )
    return attempt, signal


async def _close_quietly(stages: Sequence[Any]) -> None:
    """Close stages of an attempt that never ran; the original error wins."""
    if not stages:
        return
    finalize_error = await finalize_stages(stages)
    if finalize_error is not None:
        logger.warning("Closing unused stages failed", error=repr(finalize_error))


async def _run_stages(stages: Sequence[Any], settled: asyncio.Event) -> Optional[Exception]:
    try:
        await run_pipeline(stages)
    except Exception as exc:
        return exc
    else:
        return None
    finally:
        settled.set()


async def _await_outcome(
    signal: RetrySignal, settled: asyncio.Event, timeout: float
) -> RetryOutcome:
    """
    Wait for the source's decision. The timeout only starts once the
    pipeline has settled and every stage, the source included, is closed.
    """
    settled_wait = asyncio.ensure_future(settled.wait())
    try:
        await asyncio.wait(
            {signal.outcome, settled_wait}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        settled_wait.cancel()
    try:
        return await asyncio.wait_for(signal.wait(), timeout)
    except asyncio.TimeoutError:
        signal.detach()
        raise SourceContractError(
            f"{type(signal.source).__name__} closed without signalling retry, close or end"
        ) from None


async def _resolve(value: MaybeAwaitable[T]) -> T:
    if inspect.isawaitable(value):
        return await value
    return value


__all__ = [
    "Attempt",
    "AttemptState",
    "DownloadResult",
    "download_to_temp_file",
]
