"""
Retry-aware streaming download into temp files.

    async def fetch(url):
        result = await download_to_temp_file(
            lambda: HttpSource(url),
            lambda: [DigestTransform("sha256")],
        )
        return result.file_path, result.transforms[0].hexdigest
"""

from .controller import Attempt, AttemptState, DownloadResult, download_to_temp_file
from .pipeline import Sink, SourceStage, Stage, Transform, finalize_stages, run_pipeline
from .signal import RetryOutcome, RetrySignal, watch_retry
from .sink import SinkAllocator, TempFileSink, TempSinkManager
from .source import CLOSE, END, RETRY, RetryableSource
from .transforms import BaseTransform, DigestTransform, GunzipTransform, PassthroughTransform

__all__ = [
    "Attempt",
    "AttemptState",
    "DownloadResult",
    "download_to_temp_file",
    "Sink",
    "SourceStage",
    "Stage",
    "Transform",
    "finalize_stages",
    "run_pipeline",
    "RetryOutcome",
    "RetrySignal",
    "watch_retry",
    "SinkAllocator",
    "TempFileSink",
    "TempSinkManager",
    "CLOSE",
    "END",
    "RETRY",
    "RetryableSource",
    "BaseTransform",
    "DigestTransform",
    "GunzipTransform",
    "PassthroughTransform",
]
