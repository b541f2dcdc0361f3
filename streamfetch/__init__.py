from streamfetch.download import (
    DigestTransform,
    DownloadResult,
    GunzipTransform,
    PassthroughTransform,
    RetryableSource,
    TempSinkManager,
    download_to_temp_file,
)
from streamfetch.sources import HttpSource

__version__ = "0.1.0"

__all__ = [
    "DigestTransform",
    "DownloadResult",
    "GunzipTransform",
    "PassthroughTransform",
    "RetryableSource",
    "TempSinkManager",
    "download_to_temp_file",
    "HttpSource",
]
