from __future__ import annotations

import pathlib
from functools import lru_cache
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator


class RetrySettings(BaseModel):
    attempts: int = Field(3, ge=1)
    delays_sec: List[float] = Field(default_factory=lambda: [1.0, 2.0, 4.0])
    statuses: List[int] = Field(
        default_factory=lambda: [408, 413, 429, 500, 502, 503, 504, 521, 522, 524]
    )

    @field_validator("delays_sec")
    @classmethod
    def _ensure_delays(cls, value: List[float]) -> List[float]:
        if not value:
            return [0.0]
        if any(delay < 0 for delay in value):
            raise ValueError("delays_sec must not contain negative values")
        return value

    def delay_for(self, retry_count: int) -> float:
        """Delay before the retry that follows ``retry_count`` (last value repeats)."""
        return self.delays_sec[min(retry_count, len(self.delays_sec) - 1)]


class HttpSettings(BaseModel):
    timeout_sec: float = Field(30.0, gt=0)
    chunk_size: int = Field(64 * 1024, gt=0)
    follow_redirects: bool = Field(True)
    headers: Dict[str, str] = Field(default_factory=dict)


class TempFileSettings(BaseModel):
    directory: Optional[str] = None
    prefix: str = Field("streamfetch-")
    suffix: str = Field(".part")
    fsync: bool = Field(False)


class DownloadSettings(BaseModel):
    signal_timeout_sec: float = Field(30.0, gt=0)


class LoggingSettings(BaseModel):
    level: str = Field("INFO")
    file: Optional[str] = Field("./logs/last_run.log")
    purge_previous: bool = Field(False)


class Config(BaseModel):
    retry: RetrySettings = Field(default_factory=RetrySettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    temp: TempFileSettings = Field(default_factory=TempFileSettings)
    download: DownloadSettings = Field(default_factory=DownloadSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _read_yaml(path: pathlib.Path) -> Dict:
    with path.open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


@lru_cache()
def load_config(path: str | pathlib.Path = "config.yaml") -> Config:
    config_path = pathlib.Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    raw = _read_yaml(config_path)
    try:
        return Config.model_validate(raw)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc


__all__ = [
    "Config",
    "RetrySettings",
    "HttpSettings",
    "TempFileSettings",
    "DownloadSettings",
    "LoggingSettings",
    "load_config",
]
