from __future__ import annotations

import argparse
import asyncio
import os
import shutil
import sys
import zlib
from pathlib import Path
from typing import List, Optional, Sequence

import httpx
import yaml
from dotenv import load_dotenv

from streamfetch.config import Config, load_config
from streamfetch.download import (
    BaseTransform,
    DigestTransform,
    DownloadResult,
    GunzipTransform,
    TempSinkManager,
    download_to_temp_file,
)
from streamfetch.runtime import DownloadError, logger, setup_logging
from streamfetch.sources import HttpSource


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Download a URL into a temp file with retries")
    parser.add_argument("url", help="URL to download")
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a config.yaml file (default: $STREAMFETCH_CONFIG, else built-in defaults)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Move the finished temp file to this path",
    )
    parser.add_argument(
        "--sha256",
        action="store_true",
        help="Print the SHA-256 digest of the stored bytes",
    )
    parser.add_argument(
        "--gunzip",
        action="store_true",
        help="Decompress a gzip response body before storing it",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Override the configured log level",
    )
    return parser.parse_args(argv)


def resolve_config(path: Optional[Path]) -> Config:
    if path is None:
        env_path = os.getenv("STREAMFETCH_CONFIG")
        if not env_path:
            return Config()
        path = Path(env_path)
    return load_config(path)


def build_transforms(args: argparse.Namespace) -> List[BaseTransform]:
    transforms: List[BaseTransform] = []
    if args.gunzip:
        transforms.append(GunzipTransform())
    if args.sha256:
        transforms.append(DigestTransform("sha256"))
    return transforms


async def fetch(args: argparse.Namespace, config: Config) -> DownloadResult:
    sinks = TempSinkManager(config.temp)
    async with httpx.AsyncClient(
        timeout=config.http.timeout_sec,
        follow_redirects=config.http.follow_redirects,
    ) as client:
        create_transforms = (lambda: build_transforms(args)) if (args.gunzip or args.sha256) else None
        return await download_to_temp_file(
            lambda: HttpSource(args.url, client=client, http=config.http, retry=config.retry),
            create_transforms,
            sinks=sinks,
            signal_timeout=config.download.signal_timeout_sec,
        )


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    load_dotenv()

    try:
        config = resolve_config(args.config)
    except (OSError, RuntimeError, yaml.YAMLError) as exc:
        logger.error("Could not load configuration: {}", str(exc))
        return 1

    if args.log_level:
        config = config.model_copy(
            update={"logging": config.logging.model_copy(update={"level": args.log_level})}
        )
    setup_logging(config.logging)

    logger.info("Downloading {}", args.url)
    try:
        result = asyncio.run(fetch(args, config))
    except (DownloadError, httpx.HTTPError, OSError, zlib.error) as exc:
        logger.error("Download failed: {}", str(exc))
        return 1

    final_path = result.file_path
    if args.output:
        try:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            final_path = Path(shutil.move(str(result.file_path), str(args.output)))
        except OSError as exc:
            logger.error(
                "Could not move download to {}: {} (kept at {})",
                args.output,
                str(exc),
                result.file_path,
            )
            return 1

    print(final_path)
    for transform in result.transforms or ():
        if isinstance(transform, DigestTransform):
            print(f"{transform.algorithm}:{transform.hexdigest}")

    logger.info(
        "[BUSINESS] Done | attempts={} retries={} elapsed={:.2f}s",
        result.stats.attempts,
        result.stats.retries,
        result.stats.elapsed_sec,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
