from __future__ import annotations

import asyncio
from typing import AsyncIterator, Dict, Optional

import httpx

from streamfetch.config import HttpSettings, RetrySettings
from streamfetch.download.source import RetryableSource
from streamfetch.runtime.errors import HttpStatusError
from streamfetch.runtime.logging import logger


class HttpSource(RetryableSource):
    """
    Streams an HTTP response body and owns the retry policy for it.

    On a transport error or a transient status the source waits the
    configured delay, emits "retry" with ``retry_count + 1`` (while attempts
    remain) and re-raises, which tears the current attempt down.

    A client passed in is shared across attempts and left open; otherwise a
    client is created per source and closed on ``aclose``.
    """

    def __init__(
        self,
        url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        http: Optional[HttpSettings] = None,
        retry: Optional[RetrySettings] = None,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__()
        self.url = url
        self.method = method
        self.http = http or HttpSettings()
        self.retry = retry or RetrySettings()
        self.headers = {**self.http.headers, **(headers or {})}
        self._client = client
        self._owns_client = client is None
        self.status_code: Optional[int] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.http.timeout_sec,
                follow_redirects=self.http.follow_redirects,
            )
        return self._client

    async def _iter_chunks(self) -> AsyncIterator[bytes]:
        client = self._get_client()
        try:
            async with client.stream(
                self.method,
                self.url,
                headers=self.headers,
                timeout=self.http.timeout_sec,
            ) as response:
                self.status_code = response.status_code
                if response.is_error:
                    raise HttpStatusError(self.url, response.status_code)
                async for chunk in response.aiter_bytes(self.http.chunk_size):
                    yield chunk
        except (httpx.TransportError, HttpStatusError) as exc:
            await self._maybe_retry(exc)
            raise

    def is_retryable(self, error: Exception) -> bool:
        if isinstance(error, HttpStatusError):
            return error.status_code in self.retry.statuses
        return isinstance(error, httpx.TransportError)

    async def _maybe_retry(self, error: Exception) -> None:
        if not self.is_retryable(error):
            logger.debug("Not retrying", url=self.url, error=repr(error))
            return

        next_count = self.retry_count + 1
        if next_count >= self.retry.attempts:
            logger.error(
                "Retry attempts exhausted | attempts={} error={}",
                self.retry.attempts,
                str(error),
                url=self.url,
            )
            return

        delay = self.retry.delay_for(self.retry_count)
        logger.warning(
            "Retrying after failure | retry={} delay={}s error={}",
            next_count,
            delay,
            str(error),
            url=self.url,
        )
        if delay:
            await asyncio.sleep(delay)
        self.request_retry(next_count)

    async def _release(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()


__all__ = ["HttpSource"]
