from __future__ import annotations
import asyncio
import logging
from typing import Optional, Tuple

import httpx

logger = logging.getLogger("popui.http")

DEFAULT_TIMEOUT = httpx.Timeout(10.0, connect=5.0)
RETRY_BACKOFF: Tuple[float, ...] = (0.5, 1, 2)  # seconds
RETRYABLE_STATUS = (408, 429, 502, 503, 504)
RETRYABLE_EXC = (httpx.ConnectError, httpx.ReadTimeout, httpx.RemoteProtocolError)

class HttpClient:
    """
    Thin wrapper around httpx.AsyncClient with timeouts and opt-in retries.

    ``retries`` counts additional attempts after the first one; the default
    of 0 issues every request exactly once. A call can override it with a
    ``retries=`` keyword, e.g. ``retries=0`` for non-idempotent requests.
    """
    def __init__(
        self,
        timeout: httpx.Timeout | float = DEFAULT_TIMEOUT,
        retries: int = 0,
        backoff: Tuple[float, ...] = RETRY_BACKOFF,
        base_url: Optional[str] = None,
        headers: Optional[dict] = None,
    ) -> None:
        if not isinstance(timeout, httpx.Timeout):
            timeout = httpx.Timeout(timeout)
        self.timeout = timeout
        self.retries = max(0, retries)
        self.backoff = backoff
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            base_url=base_url or "",
            headers=headers or {},
            http2=True,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if "timeout" not in kwargs:
            kwargs["timeout"] = self.timeout
        attempts = max(0, kwargs.pop("retries", self.retries)) + 1

        for attempt in range(attempts):
            last = attempt == attempts - 1
            try:
                resp = await self._client.request(method, url, **kwargs)
                resp.raise_for_status()
                return resp
            except httpx.HTTPStatusError as e:
                if last or e.response.status_code not in RETRYABLE_STATUS:
                    raise
            except RETRYABLE_EXC:
                if last:
                    raise

            delay = self.backoff[min(attempt, len(self.backoff) - 1)]
            logger.warning("Retrying %s attempt=%d delay=%ss url=%s", method, attempt + 1, delay, url)
            await asyncio.sleep(delay)

        raise RuntimeError("unreachable")  # pragma: no cover

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

__all__ = ["HttpClient", "DEFAULT_TIMEOUT", "RETRY_BACKOFF"]
