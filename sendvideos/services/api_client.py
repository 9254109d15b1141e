"""HTTP adapter for upload, status and ping requests."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from ..errors import APIError

logger = logging.getLogger(__name__)


class HTTPAPIClient:
    """
    HTTP client adapter around httpx.AsyncClient.

    Implements IAPIClient protocol.
    """

    def __init__(
        self,
        timeout: Union[float, httpx.Timeout] = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")
        return self._client

    async def post(
        self,
        url: str,
        data: Optional[Dict[str, str]] = None,
        files: Optional[Dict[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        retries: int = 0,
    ) -> httpx.Response:
        """
        POST and return the response.

        Transport errors and 5xx answers are retried `retries` times with a
        linear backoff; any other non-2xx raises APIError immediately.
        """
        client = self._require_client()
        max_attempts = retries + 1
        last_exception: Optional[Exception] = None

        for attempt in range(max_attempts):
            try:
                response = await client.post(url, data=data, files=files, headers=headers)

                if response.status_code >= 500 and attempt < max_attempts - 1:
                    logger.debug(f"POST {url} -> {response.status_code}, retrying ({attempt + 1}/{retries})")
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue

                if not response.is_success:
                    raise APIError(response.status_code, "POST", url, _error_detail(response))

                return response
            except httpx.RequestError as exc:
                last_exception = exc
                if attempt < max_attempts - 1:
                    logger.debug(f"POST {url} failed: {exc!r}, retrying ({attempt + 1}/{retries})")
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise

        if last_exception:
            raise last_exception
        raise RuntimeError(f"Failed to POST {url} after {max_attempts} attempts")

    async def get(
        self,
        url: str,
        check_status: bool = True,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """
        GET once, no retries.

        `timeout` bounds the whole call on top of the per-phase httpx timeouts.
        """
        client = self._require_client()
        if timeout is None:
            response = await client.get(url)
        else:
            try:
                response = await asyncio.wait_for(client.get(url, timeout=timeout), timeout)
            except asyncio.TimeoutError as exc:
                raise httpx.TimeoutException(f"GET {url} exceeded {timeout}s") from exc

        if check_status and not response.is_success:
            raise APIError(response.status_code, "GET", url, _error_detail(response))
        return response


def _error_detail(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
