"""
Network health monitor.

Probes {base_url}/ping on a fixed interval and keeps only the latest
classification. The upload coordinator reads it as an admission gate.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union

import httpx

from ..config import Settings
from ..models import HealthSample, NetworkQuality, StatusIcon, UploaderConfig
from ..protocols import IAPIClient
from ..utils.events import safe_call

logger = logging.getLogger(__name__)

ALIVE = "alive"
HIGH_LATENCY_SECONDS = 0.01

StatusCallback = Callable[[StatusIcon, str], Union[None, Awaitable[None]]]


class NetworkHealthMonitor:
    """
    Periodic liveness probe.

    Usage:
        monitor = NetworkHealthMonitor(api, settings, status_callback=show)
        monitor.start_checking()
        ...
        if monitor.current_quality is NetworkQuality.POOR: ...
        monitor.stop_checking()
    """

    def __init__(
        self,
        api_client: IAPIClient,
        settings: Settings,
        config: Optional[UploaderConfig] = None,
        status_callback: Optional[StatusCallback] = None,
    ):
        self._api = api_client
        self._settings = settings
        self._config = config or UploaderConfig()
        self._status_callback = status_callback
        self._quality = NetworkQuality.POOR
        self._last_sample: Optional[HealthSample] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def current_quality(self) -> NetworkQuality:
        return self._quality

    @property
    def last_sample(self) -> Optional[HealthSample]:
        return self._last_sample

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def update_settings(self, settings: Settings) -> None:
        """Picked up by the next cycle."""
        self._settings = settings

    def start_checking(self) -> None:
        """Start the recurring probe. Must be called from a running event loop."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"[health] Started checking every {self._config.ping_interval}s")

    def stop_checking(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("[health] Stopped checking")

    async def aclose(self) -> None:
        task = self._task
        self.stop_checking()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        while True:
            await self.check_now()
            await asyncio.sleep(self._config.ping_interval)

    async def check_now(self) -> HealthSample:
        """Run one probe cycle, update the quality and notify the callback."""
        sample = await self._probe()
        self._quality = sample.quality
        self._last_sample = sample
        await self._notify(sample)
        return sample

    async def _probe(self) -> HealthSample:
        if not self._settings.configured:
            return _poor("No server configured")

        url = self._settings.ping_url
        try:
            response = await self._api.get(url, check_status=False, timeout=self._config.ping_timeout)
        except httpx.HTTPError as exc:
            logger.debug(f"[health] Ping {url} failed: {exc!r}")
            return _poor("Connection failed")
        except Exception as exc:
            logger.error(f"[health] Ping {url} could not be sent: {exc!r}")
            return _poor("Connection failed")

        if not response.is_success or not response.content:
            return _poor("Server unresponsive")

        try:
            body = response.json()
            status = body["status"]
            response_time = body["response_time"]
            if not isinstance(status, str) or isinstance(response_time, bool):
                raise TypeError("unexpected field types")
            response_time = float(response_time)
        except (ValueError, KeyError, TypeError) as exc:
            logger.debug(f"[health] Unparseable ping body: {exc!r}")
            return _poor("Parse error")

        latency_ms = response_time * 1000
        if status != ALIVE:
            return HealthSample(NetworkQuality.POOR, StatusIcon.RED, "Server abnormal", latency_ms)
        if response_time > HIGH_LATENCY_SECONDS:
            return HealthSample(
                NetworkQuality.FAIR, StatusIcon.YELLOW, f"High latency {latency_ms:.1f}ms", latency_ms
            )
        return HealthSample(NetworkQuality.GOOD, StatusIcon.GREEN, f"Connected {latency_ms:.1f}ms", latency_ms)

    async def _notify(self, sample: HealthSample) -> None:
        if self._status_callback is None:
            return
        await safe_call(self._status_callback, sample.icon, sample.text, label="[health] status callback")


def _poor(text: str) -> HealthSample:
    return HealthSample(NetworkQuality.POOR, StatusIcon.RED, text)
