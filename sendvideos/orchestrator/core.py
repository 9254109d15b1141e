"""Core orchestrator - health check, chunked upload, then status polling."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from ..config import Settings
from ..models import PollResult, PollState, UploaderConfig, UploadResult, UploadStatus
from ..services.api_client import HTTPAPIClient
from ..services.chunked_upload import ChunkedUploadCoordinator, ProgressCallback
from ..services.health import NetworkHealthMonitor, StatusCallback
from ..services.poller import PollSession, TaskStatusPoller
from ..utils.events import EventEmitter, call_listener
from .models import SendResult

logger = logging.getLogger(__name__)

LocalProcessor = Callable[[Path], Union[Any, Awaitable[Any]]]

UPLOAD_MESSAGES = {
    UploadStatus.SUCCESS: "Video upload complete",
    UploadStatus.REJECTED: "Poor network quality, upload canceled",
    UploadStatus.NOT_READY: "File is still being written, upload canceled",
    UploadStatus.FAILED: "Upload failed, some chunks could not be sent",
    UploadStatus.TIMEOUT: "Upload timed out",
}

POLL_MESSAGES = {
    PollState.COMPLETED: "Video processing finished",
    PollState.EXHAUSTED: "Processing timeout, check again later",
    PollState.PARSE_ERROR: "Status parse error",
    PollState.CANCELLED: "Status polling cancelled",
}


class VideoSender:
    """
    Composition root for the upload pipeline.

    Follows:
    - Dependency Injection (services built here, injected into each other)
    - Single Responsibility (each service handles one stage)

    Usage:
        async with VideoSender(Settings.from_env()) as sender:
            sender.on("notify", print)
            result = await sender.send(video_path)
    """

    def __init__(
        self,
        settings: Settings,
        config: Optional[UploaderConfig] = None,
        status_callback: Optional[StatusCallback] = None,
        local_processor: Optional[LocalProcessor] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings
        self._config = config or UploaderConfig()
        self._status_callback = status_callback
        self._local_processor = local_processor
        self._transport = transport
        self._events = EventEmitter()

        # Services (initialized in __aenter__)
        self._api_client: Optional[HTTPAPIClient] = None
        self._monitor: Optional[NetworkHealthMonitor] = None
        self._uploader: Optional[ChunkedUploadCoordinator] = None
        self._poller: Optional[TaskStatusPoller] = None

    async def __aenter__(self):
        """Initialize services."""
        timeout = httpx.Timeout(self._config.io_timeout, connect=self._config.connect_timeout)
        self._api_client = HTTPAPIClient(timeout=timeout, transport=self._transport)
        await self._api_client.__aenter__()

        self._monitor = NetworkHealthMonitor(
            self._api_client,
            self._settings,
            self._config,
            status_callback=self._status_callback,
        )
        self._uploader = ChunkedUploadCoordinator(
            self._api_client,
            self._settings,
            self._config,
            health=self._monitor if self._config.monitor_network else None,
        )
        self._poller = TaskStatusPoller(self._api_client, self._settings, self._config)

        if self._config.monitor_network:
            # quality holds a real sample before the first upload
            await self._monitor.check_now()
            self._monitor.start_checking()
        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        if self._monitor:
            await self._monitor.aclose()
        if self._api_client:
            await self._api_client.__aexit__(*args)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def monitor(self) -> NetworkHealthMonitor:
        assert self._monitor is not None
        return self._monitor

    def on(self, event_name: str, callback: Callable) -> None:
        """Subscribe to notify, upload_complete or poll_complete."""
        self._events.on(event_name, callback)

    def off(self, event_name: str, callback: Callable) -> None:
        self._events.off(event_name, callback)

    def update_settings(self, settings: Settings) -> None:
        """Swap in new settings; services read them on their next request."""
        self._settings = settings
        for service in (self._monitor, self._uploader, self._poller):
            if service is not None:
                service.update_settings(settings)

    async def send(
        self,
        path: Path,
        poll: bool = True,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SendResult:
        """Handle a finished recording according to the processing mode."""
        path = Path(path)
        if not self._settings.remote_upload:
            return await self._process_locally(path)

        upload = await self.upload(path, progress_callback=progress_callback)
        result = SendResult(filename=path.name, remote=True, upload=upload)
        if poll and upload.success and upload.task_id:
            result.poll = await self.poll(upload.task_id)
        return result

    async def upload(
        self,
        path: Path,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        assert self._uploader is not None
        await self._notify("Preparing video upload...")
        result = await self._uploader.upload(Path(path), progress_callback=progress_callback)
        await self._notify(UPLOAD_MESSAGES[result.status])
        if result.success and result.task_id:
            await self._notify(f"Task ID: {result.task_id}")
        await self._events.emit("upload_complete", result)
        return result

    def start_polling(
        self,
        task_id: str,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> PollSession:
        """Start a poll session the caller may cancel."""
        assert self._poller is not None
        return self._poller.poll_status(task_id, interval=interval, max_attempts=max_attempts)

    async def poll(
        self,
        task_id: str,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> PollResult:
        session = self.start_polling(task_id, interval=interval, max_attempts=max_attempts)
        result = await session.wait()
        await self._notify(POLL_MESSAGES[result.state])
        if result.processing is not None:
            await self._notify(result.processing.summary())
        await self._events.emit("poll_complete", result)
        return result

    async def _process_locally(self, path: Path) -> SendResult:
        if self._local_processor is None:
            logger.warning(f"Local processing mode but no local processor configured, skipping {path.name}")
            await self._notify("Local processing is not available")
            return SendResult(filename=path.name, remote=False, error="No local processor configured")

        try:
            output = await call_listener(self._local_processor, path)
        except Exception as e:
            logger.error(f"Local processing failed for {path.name}: {e}")
            await self._notify("Local processing failed")
            return SendResult(filename=path.name, remote=False, error=str(e) or type(e).__name__)
        return SendResult(filename=path.name, remote=False, local_output=output)

    async def _notify(self, message: str) -> None:
        await self._events.emit("notify", message)
