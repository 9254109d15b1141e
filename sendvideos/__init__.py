"""
sendvideos - chunked video upload client with server health checks and
task status polling.

Usage:
    from sendvideos import VideoSender, Settings

    async with VideoSender(Settings(base_url="http://192.168.1.20:5000", remote_upload=True)) as sender:
        result = await sender.send(video_path)

    # Or use the services directly
    async with HTTPAPIClient() as api:
        coordinator = ChunkedUploadCoordinator(api, settings)
        upload = await coordinator.upload(video_path)
        if upload.success and upload.task_id:
            session = TaskStatusPoller(api, settings).poll_status(upload.task_id)
            outcome = await session.wait()
"""
from .config import Settings
from .errors import APIError, ConfigError, FileNotReadyError, SendVideosError
from .models import (
    HealthSample,
    NetworkQuality,
    PollResult,
    PollState,
    ProcessingResult,
    StatusIcon,
    UploaderConfig,
    UploadResult,
    UploadStatus,
)
from .orchestrator import SendResult, VideoSender
from .services import (
    ChunkedUploadCoordinator,
    HTTPAPIClient,
    NetworkHealthMonitor,
    PollSession,
    TaskStatusPoller,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "VideoSender",
    "SendResult",
    "Settings",
    # Models
    "HealthSample",
    "NetworkQuality",
    "PollResult",
    "PollState",
    "ProcessingResult",
    "StatusIcon",
    "UploaderConfig",
    "UploadResult",
    "UploadStatus",
    # Services
    "ChunkedUploadCoordinator",
    "HTTPAPIClient",
    "NetworkHealthMonitor",
    "PollSession",
    "TaskStatusPoller",
    # Errors
    "APIError",
    "ConfigError",
    "FileNotReadyError",
    "SendVideosError",
]
