"""Services for sendvideos."""
from .api_client import HTTPAPIClient
from .chunked_upload import ChunkedUploadCoordinator
from .health import NetworkHealthMonitor
from .poller import PollSession, TaskStatusPoller

__all__ = [
    "HTTPAPIClient",
    "ChunkedUploadCoordinator",
    "NetworkHealthMonitor",
    "PollSession",
    "TaskStatusPoller",
]
