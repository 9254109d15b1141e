"""Exceptions raised inside sendvideos services."""
from typing import Any, Optional


class SendVideosError(Exception):
    """Base class for sendvideos errors."""


class ConfigError(SendVideosError):
    """Raised when settings are missing or malformed."""


class APIError(SendVideosError):
    """Raised when the server answers with a non-2xx status."""

    def __init__(self, status_code: int, method: str, url: str, detail: Optional[Any] = None):
        self.status_code = status_code
        self.method = method
        self.url = url
        self.detail = detail
        super().__init__(f"API error {status_code} on {method} {url}: {detail}")


class FileNotReadyError(SendVideosError):
    """Raised when a file is still held by another writer after the wait budget."""

    def __init__(self, path, waited: float):
        self.path = path
        self.waited = waited
        super().__init__(f"File still locked after {waited:.1f}s: {path}")
