"""Server settings read by the upload, poll and health services."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigError

TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """
    Read-only view of the persisted key-value settings.

    base_url: server root, e.g. http://192.168.1.20:5000
    remote_upload: True uploads recordings, False hands them to local processing
    upload_url: explicit upload endpoint, defaults to {base_url}/upload
    """
    base_url: str = ""
    remote_upload: bool = False
    upload_url: Optional[str] = None

    @property
    def configured(self) -> bool:
        return bool(self.base_url.strip())

    @property
    def ping_url(self) -> str:
        return f"{self._root}/ping"

    @property
    def upload_endpoint(self) -> str:
        if self.upload_url:
            return self.upload_url
        return f"{self._root}/upload"

    @property
    def status_url(self) -> str:
        endpoint = self.upload_endpoint.rstrip("/")
        if endpoint.endswith("/upload"):
            endpoint = endpoint[: -len("/upload")]
        return f"{endpoint}/check_status"

    @property
    def _root(self) -> str:
        return self.base_url.strip().rstrip("/")

    def validate(self) -> "Settings":
        url = self.base_url.strip()
        if not url:
            raise ConfigError("URL cannot be empty")
        if not url.startswith(("http://", "https://")):
            raise ConfigError("URL must start with http:// or https://")
        return self

    def with_base_url(self, base_url: str) -> "Settings":
        return Settings(base_url=base_url, remote_upload=self.remote_upload, upload_url=self.upload_url)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            base_url=env.get("SENDVIDEOS_BASE_URL", ""),
            remote_upload=env.get("SENDVIDEOS_REMOTE_UPLOAD", "").strip().lower() in TRUE_VALUES,
            upload_url=env.get("SENDVIDEOS_UPLOAD_URL") or None,
        )
