"""Orchestrator data models."""
from dataclasses import dataclass
from typing import Any, Optional

from ..models import PollResult, UploadResult


@dataclass
class SendResult:
    """Result of sending one recording."""
    filename: str
    remote: bool
    upload: Optional[UploadResult] = None
    poll: Optional[PollResult] = None
    local_output: Any = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        if self.error:
            return False
        if not self.remote:
            return True
        if self.upload is None or not self.upload.success:
            return False
        return self.poll is None or self.poll.success
