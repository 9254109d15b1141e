"""
Models for sendvideos.

Immutable dataclasses for configuration and results, plus the mutable
job state shared by chunk workers.
"""
import os
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

MB = 1024 * 1024


class NetworkQuality(Enum):
    """Latest classification of the server connection."""
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class StatusIcon(Enum):
    """Indicator colour handed to the status callback."""
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


@dataclass(frozen=True)
class HealthSample:
    """One health probe outcome."""
    quality: NetworkQuality
    icon: StatusIcon
    text: str
    latency_ms: Optional[float] = None


class UploadStatus(Enum):
    """Upload operation status."""
    SUCCESS = "success"
    REJECTED = "rejected"    # admission check failed, no I/O
    NOT_READY = "not_ready"  # file stayed locked
    FAILED = "failed"        # at least one chunk failed
    TIMEOUT = "timeout"      # join ceiling exceeded


@dataclass(frozen=True)
class UploadResult:
    """Immutable result of one upload job."""
    filename: str
    status: UploadStatus = UploadStatus.SUCCESS
    task_id: Optional[str] = None
    file_id: Optional[str] = None
    total_chunks: int = 0
    succeeded_chunks: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == UploadStatus.SUCCESS

    @classmethod
    def ok(cls, filename: str, file_id: str, total_chunks: int, task_id: Optional[str] = None):
        return cls(
            filename=filename,
            status=UploadStatus.SUCCESS,
            task_id=task_id,
            file_id=file_id,
            total_chunks=total_chunks,
            succeeded_chunks=total_chunks,
        )

    @classmethod
    def fail(cls, filename: str, status: UploadStatus, error: str, **kwargs):
        return cls(filename=filename, status=status, error=error, **kwargs)


@dataclass(frozen=True)
class ChunkTask:
    """Half-open byte range [start, end) of the source file."""
    index: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


def count_chunks(file_size: int, chunk_size: int) -> int:
    """ceil(file_size / chunk_size)."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return (file_size + chunk_size - 1) // chunk_size


def plan_chunks(file_size: int, chunk_size: int) -> List[ChunkTask]:
    """Split [0, file_size) into consecutive chunk ranges."""
    return [
        ChunkTask(
            index=i,
            start=i * chunk_size,
            end=min((i + 1) * chunk_size, file_size),
        )
        for i in range(count_chunks(file_size, chunk_size))
    ]


def generate_short_name(original_name: str) -> str:
    """8-character random token plus the original extension."""
    token = uuid.uuid4().hex[:8]
    return f"{token}{Path(original_name).suffix}"


@dataclass
class UploadJob:
    """
    State of one file's upload attempt.

    success_count and has_error are written by concurrent chunk workers.
    All writes happen on the event loop thread; has_error never goes back
    to False once set.
    """
    path: Path
    file_size: int
    chunk_size: int
    file_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    short_name: str = ""
    success_count: int = 0
    done_count: int = 0
    has_error: bool = False
    task_id: Optional[str] = None

    def __post_init__(self):
        if not self.short_name:
            self.short_name = generate_short_name(self.path.name)

    @property
    def original_name(self) -> str:
        return self.path.name

    @property
    def total_chunks(self) -> int:
        return count_chunks(self.file_size, self.chunk_size)

    @property
    def last_index(self) -> int:
        return self.total_chunks - 1

    def chunks(self) -> List[ChunkTask]:
        return plan_chunks(self.file_size, self.chunk_size)

    def mark_error(self) -> None:
        self.has_error = True

    def record_success(self) -> None:
        self.success_count += 1

    def record_done(self) -> int:
        self.done_count += 1
        return self.done_count


class PollState(Enum):
    """Poll session states. Everything except POLLING is terminal."""
    POLLING = "polling"
    COMPLETED = "completed"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    PARSE_ERROR = "parse_error"


@dataclass(frozen=True)
class ProcessingResult:
    """Server-side processing outcome from the status endpoint."""
    duration: Optional[float] = None
    size: Optional[float] = None
    video_url: Optional[str] = None
    info: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ProcessingResult":
        return cls(
            duration=_as_number(payload.get("duration")),
            size=_as_number(payload.get("size")),
            video_url=payload.get("video_url"),
            info=None if payload.get("info") is None else str(payload.get("info")),
            raw=dict(payload),
        )

    def summary(self) -> str:
        lines = ["Video processing finished"]
        if self.duration is not None:
            lines.append(f"Duration: {self.duration:g}s")
        if self.size is not None:
            lines.append(f"Size: {self.size:g}KB")
        if self.video_url:
            lines.append(f"URL: {self.video_url}")
        if self.info:
            lines.append(f"Info: {self.info}")
        return "\n".join(lines)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class PollResult:
    """Terminal outcome of a poll session."""
    task_id: str
    state: PollState
    attempts: int
    payload: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.state == PollState.COMPLETED

    @property
    def processing(self) -> Optional[ProcessingResult]:
        if self.payload is None:
            return None
        return ProcessingResult.from_payload(self.payload)


@dataclass(frozen=True)
class UploaderConfig:
    """Immutable tuning knobs for uploads, polling and health checks."""
    chunk_size: int = 20 * MB
    max_concurrent_uploads: int = 3
    chunk_retries: int = 0
    file_ready_interval: float = 1.5
    file_ready_timeout: Optional[float] = 120.0  # None waits forever
    join_timeout: float = 300.0
    connect_timeout: float = 30.0
    io_timeout: float = 60.0
    ping_interval: float = 0.5
    poll_interval: float = 2.0
    poll_max_attempts: int = 30
    monitor_network: bool = True

    @property
    def ping_timeout(self) -> float:
        return self.ping_interval * 2

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, **overrides) -> "UploaderConfig":
        """Build config honouring SENDVIDEOS_MAX_PARALLEL and SENDVIDEOS_CHUNK_RETRIES."""
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        if env.get("SENDVIDEOS_MAX_PARALLEL"):
            values["max_concurrent_uploads"] = int(env["SENDVIDEOS_MAX_PARALLEL"])
        if env.get("SENDVIDEOS_CHUNK_RETRIES"):
            values["chunk_retries"] = int(env["SENDVIDEOS_CHUNK_RETRIES"])
        values.update(overrides)
        return cls(**values)
