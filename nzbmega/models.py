"""
Models for nzbmega.

Immutable dataclasses for values that never change once produced; the only
mutable model is UploadTask, which lives for a single upload.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


@dataclass(frozen=True)
class Credentials:
    """Resolved MEGA account credentials."""
    email: str
    password: str = field(repr=False)

    def __post_init__(self):
        if not self.email:
            raise ValueError("email is required")
        if not self.password:
            raise ValueError("password is required")


@dataclass(frozen=True)
class ServiceConfig:
    """SABnzbd connection parameters."""
    host: str = "127.0.0.1"
    port: int = 8080
    api_key: str = field(default="", repr=False)
    use_https: bool = False

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.host}:{self.port}"


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration for a pipeline run."""
    max_parallel_uploads: int = 4
    poll_interval: float = 2.0
    job_timeout: Optional[float] = None  # seconds, None waits forever
    remote_root: str = ""  # remote parent path, "" is the account root

    def __post_init__(self):
        if self.max_parallel_uploads < 1:
            raise ValueError("max_parallel_uploads must be at least 1")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")


@dataclass(frozen=True)
class Slot:
    """A completed unit of downloaded content."""
    name: str
    storage_path: Path
    job_id: Optional[str] = None


@dataclass(frozen=True)
class SlotFiles:
    """Files of a slot, captured once at materialization time."""
    base_dir: Path
    names: Tuple[str, ...]

    def path_of(self, name: str) -> Path:
        return self.base_dir / name

    def __len__(self) -> int:
        return len(self.names)


@dataclass(frozen=True)
class RemoteFolder:
    """Handle to a folder in the storage account."""
    name: str
    handle: str


@dataclass
class UploadTask:
    """Per-file unit of work."""
    source: Path
    folder: RemoteFolder
    total_bytes: int = 0
    bytes_transferred: int = 0
    started: bool = False
    error: Optional[str] = None

    @property
    def file_name(self) -> str:
        return self.source.name

    @property
    def percent(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return min(100.0, self.bytes_transferred / self.total_bytes * 100)


class SlotState(Enum):
    """Processing state of a slot."""
    PENDING = "pending"
    DOWNLOADED = "downloaded"
    FOLDER_CREATED = "folder_created"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    PUBLISHED = "published"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SlotState.PUBLISHED, SlotState.FAILED)


@dataclass(frozen=True)
class SlotResult:
    """Immutable outcome of processing one slot."""
    slot_name: str
    state: SlotState
    url: Optional[str] = None
    error: Optional[str] = None
    failed_stage: Optional[SlotState] = None
    failed_files: Tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return self.state == SlotState.PUBLISHED

    @classmethod
    def ok(cls, slot_name: str, url: str):
        return cls(slot_name=slot_name, state=SlotState.PUBLISHED, url=url)

    @classmethod
    def fail(
        cls,
        slot_name: str,
        stage: SlotState,
        error: str,
        failed_files: Tuple[str, ...] = ()
    ):
        return cls(
            slot_name=slot_name,
            state=SlotState.FAILED,
            error=error,
            failed_stage=stage,
            failed_files=tuple(failed_files)
        )

    def describe(self) -> str:
        """One-line human readable summary."""
        if self.success:
            return f"{self.slot_name}: {self.url}"
        stage = self.failed_stage.value if self.failed_stage else "unknown"
        return f"{self.slot_name}: failed after {stage}: {self.error}"
