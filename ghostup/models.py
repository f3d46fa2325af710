"""
Models for ghostup.

Immutable dataclasses and enums shared by every stage of the upload pipeline.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .errors import UploadError


KIB = 1024
MIB = 1024 * KIB
GIB = 1024 * MIB

SUPPORTED_FILE_TYPES = frozenset({
    # Images
    "image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp", "image/svg+xml",
    # Documents
    "application/pdf", "text/plain", "application/json", "text/csv",
    # Archives
    "application/zip", "application/x-rar-compressed", "application/x-7z-compressed",
    # Media
    "video/mp4", "video/avi", "video/mov", "audio/mp3", "audio/wav", "audio/ogg",
    # Code
    "text/javascript", "text/css", "text/html", "application/javascript",
})


class TransferStrategy(Enum):
    """How the bytes of a file are sent."""
    BUFFERED = "buffered"
    STREAMED = "streamed"


class UploadState(Enum):
    """Upload run state."""
    IDLE = "idle"
    PROBING = "probing"
    PLANNING = "planning"
    NEGOTIATING = "negotiating"
    TRANSFERRING = "transferring"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadState.DONE, UploadState.FAILED)


class TransferProfile(Enum):
    """
    Named bundle of transfer tuning constants.

    Value layout: (part_size_bytes, max_concurrent_uploads, timeout_millis)
    """
    SLOW = (5 * MIB, 1, 60 * 60 * 1000)
    MEDIUM = (10 * MIB, 2, 30 * 60 * 1000)
    FAST = (25 * MIB, 4, 20 * 60 * 1000)
    ULTRA = (50 * MIB, 8, 15 * 60 * 1000)

    @property
    def part_size_bytes(self) -> int:
        return self.value[0]

    @property
    def max_concurrent_uploads(self) -> int:
        return self.value[1]

    @property
    def timeout_millis(self) -> int:
        return self.value[2]

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_millis / 1000

    @classmethod
    def from_name(cls, name: str) -> "TransferProfile":
        """Parse a profile name case-insensitively."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            choices = ", ".join(p.name.lower() for p in cls)
            raise ValueError(f"Unknown transfer profile '{name}' (choose from: {choices})") from None


@dataclass(frozen=True)
class FileDescriptor:
    """Immutable description of a probed local file."""
    absolute_path: Path
    display_name: str
    size_bytes: int
    mime_type: str
    modified_at: datetime

    @property
    def extension(self) -> str:
        return self.absolute_path.suffix.lower()

    @property
    def is_supported_type(self) -> bool:
        return self.mime_type in SUPPORTED_FILE_TYPES


@dataclass(frozen=True)
class UploadOptions:
    """User supplied options, passed through unchanged to the backend."""
    preserve_original_name: bool = True
    optimize: bool = True
    generate_thumbnails: bool = True
    custom_display_name: str = ""
    is_public: bool = True


@dataclass(frozen=True)
class NegotiatedDestination:
    """Write target handed out by the backend for a single transfer attempt."""
    write_url: str
    opaque_key: str


@dataclass(frozen=True)
class TransferProgressSample:
    """Bytes handed to the connection so far."""
    bytes_sent: int
    total_bytes: int
    elapsed_millis: int


@dataclass(frozen=True)
class ProgressReport:
    """Derived progress figures for one sample."""
    sample: TransferProgressSample
    percent: float
    bytes_per_second: float
    eta_label: str


@dataclass(frozen=True)
class UploadResult:
    """Immutable result of a finalized upload."""
    remote_id: str
    url: str
    final_size_bytes: int
    mime_type: str
    thumbnail_urls: Dict[str, str] = field(default_factory=dict)
    original_filename: Optional[str] = None

    @property
    def thumbnail_url(self) -> Optional[str]:
        """Preferred thumbnail: 'small' when present, else the first one."""
        if not self.thumbnail_urls:
            return None
        return self.thumbnail_urls.get("small") or next(iter(self.thumbnail_urls.values()))


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload runs."""
    profile: TransferProfile = TransferProfile.MEDIUM
    options: UploadOptions = field(default_factory=UploadOptions)
    max_file_size: int = 50 * GIB
    api_timeout: float = 30.0
    authorize_transfer: bool = False


@dataclass(frozen=True)
class UploadOutcome:
    """Terminal record of one upload run."""
    filename: str
    state: UploadState
    result: Optional[UploadResult] = None
    error: Optional["UploadError"] = None
    failed_state: Optional[UploadState] = None

    @property
    def success(self) -> bool:
        return self.state == UploadState.DONE

    @property
    def reason(self) -> Optional[str]:
        """User facing failure message."""
        if self.error is None:
            return None
        return self.error.user_message

    @classmethod
    def done(cls, filename: str, result: UploadResult) -> "UploadOutcome":
        return cls(filename=filename, state=UploadState.DONE, result=result)

    @classmethod
    def failed(cls, filename: str, error: "UploadError", failed_state: UploadState) -> "UploadOutcome":
        return cls(
            filename=filename,
            state=UploadState.FAILED,
            error=error,
            failed_state=failed_state,
        )


