"""
Data models for upload module.

Uses dataclasses for type-safe data structures. UploadTask is the only
mutable record and is owned by the queue; everything handed to callers
is a snapshot.
"""
import copy
import mimetypes
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, Union, FrozenSet, Mapping

from ...exceptions import ErrorKind, InvalidTransitionError


class UploadStatus(str, Enum):
    """Lifecycle states of an upload task."""
    QUEUED = "queued"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def terminal(cls) -> FrozenSet['UploadStatus']:
        """States from which no automatic transition is permitted."""
        return frozenset({cls.COMPLETED, cls.FAILED, cls.CANCELLED})


# None stands for "task does not exist yet"
ALLOWED_TRANSITIONS: Dict[Optional[UploadStatus], FrozenSet[UploadStatus]] = {
    None: frozenset({UploadStatus.QUEUED, UploadStatus.FAILED}),
    UploadStatus.QUEUED: frozenset({UploadStatus.UPLOADING, UploadStatus.CANCELLED}),
    UploadStatus.UPLOADING: frozenset({
        UploadStatus.COMPLETED,
        UploadStatus.PROCESSING,
        UploadStatus.FAILED,
        UploadStatus.QUEUED,
        UploadStatus.CANCELLED,
    }),
    UploadStatus.PROCESSING: frozenset({UploadStatus.COMPLETED, UploadStatus.FAILED}),
    # Manual retry only; the queue checks the retry budget first
    UploadStatus.FAILED: frozenset({UploadStatus.QUEUED}),
    UploadStatus.COMPLETED: frozenset(),
    UploadStatus.CANCELLED: frozenset(),
}

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_upload_id() -> str:
    """Generate an id like 'upload_1700000000000_k3j9x0abc'."""
    suffix = ''.join(random.choice(_ID_ALPHABET) for _ in range(9))
    return f"upload_{int(time.time() * 1000)}_{suffix}"


@dataclass(frozen=True)
class FileInfo:
    """
    Candidate payload for an upload.

    Attributes:
        name: File name as reported by the caller
        size: Size in bytes
        content_type: Declared MIME type (may be empty or wrong)
        path: Optional local path used by transports that stream from disk

    Example:
        >>> info = FileInfo.from_path("report.pdf")
        >>> info.content_type
        'application/pdf'
    """
    name: str
    size: int
    content_type: str = ''
    path: Optional[Path] = None

    @property
    def extension(self) -> str:
        """
        Lower-cased text after the last dot.

        A name without a dot is its own extension, so a file named "pdf"
        matches the "pdf" extension.
        """
        return self.name.rsplit('.', 1)[-1].lower()

    @classmethod
    def from_path(
        cls,
        file_path: Union[str, Path],
        content_type: Optional[str] = None
    ) -> 'FileInfo':
        """
        Build FileInfo from a file on disk.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If path is not a regular file
        """
        path = Path(file_path) if isinstance(file_path, str) else file_path

        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        if not path.is_file():
            raise ValueError(f"Path is not a file: {path}")

        if content_type is None:
            content_type = mimetypes.guess_type(path.name)[0] or ''

        return cls(
            name=path.name,
            size=path.stat().st_size,
            content_type=content_type,
            path=path
        )


@dataclass(frozen=True)
class ValidationResult:
    """Verdict of the validation policy."""
    is_valid: bool
    error: Optional[str] = None

    @classmethod
    def accepted(cls) -> 'ValidationResult':
        return cls(is_valid=True)

    @classmethod
    def rejected(cls, reason: str) -> 'ValidationResult':
        return cls(is_valid=False, error=reason)


@dataclass(frozen=True)
class ProgressSample:
    """Last progress observation of an uploading task."""
    percent: float = 0.0
    timestamp: float = 0.0
    speed: Optional[float] = None


@dataclass(frozen=True)
class ProgressEstimate:
    """Output of the progress estimator for one sample."""
    progress: int
    speed: Optional[float]
    time_remaining: Optional[float]
    sample: ProgressSample


@dataclass
class UploadTask:
    """
    Life-cycle record of one file upload.

    Attributes:
        id: Opaque unique identifier
        file: Candidate payload (read only)
        status: Current lifecycle state
        progress: Integer percent 0-100
        speed: Estimated bytes per second
        time_remaining: Estimated seconds to completion
        error: Last human-readable failure message
        error_kind: Category of the last failure
        retry_count: Retries consumed so far
        max_retries: Retry budget
        result: Backend response once available
        backend_id: Backend document id, used for status polling
        metadata: Caller-supplied options
    """
    file: FileInfo
    id: str = field(default_factory=generate_upload_id)
    status: Optional[UploadStatus] = None
    progress: int = 0
    speed: Optional[float] = None
    time_remaining: Optional[float] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    last_error_time: Optional[datetime] = None
    retry_count: int = 0
    max_retries: int = 3
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result: Optional[Mapping[str, Any]] = None
    backend_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        """Returns True if task is completed, failed or cancelled."""
        return self.status in UploadStatus.terminal()

    @property
    def is_active(self) -> bool:
        """Returns True if a transfer is in flight."""
        return self.status == UploadStatus.UPLOADING

    @property
    def can_retry(self) -> bool:
        """Returns True if the retry budget is not exhausted."""
        return self.retry_count < self.max_retries

    @property
    def elapsed_time(self) -> float:
        """Seconds since the current attempt started."""
        if not self.started_at:
            return 0.0
        end_time = self.completed_at or datetime.now()
        return (end_time - self.started_at).total_seconds()

    def transition(self, new_status: UploadStatus) -> None:
        """
        Move to new_status, maintaining the completed_at invariant.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.id, self.status, new_status)

        self.status = new_status
        if new_status in UploadStatus.terminal():
            if self.completed_at is None:
                self.completed_at = datetime.now()
        else:
            self.completed_at = None
        if new_status == UploadStatus.UPLOADING:
            self.started_at = datetime.now()

    def record_error(self, message: str, kind: ErrorKind) -> None:
        """Attach a failure message."""
        self.error = message
        self.error_kind = kind
        self.last_error_time = datetime.now()

    def clear_error(self) -> None:
        self.error = None
        self.error_kind = None

    def snapshot(self) -> 'UploadTask':
        """Return a detached copy safe to hand to callers."""
        return copy.deepcopy(self)


@dataclass(frozen=True)
class UploadStats:
    """Counts per status and summed byte size of the queue."""
    total: int = 0
    queued: int = 0
    uploading: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    total_size: int = 0
    historical_total: int = 0
