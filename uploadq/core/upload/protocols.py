"""
Protocol definitions for upload module.

Defines interfaces (protocols) for dependency injection and strategy pattern.
Following Interface Segregation Principle (ISP) and Dependency Inversion Principle (DIP).
"""
from typing import Protocol, Any, Mapping, Callable, Iterable, Optional, runtime_checkable

from .models import FileInfo, UploadTask, ValidationResult, ProgressSample, ProgressEstimate
from ..config import UploadConfig


ProgressCallback = Callable[[float], None]


@runtime_checkable
class TransportAdapter(Protocol):
    """
    Protocol for the component that moves bytes to the backend.

    The queue invokes send() inside an asyncio task and cancels that task
    to abort a transfer, so implementations must let CancelledError
    propagate.
    """

    async def send(self, file: FileInfo, on_progress: ProgressCallback) -> Mapping[str, Any]:
        """
        Transfer a file.

        Args:
            file: File to upload
            on_progress: Called with percent (0-100) as bytes are sent

        Returns:
            Backend response, e.g. {'status': 'processing', 'id': '...'}

        Raises:
            TransportError: If the transfer fails
        """
        ...


class FileValidatorProtocol(Protocol):
    """Protocol for admission checks."""

    def validate(
        self,
        file: Optional[FileInfo],
        existing: Iterable[UploadTask],
        config: UploadConfig
    ) -> ValidationResult:
        """
        Decide whether a candidate file may enter the queue.

        Args:
            file: Candidate file
            existing: Tasks currently in the queue
            config: Validation policy

        Returns:
            ValidationResult with the first failing reason, if any
        """
        ...


class ProgressEstimatorProtocol(Protocol):
    """Protocol for speed/ETA estimation."""

    def estimate(
        self,
        previous: ProgressSample,
        percent: float,
        timestamp: float,
        file_size: int
    ) -> ProgressEstimate:
        ...


class StatusReconcilerProtocol(Protocol):
    """Protocol for objects accepting backend status updates."""

    def on_backend_status_update(
        self,
        task_id: str,
        status: str,
        progress: Optional[float] = None
    ) -> bool:
        ...

    def get_uploads_by_status(self, status: Any) -> Any:
        ...


class LoggerProtocol(Protocol):
    """Protocol for logger objects."""

    def debug(self, msg: str) -> None: ...
    def info(self, msg: str) -> None: ...
    def warning(self, msg: str) -> None: ...
    def error(self, msg: str) -> None: ...
    def exception(self, msg: str) -> None: ...

