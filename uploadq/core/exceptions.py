"""
Custom exceptions for upload orchestration.

Expected outcomes (rejected files, failed transfers) are recorded as task
state by the queue. These exceptions cover misuse and the transport seam.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Failure categories recorded on a task."""
    VALIDATION = "validation"  # rejected before queueing, never retried
    NETWORK = "network"  # no response reached us
    SERVER = "server"  # 5xx or 429
    CLIENT = "client"  # any other 4xx
    BACKEND = "backend"  # server-side processing reported failure


class UploadQueueError(Exception):
    """Base exception for all uploadq errors."""
    
    def __init__(self, message: str, error_code: Optional[int] = None) -> None:
        """
        Initialize the exception.
        
        Args:
            message: Error message
            error_code: Numeric error code (if available)
        """
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class ConfigurationError(UploadQueueError):
    """Exception raised for invalid queue or policy configuration."""
    pass


class InvalidTransitionError(UploadQueueError):
    """Exception raised when a task is asked to make an illegal transition."""
    
    def __init__(self, task_id: str, current: object, requested: object) -> None:
        self.task_id = task_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Upload {task_id}: cannot transition from "
            f"{getattr(current, 'value', current)} to {getattr(requested, 'value', requested)}"
        )


class TransportError(UploadQueueError):
    """
    Exception raised by transports when a transfer fails.
    
    A missing http_status means no response reached the client
    (connection failure or timeout).
    """
    
    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        timeout: bool = False
    ) -> None:
        """
        Initialize the exception.
        
        Args:
            message: Human-readable failure message
            http_status: HTTP status of the response, if one was received
            timeout: True when the transfer was aborted by a timeout
        """
        self.http_status = http_status
        self.timeout = timeout
        super().__init__(message, error_code=http_status)
    
    @property
    def kind(self) -> ErrorKind:
        """Returns the error category for this failure."""
        if self.http_status is None:
            return ErrorKind.NETWORK
        if self.http_status >= 500 or self.http_status == 429:
            return ErrorKind.SERVER
        return ErrorKind.CLIENT
