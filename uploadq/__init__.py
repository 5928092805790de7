"""
uploadq - Async upload queue for document ingestion.

Usage:
    >>> from uploadq import UploadQueue, HttpTransport, FileInfo
    >>> 
    >>> async with HttpTransport("https://api.example.com/client/upload") as transport:
    ...     queue = UploadQueue(transport)
    ...     queue.add_upload(FileInfo.from_path("handbook.pdf"))
    ...     await queue.wait_idle()
"""
import logging

from .core.config import UploadConfig, RetryConfig, TimeoutConfig
from .core.exceptions import (
    ErrorKind,
    UploadQueueError,
    ConfigurationError,
    InvalidTransitionError,
    TransportError,
)
from .core.events import EventEmitter
from .core.retry import RetryStrategy, ExponentialBackoffStrategy, RetryDecision
from .core.upload import (
    UploadQueue,
    HttpTransport,
    BackendStatusPoller,
    UploadStatus,
    FileInfo,
    UploadTask,
    UploadStats,
    FileValidator,
    ProgressEstimator,
    TransportAdapter,
)
from .core.utils import format_file_size, format_speed, format_time_remaining

__version__ = '1.0.0'


def setup_logging(level=logging.INFO):
    """
    Configure logging for uploadq modules.
    
    This ensures that all uploadq loggers are properly configured
    to show log messages at the specified level.
    
    Args:
        level: Logging level (default: logging.INFO)
    """
    loggers = [
        'uploadq',
        'uploadq.upload.queue',
        'uploadq.upload.transport',
        'uploadq.upload.status_poller',
    ]
    
    for logger_name in loggers:
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)
        # Ensure propagation is enabled
        logger.propagate = True


__all__ = [
    'UploadQueue',
    'HttpTransport',
    'BackendStatusPoller',
    'TransportAdapter',
    'UploadStatus',
    'FileInfo',
    'UploadTask',
    'UploadStats',
    'FileValidator',
    'ProgressEstimator',
    'UploadConfig',
    'RetryConfig',
    'TimeoutConfig',
    'RetryStrategy',
    'ExponentialBackoffStrategy',
    'RetryDecision',
    'EventEmitter',
    'ErrorKind',
    'UploadQueueError',
    'ConfigurationError',
    'InvalidTransitionError',
    'TransportError',
    'format_file_size',
    'format_speed',
    'format_time_remaining',
    'setup_logging',
]
