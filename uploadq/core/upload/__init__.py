"""
Upload module for queued document uploads.

This module provides the upload queue together with its pluggable pieces:
validation policy, progress estimation and the transport adapter.
"""
from .queue import UploadQueue
from .transport import HttpTransport
from .status_poller import BackendStatusPoller
from .models import (
    UploadStatus,
    FileInfo,
    UploadTask,
    UploadStats,
    ValidationResult,
    ProgressSample,
    ProgressEstimate,
)
from .services import FileValidator, ProgressEstimator
from .protocols import (
    TransportAdapter,
    ProgressCallback,
    FileValidatorProtocol,
    ProgressEstimatorProtocol,
    StatusReconcilerProtocol,
)

__all__ = [
    # Main classes
    'UploadQueue',
    'HttpTransport',
    'BackendStatusPoller',
    
    # Models
    'UploadStatus',
    'FileInfo',
    'UploadTask',
    'UploadStats',
    'ValidationResult',
    'ProgressSample',
    'ProgressEstimate',
    
    # Services
    'FileValidator',
    'ProgressEstimator',
    
    # Protocols
    'TransportAdapter',
    'ProgressCallback',
    'FileValidatorProtocol',
    'ProgressEstimatorProtocol',
    'StatusReconcilerProtocol',
]
