"""Upload models module."""
from .upload_models import (
    UploadStatus,
    ALLOWED_TRANSITIONS,
    FileInfo,
    ValidationResult,
    ProgressSample,
    ProgressEstimate,
    UploadTask,
    UploadStats,
    generate_upload_id,
)

__all__ = [
    'UploadStatus',
    'ALLOWED_TRANSITIONS',
    'FileInfo',
    'ValidationResult',
    'ProgressSample',
    'ProgressEstimate',
    'UploadTask',
    'UploadStats',
    'generate_upload_id',
]
