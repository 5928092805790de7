"""Upload services module."""
from .file_service import FileValidator
from .progress_service import ProgressEstimator

__all__ = [
    'FileValidator',
    'ProgressEstimator',
]
