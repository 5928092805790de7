"""
File validation service.

Single Responsibility: decides whether a candidate file may enter the queue.
"""
from typing import Iterable, Optional

from ..models import FileInfo, UploadTask, ValidationResult
from ...config import UploadConfig


class FileValidator:
    """
    Validates candidate files before they are queued.
    
    Responsibilities:
    - Enforce size limit
    - Check MIME type or extension against the allow-lists
    - Reject unusable file names
    - Reject (name, size) duplicates already in the queue
    
    The check is pure: identical inputs always produce the same verdict,
    and only the first failing rule is reported.
    """
    
    def validate(
        self,
        file: Optional[FileInfo],
        existing: Iterable[UploadTask],
        config: UploadConfig
    ) -> ValidationResult:
        """
        Validate a file for upload.
        
        Args:
            file: Candidate file
            existing: Tasks currently held by the queue
            config: Validation policy
            
        Returns:
            ValidationResult, rejected with the first failing reason
        """
        if file is None:
            return ValidationResult.rejected("No file provided")
        
        if file.size > config.max_file_size:
            limit_mb = round(config.max_file_size / 1024 / 1024)
            return ValidationResult.rejected(f"File size exceeds {limit_mb}MB limit")
        
        # Browsers often report an empty or generic MIME type, so the
        # extension alone is enough
        allowed_by_type = file.content_type in config.allowed_types
        allowed_by_extension = file.extension in config.allowed_extensions
        if not allowed_by_type and not allowed_by_extension:
            return ValidationResult.rejected(
                f"File type {file.content_type} is not allowed. "
                f"Supported types: {config.supported_types_label}"
            )
        
        if len(file.name) > config.max_filename_length:
            return ValidationResult.rejected(
                f"Filename is too long (max {config.max_filename_length} characters)"
            )
        
        if any(char in config.forbidden_characters for char in file.name):
            return ValidationResult.rejected("Filename contains invalid characters")
        
        if self.is_duplicate(file, existing):
            return ValidationResult.rejected(
                "A file with the same name and size is already in the queue"
            )
        
        return ValidationResult.accepted()
    
    @staticmethod
    def is_duplicate(file: FileInfo, existing: Iterable[UploadTask]) -> bool:
        """Returns True if a queued entry has the same name and size."""
        return any(
            task.file.name == file.name and task.file.size == file.size
            for task in existing
        )
