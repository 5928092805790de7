"""
Queue configuration module.

Provides the validation policy and scheduling limits for the upload queue,
plus the retry and timeout settings used by the retry strategy and the
HTTP transport.
"""
from dataclasses import dataclass, field, replace
from typing import Tuple, Any

from .exceptions import ConfigurationError


DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB

DEFAULT_ALLOWED_TYPES: Tuple[str, ...] = (
    'application/pdf',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',  # DOCX
    'application/msword',  # DOC
    'text/plain',  # TXT
)

DEFAULT_ALLOWED_EXTENSIONS: Tuple[str, ...] = ('pdf', 'docx', 'doc', 'txt')

FORBIDDEN_FILENAME_CHARACTERS = '<>:"/\\|?*'


@dataclass(frozen=True)
class RetryConfig:
    """
    Retry configuration.

    Controls the backoff applied before a retryable failure is retried.
    """
    base_delay_ms: float = 1000.0
    max_delay_ms: float = 30000.0
    exponential_base: float = 2.0

    def __post_init__(self):
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ConfigurationError("Retry delays must not be negative")
        if self.exponential_base < 1:
            raise ConfigurationError("exponential_base must be >= 1")

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay in milliseconds for given attempt number."""
        delay = self.base_delay_ms * (self.exponential_base ** attempt)
        return min(delay, self.max_delay_ms)


@dataclass(frozen=True)
class TimeoutConfig:
    """
    Timeout configuration for the HTTP transport.

    Granular control over different timeout types.
    """
    total: float = 300.0  # Total request timeout
    connect: float = 30.0  # Connection timeout
    sock_read: float = 60.0  # Socket read timeout

    def to_aiohttp_timeout(self):
        """Convert to aiohttp ClientTimeout."""
        import aiohttp
        return aiohttp.ClientTimeout(
            total=self.total,
            connect=self.connect,
            sock_read=self.sock_read
        )


@dataclass(frozen=True)
class UploadConfig:
    """
    Upload queue configuration and validation policy.

    Attributes:
        max_file_size: Largest accepted file in bytes
        allowed_types: Accepted MIME types
        allowed_extensions: Accepted extensions (lower-case, without dot)
        max_concurrent_uploads: Cap on simultaneously uploading tasks
        max_retries: Default retry budget for new tasks
        max_filename_length: Longest accepted file name
        forbidden_characters: Characters rejected in file names
        retry: Backoff settings

    Example:
        >>> config = UploadConfig(max_concurrent_uploads=5)
        >>> config = config.update(max_file_size=50 * 1024 * 1024)
    """
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    allowed_types: Tuple[str, ...] = DEFAULT_ALLOWED_TYPES
    allowed_extensions: Tuple[str, ...] = DEFAULT_ALLOWED_EXTENSIONS
    max_concurrent_uploads: int = 3
    max_retries: int = 3
    max_filename_length: int = 255
    forbidden_characters: str = FORBIDDEN_FILENAME_CHARACTERS
    retry: RetryConfig = field(default_factory=RetryConfig)

    def __post_init__(self):
        """Validate and normalize config."""
        # Accept any iterable for the allow-lists but store tuples
        object.__setattr__(self, 'allowed_types', tuple(self.allowed_types))
        object.__setattr__(
            self,
            'allowed_extensions',
            tuple(ext.lower().lstrip('.') for ext in self.allowed_extensions)
        )

        if self.max_file_size <= 0:
            raise ConfigurationError(f"max_file_size must be positive, got {self.max_file_size}")
        if self.max_concurrent_uploads < 1:
            raise ConfigurationError(
                f"max_concurrent_uploads must be at least 1, got {self.max_concurrent_uploads}"
            )
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must not be negative, got {self.max_retries}")
        if self.max_filename_length < 1:
            raise ConfigurationError("max_filename_length must be positive")
        if not self.allowed_types and not self.allowed_extensions:
            raise ConfigurationError("At least one allowed type or extension is required")

    @classmethod
    def default(cls) -> 'UploadConfig':
        """Create default configuration."""
        return cls()

    @property
    def supported_types_label(self) -> str:
        """Human-readable list of accepted extensions, e.g. 'PDF, DOCX'."""
        return ', '.join(ext.upper() for ext in self.allowed_extensions)

    def update(self, **changes: Any) -> 'UploadConfig':
        """
        Return a validated copy with the given fields replaced.

        Raises:
            ConfigurationError: If a field is unknown or a value is invalid
        """
        unknown = set(changes) - set(self.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        return replace(self, **changes)
