"""Retry strategies using Strategy Pattern."""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import aiohttp

from ..config import RetryConfig
from ..exceptions import ErrorKind, TransportError


@dataclass(frozen=True)
class RetryDecision:
    """Classification of a transport failure."""
    retryable: bool
    kind: ErrorKind
    message: str


class RetryStrategy(ABC):
    """Abstract retry strategy."""
    
    @abstractmethod
    def classify(self, error: BaseException) -> RetryDecision:
        """Classifies a transport failure."""
        pass
    
    @abstractmethod
    def compute_backoff(self, retry_count: int) -> float:
        """Returns delay in milliseconds before the given retry."""
        pass
    
    def should_retry(self, decision: RetryDecision, retry_count: int, max_retries: int) -> bool:
        """Determines if the failed upload should be retried."""
        return decision.retryable and retry_count < max_retries


class ExponentialBackoffStrategy(RetryStrategy):
    """
    Exponential backoff retry strategy.
    
    Retries network failures, timeouts, 5xx and 429. Other 4xx responses
    are final. Delay is min(base * 2^n, max) milliseconds.
    """
    
    def __init__(self, config: Optional[RetryConfig] = None):
        self._config = config or RetryConfig()
    
    @property
    def config(self) -> RetryConfig:
        return self._config
    
    def classify(self, error: BaseException) -> RetryDecision:
        """Maps an exception to a retry decision."""
        if isinstance(error, TransportError):
            return self._from_status(error.http_status, error.message)
        
        if isinstance(error, aiohttp.ClientResponseError):
            return self._from_status(error.status, error.message or f"HTTP {error.status}")
        
        if isinstance(error, asyncio.TimeoutError):
            return RetryDecision(True, ErrorKind.NETWORK, "Upload timed out")
        
        # Bad input to the transport fails the same way on every attempt
        if isinstance(error, (ValueError, TypeError)):
            return RetryDecision(False, ErrorKind.CLIENT, str(error) or error.__class__.__name__)
        
        # Connection failures, OS errors and anything else that carries no
        # response are treated as network failures
        message = str(error) or error.__class__.__name__
        return RetryDecision(True, ErrorKind.NETWORK, message)
    
    def _from_status(self, status: Optional[int], message: str) -> RetryDecision:
        if status is None:
            return RetryDecision(True, ErrorKind.NETWORK, message)
        if status >= 500 or status == 429:
            return RetryDecision(True, ErrorKind.SERVER, message)
        return RetryDecision(False, ErrorKind.CLIENT, message)
    
    def compute_backoff(self, retry_count: int) -> float:
        """Waits with exponential backoff, capped at max_delay_ms."""
        return self._config.calculate_delay(retry_count)
