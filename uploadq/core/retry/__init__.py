"""Retry strategies using Strategy Pattern."""
from .retry_strategy import RetryStrategy, ExponentialBackoffStrategy, RetryDecision

__all__ = [
    'RetryStrategy',
    'ExponentialBackoffStrategy',
    'RetryDecision',
]
