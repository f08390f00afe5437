"""Utility modules for the scalp_signals package."""

from .retry import ExponentialBackoff, RetryError, retry_async

__all__ = [
    "ExponentialBackoff",
    "RetryError",
    "retry_async",
]
