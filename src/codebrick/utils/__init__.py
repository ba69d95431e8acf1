"""Utility helpers."""

from .retry import backoff_delays, retry_with_exponential_backoff

__all__ = ["backoff_delays", "retry_with_exponential_backoff"]
