"""
Retry Strategies for Channel Reconnects

Exponential backoff built on tenacity.
"""

import logging
from typing import Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)

from src.models.config import SyncConfig

logger = logging.getLogger(__name__)


class RetryConfig:
    """Configuration for retry strategies."""

    def __init__(
        self,
        max_attempts: int = 5,
        initial_delay: float = 0.5,
        max_delay: float = 30.0,
        jitter: bool = True,
        retryable_exceptions: tuple = (Exception,),
    ):
        """
        Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts
            initial_delay: Initial delay in seconds
            max_delay: Maximum delay in seconds
            jitter: Whether to add random jitter to delays
            retryable_exceptions: Tuple of exceptions that should trigger retry
        """
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self.retryable_exceptions = retryable_exceptions

    @classmethod
    def from_sync_config(cls, config: SyncConfig, **overrides) -> "RetryConfig":
        values = {
            "max_attempts": config.reconnect_max_attempts,
            "initial_delay": config.reconnect_initial_delay,
            "max_delay": config.reconnect_max_delay,
        }
        values.update(overrides)
        return cls(**values)


def create_async_retrying(config: Optional[RetryConfig] = None) -> AsyncRetrying:
    """
    Build a tenacity AsyncRetrying for reconnect loops.

    Usage:
        async for attempt in create_async_retrying(config):
            with attempt:
                await reconnect()
    """
    if config is None:
        config = RetryConfig()

    if config.jitter:
        wait = wait_random_exponential(multiplier=config.initial_delay, max=config.max_delay)
    else:
        wait = wait_exponential(
            multiplier=config.initial_delay,
            min=config.initial_delay,
            max=config.max_delay,
        )

    return AsyncRetrying(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait,
        retry=retry_if_exception_type(config.retryable_exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
