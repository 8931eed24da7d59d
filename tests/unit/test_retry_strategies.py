"""
Unit tests for retry strategies.
"""

import pytest

from src.exceptions import ChannelClosedError
from src.models import SyncConfig
from src.utils.retry_strategies import RetryConfig, create_async_retrying


def test_retry_config():
    """Test RetryConfig creation."""
    config = RetryConfig(max_attempts=5, initial_delay=0.5, max_delay=30.0, jitter=True)

    assert config.max_attempts == 5
    assert config.initial_delay == 0.5
    assert config.max_delay == 30.0
    assert config.jitter is True


def test_retry_config_from_sync_settings():
    config = RetryConfig.from_sync_config(
        SyncConfig(reconnect_max_attempts=7, reconnect_initial_delay=0.2, reconnect_max_delay=4.0),
        retryable_exceptions=(ChannelClosedError,),
    )
    assert config.max_attempts == 7
    assert config.initial_delay == 0.2
    assert config.max_delay == 4.0
    assert config.retryable_exceptions == (ChannelClosedError,)


@pytest.mark.asyncio
async def test_async_retrying_succeeds_after_failures():
    """Transient failures are retried until one attempt succeeds."""
    calls = {"count": 0}
    config = RetryConfig(max_attempts=3, initial_delay=0.01, max_delay=0.02, jitter=False)

    async for attempt in create_async_retrying(config):
        with attempt:
            calls["count"] += 1
            if calls["count"] < 3:
                raise ChannelClosedError("dropped")

    assert calls["count"] == 3


@pytest.mark.asyncio
async def test_async_retrying_reraises_after_max_attempts():
    config = RetryConfig(max_attempts=2, initial_delay=0.01, max_delay=0.02)

    with pytest.raises(ChannelClosedError):
        async for attempt in create_async_retrying(config):
            with attempt:
                raise ChannelClosedError("still down")


@pytest.mark.asyncio
async def test_non_retryable_exception_is_not_retried():
    calls = {"count": 0}
    config = RetryConfig(
        max_attempts=5, initial_delay=0.01, retryable_exceptions=(ChannelClosedError,)
    )

    with pytest.raises(ValueError):
        async for attempt in create_async_retrying(config):
            with attempt:
                calls["count"] += 1
                raise ValueError("bad payload")

    assert calls["count"] == 1
