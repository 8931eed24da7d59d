"""
Pytest configuration and fixtures.
"""

import pytest

from src.models import Document, EngineConfig, SettingsConfig, SyncConfig
from tests.fixtures.documents import InMemoryDocumentStore


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def document() -> Document:
    return Document.new("owner-1")


@pytest.fixture
def fast_settings() -> SettingsConfig:
    """Short quiet period and reconnect delays so timing tests stay quick."""
    return SettingsConfig(
        engine=EngineConfig(autosave_quiet_period_seconds=0.05),
        sync=SyncConfig(reconnect_initial_delay=0.01, reconnect_max_delay=0.05),
    )
