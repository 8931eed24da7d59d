"""Model exports for the synchronization engine."""

from src.models.config import (
    EngineConfig,
    LoggingConfig,
    SettingsConfig,
    StorageConfig,
    SyncConfig,
)
from src.models.document import (
    COMPLETION_THRESHOLD,
    DEFAULT_DOCUMENT_TITLE,
    ConversationMessage,
    Document,
    Section,
    SectionDefinition,
    is_completed,
    utc_now,
)
from src.models.enums import (
    MergeAction,
    MessageRole,
    SaveStatus,
    SectionOrigin,
    UpdateSource,
)
from src.models.sync import DOCUMENT_UPDATE, SectionPayload, SyncMessage

__all__ = [
    "COMPLETION_THRESHOLD",
    "ConversationMessage",
    "DEFAULT_DOCUMENT_TITLE",
    "DOCUMENT_UPDATE",
    "Document",
    "EngineConfig",
    "LoggingConfig",
    "MergeAction",
    "MessageRole",
    "SaveStatus",
    "Section",
    "SectionDefinition",
    "SectionOrigin",
    "SectionPayload",
    "SettingsConfig",
    "StorageConfig",
    "SyncConfig",
    "SyncMessage",
    "UpdateSource",
    "is_completed",
    "utc_now",
]
