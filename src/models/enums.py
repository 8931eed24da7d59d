"""Enum definitions shared across the engine."""

from enum import Enum


class SectionOrigin(str, Enum):
    MANUAL = "manual"
    AI = "ai"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class SaveStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"  # debounce window open
    SAVING = "saving"
    SAVED = "saved"
    FAILED = "failed"


class MergeAction(str, Enum):
    ADOPTED = "adopted"
    KEPT = "kept"
    LOCKED = "locked"  # edit lock held, candidate ignored
    NO_CANDIDATE = "no_candidate"


class UpdateSource(str, Enum):
    AUTO_SAVE = "auto_save"
    SECTION_SAVE = "section_save"
    LOCAL_MUTATION = "local_mutation"
