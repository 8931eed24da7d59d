"""Side-channel notifications emitted by the engine.

Listeners are UI or collaborator callbacks. A failing listener is logged and
skipped; it never affects document state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Union

from src.models.enums import SaveStatus, SectionOrigin
from src.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SectionCompleted:
    """First false->true flip of a section's completion. Fires once per section."""

    section_id: str
    completion_percentage: int


@dataclass(frozen=True)
class ContentChanged:
    section_id: str
    previous_content: str
    content: str
    origin: SectionOrigin


@dataclass(frozen=True)
class SaveStatusChanged:
    status: SaveStatus
    is_auto_saving: bool
    last_saved_at: Optional[datetime]


@dataclass(frozen=True)
class CommitFailed:
    """User-visible warning: the document was not persisted."""

    document_id: str
    error: str


@dataclass(frozen=True)
class ConnectivityChanged:
    connected: bool


EngineEvent = Union[
    SectionCompleted, ContentChanged, SaveStatusChanged, CommitFailed, ConnectivityChanged
]
Listener = Callable[[EngineEvent], None]


class EventBus:
    """Synchronous fan-out of engine events to registered listeners."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(self, event: EngineEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Listener {listener!r} failed on {type(event).__name__}: {e}")
