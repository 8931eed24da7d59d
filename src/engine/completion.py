"""
Completion Tracker

Emits ContentChanged for every section whose content differs from the last
snapshot it saw, and SectionCompleted at most once per section over the
document's lifetime. Announced section ids live on the document itself
(Document.notified_section_ids) so they survive reloads.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, List, Optional, Set

from src.engine.events import ContentChanged, EngineEvent, EventBus, SectionCompleted
from src.models.document import Document
from src.utils.logging_config import get_logger

logger = get_logger(__name__)


class CompletionTracker:
    def __init__(self, events: Optional[EventBus] = None):
        self.events = events or EventBus()
        self._notified: Set[str] = set()
        self._snapshot: Dict[str, str] = {}

    @property
    def notified(self) -> FrozenSet[str]:
        return frozenset(self._notified)

    def prime(self, document: Document) -> None:
        """Take a baseline. Stored notices and sections already complete on load count as notified."""
        self._snapshot = document.content_map()
        self._notified = set(document.notified_section_ids) | {
            sid for sid, section in document.sections.items() if section.completed
        }
        self._record(document)

    def update(self, document: Document) -> List[EngineEvent]:
        """Diff the document against the last snapshot and emit the resulting events."""
        emitted: List[EngineEvent] = []
        for section_id, section in document.sections.items():
            previous = self._snapshot.get(section_id, "")
            if section.content != previous:
                emitted.append(
                    ContentChanged(section_id, previous, section.content, section.origin)
                )
            if section.completed and section_id not in self._notified:
                self._notified.add(section_id)
                emitted.append(SectionCompleted(section_id, document.completion_percentage))
                logger.info(
                    f"Section '{section.title}' complete ({document.completion_percentage}% of plan)"
                )
        self._record(document)
        self._snapshot = document.content_map()
        for event in emitted:
            self.events.emit(event)
        return emitted

    def _record(self, document: Document) -> None:
        document.notified_section_ids = [sid for sid in document.sections if sid in self._notified]
