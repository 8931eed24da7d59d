"""
Document Session

One in-memory document bound to an owner session. Entry point for every
mutation: conversation changes, local edits and remote updates all go through
the merge resolver, then the completion tracker, then the persistence
scheduler. All calls run on a single asyncio event loop.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from src.engine import merge
from src.engine.completion import CompletionTracker
from src.engine.events import EventBus, Listener
from src.engine.persistence import DocumentStore, PersistenceScheduler
from src.exceptions import ChannelClosedError, SaveConflictError, SessionClosedError
from src.models import (
    DEFAULT_DOCUMENT_TITLE,
    ConversationMessage,
    Document,
    SaveStatus,
    Section,
    SettingsConfig,
    SyncMessage,
    UpdateSource,
    utc_now,
)
from src.sections import coerce_messages, extract_candidates, title_for
from src.sync.adapter import SyncChannelAdapter
from src.sync.hub import ChannelHub
from src.utils import structured_log
from src.utils.logging_config import get_logger
from src.utils.retry_strategies import RetryConfig

logger = get_logger(__name__)

MessageLike = Union[ConversationMessage, Mapping[str, Any]]


@dataclass
class EditLock:
    section_id: str
    original_content: str
    acquired_at: float

    def is_expired(self, ttl: Optional[float], now: float) -> bool:
        return ttl is not None and now - self.acquired_at > ttl


class DocumentSession:
    def __init__(
        self,
        document: Document,
        store: DocumentStore,
        *,
        hub: Optional[ChannelHub] = None,
        settings: Optional[SettingsConfig] = None,
        client_id: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.document = document
        self.store = store
        self.settings = settings or SettingsConfig()
        self.client_id = client_id or uuid.uuid4().hex
        self.events = EventBus()
        self.current_section: Optional[str] = None

        self._clock = clock
        self._lock: Optional[EditLock] = None
        self._closed = False

        self.tracker = CompletionTracker(self.events)
        self.tracker.prime(document)
        self.scheduler = PersistenceScheduler(
            document.id,
            snapshot=self._snapshot_sections,
            commit=self._commit,
            quiet_period=self.settings.engine.autosave_quiet_period_seconds,
            is_locked=lambda: self._active_lock_id() is not None,
            events=self.events,
        )
        self.channel: Optional[SyncChannelAdapter] = None
        if hub is not None:
            self.channel = SyncChannelAdapter(
                hub,
                document.owner_session_id,
                document.id,
                self.apply_remote,
                client_id=self.client_id,
                section_ids=document.sections.keys(),
                retry_config=RetryConfig.from_sync_config(
                    self.settings.sync, retryable_exceptions=(ChannelClosedError,)
                ),
                events=self.events,
            )

    @classmethod
    async def open(
        cls,
        store: DocumentStore,
        owner_session_id: str,
        *,
        hub: Optional[ChannelHub] = None,
        settings: Optional[SettingsConfig] = None,
        client_id: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> "DocumentSession":
        """Load (or lazily create) the owner's current document and subscribe to its channel."""
        document = await store.load_document(owner_session_id)
        session = cls(
            document, store, hub=hub, settings=settings, client_id=client_id, clock=clock
        )
        structured_log.bind_document(document.id, owner_session_id)
        if session.channel is not None:
            await session.channel.subscribe()
        logger.info(
            f"Opened document {document.id} for {owner_session_id} "
            f"({document.completion_percentage}% complete)"
        )
        return session

    # Read-only state

    @property
    def document_id(self) -> str:
        return self.document.id

    @property
    def is_auto_saving(self) -> bool:
        return self.scheduler.is_auto_saving

    @property
    def last_saved_at(self) -> Optional[datetime]:
        return self.scheduler.last_saved_at or self.document.last_saved_at

    @property
    def save_status(self) -> SaveStatus:
        return self.scheduler.status

    @property
    def last_error(self) -> Optional[str]:
        return self.scheduler.last_error

    @property
    def completion_percentage(self) -> int:
        return self.document.completion_percentage

    @property
    def editing_section_id(self) -> Optional[str]:
        return self._lock.section_id if self._lock is not None else None

    @property
    def is_connected(self) -> bool:
        return self.channel is not None and self.channel.is_connected

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.events.subscribe(listener)

    # Mutations

    def apply_messages(self, messages: Iterable[MessageLike]) -> List[str]:
        """Re-extract candidates from the whole conversation and merge them.

        Returns the ids of sections whose content changed.
        """
        self._ensure_open()
        result = extract_candidates(coerce_messages(messages))
        self.current_section = result.current_section

        decisions = merge.resolve_ai_candidates(
            self.document, result.candidates, locked_section_id=self._active_lock_id()
        )
        for decision in decisions:
            if decision.section_id in result.candidates:
                structured_log.log_merge_decision(
                    decision.section_id,
                    decision.action.value,
                    "ai",
                    origin=decision.section.origin.value,
                    content_length=len(result.candidates[decision.section_id]),
                )
        changed = list(merge.apply_decisions(self.document, decisions))
        renamed = self._apply_entity_name(result.entity_name)

        if changed or renamed:
            self._after_local_mutation(changed)
        return changed

    def begin_edit(self, section_id: str, current_content: Optional[str] = None) -> str:
        """Take the edit lock on a section and return the content the editor starts from.

        Taking the lock on another section releases the previous one.
        """
        self._ensure_open()
        section = self.document.section(section_id)
        if self._lock is not None and self._lock.section_id != section_id:
            structured_log.log_edit_lock(self._lock.section_id, "cancelled")
        starting = section.content if current_content is None else current_content
        self._lock = EditLock(section_id, starting, self._clock())
        structured_log.log_edit_lock(section_id, "acquired")
        logger.debug(f"Edit lock acquired on {section_id}")
        return starting

    async def save_edit(self, section_id: str, content: str) -> bool:
        """Commit a manual edit and persist immediately.

        Raises SaveConflictError when section_id is not under a live edit lock.
        Returns whether the forced commit succeeded.
        """
        self._ensure_open()
        current = self.document.section(section_id)
        lock = self._lock
        if lock is None or lock.section_id != section_id:
            structured_log.log_edit_lock(section_id, "rejected")
            raise SaveConflictError(f"Section {section_id!r} is not being edited")
        if lock.is_expired(self.settings.engine.edit_lock_ttl_seconds, self._clock()):
            self._lock = None
            structured_log.log_edit_lock(section_id, "expired")
            raise SaveConflictError(f"Edit lock on {section_id!r} expired")

        self.document.sections[section_id] = merge.apply_manual_save(current, content)
        self.document.updated_at = utc_now()
        self._lock = None
        structured_log.log_edit_lock(section_id, "saved")
        structured_log.log_merge_decision(
            section_id, "adopted", "manual", origin="manual", content_length=len(content)
        )
        self.tracker.update(self.document)
        self._publish_local([section_id])
        return await self.scheduler.flush()

    def cancel_edit(self, section_id: Optional[str] = None) -> None:
        """Release the edit lock without changing content. Resumes a suppressed auto-save."""
        self._ensure_open()
        if self._lock is None:
            return
        if section_id is not None and self._lock.section_id != section_id:
            return
        structured_log.log_edit_lock(self._lock.section_id, "cancelled")
        self._lock = None
        if self.scheduler.is_dirty:
            self.scheduler.mark_dirty()

    def apply_remote(self, message: Union[SyncMessage, Mapping[str, Any]]) -> List[str]:
        """Adopt sections from another session's snapshot, except the locally locked one."""
        self._ensure_open()
        if not isinstance(message, SyncMessage):
            message = SyncMessage.model_validate(message)
        if message.document_id != self.document.id:
            logger.debug(f"Ignoring remote update for document {message.document_id}")
            return []

        decisions = merge.resolve_remote_sections(
            self.document, message.sections, locked_section_id=self._active_lock_id()
        )
        for decision in decisions:
            structured_log.log_merge_decision(
                decision.section_id,
                decision.action.value,
                "remote",
                origin=decision.section.origin.value,
                content_length=len(decision.section.content),
            )
        changed = list(merge.apply_decisions(self.document, decisions))
        if changed:
            self.document.updated_at = utc_now()
            self.tracker.update(self.document)
        return changed

    def rename(self, title: str) -> None:
        """Set a user-chosen title. Detected entity names no longer overwrite it."""
        self._ensure_open()
        self.document.title = title
        self._after_local_mutation([])

    def dispose(self) -> None:
        """Stop timers and unsubscribe. Pending (not yet started) auto-saves are dropped."""
        if self._closed:
            return
        self._closed = True
        self.scheduler.dispose()
        if self.channel is not None:
            self.channel.unsubscribe()
        logger.debug(f"Disposed session for document {self.document.id}")

    # Internals

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"Session for document {self.document.id} is disposed")

    def _active_lock_id(self) -> Optional[str]:
        if self._lock is None:
            return None
        ttl = self.settings.engine.edit_lock_ttl_seconds
        if self._lock.is_expired(ttl, self._clock()):
            logger.info(f"Edit lock on {self._lock.section_id} expired")
            structured_log.log_edit_lock(self._lock.section_id, "expired")
            self._lock = None
            return None
        return self._lock.section_id

    def _title_is_custom(self) -> bool:
        return self.document.title not in (
            DEFAULT_DOCUMENT_TITLE,
            title_for(self.document.detected_entity_name),
        )

    def _apply_entity_name(self, entity_name: Optional[str]) -> bool:
        if not entity_name or entity_name == self.document.detected_entity_name:
            return False
        keep_title = self._title_is_custom()
        self.document.detected_entity_name = entity_name
        if not keep_title:
            self.document.title = title_for(entity_name) or self.document.title
        logger.info(f"Detected business name: {entity_name}")
        return True

    def _after_local_mutation(self, changed: List[str]) -> None:
        self.document.updated_at = utc_now()
        self.tracker.update(self.document)
        if changed:
            self._publish_local(changed)
        self.scheduler.mark_dirty()

    def _publish_local(self, section_ids: List[str]) -> None:
        if self.channel is not None and self.settings.sync.publish_local_mutations:
            self.channel.publish(
                self.document, source=UpdateSource.LOCAL_MUTATION, section_ids=section_ids
            )

    def _snapshot_sections(self) -> Dict[str, Section]:
        return {sid: section.model_copy() for sid, section in self.document.sections.items()}

    async def _commit(self, sections: Dict[str, Section]) -> datetime:
        saved_at = await self.store.commit_sections(
            self.document.id,
            sections,
            title=self.document.title,
            detected_entity_name=self.document.detected_entity_name,
            notified_section_ids=self.document.notified_section_ids,
        )
        self.document.last_saved_at = saved_at
        if self.channel is not None and not self._closed:
            committed = self.document.model_copy(update={"sections": sections})
            self.channel.publish(committed, source=UpdateSource.AUTO_SAVE)
        return saved_at

