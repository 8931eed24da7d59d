"""
Persistence Scheduler

Debounced, single-flight commits of the full section map.

- Every mark_dirty() restarts a quiet-period timer; only the last one commits.
- While an edit lock is held, auto-save is suppressed entirely. The dirty flag
  survives so that releasing the lock can re-arm the timer.
- A timer that fires under a lock drops PENDING back to the last settled status.
- At most one commit is in flight. A mark_dirty() during a commit re-arms the
  timer once that commit finishes.
- flush() commits immediately (used after an explicit manual save).
- A failed commit never raises: status goes to FAILED, CommitFailed is
  emitted, and the next mark_dirty() retries naturally.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, Optional, Protocol

from src.engine.events import CommitFailed, EventBus, SaveStatusChanged
from src.models.document import Document, Section, utc_now
from src.models.enums import SaveStatus
from src.utils import structured_log
from src.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_QUIET_PERIOD_SECONDS = 3.0


class DocumentStore(Protocol):
    """Durable storage the engine loads from and commits to."""

    async def load_document(self, owner_session_id: str) -> Document:
        ...

    async def commit_sections(
        self,
        document_id: str,
        sections: Dict[str, Section],
        *,
        title: Optional[str] = None,
        detected_entity_name: Optional[str] = None,
        notified_section_ids: Optional[Iterable[str]] = None,
    ) -> datetime:
        ...


CommitCallable = Callable[[Dict[str, Section]], Awaitable[Optional[datetime]]]


class PersistenceScheduler:
    def __init__(
        self,
        document_id: str,
        snapshot: Callable[[], Dict[str, Section]],
        commit: CommitCallable,
        *,
        quiet_period: float = DEFAULT_QUIET_PERIOD_SECONDS,
        is_locked: Callable[[], bool] = lambda: False,
        events: Optional[EventBus] = None,
    ):
        """
        Args:
            document_id: Document the commits belong to (for logs and events)
            snapshot: Returns a copy of the current section map
            commit: Persists a section map; returns the save timestamp
            quiet_period: Seconds without mutations before an auto-save fires
            is_locked: Whether an edit lock currently suppresses auto-save
            events: Bus for SaveStatusChanged and CommitFailed
        """
        self.document_id = document_id
        self.quiet_period = quiet_period
        self.events = events or EventBus()
        self._snapshot = snapshot
        self._commit = commit
        self._is_locked = is_locked

        self._timer: Optional[asyncio.Task] = None
        self._commit_lock = asyncio.Lock()
        self._dirty = False
        self._rearm = False
        self._closed = False

        self.status = SaveStatus.IDLE
        self._settled_status = SaveStatus.IDLE
        self.last_saved_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.commit_count = 0

    @property
    def is_auto_saving(self) -> bool:
        return self.status == SaveStatus.SAVING

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def is_pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def closed(self) -> bool:
        return self._closed

    def mark_dirty(self) -> None:
        """Record a mutation and (re)start the quiet-period timer.

        Must be called from within a running event loop.
        """
        if self._closed:
            return
        self._dirty = True
        if self._is_locked():
            logger.debug(f"Auto-save suppressed for {self.document_id}: edit lock held")
            structured_log.log_commit("suppressed")
            return
        if self._commit_lock.locked():
            self._rearm = True
            return
        self._arm()

    def _arm(self) -> None:
        self._cancel_timer()
        if self.status != SaveStatus.PENDING:
            self._settled_status = self.status
        self._timer = asyncio.get_running_loop().create_task(self._debounce())
        self._set_status(SaveStatus.PENDING)

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _debounce(self) -> None:
        await asyncio.sleep(self.quiet_period)
        self._timer = None
        if self._closed:
            return
        if self._is_locked():
            structured_log.log_commit("suppressed")
            # No commit is coming until the lock is released and re-arms the timer.
            self._set_status(self._settled_status)
            return
        await self._run_commit(forced=False)

    async def flush(self) -> bool:
        """Commit now, bypassing the quiet period. Waits for an in-flight commit first."""
        if self._closed:
            return False
        self._cancel_timer()
        return await self._run_commit(forced=True)

    async def _run_commit(self, *, forced: bool) -> bool:
        async with self._commit_lock:
            self._dirty = False
            self._rearm = False
            sections = self._snapshot()
            self._set_status(SaveStatus.SAVING)
            started = time.monotonic()
            try:
                saved_at = await self._commit(sections)
            except Exception as e:
                self._dirty = True
                self.last_error = str(e)
                latency_ms = int((time.monotonic() - started) * 1000)
                logger.warning(f"Commit of document {self.document_id} failed: {e}")
                structured_log.log_commit(
                    "failed", sections=len(sections), latency_ms=latency_ms, forced=forced, error=str(e)
                )
                self._set_status(SaveStatus.FAILED)
                self.events.emit(CommitFailed(self.document_id, str(e)))
                succeeded = False
            else:
                self.last_saved_at = saved_at or utc_now()
                self.last_error = None
                self.commit_count += 1
                latency_ms = int((time.monotonic() - started) * 1000)
                logger.debug(
                    f"Committed {len(sections)} sections of {self.document_id} in {latency_ms}ms"
                )
                structured_log.log_commit(
                    "success", sections=len(sections), latency_ms=latency_ms, forced=forced
                )
                self._set_status(SaveStatus.SAVED)
                succeeded = True

        if self._rearm and not self._closed:
            self._rearm = False
            if not self._is_locked():
                self._arm()
        return succeeded

    def _set_status(self, status: SaveStatus) -> None:
        if status == self.status:
            return
        self.status = status
        self.events.emit(SaveStatusChanged(status, self.is_auto_saving, self.last_saved_at))

    def dispose(self) -> None:
        """Cancel any pending auto-save. An in-flight commit runs to completion."""
        self._closed = True
        self._cancel_timer()
