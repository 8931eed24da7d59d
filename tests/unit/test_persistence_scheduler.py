"""
Unit tests for the debounced persistence scheduler.
"""

import asyncio
import time

import pytest

from src.engine.events import CommitFailed, EventBus, SaveStatusChanged
from src.engine.persistence import PersistenceScheduler
from src.models import Document, SaveStatus, utc_now

QUIET = 0.1


def _scheduler(commit, *, is_locked=lambda: False, events=None):
    document = Document.new("owner-1")
    return PersistenceScheduler(
        document.id,
        snapshot=lambda: dict(document.sections),
        commit=commit,
        quiet_period=QUIET,
        is_locked=is_locked,
        events=events,
    )


class _RecordingCommit:
    def __init__(self, delay: float = 0.0):
        self.calls = []
        self.delay = delay
        self.active = 0
        self.max_active = 0

    async def __call__(self, sections):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.calls.append(time.monotonic())
            return utc_now()
        finally:
            self.active -= 1


@pytest.mark.asyncio
async def test_debounce_coalesces_bursts_into_one_commit():
    commit = _RecordingCommit()
    scheduler = _scheduler(commit)

    for _ in range(4):
        scheduler.mark_dirty()
        await asyncio.sleep(QUIET / 5)
    scheduler.mark_dirty()
    last_mark = time.monotonic()

    await asyncio.sleep(QUIET * 3)
    assert len(commit.calls) == 1
    assert commit.calls[0] - last_mark >= QUIET * 0.9
    assert scheduler.status == SaveStatus.SAVED
    assert scheduler.last_saved_at is not None


@pytest.mark.asyncio
async def test_no_commit_before_quiet_period():
    commit = _RecordingCommit()
    scheduler = _scheduler(commit)
    scheduler.mark_dirty()
    await asyncio.sleep(QUIET / 3)
    assert commit.calls == []
    assert scheduler.is_pending
    assert scheduler.status == SaveStatus.PENDING
    scheduler.dispose()


@pytest.mark.asyncio
async def test_lock_suppresses_auto_save():
    commit = _RecordingCommit()
    locked = {"value": True}
    scheduler = _scheduler(commit, is_locked=lambda: locked["value"])

    scheduler.mark_dirty()
    await asyncio.sleep(QUIET * 2)
    assert commit.calls == []
    assert scheduler.is_dirty

    locked["value"] = False
    scheduler.mark_dirty()
    await asyncio.sleep(QUIET * 2)
    assert len(commit.calls) == 1
    assert not scheduler.is_dirty


@pytest.mark.asyncio
async def test_lock_taken_during_quiet_period_suppresses_commit():
    commit = _RecordingCommit()
    locked = {"value": False}
    scheduler = _scheduler(commit, is_locked=lambda: locked["value"])
    scheduler.mark_dirty()
    locked["value"] = True
    await asyncio.sleep(QUIET * 2)
    assert commit.calls == []
    assert scheduler.status == SaveStatus.IDLE
    assert not scheduler.is_pending
    assert scheduler.is_dirty


@pytest.mark.asyncio
async def test_suppressed_timer_returns_to_saved_status():
    commit = _RecordingCommit()
    locked = {"value": False}
    events = []
    bus = EventBus()
    bus.subscribe(events.append)
    scheduler = _scheduler(commit, is_locked=lambda: locked["value"], events=bus)
    assert await scheduler.flush() is True

    scheduler.mark_dirty()
    locked["value"] = True
    await asyncio.sleep(QUIET * 2)

    assert len(commit.calls) == 1
    assert scheduler.status == SaveStatus.SAVED
    statuses = [e.status for e in events if isinstance(e, SaveStatusChanged)]
    assert statuses[-2:] == [SaveStatus.PENDING, SaveStatus.SAVED]

    locked["value"] = False
    scheduler.mark_dirty()
    await asyncio.sleep(QUIET * 2)
    assert len(commit.calls) == 2


@pytest.mark.asyncio
async def test_flush_bypasses_debounce():
    commit = _RecordingCommit()
    scheduler = _scheduler(commit)
    scheduler.mark_dirty()
    assert await scheduler.flush() is True
    assert len(commit.calls) == 1
    await asyncio.sleep(QUIET * 2)
    assert len(commit.calls) == 1


@pytest.mark.asyncio
async def test_one_commit_in_flight_and_rearm_after():
    commit = _RecordingCommit(delay=QUIET)
    scheduler = _scheduler(commit)

    scheduler.mark_dirty()
    await asyncio.sleep(QUIET * 1.3)
    assert scheduler.is_auto_saving
    scheduler.mark_dirty()
    assert not scheduler.is_pending

    await asyncio.sleep(QUIET * 4)
    assert len(commit.calls) == 2
    assert commit.max_active == 1


@pytest.mark.asyncio
async def test_failed_commit_reports_and_retries_on_next_mark():
    events = []
    bus = EventBus()
    bus.subscribe(events.append)
    outcomes = [RuntimeError("disk full"), None]

    async def flaky(sections):
        outcome = outcomes.pop(0)
        if outcome is not None:
            raise outcome
        return utc_now()

    scheduler = _scheduler(flaky, events=bus)
    scheduler.mark_dirty()
    await asyncio.sleep(QUIET * 2)

    assert scheduler.status == SaveStatus.FAILED
    assert scheduler.last_error == "disk full"
    assert scheduler.is_dirty
    assert [e for e in events if isinstance(e, CommitFailed)][0].error == "disk full"

    scheduler.mark_dirty()
    await asyncio.sleep(QUIET * 2)
    assert scheduler.status == SaveStatus.SAVED
    assert scheduler.last_error is None


@pytest.mark.asyncio
async def test_status_events_show_saving_then_saved():
    events = []
    bus = EventBus()
    bus.subscribe(events.append)
    scheduler = _scheduler(_RecordingCommit(), events=bus)
    await scheduler.flush()
    statuses = [(e.status, e.is_auto_saving) for e in events if isinstance(e, SaveStatusChanged)]
    assert statuses == [(SaveStatus.SAVING, True), (SaveStatus.SAVED, False)]


@pytest.mark.asyncio
async def test_dispose_cancels_pending_commit():
    commit = _RecordingCommit()
    scheduler = _scheduler(commit)
    scheduler.mark_dirty()
    scheduler.dispose()
    await asyncio.sleep(QUIET * 2)
    assert commit.calls == []
    scheduler.mark_dirty()
    assert not scheduler.is_pending
    assert await scheduler.flush() is False
