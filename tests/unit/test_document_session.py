"""
Unit tests for DocumentSession against an in-memory store.
"""

import asyncio

import pytest

from src.engine.events import SaveStatusChanged, SectionCompleted
from src.engine.session import DocumentSession
from src.exceptions import SaveConflictError, SessionClosedError, UnknownSectionError
from src.models import (
    DEFAULT_DOCUMENT_TITLE,
    Document,
    EngineConfig,
    SaveStatus,
    SectionOrigin,
    SettingsConfig,
    SyncMessage,
)
from tests.fixtures.documents import (
    EXECUTIVE_SUMMARY_REPLY,
    FUNDING_TEXT,
    LONG_SUMMARY,
    MARKET_ANALYSIS_REPLY,
    InMemoryDocumentStore,
    assistant,
    user,
    wait_until,
)

MANUAL_MARKET_NOTES = "Local market notes from owner interviews. " * 8


async def _open(store, settings, **kwargs) -> DocumentSession:
    return await DocumentSession.open(store, "owner-1", settings=settings, **kwargs)


@pytest.mark.asyncio
async def test_open_creates_document_with_full_catalog(store, fast_settings):
    session = await _open(store, fast_settings)
    assert list(session.document.sections)[0] == "executive_summary"
    assert len(session.document.sections) == 9
    assert session.completion_percentage == 0
    assert session.save_status == SaveStatus.IDLE
    assert not session.is_connected
    session.dispose()


@pytest.mark.asyncio
async def test_scenario_a_partial_summary_is_extracted_but_incomplete(store, fast_settings):
    session = await _open(store, fast_settings)
    changed = session.apply_messages([user("Hi"), assistant(EXECUTIVE_SUMMARY_REPLY)])

    section = session.document.sections["executive_summary"]
    assert changed == ["executive_summary"]
    assert section.content == (
        "We help small bakeries manage inventory. Our solution reduces waste by 30%."
    )
    assert section.origin == SectionOrigin.AI
    assert not section.completed
    assert session.current_section == "executive_summary"

    assert await wait_until(lambda: len(store.commits) == 1)
    assert session.save_status == SaveStatus.SAVED
    session.dispose()


@pytest.mark.asyncio
async def test_scenario_b_manual_save_forces_commit(store, fast_settings):
    session = await _open(store, fast_settings)
    events = []
    session.subscribe(events.append)

    assert session.begin_edit("funding_request", "") == ""
    assert session.editing_section_id == "funding_request"
    ok = await session.save_edit("funding_request", FUNDING_TEXT)

    section = session.document.sections["funding_request"]
    assert ok is True
    assert section.origin == SectionOrigin.MANUAL
    assert section.completed
    assert section.last_updated is not None
    assert session.editing_section_id is None
    assert len(store.commits) == 1
    assert store.commits[0]["funding_request"].content == FUNDING_TEXT
    assert session.last_saved_at is not None

    saving_flags = [e.is_auto_saving for e in events if isinstance(e, SaveStatusChanged)]
    assert saving_flags == [True, False]
    assert SectionCompleted("funding_request", 11) in events
    session.dispose()


@pytest.mark.asyncio
async def test_scenario_c_foreign_document_update_is_ignored(fast_settings):
    store = InMemoryDocumentStore(Document.new("owner-1", id="D2"))
    session = await _open(store, fast_settings)
    before = session.document.model_copy(deep=True)

    message = SyncMessage(
        document_id="D1",
        sections={"owner_bio": {"content": "Someone else's bio", "origin": "manual"}},
    )
    assert session.apply_remote(message) == []
    assert session.document == before
    session.dispose()


@pytest.mark.asyncio
async def test_lock_blocks_ai_and_remote_until_cancelled(store, fast_settings):
    session = await _open(store, fast_settings)
    session.begin_edit("market_analysis")

    changed = session.apply_messages([assistant(MARKET_ANALYSIS_REPLY)])
    assert changed == ["marketing_plan"]
    assert session.document.sections["market_analysis"].content == ""

    remote = {
        "kind": "document_update",
        "documentId": session.document_id,
        "sections": {"market_analysis": {"content": "Remote text", "origin": "manual"}},
    }
    assert session.apply_remote(remote) == []
    assert session.document.sections["market_analysis"].content == ""

    session.cancel_edit("market_analysis")
    assert session.apply_messages([assistant(MARKET_ANALYSIS_REPLY)]) == ["market_analysis"]
    session.dispose()


@pytest.mark.asyncio
async def test_lock_suppresses_auto_save_until_cancel(store, fast_settings):
    session = await _open(store, fast_settings)
    session.begin_edit("owner_bio")
    session.apply_messages([assistant("## Executive Summary\n" + LONG_SUMMARY)])

    await asyncio.sleep(0.2)
    assert store.commits == []

    session.cancel_edit()
    assert await wait_until(lambda: len(store.commits) == 1)
    session.dispose()


@pytest.mark.asyncio
async def test_manual_content_survives_shorter_ai_extraction(store, fast_settings):
    session = await _open(store, fast_settings)
    session.begin_edit("market_analysis")
    await session.save_edit("market_analysis", MANUAL_MARKET_NOTES)

    changed = session.apply_messages([assistant(MARKET_ANALYSIS_REPLY)])
    assert "market_analysis" not in changed
    assert session.document.sections["market_analysis"].content == MANUAL_MARKET_NOTES
    assert session.document.sections["market_analysis"].origin == SectionOrigin.MANUAL
    session.dispose()


@pytest.mark.asyncio
async def test_save_edit_requires_matching_lock(store, fast_settings):
    session = await _open(store, fast_settings)
    with pytest.raises(SaveConflictError):
        await session.save_edit("owner_bio", "text")

    session.begin_edit("owner_bio")
    with pytest.raises(SaveConflictError):
        await session.save_edit("market_analysis", "text")

    with pytest.raises(UnknownSectionError):
        session.begin_edit("pricing_tiers")
    assert store.commits == []
    session.dispose()


@pytest.mark.asyncio
async def test_expired_lock_rejects_save(store):
    now = {"t": 0.0}
    settings = SettingsConfig(
        engine=EngineConfig(autosave_quiet_period_seconds=0.05, edit_lock_ttl_seconds=10)
    )
    session = await _open(store, settings, clock=lambda: now["t"])
    session.begin_edit("owner_bio")
    now["t"] = 11.0

    with pytest.raises(SaveConflictError):
        await session.save_edit("owner_bio", "Jane has baked for twenty years in three cities.")
    assert session.editing_section_id is None
    assert session.document.sections["owner_bio"].content == ""
    session.dispose()


@pytest.mark.asyncio
async def test_switching_edit_target_moves_the_lock(store, fast_settings):
    session = await _open(store, fast_settings)
    session.begin_edit("owner_bio")
    session.begin_edit("market_analysis")
    assert session.editing_section_id == "market_analysis"
    assert session.apply_messages([assistant("## Owner Bio\n" + LONG_SUMMARY)]) == ["owner_bio"]
    session.dispose()


@pytest.mark.asyncio
async def test_reapplying_same_conversation_is_a_no_op(store, fast_settings):
    session = await _open(store, fast_settings)
    messages = [assistant(MARKET_ANALYSIS_REPLY)]
    session.apply_messages(messages)
    assert await wait_until(lambda: len(store.commits) == 1)

    assert session.apply_messages(messages) == []
    await asyncio.sleep(0.2)
    assert len(store.commits) == 1
    session.dispose()


@pytest.mark.asyncio
async def test_business_name_sets_title_unless_renamed(store, fast_settings):
    session = await _open(store, fast_settings)
    assert session.document.title == DEFAULT_DOCUMENT_TITLE

    session.apply_messages([user("My bakery software company is called Crumb Ledger.")])
    assert session.document.detected_entity_name == "Crumb Ledger"
    assert session.document.title == "Crumb Ledger Business Plan"

    session.rename("Seed Round Plan")
    session.apply_messages([user("Actually the business name is Loaf Logic.")])
    assert session.document.detected_entity_name == "Loaf Logic"
    assert session.document.title == "Seed Round Plan"

    assert await wait_until(lambda: len(store.commits) == 1)
    assert store.titles[-1] == "Seed Round Plan"
    session.dispose()


@pytest.mark.asyncio
async def test_commit_failure_is_reported_not_raised(store, fast_settings):
    store.fail_with = RuntimeError("storage offline")
    session = await _open(store, fast_settings)
    session.apply_messages([assistant(EXECUTIVE_SUMMARY_REPLY)])

    assert await wait_until(lambda: session.save_status == SaveStatus.FAILED)
    assert session.last_error == "storage offline"
    assert session.document.sections["executive_summary"].content != ""

    store.fail_with = None
    session.apply_messages([assistant("## Owner Bio\n" + LONG_SUMMARY)])
    assert await wait_until(lambda: session.save_status == SaveStatus.SAVED)
    assert store.commits[-1]["executive_summary"].content != ""
    session.dispose()


@pytest.mark.asyncio
async def test_dispose_drops_pending_commit_and_closes(store, fast_settings):
    session = await _open(store, fast_settings)
    session.apply_messages([assistant(EXECUTIVE_SUMMARY_REPLY)])
    session.dispose()

    await asyncio.sleep(0.2)
    assert store.commits == []
    assert session.closed
    with pytest.raises(SessionClosedError):
        session.apply_messages([])
    with pytest.raises(SessionClosedError):
        session.begin_edit("owner_bio")
