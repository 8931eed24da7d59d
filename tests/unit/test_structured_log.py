"""
Unit tests for the JSONL audit trail.
"""

import structlog

from src.utils import structured_log
from src.utils.structured_log import (
    bind_document,
    configure_audit_logging,
    load_audit_events,
    log_commit,
    log_edit_lock,
    log_merge_decision,
)


def test_audit_lines_carry_document_context(tmp_path, monkeypatch):
    monkeypatch.setattr(structured_log, "_configured", False)
    monkeypatch.setattr(structured_log, "_logger", None)
    configure_audit_logging(str(tmp_path))
    try:
        bind_document("doc-1", "owner-1")
        log_merge_decision("owner_bio", "adopted", "ai", origin="ai", content_length=120)
        log_edit_lock("owner_bio", "acquired")
        log_commit("success", sections=9, latency_ms=4)
    finally:
        structlog.contextvars.clear_contextvars()

    events = load_audit_events(str(tmp_path / "audit.jsonl"))
    assert [event["event"] for event in events] == ["merge_decision", "edit_lock", "commit"]
    assert all(event["document_id"] == "doc-1" for event in events)
    assert events[0]["content_length"] == 120
    assert events[2]["status"] == "success"
    assert "error" not in events[2]


def test_logging_before_configuration_is_a_no_op(monkeypatch):
    monkeypatch.setattr(structured_log, "_logger", None)
    log_commit("failed", error="boom")


def test_load_audit_events_skips_bad_lines(tmp_path):
    path = tmp_path / "audit.jsonl"
    path.write_text('{"event": "commit"}\nnot json\n\n{"event": "edit_lock"}\n', encoding="utf-8")

    assert [e["event"] for e in load_audit_events(str(path))] == ["commit", "edit_lock"]
    assert load_audit_events(str(tmp_path / "missing.jsonl")) == []
