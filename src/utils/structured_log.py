"""Structured logging for a machine-parseable audit trail of document changes."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
from structlog.processors import JSONRenderer
from structlog.typing import Processor

_configured = False
_logger: structlog.BoundLogger | None = None


def configure_audit_logging(log_dir: str) -> None:
    """One-time setup. Writes JSON lines to {log_dir}/audit.jsonl."""
    global _configured, _logger
    if _configured:
        return
    audit_path = Path(log_dir) / "audit.jsonl"
    audit_path.parent.mkdir(parents=True, exist_ok=True)
    file_handle = open(audit_path, "a", encoding="utf-8")

    def _file_logger_factory(*args: Any, **kwargs: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file_handle)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        JSONRenderer(),
    ]
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=_file_logger_factory,
        cache_logger_on_first_use=True,
    )
    _configured = True
    _logger = structlog.get_logger()


def bind_document(document_id: str, owner_session_id: str) -> None:
    """Bind document context so every audit line carries document_id and owner."""
    structlog.contextvars.bind_contextvars(
        document_id=document_id, owner_session_id=owner_session_id
    )


def log_commit(
    status: str,
    *,
    sections: int | None = None,
    latency_ms: int | None = None,
    forced: bool = False,
    error: str | None = None,
) -> None:
    """Log a persistence commit (status: success|failed|suppressed)."""
    payload: dict[str, Any] = {"status": status, "forced": forced}
    if sections is not None:
        payload["sections"] = sections
    if latency_ms is not None:
        payload["latency_ms"] = latency_ms
    if error is not None:
        payload["error"] = error
    if _logger is not None:
        _logger.info("commit", **payload)


def log_merge_decision(
    section_id: str,
    action: str,
    source: str,
    *,
    origin: str | None = None,
    content_length: int | None = None,
) -> None:
    """Log the outcome of resolving one candidate against a section."""
    payload: dict[str, Any] = {"section_id": section_id, "action": action, "source": source}
    if origin is not None:
        payload["origin"] = origin
    if content_length is not None:
        payload["content_length"] = content_length
    if _logger is not None:
        _logger.info("merge_decision", **payload)


def log_sync_message(direction: str, document_id: str, sections: int, **extra: Any) -> None:
    """Log a push-channel message (direction: inbound|outbound|ignored)."""
    if _logger is not None:
        _logger.info(
            "sync_message", direction=direction, target_document=document_id, sections=sections, **extra
        )


def log_edit_lock(section_id: str, action: str) -> None:
    """Log an edit lock transition (action: acquired|saved|cancelled|rejected)."""
    if _logger is not None:
        _logger.info("edit_lock", section_id=section_id, action=action)


def load_audit_events(path: str) -> list[dict[str, Any]]:
    """Read an audit.jsonl file, skipping lines that fail to parse."""
    result: list[dict[str, Any]] = []
    try:
        with open(path, encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line:
                    continue
                try:
                    result.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
    except OSError:
        pass
    return result
