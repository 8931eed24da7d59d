"""CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
from collections import Counter
from pathlib import Path
from typing import Any, Sequence

from rich.console import Console
from rich.table import Table

from src.config.loader import load_settings
from src.db.database import get_db
from src.db.repositories import DocumentRepository
from src.db.store import SqliteDocumentStore
from src.engine.session import DocumentSession
from src.models import Document, SettingsConfig
from src.sections import coerce_messages, extract_candidates, section_title
from src.utils.logging_config import LogLevel, setup_logging
from src.utils.structured_log import configure_audit_logging, load_audit_events


def _read_messages(path: str) -> list[Any]:
    """Accept either a bare list of {role, content} or {"messages": [...]}."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("messages", [])
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of messages in {path}")
    return data


def _print_document(console: Console, document: Document) -> None:
    table = Table(title=f"{document.title} ({document.completion_percentage}% complete)")
    table.add_column("Section", style="cyan", no_wrap=True)
    table.add_column("Origin", style="magenta")
    table.add_column("Chars", justify="right")
    table.add_column("Done", justify="center")
    table.add_column("Preview", style="white")
    for section in document.sections.values():
        preview = section.content[:60] + ("..." if len(section.content) > 60 else "")
        table.add_row(
            section.title,
            section.origin.value,
            str(len(section.content)),
            "[green]yes[/]" if section.completed else "[dim]no[/]",
            preview,
        )
    console.print(table)
    saved = document.last_saved_at.isoformat() if document.last_saved_at else "never"
    console.print(f"[dim]Document {document.id} | last saved: {saved}[/]")


def _run_extract(path: str, console: Console) -> int:
    result = extract_candidates(coerce_messages(_read_messages(path)))
    table = Table(title="Extracted section candidates")
    table.add_column("Section", style="cyan", no_wrap=True)
    table.add_column("Chars", justify="right")
    table.add_column("Content", style="white")
    for section_id, content in result.candidates.items():
        table.add_row(section_title(section_id), str(len(content)), content)
    console.print(table)
    if result.current_section:
        console.print(f"[dim]Current section:[/] {section_title(result.current_section)}")
    if result.entity_name:
        console.print(f"[dim]Business name:[/] {result.entity_name}")
    if not result.candidates:
        console.print("[yellow]No section content found.[/]")
    return 0


async def _run_apply(path: str, owner: str, settings: SettingsConfig, console: Console) -> int:
    store = SqliteDocumentStore(settings.storage.db_path)
    session = await DocumentSession.open(store, owner, settings=settings)
    try:
        changed = session.apply_messages(_read_messages(path))
        ok = await session.scheduler.flush()
    finally:
        session.dispose()
    console.print(f"[green]Updated sections:[/] {', '.join(changed) or 'none'}")
    if not ok:
        console.print(f"[red]Error:[/] save failed: {session.last_error}")
        return 1
    _print_document(console, session.document)
    return 0


async def _run_show(owner: str, db_path: str, console: Console) -> int:
    async with get_db(db_path) as db:
        document = await DocumentRepository(db).get_current_document(owner)
    if document is None:
        console.print(f"[red]Error:[/] No document for owner '{owner}'.")
        return 1
    _print_document(console, document)
    return 0


def _run_audit(log_dir: str, console: Console) -> int:
    audit_path = Path(log_dir) / "audit.jsonl"
    events = load_audit_events(str(audit_path))
    if not events:
        console.print(f"[yellow]No audit events in {audit_path}[/]")
        return 1
    counts = Counter(
        (event.get("event", "?"), event.get("status") or event.get("action") or event.get("direction") or "")
        for event in events
    )
    table = Table(title=f"Audit summary ({len(events)} events)")
    table.add_column("Event", style="cyan", no_wrap=True)
    table.add_column("Outcome", style="magenta")
    table.add_column("Count", justify="right")
    for (name, outcome), count in sorted(counts.items()):
        table.add_row(name, outcome, str(count))
    console.print(table)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="plan-sync")
    parser.add_argument("--settings", default=None, help="Path to settings YAML (default: config/settings.yaml if present)")
    parser.add_argument("--verbose", "-v", action="store_true")
    sub = parser.add_subparsers(dest="command")

    extract = sub.add_parser("extract", help="Show the section candidates found in a conversation")
    extract.add_argument("messages", help="JSON file with [{role, content}, ...]")

    apply = sub.add_parser("apply", help="Merge a conversation into the owner's document and save it")
    apply.add_argument("messages")
    apply.add_argument("--owner", required=True)
    apply.add_argument("--db", default=None, help="Override storage.db_path")

    show = sub.add_parser("show", help="Print the owner's current document")
    show.add_argument("--owner", required=True)
    show.add_argument("--db", default=None, help="Override storage.db_path")

    audit = sub.add_parser("audit", help="Summarize the structured audit log")
    audit.add_argument("--log-dir", default=None, help="Override logging.jsonl_dir")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8001)
    serve.add_argument("--reload", action="store_true")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    console = Console()
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = load_settings(args.settings)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/] {e}")
        return 1

    setup_logging(
        level=LogLevel.DETAILED if args.verbose else LogLevel(settings.logging.level),
        log_file=settings.logging.log_file,
    )
    if settings.logging.jsonl_dir:
        configure_audit_logging(settings.logging.jsonl_dir)

    if args.command == "extract":
        try:
            return _run_extract(args.messages, console)
        except (OSError, ValueError) as e:
            console.print(f"[red]Error:[/] {e}")
            return 1

    if args.command == "apply":
        if args.db:
            settings.storage.db_path = args.db
        try:
            return asyncio.run(_run_apply(args.messages, args.owner, settings, console))
        except (OSError, ValueError) as e:
            console.print(f"[red]Error:[/] {e}")
            return 1

    if args.command == "show":
        return asyncio.run(_run_show(args.owner, args.db or settings.storage.db_path, console))

    if args.command == "audit":
        log_dir = args.log_dir or settings.logging.jsonl_dir
        if not log_dir:
            console.print("[red]Error:[/] No audit log directory configured (use --log-dir).")
            return 1
        return _run_audit(log_dir, console)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("src.web.app:app", host=args.host, port=args.port, reload=args.reload)
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
