"""Typed repositories for document persistence."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

import aiosqlite

from src.exceptions import DocumentNotFoundError, UnknownSectionError
from src.models import DEFAULT_DOCUMENT_TITLE, Document, Section, SectionOrigin, utc_now
from src.sections.catalog import SECTION_CATALOG, is_known_section, section_title

_POSITIONS = {definition.id: index for index, definition in enumerate(SECTION_CATALOG)}


def _parse_ts(value: Any) -> Optional[datetime]:
    return datetime.fromisoformat(str(value)) if value else None


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _catalog_ordered(section_ids: Iterable[str]) -> List[str]:
    wanted = set(section_ids)
    return [definition.id for definition in SECTION_CATALOG if definition.id in wanted]


def _parse_notified(value: Any) -> List[str]:
    try:
        stored = json.loads(value or "[]")
    except (TypeError, ValueError):
        return []
    if not isinstance(stored, list):
        return []
    return _catalog_ordered(str(item) for item in stored)


def _row_to_section(row: aiosqlite.Row) -> Section:
    try:
        origin = SectionOrigin(str(row["origin"]))
    except ValueError:
        origin = SectionOrigin.AI
    return Section(
        id=str(row["section_id"]),
        title=section_title(str(row["section_id"])),
        content=str(row["content"] or ""),
        origin=origin,
        last_updated=_parse_ts(row["last_updated"]),
    )


class DocumentRepository:
    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def create_document(
        self, owner_session_id: str, title: str = DEFAULT_DOCUMENT_TITLE
    ) -> Document:
        document = Document.new(owner_session_id, title=title)
        await self.db.execute(
            """
            INSERT INTO documents (
                document_id, owner_session_id, title, detected_entity_name,
                created_at, updated_at, last_saved_at, completion_notified
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                document.id,
                document.owner_session_id,
                document.title,
                document.detected_entity_name,
                _ts(document.created_at),
                _ts(document.updated_at),
                None,
                json.dumps(document.notified_section_ids),
            ),
        )
        await self._upsert_sections(document.id, document.sections)
        await self.db.commit()
        return document

    async def get_document(self, document_id: str) -> Optional[Document]:
        async with self.db.execute(
            """
            SELECT document_id, owner_session_id, title, detected_entity_name,
                   created_at, updated_at, last_saved_at, completion_notified
            FROM documents WHERE document_id = ?
            """,
            (document_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return await self._hydrate(row)

    async def get_current_document(self, owner_session_id: str) -> Optional[Document]:
        """Most recently updated document of the owner, if any."""
        async with self.db.execute(
            """
            SELECT document_id FROM documents
            WHERE owner_session_id = ?
            ORDER BY updated_at DESC, created_at DESC
            LIMIT 1
            """,
            (owner_session_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return await self.get_document(str(row["document_id"]))

    async def list_documents(self, owner_session_id: str) -> List[Document]:
        async with self.db.execute(
            """
            SELECT document_id, owner_session_id, title, detected_entity_name,
                   created_at, updated_at, last_saved_at, completion_notified
            FROM documents WHERE owner_session_id = ?
            ORDER BY updated_at DESC
            """,
            (owner_session_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [await self._hydrate(row) for row in rows]

    async def load_or_create(self, owner_session_id: str) -> Document:
        document = await self.get_current_document(owner_session_id)
        if document is not None:
            return document
        return await self.create_document(owner_session_id)

    async def commit_sections(
        self,
        document_id: str,
        sections: Mapping[str, Section],
        *,
        title: Optional[str] = None,
        detected_entity_name: Optional[str] = None,
        notified_section_ids: Optional[Iterable[str]] = None,
    ) -> datetime:
        """Persist a full section map; unknown section ids are skipped. Returns the save time.

        Notified section ids are merged into the stored set, never removed from it.
        """
        existing = await self._require(document_id)
        notified = _catalog_ordered(
            set(existing.notified_section_ids) | set(notified_section_ids or ())
        )
        saved_at = utc_now()
        known = {sid: section for sid, section in sections.items() if is_known_section(sid)}
        await self._upsert_sections(document_id, known)
        await self.db.execute(
            """
            UPDATE documents SET
                title = COALESCE(?, title),
                detected_entity_name = COALESCE(?, detected_entity_name),
                completion_notified = ?,
                updated_at = ?,
                last_saved_at = ?
            WHERE document_id = ?
            """,
            (
                title,
                detected_entity_name,
                json.dumps(notified),
                _ts(saved_at),
                _ts(saved_at),
                document_id,
            ),
        )
        await self.db.commit()
        return saved_at

    async def save_section(
        self,
        document_id: str,
        section_id: str,
        content: str,
        origin: SectionOrigin = SectionOrigin.MANUAL,
    ) -> Section:
        if not is_known_section(section_id):
            raise UnknownSectionError(section_id)
        document = await self._require(document_id)
        section = document.section(section_id).model_copy(
            update={"content": content, "origin": origin, "last_updated": utc_now()}
        )
        await self._upsert_sections(document_id, {section_id: section})
        await self._touch(document_id)
        await self.db.commit()
        return section

    async def update_title(self, document_id: str, title: str) -> Document:
        await self._require(document_id)
        await self.db.execute(
            "UPDATE documents SET title = ?, updated_at = ? WHERE document_id = ?",
            (title, _ts(utc_now()), document_id),
        )
        await self.db.commit()
        return await self._require(document_id)

    async def update_entity_name(self, document_id: str, entity_name: str) -> None:
        await self._require(document_id)
        await self.db.execute(
            "UPDATE documents SET detected_entity_name = ? WHERE document_id = ?",
            (entity_name, document_id),
        )
        await self.db.commit()

    async def delete_document(self, document_id: str) -> None:
        await self._require(document_id)
        await self.db.execute("DELETE FROM document_sections WHERE document_id = ?", (document_id,))
        await self.db.execute("DELETE FROM documents WHERE document_id = ?", (document_id,))
        await self.db.commit()

    async def _require(self, document_id: str) -> Document:
        document = await self.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    async def _touch(self, document_id: str) -> None:
        await self.db.execute(
            "UPDATE documents SET updated_at = ? WHERE document_id = ?",
            (_ts(utc_now()), document_id),
        )

    async def _upsert_sections(self, document_id: str, sections: Mapping[str, Section]) -> None:
        await self.db.executemany(
            """
            INSERT INTO document_sections (
                document_id, section_id, position, content, origin, last_updated
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(document_id, section_id) DO UPDATE SET
                content=excluded.content,
                origin=excluded.origin,
                last_updated=excluded.last_updated
            """,
            [
                (
                    document_id,
                    section_id,
                    _POSITIONS[section_id],
                    section.content,
                    section.origin.value,
                    _ts(section.last_updated),
                )
                for section_id, section in sections.items()
            ],
        )

    async def _load_sections(self, document_id: str) -> Dict[str, Section]:
        async with self.db.execute(
            """
            SELECT section_id, content, origin, last_updated
            FROM document_sections WHERE document_id = ?
            """,
            (document_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        stored = {
            str(row["section_id"]): _row_to_section(row)
            for row in rows
            if is_known_section(str(row["section_id"]))
        }
        # Every catalog section is present, in catalog order, even if never stored.
        return {
            definition.id: stored.get(definition.id)
            or Section(id=definition.id, title=definition.title)
            for definition in SECTION_CATALOG
        }

    async def _hydrate(self, row: aiosqlite.Row) -> Document:
        document_id = str(row["document_id"])
        return Document(
            id=document_id,
            owner_session_id=str(row["owner_session_id"]),
            title=str(row["title"]),
            detected_entity_name=row["detected_entity_name"],
            sections=await self._load_sections(document_id),
            created_at=_parse_ts(row["created_at"]) or utc_now(),
            updated_at=_parse_ts(row["updated_at"]) or utc_now(),
            last_saved_at=_parse_ts(row["last_saved_at"]),
            notified_section_ids=_parse_notified(row["completion_notified"]),
        )

