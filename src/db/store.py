"""SQLite-backed DocumentStore for DocumentSession."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, Optional

from src.db.database import DEFAULT_DB_PATH, get_db
from src.db.repositories import DocumentRepository
from src.models import Document, Section


class SqliteDocumentStore:
    """Opens a short-lived connection per operation, like the request handlers do."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path

    async def load_document(self, owner_session_id: str) -> Document:
        async with get_db(self.db_path) as db:
            return await DocumentRepository(db).load_or_create(owner_session_id)

    async def commit_sections(
        self,
        document_id: str,
        sections: Dict[str, Section],
        *,
        title: Optional[str] = None,
        detected_entity_name: Optional[str] = None,
        notified_section_ids: Optional[Iterable[str]] = None,
    ) -> datetime:
        async with get_db(self.db_path) as db:
            return await DocumentRepository(db).commit_sections(
                document_id,
                sections,
                title=title,
                detected_entity_name=detected_entity_name,
                notified_section_ids=notified_section_ids,
            )
