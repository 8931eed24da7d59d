from pathlib import Path

import aiosqlite
import pytest

from src.db.database import get_db, run_migrations
from src.db.repositories import DocumentRepository
from src.exceptions import DocumentNotFoundError, UnknownSectionError
from src.models import SectionOrigin
from src.sections.catalog import SECTION_IDS


@pytest.mark.asyncio
async def test_database_migrations_create_tables(tmp_path) -> None:
    db_path = tmp_path / "plans.db"
    async with get_db(str(db_path)) as db:
        assert isinstance(db, aiosqlite.Connection)
        cursor = await db.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        )
        names = {row[0] for row in await cursor.fetchall()}
    assert {"documents", "document_sections"} <= names
    assert Path(db_path).exists()


@pytest.mark.asyncio
async def test_migrations_are_idempotent(tmp_path) -> None:
    async with get_db(str(tmp_path / "plans.db")) as db:
        await run_migrations(db)
        cursor = await db.execute("PRAGMA table_info(documents)")
        columns = [row[1] for row in await cursor.fetchall()]
    assert columns.count("detected_entity_name") == 1
    assert columns.count("completion_notified") == 1


@pytest.mark.asyncio
async def test_create_document_stores_full_catalog(tmp_path) -> None:
    async with get_db(str(tmp_path / "plans.db")) as db:
        repo = DocumentRepository(db)
        created = await repo.create_document("owner-1")
        cursor = await db.execute(
            "SELECT COUNT(*) FROM document_sections WHERE document_id = ?", (created.id,)
        )
        (count,) = await cursor.fetchone()
        loaded = await repo.get_document(created.id)

    assert count == len(SECTION_IDS)
    assert loaded is not None
    assert list(loaded.sections) == list(SECTION_IDS)
    assert loaded.title == created.title


@pytest.mark.asyncio
async def test_save_section_rejects_unknown_ids(tmp_path) -> None:
    async with get_db(str(tmp_path / "plans.db")) as db:
        repo = DocumentRepository(db)
        document = await repo.create_document("owner-1")
        with pytest.raises(UnknownSectionError):
            await repo.save_section(document.id, "pricing_tiers", "x")
        with pytest.raises(DocumentNotFoundError):
            await repo.save_section("missing", "owner_bio", "x")

        section = await repo.save_section(document.id, "owner_bio", "Jane Doe, baker")
    assert section.origin == SectionOrigin.MANUAL
    assert section.last_updated is not None
