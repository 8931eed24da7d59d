"""FastAPI backend for co-authored business plan documents.

Run with:
    uv run uvicorn src.web.app:app --reload --port ${PORT:-8001}

Or via the CLI:
    plan-sync serve --port 8001
"""

from __future__ import annotations

import asyncio
import json as _json
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sse_starlette.sse import EventSourceResponse

from src.config.loader import load_settings
from src.db.database import get_db
from src.db.repositories import DocumentRepository
from src.exceptions import ChannelClosedError, DocumentNotFoundError, UnknownSectionError
from src.models import (
    Document,
    SectionPayload,
    SettingsConfig,
    SyncMessage,
    UpdateSource,
    utc_now,
)
from src.sections.catalog import is_known_section
from src.sync.hub import ChannelHub
from src.utils.logging_config import get_logger

logger = get_logger(__name__)

# In-process push channel shared by every stream subscriber of this worker.
_hub = ChannelHub()

_HEARTBEAT_SECONDS = 15.0


@lru_cache(maxsize=1)
def get_settings() -> SettingsConfig:
    return load_settings()


def get_hub() -> ChannelHub:
    return _hub


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    yield
    # Wake every open stream so the SSE generators can finish.
    _hub.disconnect()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(title="Business Plan Sync API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DocumentNotFoundError)
async def _document_not_found(_request: Request, exc: DocumentNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": f"Document not found: {exc}"})


@app.exception_handler(UnknownSectionError)
async def _unknown_section(_request: Request, exc: UnknownSectionError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": f"Unknown section: {exc.args[0]}"})


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class SectionSaveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    section_id: str = Field(alias="sectionId")
    content: str
    origin_client_id: Optional[str] = Field(default=None, alias="originClientId")


class AutoSaveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sections: Dict[str, SectionPayload]
    title: Optional[str] = None
    origin_client_id: Optional[str] = Field(default=None, alias="originClientId")


class TitleRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)


def _document_payload(document: Document) -> dict[str, Any]:
    payload = document.model_dump(mode="json")
    payload["completion_percentage"] = document.completion_percentage
    payload["is_complete"] = document.is_complete
    return payload


def _broadcast(
    hub: ChannelHub,
    document: Document,
    source: UpdateSource,
    origin_client_id: Optional[str],
    section_ids: Optional[list[str]] = None,
) -> None:
    message = SyncMessage.from_document(
        document, source=source, origin_client_id=origin_client_id, section_ids=section_ids
    )
    delivered = hub.publish(document.owner_session_id, document.id, message.to_wire())
    logger.debug(f"Broadcast {source.value} for {document.id} to {delivered} subscriber(s)")


async def _require_document(repo: DocumentRepository, document_id: str) -> Document:
    document = await repo.get_document(document_id)
    if document is None:
        raise DocumentNotFoundError(document_id)
    return document


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/documents/current")
async def get_current_document(
    owner_id: str, settings: SettingsConfig = Depends(get_settings)
) -> dict[str, Any]:
    """Return the owner's most recent document, creating an empty one on first access."""
    async with get_db(settings.storage.db_path) as db:
        document = await DocumentRepository(db).load_or_create(owner_id)
    return _document_payload(document)


@app.get("/api/documents")
async def list_documents(
    owner_id: str, settings: SettingsConfig = Depends(get_settings)
) -> list[dict[str, Any]]:
    async with get_db(settings.storage.db_path) as db:
        documents = await DocumentRepository(db).list_documents(owner_id)
    return [
        {
            "id": d.id,
            "title": d.title,
            "completion_percentage": d.completion_percentage,
            "updated_at": d.updated_at.isoformat(),
            "last_saved_at": d.last_saved_at.isoformat() if d.last_saved_at else None,
        }
        for d in documents
    ]


@app.get("/api/documents/{document_id}")
async def get_document(
    document_id: str, settings: SettingsConfig = Depends(get_settings)
) -> dict[str, Any]:
    async with get_db(settings.storage.db_path) as db:
        document = await _require_document(DocumentRepository(db), document_id)
    return _document_payload(document)


@app.post("/api/documents/{document_id}/sections")
async def save_section(
    document_id: str,
    req: SectionSaveRequest,
    settings: SettingsConfig = Depends(get_settings),
    hub: ChannelHub = Depends(get_hub),
) -> dict[str, Any]:
    """Explicit manual save of one section. Marks it manual and broadcasts the change."""
    async with get_db(settings.storage.db_path) as db:
        repo = DocumentRepository(db)
        section = await repo.save_section(document_id, req.section_id, req.content)
        document = await _require_document(repo, document_id)
    _broadcast(hub, document, UpdateSource.SECTION_SAVE, req.origin_client_id, [req.section_id])
    return {
        "success": True,
        "section": section.model_dump(mode="json"),
        "completion_percentage": document.completion_percentage,
    }


@app.post("/api/documents/{document_id}/auto-save")
async def auto_save(
    document_id: str,
    req: AutoSaveRequest,
    settings: SettingsConfig = Depends(get_settings),
    hub: ChannelHub = Depends(get_hub),
) -> dict[str, Any]:
    """Commit a section snapshot and broadcast it to the document's other sessions."""
    for section_id in req.sections:
        if not is_known_section(section_id):
            raise UnknownSectionError(section_id)
    async with get_db(settings.storage.db_path) as db:
        repo = DocumentRepository(db)
        document = await _require_document(repo, document_id)
        now = utc_now()
        for section_id, payload in req.sections.items():
            current = document.sections[section_id]
            if current.content != payload.content or current.origin != payload.origin:
                document.sections[section_id] = current.model_copy(
                    update={"content": payload.content, "origin": payload.origin, "last_updated": now}
                )
        saved_at = await repo.commit_sections(document_id, document.sections, title=req.title)
        document = await _require_document(repo, document_id)
    _broadcast(hub, document, UpdateSource.AUTO_SAVE, req.origin_client_id)
    return {
        "success": True,
        "last_saved_at": saved_at.isoformat(),
        "completion_percentage": document.completion_percentage,
    }


@app.put("/api/documents/{document_id}/title")
async def update_title(
    document_id: str, req: TitleRequest, settings: SettingsConfig = Depends(get_settings)
) -> dict[str, Any]:
    async with get_db(settings.storage.db_path) as db:
        document = await DocumentRepository(db).update_title(document_id, req.title.strip())
    return _document_payload(document)


@app.delete("/api/documents/{document_id}")
async def delete_document(
    document_id: str, settings: SettingsConfig = Depends(get_settings)
) -> dict[str, bool]:
    async with get_db(settings.storage.db_path) as db:
        await DocumentRepository(db).delete_document(document_id)
    return {"success": True}


@app.get("/api/documents/{document_id}/stream")
async def stream_document(
    document_id: str,
    request: Request,
    settings: SettingsConfig = Depends(get_settings),
    hub: ChannelHub = Depends(get_hub),
) -> EventSourceResponse:
    """Server-sent `document_update` messages for one document, with a 15s heartbeat."""
    async with get_db(settings.storage.db_path) as db:
        document = await _require_document(DocumentRepository(db), document_id)
    try:
        subscription = hub.subscribe(document.owner_session_id, document.id)
    except ChannelClosedError:
        raise HTTPException(status_code=503, detail="Push channel unavailable")

    async def _generator() -> AsyncGenerator[dict[str, Any], None]:
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    message = await asyncio.wait_for(subscription.get(), timeout=_HEARTBEAT_SECONDS)
                    yield {"event": message.get("kind", "document_update"), "data": _json.dumps(message)}
                except asyncio.TimeoutError:
                    yield {"event": "heartbeat", "data": "{}"}
                except ChannelClosedError:
                    break
        finally:
            hub.unsubscribe(subscription)

    return EventSourceResponse(_generator(), headers={"X-Accel-Buffering": "no"})

