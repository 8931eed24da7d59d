"""Wire model for push-channel document updates."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.models.document import Document
from src.models.enums import SectionOrigin, UpdateSource

DOCUMENT_UPDATE = "document_update"


class SectionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: str
    origin: SectionOrigin = SectionOrigin.AI


class SyncMessage(BaseModel):
    """`{kind, documentId, sections: {id: {content, origin}}}` plus optional sender metadata.

    Unknown keys are ignored so newer peers can add fields without breaking older ones.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    kind: str = DOCUMENT_UPDATE
    document_id: str = Field(alias="documentId")
    sections: Dict[str, SectionPayload] = Field(default_factory=dict)
    origin_client_id: Optional[str] = Field(default=None, alias="originClientId")
    source: Optional[str] = None

    @classmethod
    def from_document(
        cls,
        document: Document,
        *,
        source: UpdateSource,
        origin_client_id: Optional[str] = None,
        section_ids: Optional[Iterable[str]] = None,
    ) -> "SyncMessage":
        wanted = set(section_ids) if section_ids is not None else None
        sections = {
            section_id: SectionPayload(content=section.content, origin=section.origin)
            for section_id, section in document.sections.items()
            if wanted is None or section_id in wanted
        }
        return cls(
            document_id=document.id,
            sections=sections,
            origin_client_id=origin_client_id,
            source=source.value,
        )

    def known_sections(self, section_ids: Iterable[str]) -> Dict[str, SectionPayload]:
        allowed = set(section_ids)
        return {key: value for key, value in self.sections.items() if key in allowed}

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
