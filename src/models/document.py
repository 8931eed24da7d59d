"""Document, section and conversation models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from src.exceptions import UnknownSectionError
from src.models.enums import MessageRole, SectionOrigin

# A section counts as complete once its cleaned content passes this many characters.
COMPLETION_THRESHOLD = 100

DEFAULT_DOCUMENT_TITLE = "My Business Plan"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SectionDefinition(BaseModel):
    """Static catalog entry describing one document section."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    header_patterns: Tuple[str, ...]
    keywords: Tuple[str, ...]


class Section(BaseModel):
    id: str
    title: str
    content: str = ""
    origin: SectionOrigin = SectionOrigin.AI
    last_updated: Optional[datetime] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def completed(self) -> bool:
        return is_completed(self.content)


def is_completed(content: str) -> bool:
    return len(content) > COMPLETION_THRESHOLD


class ConversationMessage(BaseModel):
    role: MessageRole
    content: str


class Document(BaseModel):
    """Aggregate root: one Section per catalog entry, in catalog order."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_session_id: str
    sections: Dict[str, Section]
    title: str = DEFAULT_DOCUMENT_TITLE
    detected_entity_name: Optional[str] = None
    last_saved_at: Optional[datetime] = None
    # Sections whose completion has already been announced, in catalog order.
    notified_section_ids: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _check_section_keys(self) -> "Document":
        for key, section in self.sections.items():
            if section.id != key:
                raise ValueError(f"Section keyed {key!r} carries id {section.id!r}")
        return self

    @classmethod
    def new(
        cls,
        owner_session_id: str,
        catalog: Optional[Sequence[SectionDefinition]] = None,
        **fields,
    ) -> "Document":
        if catalog is None:
            from src.sections.catalog import SECTION_CATALOG

            catalog = SECTION_CATALOG
        sections = {
            definition.id: Section(id=definition.id, title=definition.title)
            for definition in catalog
        }
        return cls(owner_session_id=owner_session_id, sections=sections, **fields)

    def section(self, section_id: str) -> Section:
        try:
            return self.sections[section_id]
        except KeyError:
            raise UnknownSectionError(section_id) from None

    @property
    def completed_count(self) -> int:
        return sum(1 for section in self.sections.values() if section.completed)

    @property
    def completion_percentage(self) -> int:
        if not self.sections:
            return 0
        return round(100 * self.completed_count / len(self.sections))

    @property
    def is_complete(self) -> bool:
        return bool(self.sections) and self.completed_count == len(self.sections)

    def content_map(self) -> Dict[str, str]:
        return {section_id: section.content for section_id, section in self.sections.items()}
