"""
Merge Resolver

Decides, per section, whether a candidate replaces the current content.

Policy:
1. A section under the local edit lock is never changed by AI or remote candidates.
2. AI candidates replace content unless a human invested in it: manual content longer
   than MANUAL_CONTENT_THRESHOLD is only replaced by a longer candidate or one longer
   than AI_OVERRIDE_LENGTH.
3. Remote candidates are adopted as received.
4. An explicit manual save always wins.

All functions are pure: they return a new Section and never mutate their input.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from src.models.document import Document, Section, utc_now
from src.models.enums import MergeAction, SectionOrigin
from src.models.sync import SectionPayload

MANUAL_CONTENT_THRESHOLD = 50
AI_OVERRIDE_LENGTH = 500


@dataclass(frozen=True)
class MergeDecision:
    section_id: str
    action: MergeAction
    section: Section
    previous_content: str

    @property
    def changed(self) -> bool:
        return self.action == MergeAction.ADOPTED


def _unchanged(current: Section, action: MergeAction) -> MergeDecision:
    return MergeDecision(current.id, action, current, current.content)


def _adopt(
    current: Section, content: str, origin: SectionOrigin, now: Optional[datetime]
) -> MergeDecision:
    updated = current.model_copy(
        update={"content": content, "origin": origin, "last_updated": now or utc_now()}
    )
    return MergeDecision(current.id, MergeAction.ADOPTED, updated, current.content)


def has_manual_content(section: Section) -> bool:
    return section.origin == SectionOrigin.MANUAL and len(section.content) > MANUAL_CONTENT_THRESHOLD


def should_adopt_ai(current: Section, candidate: str) -> bool:
    ai_is_longer = len(candidate) > len(current.content)
    return not has_manual_content(current) or ai_is_longer or len(candidate) > AI_OVERRIDE_LENGTH


def resolve_ai_candidate(
    current: Section,
    candidate: Optional[str],
    *,
    locked: bool = False,
    now: Optional[datetime] = None,
) -> MergeDecision:
    if locked:
        return _unchanged(current, MergeAction.LOCKED)
    if not candidate:
        return _unchanged(current, MergeAction.NO_CANDIDATE)
    if candidate == current.content:
        return _unchanged(current, MergeAction.KEPT)
    if not should_adopt_ai(current, candidate):
        return _unchanged(current, MergeAction.KEPT)
    return _adopt(current, candidate, SectionOrigin.AI, now)


def resolve_remote_candidate(
    current: Section,
    payload: SectionPayload,
    *,
    locked: bool = False,
    now: Optional[datetime] = None,
) -> MergeDecision:
    if locked:
        return _unchanged(current, MergeAction.LOCKED)
    if payload.content == current.content and payload.origin == current.origin:
        return _unchanged(current, MergeAction.KEPT)
    return _adopt(current, payload.content, payload.origin, now)


def apply_manual_save(current: Section, content: str, now: Optional[datetime] = None) -> Section:
    return current.model_copy(
        update={"content": content, "origin": SectionOrigin.MANUAL, "last_updated": now or utc_now()}
    )


def resolve_ai_candidates(
    document: Document,
    candidates: Mapping[str, str],
    *,
    locked_section_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[MergeDecision]:
    """One decision per document section, in catalog order."""
    stamp = now or utc_now()
    return [
        resolve_ai_candidate(
            section,
            candidates.get(section_id),
            locked=section_id == locked_section_id,
            now=stamp,
        )
        for section_id, section in document.sections.items()
    ]


def resolve_remote_sections(
    document: Document,
    sections: Mapping[str, SectionPayload],
    *,
    locked_section_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[MergeDecision]:
    """Decisions for the sections a remote snapshot carries; unknown ids are skipped."""
    stamp = now or utc_now()
    decisions = []
    for section_id, payload in sections.items():
        current = document.sections.get(section_id)
        if current is None:
            continue
        decisions.append(
            resolve_remote_candidate(
                current, payload, locked=section_id == locked_section_id, now=stamp
            )
        )
    return decisions


def apply_decisions(document: Document, decisions: List[MergeDecision]) -> Dict[str, MergeDecision]:
    """Write adopted sections into the document; return the adopted decisions by id."""
    adopted = {}
    for decision in decisions:
        if decision.changed:
            document.sections[decision.section_id] = decision.section
            adopted[decision.section_id] = decision
    return adopted
