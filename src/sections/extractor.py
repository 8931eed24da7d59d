"""Candidate extraction over a full conversation.

The whole ordered message list is re-scanned on every change. Per-message results
are cached by content, so a re-scan over hundreds of messages only does real work
for the messages that are new.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from src.models.document import ConversationMessage
from src.models.enums import MessageRole
from src.sections.cleaner import clean_section_content
from src.sections.detector import detect_current_section, find_section_spans
from src.sections.entity_name import detect_entity_name


@dataclass
class ExtractionResult:
    """Output of one extraction pass."""

    candidates: Dict[str, str] = field(default_factory=dict)
    current_section: Optional[str] = None
    entity_name: Optional[str] = None


@lru_cache(maxsize=2048)
def extract_from_text(text: str) -> Tuple[Tuple[str, str], ...]:
    """Cleaned (section_id, content) pairs found in one assistant message."""
    pairs = []
    for section_id, span in find_section_spans(text).items():
        cleaned = clean_section_content(span.text)
        if cleaned is not None:
            pairs.append((section_id, cleaned))
    return tuple(pairs)


def coerce_messages(
    raw: Iterable[Union[ConversationMessage, Mapping[str, Any]]],
) -> List[ConversationMessage]:
    return [
        item if isinstance(item, ConversationMessage) else ConversationMessage.model_validate(item)
        for item in raw
    ]


def extract_candidates(messages: Sequence[ConversationMessage]) -> ExtractionResult:
    """Run detection and cleaning over every assistant message, in order.

    A later message's candidate for a section replaces an earlier one.
    """
    result = ExtractionResult()
    for message in messages:
        if message.role != MessageRole.ASSISTANT:
            continue
        for section_id, content in extract_from_text(message.content):
            result.candidates[section_id] = content

    if messages and messages[-1].role == MessageRole.ASSISTANT:
        result.current_section = detect_current_section(messages[-1].content)
    result.entity_name = detect_entity_name(messages)
    return result
