"""Business-name detection from conversation text."""

from __future__ import annotations

import re
from typing import Iterable, Optional

from src.models.document import ConversationMessage

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50

# Ordered: explicit naming first, legal suffixes and leading mentions last.
_NAME_PATTERNS = (
    re.compile(
        r"(?:business name is|company name is|called|named)\s+([A-Za-z0-9\s&]+?)(?:\.|,|\?|!|\s*$)",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:my business|our company|my company)\s+([A-Za-z0-9\s&]+?)"
        r"(?:\s+is|\s+will|\s+specializes|\s+focuses|\.|,)",
        re.IGNORECASE,
    ),
    re.compile(r"([A-Za-z0-9\s&]+?)\s+(?:LLC|Inc|Corporation|Corp|Company|Co\.)", re.IGNORECASE),
    re.compile(r"^([A-Za-z0-9\s&]+?)\s+(?:business plan|company|enterprise)", re.IGNORECASE),
)
_ARTICLES = re.compile(r"\b(?:the|a|an)\b", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def normalize_name(raw: str) -> str:
    without_articles = _ARTICLES.sub("", raw.strip())
    return _WHITESPACE.sub(" ", without_articles).strip()


def detect_entity_name(messages: Iterable[ConversationMessage]) -> Optional[str]:
    """Return the business name mentioned in the conversation, if one can be found."""
    text = " ".join(message.content for message in messages)
    if not text:
        return None
    for pattern in _NAME_PATTERNS:
        match = pattern.search(text)
        if not match or not match.group(1):
            continue
        name = normalize_name(match.group(1))
        if MIN_NAME_LENGTH < len(name) < MAX_NAME_LENGTH:
            return name
    return None


def title_for(entity_name: Optional[str]) -> Optional[str]:
    if not entity_name:
        return None
    return f"{entity_name} Business Plan"
