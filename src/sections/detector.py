"""
Section Detector

Locates section boundaries in a block of assistant text.

Two modes share one rule set:
- current-section mode returns the single best matching section id (or None);
- extraction mode returns a raw span per matched section, ready for the cleaner.

Header patterns always outrank keyword votes. In extraction mode each section is
resolved on its own: a section without a usable header span falls back to its
keyword vote, provided the text is long enough to be more than a passing mention.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from src.models.document import SectionDefinition
from src.sections.catalog import SECTION_CATALOG

MIN_KEYWORD_TEXT_LENGTH = 200
MIN_KEYWORD_HITS = 2
MIN_SPAN_LENGTH = 20

HEADER_SCORE = 100
KEYWORD_SCORE = 10

# Next markdown-style header: a '#' heading or a bold run opening a line, whatever follows it.
_NEXT_HEADER = re.compile(r"\n[ \t]*#{1,6}[ \t]+\S|\n[ \t]*\*\*[A-Z][^*\n]+\*\*")
# Separator between an inline header and its text, e.g. "**Market Analysis** - ...".
_LEADING_SEPARATOR = re.compile(r"^[:\-\u2013\u2014]+[ \t]*")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class SectionSpan:
    """Raw text attributed to one section, before cleaning."""

    section_id: str
    text: str
    score: int
    via_header: bool


def _find_header(text_lower: str, definition: SectionDefinition) -> Optional[Tuple[int, int]]:
    """Return (start, end) of the earliest header pattern occurrence, longest pattern on ties."""
    best: Optional[Tuple[int, int]] = None
    for pattern in definition.header_patterns:
        index = text_lower.find(pattern.lower())
        if index == -1:
            continue
        candidate = (index, index + len(pattern))
        if best is None or index < best[0] or (index == best[0] and candidate[1] > best[1]):
            best = candidate
    return best


def _keyword_hits(text_lower: str, definition: SectionDefinition) -> int:
    return sum(1 for keyword in definition.keywords if keyword.lower() in text_lower)


def _span_after_header(text: str, header_end: int) -> str:
    after = text[header_end:]
    match = _NEXT_HEADER.search(after)
    body = after[: match.start()] if match else after
    return _LEADING_SEPARATOR.sub("", body.strip()).strip()


def _keyword_paragraphs(text: str, definition: SectionDefinition) -> str:
    keywords = [keyword.lower() for keyword in definition.keywords]
    relevant = [
        paragraph.strip()
        for paragraph in _PARAGRAPH_BREAK.split(text)
        if any(keyword in paragraph.lower() for keyword in keywords)
    ]
    return "\n\n".join(paragraph for paragraph in relevant if paragraph)


def detect_current_section(
    text: str, catalog: Sequence[SectionDefinition] = SECTION_CATALOG
) -> Optional[str]:
    """Return the id of the section this text is most likely about, or None.

    Header matches win outright (first in catalog order). Otherwise, for texts longer
    than MIN_KEYWORD_TEXT_LENGTH, the section with the most keyword hits wins provided
    it has at least MIN_KEYWORD_HITS; ties go to the earlier catalog entry.
    """
    if not text:
        return None
    text_lower = text.lower()

    for definition in catalog:
        if _find_header(text_lower, definition) is not None:
            return definition.id

    if len(text) <= MIN_KEYWORD_TEXT_LENGTH:
        return None

    best_id: Optional[str] = None
    best_hits = 0
    for definition in catalog:
        hits = _keyword_hits(text_lower, definition)
        if hits >= MIN_KEYWORD_HITS and hits > best_hits:
            best_id, best_hits = definition.id, hits
    return best_id


def find_section_spans(
    text: str, catalog: Sequence[SectionDefinition] = SECTION_CATALOG
) -> Dict[str, SectionSpan]:
    """Return the best raw span per section found in one message.

    A section's own header span wins. Without one (no header, or a body of at most
    MIN_SPAN_LENGTH characters) the section falls back to the paragraphs mentioning
    its keywords, when the text is longer than MIN_KEYWORD_TEXT_LENGTH and at least
    MIN_KEYWORD_HITS of them appear.
    """
    spans: Dict[str, SectionSpan] = {}
    if not text:
        return spans
    text_lower = text.lower()
    keyword_mode = len(text) > MIN_KEYWORD_TEXT_LENGTH

    for definition in catalog:
        span = _header_span(text, text_lower, definition)
        if span is None and keyword_mode:
            span = _keyword_span(text, text_lower, definition)
        if span is not None:
            spans[definition.id] = span
    return spans


def _header_span(
    text: str, text_lower: str, definition: SectionDefinition
) -> Optional[SectionSpan]:
    header = _find_header(text_lower, definition)
    if header is None:
        return None
    body = _span_after_header(text, header[1])
    if len(body) <= MIN_SPAN_LENGTH:
        return None
    return SectionSpan(definition.id, body, HEADER_SCORE, True)


def _keyword_span(
    text: str, text_lower: str, definition: SectionDefinition
) -> Optional[SectionSpan]:
    hits = _keyword_hits(text_lower, definition)
    if hits < MIN_KEYWORD_HITS:
        return None
    body = _keyword_paragraphs(text, definition)
    if not body:
        return None
    return SectionSpan(definition.id, body, hits * KEYWORD_SCORE, False)
