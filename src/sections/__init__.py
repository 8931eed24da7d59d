"""
Section detection, cleaning and extraction.

Everything in this package is a pure function of its input text.
"""

from .catalog import SECTION_CATALOG, SECTION_IDS, get_definition, is_known_section, section_title
from .cleaner import clean_section_content
from .detector import SectionSpan, detect_current_section, find_section_spans
from .entity_name import detect_entity_name, title_for
from .extractor import ExtractionResult, coerce_messages, extract_candidates

__all__ = [
    "ExtractionResult",
    "SECTION_CATALOG",
    "SECTION_IDS",
    "SectionSpan",
    "clean_section_content",
    "coerce_messages",
    "detect_current_section",
    "detect_entity_name",
    "extract_candidates",
    "find_section_spans",
    "get_definition",
    "is_known_section",
    "section_title",
    "title_for",
]
