"""
Content Cleaner

Turns a raw span of assistant text into plain document prose.

Assistant replies interleave clarifying questions and meta-commentary with the
prose that belongs in the document. Cleaning strips markdown, drops question and
filler sentences, and only accepts what is left when it is still substantial.
"""

import re
from typing import List, Optional

MIN_CLEAN_LENGTH = 50
MIN_CLEAN_WORDS = 10
MIN_SENTENCE_LENGTH = 10

INSTRUCTIONAL_PHRASES = (
    "section will help us understand",
    "to tailor this section",
    "here are a few questions",
    "let me know if",
    "would you like me to",
    "would you like anything",
    "shall we move on",
    "shall we",
    "ready to move",
    "does this capture",
    "let me craft",
    "let me develop",
    "i'll create",
    "based on our conversation",
    "now let's move to",
    "next section",
    "moving forward",
    "here's what i recommend",
    "let's dive into",
    "welcome small business owner",
    "what's your name",
    "great to meet you",
    "nice to meet you",
    "pleasure to meet you",
)

INTERROGATIVE_OPENERS = (
    "what",
    "how",
    "why",
    "which",
    "who",
    "would you",
    "do you",
    "does",
    "are you",
    "is there",
    "should we",
    "can you",
    "could you",
)

_BOLD = re.compile(r"\*\*|__")
_HEADING = re.compile(r"^[ \t]*#{1,6}[ \t]*", re.MULTILINE)
_INLINE_CODE = re.compile(r"`+")
_BLANK_RUN = re.compile(r"\n{3,}")
# Sentence body plus its terminator; the terminator tells questions apart.
_SENTENCE = re.compile(r"[^.!?]+(?:[.!?]+|$)")
_INTERROGATIVE = re.compile(
    r"^(?:" + "|".join(re.escape(opener) for opener in INTERROGATIVE_OPENERS) + r")\b"
)


def strip_markup(text: str) -> str:
    """Remove bold/code wrapper tokens and heading markers."""
    text = _BOLD.sub("", text)
    text = _INLINE_CODE.sub("", text)
    text = _HEADING.sub("", text)
    return text


def collapse_blank_lines(text: str) -> str:
    return _BLANK_RUN.sub("\n\n", text)


def split_sentences(text: str) -> List[str]:
    return [match.group(0) for match in _SENTENCE.finditer(text) if match.group(0).strip()]


def is_question(sentence: str) -> bool:
    stripped = sentence.strip()
    if "?" in stripped:
        return True
    return _INTERROGATIVE.match(stripped.lower()) is not None


def is_instructional(sentence: str) -> bool:
    lowered = sentence.lower()
    return any(phrase in lowered for phrase in INSTRUCTIONAL_PHRASES)


def keep_sentence(sentence: str) -> bool:
    body = sentence.strip().rstrip(".!?").strip()
    if len(body) < MIN_SENTENCE_LENGTH:
        return False
    return not is_question(sentence) and not is_instructional(body)


def is_substantial(text: str) -> bool:
    return len(text) > MIN_CLEAN_LENGTH and len(text.split()) > MIN_CLEAN_WORDS


def clean_section_content(raw: str) -> Optional[str]:
    """
    Clean a raw section span.

    Args:
        raw: Text attributed to a section by the detector

    Returns:
        Cleaned prose, or None when nothing usable survives
    """
    if not raw or not raw.strip():
        return None

    text = collapse_blank_lines(strip_markup(raw)).strip()
    survivors = [
        sentence.strip().rstrip(".!?").strip()
        for sentence in split_sentences(text)
        if keep_sentence(sentence)
    ]
    if not survivors:
        return None

    cleaned = ". ".join(survivors) + "."
    if not is_substantial(cleaned):
        return None
    return cleaned
