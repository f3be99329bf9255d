# prism/merge_agent/question_validator.py
# Created: 2026-10-16
# Purpose: Cleaning, quality gates and final formatting for merged questions

"""
Response Validator / Formatter.

Quality gates run on raw model output before a merge is accepted;
format_question() turns any accepted text into the final
"<emoji> <Capitalized question>?" form and raises ValidationError when the
result is unusable.
"""

from __future__ import annotations

import random
import re
from typing import Optional

from prism.errors import ValidationError
from prism.merge_agent.keywords import extract_keywords


EMOJIS = ("🌟", "🔄", "🌱", "🌍", "⚡", "💼", "🔍", "🛡️", "🤝", "📊", "⚖️", "🌐")

DIFFERENT_CONTEXT = "DIFFERENT_CONTEXT"
LISTED_ENTITY_PLACEHOLDER = "[Listed Entity]"

MIN_QUESTION_LENGTH = 10
MAX_QUESTION_LENGTH = 500

UNSAFE_CHARS_RE = re.compile(r"[^\w\s?.,;:\-'/]", re.ASCII)
WHITESPACE_RE = re.compile(r"\s+")
LEADING_NON_LETTERS_RE = re.compile(r"^[^a-zA-Z]*")
TRAILING_ARTIFACTS_RE = re.compile(r"[^a-zA-Z0-9\s?.,;:\-'/]+$")
NORMALIZE_PUNCT_RE = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")
TRAILING_STOP_RE = re.compile(r"[.!]*$")
FRAGMENT_END_RE = re.compile(r"[?.,]+$")
QUESTION_FORMAT_RE = re.compile(r"^(?:" + "|".join(re.escape(e) for e in EMOJIS) + r") [A-Z]")


# ============================================================================
# Cleaning
# ============================================================================

def _repair(text: str) -> str:
    text = text.replace(f"{DIFFERENT_CONTEXT}?", "")
    text = text.replace("best practicesframework", "best practices/framework")
    text = text.replace("and/ or", "and/or")
    return text


def clean_input(text: Optional[str]) -> str:
    """First line of a source question restricted to the safe character set."""
    if not text:
        return ""
    first_line = text.split("\n")[0]
    cleaned = UNSAFE_CHARS_RE.sub("", first_line)
    cleaned = WHITESPACE_RE.sub(" ", cleaned)
    return _repair(cleaned).strip()


def clean_output(text: Optional[str]) -> str:
    """clean_input plus removal of leading non-letters and trailing artifacts."""
    if not text:
        return ""
    first_line = text.split("\n")[0]
    cleaned = UNSAFE_CHARS_RE.sub("", first_line)
    cleaned = WHITESPACE_RE.sub(" ", cleaned)
    cleaned = LEADING_NON_LETTERS_RE.sub("", cleaned)
    cleaned = TRAILING_ARTIFACTS_RE.sub("", cleaned)
    return _repair(cleaned).strip()


def normalize_question(text: str) -> str:
    """Case and punctuation insensitive form used for identity checks."""
    lowered = NORMALIZE_PUNCT_RE.sub("", (text or "").lower())
    return WHITESPACE_RE.sub(" ", lowered).strip()


def ensure_question_mark(text: str) -> str:
    if text.endswith("?"):
        return text
    return TRAILING_STOP_RE.sub("", text) + "?"


# ============================================================================
# Quality Gates
# ============================================================================

def validate_response(text: Optional[str], question1: str, question2: str) -> bool:
    """
    True when model output is acceptable as a merged question.

    Requires a question mark, no markup or placeholder, and at least one
    keyword of each source question.
    """
    if not text or len(text) < MIN_QUESTION_LENGTH:
        return False
    if "?" not in text:
        return False
    if "<" in text and ">" in text:
        return False
    if LISTED_ENTITY_PLACEHOLDER in text:
        return False

    lowered = text.lower()
    has_first = any(keyword in lowered for keyword in extract_keywords(question1))
    has_second = any(keyword in lowered for keyword in extract_keywords(question2))
    return has_first and has_second


def is_different_context(text: Optional[str]) -> bool:
    return bool(text) and DIFFERENT_CONTEXT in text


def has_valid_prefix(text: str) -> bool:
    return any(text.startswith(f"{emoji} ") for emoji in EMOJIS)


# ============================================================================
# Formatting
# ============================================================================

def pick_emoji(rng: random.Random) -> str:
    return rng.choice(EMOJIS)


def format_question(
    text: str,
    emoji: str,
    min_length: int = MIN_QUESTION_LENGTH,
    max_length: int = MAX_QUESTION_LENGTH,
) -> str:
    """
    Final form of an accepted merge: cleaned, '?' terminated, capitalized
    and prefixed with the emoji.

    Raises:
        ValidationError: length out of bounds or prefix format broken
    """
    cleaned = ensure_question_mark(clean_output(text))
    cleaned = cleaned[:1].upper() + cleaned[1:]
    final_text = f"{emoji} {cleaned}"

    if len(final_text) < min_length or len(final_text) > max_length:
        raise ValidationError(f"Invalid question length: {len(final_text)}")
    if not QUESTION_FORMAT_RE.match(final_text):
        raise ValidationError(f"Invalid question format: {final_text[:40]!r}")
    return final_text


def identical_question_text(text: str, emoji: str) -> str:
    """Text of a merge whose sources are the same question."""
    return f"{emoji} {ensure_question_mark(text)}"


def deterministic_fallback(question1: str, question2: str, emoji: str) -> str:
    """Template merge built from the opening words of both questions."""
    start1 = FRAGMENT_END_RE.sub("", " ".join(question1.split(" ")[:5]))
    start2 = FRAGMENT_END_RE.sub("", " ".join(question2.split(" ")[:5]))
    return f"{emoji} How does {start1} relate to {start2}?"


__all__ = [
    "EMOJIS",
    "DIFFERENT_CONTEXT",
    "clean_input",
    "clean_output",
    "normalize_question",
    "ensure_question_mark",
    "validate_response",
    "is_different_context",
    "has_valid_prefix",
    "pick_emoji",
    "format_question",
    "identical_question_text",
    "deterministic_fallback",
]
