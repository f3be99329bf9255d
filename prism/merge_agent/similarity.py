# prism/merge_agent/similarity.py
# Created: 2026-10-16
# Purpose: Heuristic similarity score between two framework questions

"""
Similarity Scorer.

Additive score built from category match, lexical and semantic-group
overlap, shared opening words and shared question patterns. Scores under
MIN_SIMILARITY_THRESHOLD collapse to 0, meaning "do not pair".
"""

from __future__ import annotations

from typing import Optional, Set

from prism.merge_agent.keywords import classify_to_groups, group_of, similarity_tokens
from prism.merge_agent.question_models import RawQuestion


MIN_SIMILARITY_THRESHOLD = 10.0

CATEGORY_WEIGHT = 8.0
SEMANTIC_MATCH_WEIGHT = 2.0
PLAIN_MATCH_WEIGHT = 1.0
GROUP_ONLY_WEIGHT = 1.5
OVERLAP_SCALE = 20.0
STRUCTURE_WEIGHT = 2.0
PATTERN_WEIGHT = 1.0

QUESTION_PATTERNS = (
    ("how", "does", "ensure"),
    ("what", "measures", "taken"),
    ("how", "do", "you"),
    ("what", "processes", "place"),
    ("how", "are", "you"),
    ("what", "steps", "taken"),
    ("how", "does", "your"),
    ("what", "mechanisms", "place"),
)


def _same_category(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


def overlap_score(text1: str, text2: str) -> float:
    """Lexical and semantic-group overlap, scaled by vocabulary size."""
    words1 = similarity_tokens(text1)
    words2 = similarity_tokens(text2)
    set1, set2 = set(words1), set(words2)

    total_unique = len(set1) + len(set2)
    if total_unique == 0:
        return 0.0

    word_score = 0.0
    matched_groups: Set[str] = set()

    for word in set1 & set2:
        group = group_of(word)
        if group:
            matched_groups.add(group)
            word_score += SEMANTIC_MATCH_WEIGHT
        else:
            word_score += PLAIN_MATCH_WEIGHT

    # Groups shared through different words
    shared_groups = classify_to_groups(words1) & classify_to_groups(words2)
    word_score += GROUP_ONLY_WEIGHT * len(shared_groups - matched_groups)

    return (word_score / total_unique) * OVERLAP_SCALE


def structure_bonus(text1: str, text2: str) -> float:
    if text1.lower().split()[:3] == text2.lower().split()[:3]:
        return STRUCTURE_WEIGHT
    return 0.0


def pattern_bonus(text1: str, text2: str) -> float:
    lowered1, lowered2 = text1.lower(), text2.lower()
    for pattern in QUESTION_PATTERNS:
        if all(word in lowered1 for word in pattern) and all(word in lowered2 for word in pattern):
            return PATTERN_WEIGHT
    return 0.0


def raw_score(q1: RawQuestion, q2: RawQuestion) -> float:
    """Score before the threshold is applied."""
    text1 = q1.text or ""
    text2 = q2.text or ""

    total = 0.0
    if _same_category(q1.category, q2.category):
        total += CATEGORY_WEIGHT
    total += overlap_score(text1, text2)
    total += structure_bonus(text1, text2)
    total += pattern_bonus(text1, text2)
    return total


def score(q1: RawQuestion, q2: RawQuestion) -> float:
    """
    Similarity of two questions, or 0 when below the pairing threshold.

    Symmetric in its arguments.
    """
    total = raw_score(q1, q2)
    return total if total >= MIN_SIMILARITY_THRESHOLD else 0.0


__all__ = [
    "MIN_SIMILARITY_THRESHOLD",
    "QUESTION_PATTERNS",
    "overlap_score",
    "structure_bonus",
    "pattern_bonus",
    "raw_score",
    "score",
]
