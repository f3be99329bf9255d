# prism/merge_agent/keywords.py
# Created: 2026-10-16
# Purpose: Keyword extraction, scorer tokenization and semantic-group classification

"""
Keyword / Semantic-Group Extractor.

Two tokenizers live here and they are intentionally different:

- extract_keywords(): the small stopword list used by the response
  validator and the fallback prompt.
- similarity_tokens(): the larger stopword list and punctuation class used
  by the similarity scorer. '?' and quotes are kept attached to tokens.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Set, Tuple


# ============================================================================
# Vocabularies
# ============================================================================

KEYWORD_STOPWORDS = frozenset(
    ["and", "the", "for", "with", "that", "this", "your", "have", "from", "are", "does"]
)

SCORER_STOPWORDS = frozenset([
    "what", "how", "when", "where", "which", "who", "why", "does", "do", "are", "is",
    "the", "a", "an", "in", "on", "at", "to", "for", "with", "by", "of", "and", "or",
    "but", "if", "then", "else", "your", "their", "our", "its", "this", "that",
    "these", "those", "have", "has", "had", "can", "could", "will", "would", "should",
    "shall", "may", "might", "must", "need", "needs", "required", "requires",
])

# Order matters: a token belongs to the first group that lists it.
SEMANTIC_GROUPS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("governance", ("board", "committee", "director", "oversight", "supervision", "monitoring",
                    "control", "governance", "management", "leadership")),
    ("risk", ("risk", "compliance", "audit", "review", "assessment", "evaluation", "check",
              "verify", "validate", "assure", "assurance")),
    ("environmental", ("environmental", "environment", "climate", "emission", "carbon",
                       "pollution", "waste", "resource", "energy", "water")),
    ("social", ("social", "community", "stakeholder", "employee", "labor", "human", "rights",
                "diversity", "inclusion", "safety", "health")),
    ("process", ("process", "procedure", "system", "framework", "standard", "guideline",
                 "policy", "practice", "implementation", "execution")),
    ("performance", ("performance", "measure", "metric", "indicator", "target", "goal",
                     "objective", "outcome", "result", "impact", "effect")),
    ("action", ("address", "implement", "take", "ensure", "establish", "develop", "create",
                "maintain", "improve", "enhance", "strengthen")),
    ("deficiency", ("deficiency", "issue", "problem", "gap", "weakness", "shortcoming",
                    "failure", "noncompliance", "violation", "breach")),
    ("reporting", ("report", "disclose", "disclosure", "transparency", "communication",
                   "inform", "document", "record", "track", "monitor")),
)

GROUP_NAMES: Tuple[str, ...] = tuple(name for name, _ in SEMANTIC_GROUPS)

_TERM_TO_GROUP: Dict[str, str] = {}
for _group, _terms in SEMANTIC_GROUPS:
    for _term in _terms:
        _TERM_TO_GROUP.setdefault(_term, _group)

KEYWORD_PUNCT_RE = re.compile(r"[,.?;:'\"!()]")
SCORER_PUNCT_RE = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")


# ============================================================================
# Extraction
# ============================================================================

def extract_keywords(text: str) -> Set[str]:
    """Significant words of a question (length > 3, not a stopword)."""
    if not text:
        return set()
    cleaned = KEYWORD_PUNCT_RE.sub("", text.lower())
    return {
        token for token in cleaned.split()
        if len(token) > 3 and token not in KEYWORD_STOPWORDS
    }


def ordered_keywords(text: str) -> List[str]:
    """Same filter as extract_keywords, in text order, duplicates dropped."""
    if not text:
        return []
    cleaned = KEYWORD_PUNCT_RE.sub("", text.lower())
    seen: Set[str] = set()
    result: List[str] = []
    for token in cleaned.split():
        if len(token) > 3 and token not in KEYWORD_STOPWORDS and token not in seen:
            seen.add(token)
            result.append(token)
    return result


def extract_main_topic(text: str) -> str:
    """First three keywords of a question, joined by spaces."""
    return " ".join(ordered_keywords(text)[:3])


def similarity_tokens(text: str) -> List[str]:
    """Scorer tokenization. Keeps duplicates and text order."""
    if not text:
        return []
    cleaned = SCORER_PUNCT_RE.sub("", text.lower())
    return [
        token for token in cleaned.split()
        if len(token) > 3 and token not in SCORER_STOPWORDS
    ]


def group_of(token: str) -> str | None:
    return _TERM_TO_GROUP.get(token)


def classify_to_groups(tokens: Iterable[str]) -> Set[str]:
    """Semantic groups touched by the given tokens."""
    groups: Set[str] = set()
    for token in tokens:
        group = _TERM_TO_GROUP.get(token)
        if group:
            groups.add(group)
    return groups


__all__ = [
    "KEYWORD_STOPWORDS",
    "SCORER_STOPWORDS",
    "SEMANTIC_GROUPS",
    "GROUP_NAMES",
    "extract_keywords",
    "ordered_keywords",
    "extract_main_topic",
    "similarity_tokens",
    "group_of",
    "classify_to_groups",
]
