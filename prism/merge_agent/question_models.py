# prism/merge_agent/question_models.py
# Created: 2026-10-16
# Purpose: Data models for framework questions, candidate pairs and merged questions

"""
Question Models - Type-safe internal representations with dict serialization.

Pattern: "Dataclasses internally, dicts externally"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union


# ============================================================================
# Source Data
# ============================================================================

@dataclass(frozen=True)
class RawQuestion:
    """One question of a framework as loaded from the data source."""

    text: str
    category: Optional[str] = None
    ref: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawQuestion":
        ref = data.get("ref") or data.get("_id")
        category = data.get("category")
        return cls(
            text=str(data.get("question") or data.get("text") or ""),
            category=str(category) if category else None,
            ref=str(ref) if ref else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"question": self.text, "category": self.category, "ref": self.ref}


@dataclass(frozen=True)
class Framework:
    """Framework listing record."""

    id: str
    name: str
    question_count: int
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "questionCount": self.question_count,
            "description": self.description,
        }


# ============================================================================
# Pairing
# ============================================================================

@dataclass(frozen=True)
class FrameworkPair:
    """Unordered pair of selected frameworks with its thematic connection."""

    framework_a: str
    framework_b: str
    thematic_connection: str


@dataclass(frozen=True)
class CandidatePair:
    """Scored, not yet merged combination of one question from each framework."""

    framework_a: str
    framework_b: str
    question_a: RawQuestion
    question_b: RawQuestion
    score: float
    thematic_connection: str

    @property
    def pair_key(self) -> Tuple[str, str, str, str]:
        return (self.framework_a, self.framework_b, self.question_a.text, self.question_b.text)


@dataclass
class CandidateSelection:
    """Ranked candidates split into the initial selection and the overflow pool."""

    selected: List[CandidatePair] = field(default_factory=list)
    overflow: List[CandidatePair] = field(default_factory=list)
    total_ranked: int = 0


# ============================================================================
# Service Adapter Results
# ============================================================================

@dataclass(frozen=True)
class Merged:
    """The service produced candidate merged text."""

    text: str


@dataclass(frozen=True)
class Rejected:
    """The service declined to merge, or could not be reached."""

    reason: str


MergeResult = Union[Merged, Rejected]


@dataclass(frozen=True)
class MergeOutcome:
    """Text chosen for a pair by the merge service before final formatting."""

    text: str
    generated_by_model: bool
    source: str  # "model", "fallback_model", "cache", "original", "deterministic"


# ============================================================================
# Output
# ============================================================================

@dataclass(frozen=True)
class OriginalQuestion:
    """Source question as carried on a merged question."""

    text: str
    framework: str
    category: Optional[str] = None
    ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "framework": self.framework,
            "category": self.category,
            "ref": self.ref,
        }


@dataclass(frozen=True)
class MergedQuestion:
    """Combined question produced from one candidate pair."""

    id: str
    text: str
    framework_ids: Tuple[str, str]
    original_questions: Tuple[OriginalQuestion, OriginalQuestion]
    emoji: str
    ref: str
    category: Optional[str] = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    generated_by_model: bool = False

    def __post_init__(self) -> None:
        if len(self.original_questions) != 2:
            raise ValueError("A merged question carries exactly two source questions")
        if tuple(q.framework for q in self.original_questions) != tuple(self.framework_ids):
            raise ValueError("Source question order must match framework_ids")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "frameworks": list(self.framework_ids),
            "originalQuestions": [q.to_dict() for q in self.original_questions],
            "emoji": self.emoji,
            "category": self.category,
            "ref": self.ref,
            "timestamp": self.created_at,
            "generatedWithAI": self.generated_by_model,
        }
