# prism/merge_agent/ranking.py
# Created: 2026-10-16
# Purpose: Cross-product scoring of framework questions and global top-N selection

"""
Pair Ranker / Selector.

Every question of framework A is scored against every question of
framework B for each unordered framework pair. Pairs scoring 0 are dropped.
Survivors are sorted globally by descending score (stable on ties), the
first `count` become the selection and positions count..2*count form the
overflow pool used to replace failed merges.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Mapping, Optional, Sequence

from prism.merge_agent.question_models import (
    CandidatePair,
    CandidateSelection,
    FrameworkPair,
    RawQuestion,
)
from prism.merge_agent.similarity import score
from prism.merge_agent.themes import build_framework_pairs


logger = logging.getLogger(__name__)


def score_question_row(
    pair: FrameworkPair,
    question_a: RawQuestion,
    questions_b: Sequence[RawQuestion],
) -> List[CandidatePair]:
    """Above-threshold candidates pairing one question with every question of the other framework."""
    candidates: List[CandidatePair] = []
    for question_b in questions_b:
        value = score(question_a, question_b)
        if value > 0:
            candidates.append(CandidatePair(
                framework_a=pair.framework_a,
                framework_b=pair.framework_b,
                question_a=question_a,
                question_b=question_b,
                score=value,
                thematic_connection=pair.thematic_connection,
            ))
    return candidates


def score_framework_pair(
    pair: FrameworkPair,
    questions_a: Sequence[RawQuestion],
    questions_b: Sequence[RawQuestion],
) -> List[CandidatePair]:
    candidates: List[CandidatePair] = []
    for question_a in questions_a:
        candidates.extend(score_question_row(pair, question_a, questions_b))
    return candidates


def sort_candidates(candidates: Sequence[CandidatePair]) -> List[CandidatePair]:
    # sorted() keeps equal scores in discovery order even with reverse=True
    return sorted(candidates, key=lambda c: c.score, reverse=True)


def rank_candidates(
    framework_pairs: Sequence[FrameworkPair],
    question_sets: Mapping[str, Sequence[RawQuestion]],
) -> List[CandidatePair]:
    """All above-threshold candidates across framework pairs, best first."""
    candidates: List[CandidatePair] = []
    for pair in framework_pairs:
        questions_a = question_sets.get(pair.framework_a) or []
        questions_b = question_sets.get(pair.framework_b) or []
        if not questions_a or not questions_b:
            continue
        candidates.extend(score_framework_pair(pair, questions_a, questions_b))
    return sort_candidates(candidates)


async def rank_candidates_async(
    framework_pairs: Sequence[FrameworkPair],
    question_sets: Mapping[str, Sequence[RawQuestion]],
    chunk_size: int = 50,
) -> List[CandidatePair]:
    """
    Same result as rank_candidates, yielding to the event loop once at least
    `chunk_size` pairs were scored since the last yield. Scoring goes one
    question row at a time, so chunk boundaries do not affect ordering.
    """
    chunk_size = max(1, chunk_size)
    candidates: List[CandidatePair] = []
    scored = 0
    since_yield = 0

    for pair in framework_pairs:
        questions_a = question_sets.get(pair.framework_a) or []
        questions_b = question_sets.get(pair.framework_b) or []
        if not questions_a or not questions_b:
            continue
        for question_a in questions_a:
            candidates.extend(score_question_row(pair, question_a, questions_b))
            scored += len(questions_b)
            since_yield += len(questions_b)
            if since_yield >= chunk_size:
                since_yield = 0
                await asyncio.sleep(0)

    ranked = sort_candidates(candidates)
    logger.debug(f"Ranked {len(ranked)} candidates out of {scored} scored pairs")
    return ranked


def select_candidates(ranked: Sequence[CandidatePair], count: int) -> CandidateSelection:
    """Split a ranked list into the top `count` and the overflow pool."""
    count = max(0, count)
    return CandidateSelection(
        selected=list(ranked[:count]),
        overflow=list(ranked[count:count * 2]),
        total_ranked=len(ranked),
    )


def rank_and_select(
    framework_question_sets: Mapping[str, Sequence[RawQuestion]],
    count: int,
    framework_pairs: Optional[Sequence[FrameworkPair]] = None,
) -> List[CandidatePair]:
    """
    Top `count` candidate pairs across all framework pairs.

    Framework pairs follow the mapping's order when not given explicitly.
    """
    if framework_pairs is None:
        framework_pairs = build_framework_pairs(list(framework_question_sets.keys()))
    ranked = rank_candidates(framework_pairs, framework_question_sets)
    return select_candidates(ranked, count).selected


__all__ = [
    "score_framework_pair",
    "sort_candidates",
    "rank_candidates",
    "rank_candidates_async",
    "select_candidates",
    "rank_and_select",
]
