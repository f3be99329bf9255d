# prism/merge_agent/question_pipeline.py
# Created: 2026-10-16
# Purpose: Merge orchestration from selected frameworks to merged questions

"""
Question Merge Pipeline - Orchestrates loading, ranking and merging.

Flow:
    1. Validate request (count, at least two distinct frameworks)
    2. Load question sets and descriptions concurrently
    3. Resolve thematic connections per framework pair
    4. Rank all cross pairs globally
    5. Merge top pairs through a bounded worker pool
    6. Replace failures from the overflow pool once

Every per-pair failure is absorbed and logged; only precondition
violations, data errors and an empty run reach the caller.
"""

from __future__ import annotations

import asyncio
import logging
import random
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence, Set, Tuple

from prism.config import APP_CONFIG, MergeConfig
from prism.errors import InsufficientFrameworks, NoQuestionsGenerated, ValidationError
from prism.framework_data import FrameworkRepository, get_repository
from prism.merge_agent.question_merger import QuestionMergeService
from prism.merge_agent.question_models import (
    CandidatePair,
    MergedQuestion,
    MergeOutcome,
    OriginalQuestion,
    RawQuestion,
)
from prism.merge_agent.question_validator import (
    clean_input,
    deterministic_fallback,
    format_question,
    identical_question_text,
    normalize_question,
    pick_emoji,
)
from prism.merge_agent.ranking import rank_candidates_async, select_candidates
from prism.merge_agent.similarity import score
from prism.merge_agent.themes import build_framework_pairs, contextual_connector


logger = logging.getLogger(__name__)

PairKey = Tuple[str, str, str, str]


class MergePipeline:
    """Turns a framework selection into merged questions."""

    def __init__(
        self,
        service: Optional[QuestionMergeService] = None,
        repository: Optional[FrameworkRepository] = None,
        config: Optional[MergeConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or APP_CONFIG.merge
        self.service = service or QuestionMergeService(config=self.config)
        self._repository = repository
        self.rng = rng or random.Random(self.config.random_seed)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    @property
    def repository(self) -> FrameworkRepository:
        if self._repository is None:
            self._repository = get_repository()
        return self._repository

    @property
    def executor(self) -> ThreadPoolExecutor:
        """Merge threads, one per concurrent merge; not the loop's default executor."""
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=max(1, self.config.merge_concurrency),
                    thread_name_prefix="prism-merge",
                )
            return self._executor

    def close(self) -> None:
        """Release merge threads without waiting for abandoned calls."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)

    async def _call_service(self, *args) -> MergeOutcome:
        """
        Run service.merge_questions on a merge thread.

        The timeout starts when a thread picks the call up, so waiting behind
        earlier (possibly abandoned) calls never counts against a pair. A call
        that loses the race keeps running and its result is dropped.
        """
        loop = asyncio.get_running_loop()
        started = asyncio.Event()

        def run():
            loop.call_soon_threadsafe(started.set)
            return self.service.merge_questions(*args)

        future = loop.run_in_executor(self.executor, run)
        await started.wait()
        return await asyncio.wait_for(future, timeout=self.config.merge_timeout)

    # ------------------------------------------------------------------
    # Single pair
    # ------------------------------------------------------------------

    async def merge_one(self, pair: CandidatePair, index: int) -> Optional[MergedQuestion]:
        """Merge one candidate pair. Returns None instead of raising."""
        try:
            return await self._merge_one(pair, index)
        except Exception as e:
            logger.error(f"Error merging questions {pair.framework_a}/{pair.framework_b} #{index}: {e}")
            return None

    async def _merge_one(self, pair: CandidatePair, index: int) -> Optional[MergedQuestion]:
        text_a = clean_input(pair.question_a.text)
        text_b = clean_input(pair.question_b.text)
        if not text_a or not text_b:
            logger.debug(f"Pair #{index} has an empty question after cleaning")
            return None

        emoji = pick_emoji(self.rng)

        if normalize_question(text_a) == normalize_question(text_b):
            return self._build(pair, index, text_a, text_b, emoji,
                               identical_question_text(text_a, emoji), generated_by_model=False)

        similarity = score(
            RawQuestion(text=text_a, category=pair.question_a.category),
            RawQuestion(text=text_b, category=pair.question_b.category),
        )
        connector = contextual_connector(pair.thematic_connection, self.rng)

        try:
            outcome = await self._call_service(
                pair.framework_a,
                pair.framework_b,
                text_a,
                text_b,
                pair.thematic_connection,
                similarity,
                connector,
            )
        except asyncio.TimeoutError:
            if not self.config.use_deterministic_fallback:
                logger.warning(f"Merge of pair #{index} timed out after {self.config.merge_timeout}s")
                return None
            logger.info(f"Merge of pair #{index} timed out, using template merge")
            final_text = deterministic_fallback(text_a, text_b, emoji)
            return self._build(pair, index, text_a, text_b, emoji, final_text, generated_by_model=False)

        try:
            final_text = format_question(
                outcome.text,
                emoji,
                min_length=self.config.min_length,
                max_length=self.config.max_length,
            )
        except ValidationError as e:
            logger.debug(f"Pair #{index} rejected by formatter: {e}")
            return None

        logger.debug(f"Pair #{index} merged via {outcome.source}")
        return self._build(pair, index, text_a, text_b, emoji, final_text, outcome.generated_by_model)

    def _build(
        self,
        pair: CandidatePair,
        index: int,
        text_a: str,
        text_b: str,
        emoji: str,
        final_text: str,
        generated_by_model: bool,
    ) -> MergedQuestion:
        q1, q2 = pair.question_a, pair.question_b
        return MergedQuestion(
            id=f"q{index + 1}",
            text=final_text,
            framework_ids=(pair.framework_a, pair.framework_b),
            original_questions=(
                OriginalQuestion(text=text_a, framework=pair.framework_a, category=q1.category, ref=q1.ref),
                OriginalQuestion(text=text_b, framework=pair.framework_b, category=q2.category, ref=q2.ref),
            ),
            emoji=emoji,
            category=q1.category or q2.category,
            ref=f"{pair.framework_a}-{pair.framework_b}-{index}",
            generated_by_model=generated_by_model,
        )

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def _run_pool(
        self,
        candidates: Sequence[CandidatePair],
        target: int,
        start_index: int,
        used_pairs: Set[PairKey],
    ) -> List[MergedQuestion]:
        """
        Merge candidates with at most `merge_concurrency` in flight.

        Workers stop taking new pairs once `target` successes exist; merges
        already running are allowed to finish. Output keeps rank order.
        """
        if target <= 0 or not candidates:
            return []

        queue: "asyncio.Queue[Tuple[int, CandidatePair]]" = asyncio.Queue()
        for offset, candidate in enumerate(candidates):
            queue.put_nowait((start_index + offset, candidate))

        results: Dict[int, MergedQuestion] = {}

        async def worker() -> None:
            while len(results) < target:
                try:
                    index, candidate = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                if candidate.pair_key in used_pairs:
                    continue
                used_pairs.add(candidate.pair_key)
                merged = await self.merge_one(candidate, index)
                if merged is not None:
                    results[index] = merged

        workers = max(1, min(self.config.merge_concurrency, len(candidates)))
        await asyncio.gather(*(worker() for _ in range(workers)))

        if not queue.empty():
            logger.debug(f"Target of {target} reached, {queue.qsize()} scheduled pairs skipped")
        return [results[i] for i in sorted(results)]

    async def merge_all(self, ranked: Sequence[CandidatePair], count: int) -> List[MergedQuestion]:
        """Top `count` merges from a ranked candidate list, with one overflow round."""
        selection = select_candidates(ranked, count)
        used_pairs: Set[PairKey] = set()

        results = await self._run_pool(selection.selected, count, 0, used_pairs)

        missing = count - len(results)
        if missing > 0 and selection.overflow:
            logger.info(f"Generated {len(results)}/{count}, trying {len(selection.overflow)} overflow pairs")
            results.extend(await self._run_pool(selection.overflow, missing, count, used_pairs))

        return results[:count]

    # ------------------------------------------------------------------
    # Public operation
    # ------------------------------------------------------------------

    async def generate_questions_from_frameworks(
        self,
        count: int,
        framework_names: Sequence[str],
    ) -> List[MergedQuestion]:
        """
        Merged questions for a framework selection.

        Raises:
            ValueError: count is not a non-negative integer
            InsufficientFrameworks: fewer than two distinct frameworks
            DataLoadError: framework document unavailable
            NoQuestionsGenerated: nothing could be merged
        """
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ValueError("count must be a non-negative integer")

        names = list(dict.fromkeys(
            name.strip() for name in framework_names if isinstance(name, str) and name.strip()
        ))
        if len(names) < 2:
            raise InsufficientFrameworks("Select at least two frameworks")
        if count == 0:
            return []

        question_sets, descriptions = await self._load_frameworks(names)
        framework_pairs = build_framework_pairs(names, descriptions)

        ranked = await rank_candidates_async(
            framework_pairs, question_sets, chunk_size=self.config.candidate_chunk_size
        )
        logger.info(f"{len(ranked)} candidate pairs above threshold across {len(framework_pairs)} framework pairs")

        results = await self.merge_all(ranked, count)
        if not results:
            raise NoQuestionsGenerated("Failed to generate any questions. Please try again.")

        logger.info(f"Generated {len(results)} merged questions (requested {count})")
        return results

    async def _load_frameworks(
        self,
        names: Sequence[str],
    ) -> Tuple[Dict[str, List[RawQuestion]], Dict[str, str]]:
        repository = self.repository

        async def load(name: str) -> Tuple[List[RawQuestion], str]:
            return await asyncio.gather(
                asyncio.to_thread(repository.get_questions_for_framework, name),
                asyncio.to_thread(repository.get_framework_description, name),
            )

        loaded = await asyncio.gather(*(load(name) for name in names))

        question_sets: Dict[str, List[RawQuestion]] = {}
        descriptions: Dict[str, str] = {}
        for name, (questions, description) in zip(names, loaded):
            question_sets[name] = questions
            descriptions[name] = description
        return question_sets, descriptions


# ============================================================================
# Convenience Functions
# ============================================================================

async def generate_questions_from_frameworks(
    count: int,
    framework_names: Sequence[str],
    pipeline: Optional[MergePipeline] = None,
) -> List[MergedQuestion]:
    if pipeline is not None:
        return await pipeline.generate_questions_from_frameworks(count, framework_names)

    pipeline = MergePipeline()
    try:
        return await pipeline.generate_questions_from_frameworks(count, framework_names)
    finally:
        pipeline.close()


def generate_questions(
    count: int,
    framework_names: Sequence[str],
    pipeline: Optional[MergePipeline] = None,
) -> List[MergedQuestion]:
    """Blocking wrapper running the pipeline on a fresh event loop."""
    return asyncio.run(generate_questions_from_frameworks(count, framework_names, pipeline))


__all__ = [
    "MergePipeline",
    "generate_questions_from_frameworks",
    "generate_questions",
]
