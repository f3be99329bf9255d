# prism/merge_agent/question_merger.py
# Created: 2026-10-16
# Purpose: Text-generation adapter for merging, refining and connectivity checks

"""
Question Merger - adapter between the merge pipeline and the LLM client.

The model's "do not merge" sentinel and every ServiceError are turned into
Rejected results here; nothing above this layer sees raw sentinels.

All methods are synchronous and may run in worker threads; the only shared
state is the bounded merge cache, which carries its own lock.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from prism.config import APP_CONFIG, MergeConfig
from prism.llm_abstraction import LLMClient, get_client
from prism.llm_layer import ServiceError
from prism.merge_agent.keywords import extract_main_topic
from prism.merge_agent.merge_cache import BoundedCache, merge_cache_key
from prism.merge_agent.question_models import Merged, MergeOutcome, MergeResult, Rejected
from prism.merge_agent.question_validator import (
    DIFFERENT_CONTEXT,
    is_different_context,
    normalize_question,
    validate_response,
)


logger = logging.getLogger(__name__)


MERGE_SYSTEM_PROMPT = (
    "You are an expert at analyzing and merging sustainability framework questions. "
    "You create precise, meaningful merged questions that maintain the original intent "
    "while being clear and actionable."
)

MERGE_PROMPT = """Analyze these two questions from different frameworks and create a meaningful merged question:

Framework 1 ({framework_a}): "{question_a}"
Framework 2 ({framework_b}): "{question_b}"
{context_lines}

Instructions:
1. If the questions are asking exactly the same thing (even with slightly different wording), return the clearer/more complete version
2. If the questions are very similar but have different aspects, create a merged question that captures both aspects
3. If the questions are different but related, create a meaningful combination that addresses both frameworks' requirements
4. The merged question should:
   - Be clear and complete
   - Maintain the original meaning
   - Use consistent terminology
   - Be specific and actionable
   - End with a question mark
   - Be under 45 words

Respond with ONLY the merged question:"""

FALLBACK_SYSTEM_PROMPT = "You combine questions accurately and concisely."

FALLBACK_PROMPT = """
Analyze these two sustainability questions and determine if they have the same context:
1. "{question_a}"
2. "{question_b}"

BE VERY STRICT in your analysis:
- Do they ask about exactly the same sustainability topic?
- Would the exact same answer satisfy both questions completely?
- Do they share multiple key terminology and concepts?
- Are they essentially asking the same thing in different ways?

If they have different contexts or are only tangentially related, respond with "{sentinel}" only.

If they truly have the same context, create one merged question that:
- Includes the main topic from question 1 (about {topic_a})
- Includes the main topic from question 2 (about {topic_b})
- Verifies that answering it would satisfy both original framework requirements
- Ends with a question mark
- Is under 45 words

RESPOND WITH ONLY THE MERGED QUESTION OR "{sentinel}"."""

REFINE_SYSTEM_PROMPT = (
    "You are an expert sustainability consultant generating clear and strategic "
    "ESG framework questions."
)

REFINE_PROMPT = 'Rewrite the following merged question in a more insightful and concise manner:\n\n"{text}"'


def build_merge_prompt(
    framework_a: str,
    framework_b: str,
    question_a: str,
    question_b: str,
    theme: Optional[str] = None,
    score: Optional[float] = None,
    connector: Optional[str] = None,
) -> str:
    context = []
    if theme:
        context.append(f"Thematic connection: {theme}")
    if connector:
        context.append(f"Suggested framing: {connector}")
    if score:
        context.append(f"Similarity score: {round(score, 2)}")
    return MERGE_PROMPT.format(
        framework_a=framework_a,
        framework_b=framework_b,
        question_a=question_a,
        question_b=question_b,
        context_lines="\n".join(context),
    )


def build_fallback_prompt(question_a: str, question_b: str) -> str:
    return FALLBACK_PROMPT.format(
        question_a=question_a.strip(),
        question_b=question_b.strip(),
        topic_a=extract_main_topic(question_a),
        topic_b=extract_main_topic(question_b),
        sentinel=DIFFERENT_CONTEXT,
    )


def longer_question(question_a: str, question_b: str) -> str:
    """The more complete of two source questions; ties go to the second."""
    return question_a if len(question_a) > len(question_b) else question_b


class QuestionMergeService:
    """Merges question pairs through the text-generation service."""

    def __init__(
        self,
        llm: Optional[LLMClient] = None,
        config: Optional[MergeConfig] = None,
        cache: Optional[BoundedCache] = None,
    ):
        self.config = config or APP_CONFIG.merge
        self._llm = llm
        self.cache = cache if cache is not None else BoundedCache(self.config.cache_capacity)

    @property
    def llm(self) -> LLMClient:
        # Resolved lazily so importing the pipeline never touches provider setup
        if self._llm is None:
            self._llm = get_client()
        return self._llm

    # ------------------------------------------------------------------
    # Tagged service calls
    # ------------------------------------------------------------------

    def request_merge(
        self,
        framework_a: str,
        framework_b: str,
        question_a: str,
        question_b: str,
        theme: Optional[str] = None,
        score: Optional[float] = None,
        connector: Optional[str] = None,
    ) -> MergeResult:
        prompt = build_merge_prompt(framework_a, framework_b, question_a, question_b, theme, score, connector)
        return self._request(prompt, MERGE_SYSTEM_PROMPT, "merge")

    def request_fallback(self, question_a: str, question_b: str) -> MergeResult:
        prompt = build_fallback_prompt(question_a, question_b)
        return self._request(prompt, FALLBACK_SYSTEM_PROMPT, "merge_fallback")

    def _request(self, prompt: str, system_prompt: str, profile: str) -> MergeResult:
        try:
            text = self.llm.complete(prompt=prompt, system_prompt=system_prompt, profile=profile)
        except ServiceError as e:
            logger.warning(f"Merge request failed ({profile}): {e}")
            return Rejected(reason=f"service error: {e}")

        if not text:
            return Rejected(reason="empty response")
        if is_different_context(text):
            return Rejected(reason="different context")
        return Merged(text=text)

    # ------------------------------------------------------------------
    # Merge decision
    # ------------------------------------------------------------------

    def merge_questions(
        self,
        framework_a: str,
        framework_b: str,
        question_a: str,
        question_b: str,
        theme: Optional[str] = None,
        score: Optional[float] = None,
        connector: Optional[str] = None,
    ) -> MergeOutcome:
        """
        Choose the text for one pair.

        Order: identical sources, cache, primary prompt, similarity
        shortcut, fallback prompt, longer source question.

        Raises:
            ValueError: empty question or framework name
        """
        if not question_a.strip() or not question_b.strip():
            raise ValueError("Question texts cannot be empty")
        if not framework_a.strip() or not framework_b.strip():
            raise ValueError("Framework names cannot be empty")

        if normalize_question(question_a) == normalize_question(question_b):
            return MergeOutcome(text=question_a, generated_by_model=False, source="original")

        key = merge_cache_key(framework_a, framework_b, question_a, question_b, theme, score)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Merge cache hit for {framework_a}/{framework_b}")
            return MergeOutcome(text=cached, generated_by_model=True, source="cache")

        result = self.request_merge(framework_a, framework_b, question_a, question_b, theme, score, connector)
        if isinstance(result, Merged) and validate_response(result.text, question_a, question_b):
            self.cache.set(key, result.text)
            return MergeOutcome(text=result.text, generated_by_model=True, source="model")

        if isinstance(result, Rejected):
            logger.debug(f"Primary merge rejected: {result.reason}")
        else:
            logger.debug(f"Primary merge failed validation: {result.text[:80]!r}")

        if score and score > self.config.similarity_shortcut:
            return MergeOutcome(
                text=longer_question(question_a, question_b),
                generated_by_model=False,
                source="original",
            )

        fallback = self.request_fallback(question_a, question_b)
        if isinstance(fallback, Merged) and validate_response(fallback.text, question_a, question_b):
            self.cache.set(key, fallback.text)
            return MergeOutcome(text=fallback.text, generated_by_model=True, source="fallback_model")

        return MergeOutcome(
            text=longer_question(question_a, question_b),
            generated_by_model=False,
            source="original",
        )

    # ------------------------------------------------------------------
    # Other service features
    # ------------------------------------------------------------------

    def refine_question(self, text: str) -> str:
        """
        Rewrite a merged question more insightfully and concisely.

        Raises:
            ValueError: empty text
            ServiceError: the service failed or answered with nothing
        """
        if not text or not text.strip():
            raise ValueError("Question text cannot be empty")

        refined = self.llm.complete(
            prompt=REFINE_PROMPT.format(text=text.strip()),
            system_prompt=REFINE_SYSTEM_PROMPT,
            profile="refine",
        )
        if not refined:
            raise ServiceError("Refinement returned no text")
        return refined

    def check_connection(self) -> Dict[str, Any]:
        """Minimal round trip to the service; never raises ServiceError."""
        try:
            content = self.llm.ping()
        except ServiceError as e:
            logger.error(f"LLM connection test failed: {e}")
            return {"ok": False, "error": str(e)}
        logger.info("LLM connection test succeeded")
        return {"ok": True, "content": content}


__all__ = [
    "QuestionMergeService",
    "build_merge_prompt",
    "build_fallback_prompt",
    "longer_question",
    "MERGE_SYSTEM_PROMPT",
    "FALLBACK_SYSTEM_PROMPT",
    "REFINE_SYSTEM_PROMPT",
]
