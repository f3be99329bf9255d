"""
Unit Tests for the question merge service adapter.
"""

import pytest

from conftest import FakeLLMClient, echo_merge, failing_responder

from prism.config import MergeConfig
from prism.llm_layer import ServiceError
from prism.merge_agent.question_merger import (
    FALLBACK_SYSTEM_PROMPT,
    MERGE_SYSTEM_PROMPT,
    QuestionMergeService,
    build_fallback_prompt,
    build_merge_prompt,
    longer_question,
)
from prism.merge_agent.question_models import Merged, Rejected


GHG = "How does your organization report greenhouse gas emissions?"
WATER = "How does your company report total water consumption?"


def service_with(responder, config=None):
    llm = FakeLLMClient(responder)
    return QuestionMergeService(llm=llm, config=config or MergeConfig()), llm


def by_profile(merge_text, fallback_text=""):
    def responder(prompt, system_prompt, profile):
        return merge_text if profile == "merge" else fallback_text
    return responder


class TestPrompts:
    """Tests for prompt construction."""

    def test_merge_prompt_when_theme_and_score_then_included(self):
        """Theme and score lines appear when provided."""
        prompt = build_merge_prompt("GRI", "SASB", GHG, WATER, "material reporting", 21.0)
        assert 'Framework 1 (GRI): "' + GHG + '"' in prompt
        assert "Thematic connection: material reporting" in prompt
        assert "Similarity score: 21.0" in prompt
        assert "Be under 45 words" in prompt

    def test_merge_prompt_when_no_theme_then_line_omitted(self):
        """Optional lines are left out."""
        prompt = build_merge_prompt("GRI", "SASB", GHG, WATER)
        assert "Thematic connection" not in prompt
        assert "Similarity score" not in prompt
        assert "Suggested framing" not in prompt

    def test_merge_prompt_when_connector_then_framing_line(self):
        """A connecting phrase is offered to the model as framing."""
        prompt = build_merge_prompt("GRI", "SASB", GHG, WATER, "water stewardship", 21.0, "for water stewardship purposes")
        assert "Suggested framing: for water stewardship purposes" in prompt

    def test_fallback_prompt_when_built_then_main_topics_listed(self):
        """The fallback prompt names each question's main topic."""
        prompt = build_fallback_prompt(GHG, WATER)
        assert "(about organization report greenhouse)" in prompt
        assert "(about company report total)" in prompt
        assert '"DIFFERENT_CONTEXT"' in prompt

    def test_longer_question_when_tie_then_second(self):
        """Equal length picks the second question."""
        assert longer_question("abc", "xyz") == "xyz"
        assert longer_question("abcd", "xyz") == "abcd"


class TestTaggedResults:
    """Tests for the Merged / Rejected boundary."""

    def test_request_when_text_then_merged(self):
        """Plain model text is Merged."""
        service, _ = service_with(lambda p, s, profile: "How do you report both?")
        assert service.request_merge("A", "B", GHG, WATER) == Merged("How do you report both?")

    def test_request_when_sentinel_then_rejected(self):
        """The sentinel never escapes the adapter."""
        service, _ = service_with(lambda p, s, profile: "DIFFERENT_CONTEXT")
        result = service.request_fallback(GHG, WATER)
        assert isinstance(result, Rejected)
        assert result.reason == "different context"

    def test_request_when_service_error_then_rejected(self):
        """Service failures become Rejected."""
        service, _ = service_with(failing_responder)
        assert isinstance(service.request_merge("A", "B", GHG, WATER), Rejected)

    def test_request_when_profiles_then_merge_and_fallback_prompts(self):
        """Each request uses its own profile and system prompt."""
        service, llm = service_with(lambda p, s, profile: "x")
        service.request_merge("A", "B", GHG, WATER)
        service.request_fallback(GHG, WATER)
        assert llm.profiles_called() == ["merge", "merge_fallback"]
        assert llm.calls[0]["system_prompt"] == MERGE_SYSTEM_PROMPT
        assert llm.calls[1]["system_prompt"] == FALLBACK_SYSTEM_PROMPT


class TestMergeQuestions:
    """Tests for the merge decision chain."""

    def test_merge_when_valid_model_output_then_model_text(self):
        """A valid merge is used as is and flagged as model output."""
        service, _ = service_with(echo_merge)
        outcome = service.merge_questions("GRI", "SASB", GHG, WATER, "theme", 21.0)
        assert outcome.source == "model"
        assert outcome.generated_by_model is True
        assert "greenhouse" in outcome.text and "water" in outcome.text

    def test_merge_when_identical_then_no_service_call(self):
        """Normalized-equal questions skip the model."""
        service, llm = service_with(echo_merge)
        outcome = service.merge_questions("GRI", "SASB", GHG, GHG.lower(), None, 30.0)
        assert outcome.text == GHG
        assert outcome.generated_by_model is False
        assert llm.calls == []

    def test_merge_when_repeated_then_cache_hit(self):
        """The second identical request is served from the cache."""
        service, llm = service_with(echo_merge)
        first = service.merge_questions("GRI", "SASB", GHG, WATER, "theme", 21.0)
        second = service.merge_questions("GRI", "SASB", GHG, WATER, "theme", 21.0)
        assert second.source == "cache"
        assert second.text == first.text
        assert len(llm.calls) == 1

    def test_merge_when_invalid_and_high_similarity_then_longer_original(self):
        """Invalid output on a similar pair falls back to the longer source."""
        service, llm = service_with(lambda p, s, profile: "Sure, here you go")
        outcome = service.merge_questions("GRI", "SASB", GHG, WATER, "theme", 21.0)
        assert outcome.text == longer_question(GHG, WATER)
        assert outcome.generated_by_model is False
        assert llm.profiles_called() == ["merge"]

    def test_merge_when_service_fails_then_longer_original(self):
        """A service error is absorbed."""
        service, _ = service_with(failing_responder)
        outcome = service.merge_questions("GRI", "SASB", GHG, WATER, "theme", 21.0)
        assert outcome.source == "original"
        assert outcome.text == longer_question(GHG, WATER)

    def test_merge_when_invalid_and_low_similarity_then_fallback_prompt(self):
        """Without a similarity shortcut the stricter prompt is tried."""
        fallback_text = "How do you report greenhouse gas emissions and water consumption?"
        service, llm = service_with(by_profile("no question here", fallback_text))
        outcome = service.merge_questions("GRI", "SASB", GHG, WATER, "theme", None)
        assert outcome.source == "fallback_model"
        assert outcome.text == fallback_text
        assert llm.profiles_called() == ["merge", "merge_fallback"]

    def test_merge_when_fallback_says_different_context_then_longer_original(self):
        """A rejected fallback ends at the longer source question."""
        service, _ = service_with(by_profile("no question here", "DIFFERENT_CONTEXT"))
        outcome = service.merge_questions("GRI", "SASB", GHG, WATER, None, None)
        assert outcome.source == "original"
        assert outcome.generated_by_model is False

    def test_merge_when_empty_question_then_raises(self):
        """Empty inputs are caller errors."""
        service, _ = service_with(echo_merge)
        with pytest.raises(ValueError):
            service.merge_questions("GRI", "SASB", "  ", WATER)


class TestOtherFeatures:
    """Tests for refinement and the connection check."""

    def test_refine_when_text_then_refine_profile(self):
        """Refinement uses its own prompt and profile."""
        service, llm = service_with(lambda p, s, profile: "How do you disclose emissions?")
        assert service.refine_question("🌱 How do you report emissions?") == "How do you disclose emissions?"
        assert llm.profiles_called() == ["refine"]
        assert "more insightful and concise manner" in llm.calls[0]["prompt"]

    def test_refine_when_service_fails_then_raises(self):
        """Refinement surfaces service errors."""
        service, _ = service_with(failing_responder)
        with pytest.raises(ServiceError):
            service.refine_question("How do you report emissions?")

    def test_check_connection_when_ok_then_content(self):
        """A successful ping reports ok."""
        service, _ = service_with(lambda p, s, profile: "Hello!")
        assert service.check_connection() == {"ok": True, "content": "Hello!"}

    def test_check_connection_when_failure_then_error(self):
        """A failed ping reports the error instead of raising."""
        service, _ = service_with(failing_responder)
        result = service.check_connection()
        assert result["ok"] is False
        assert "503" in result["error"]
