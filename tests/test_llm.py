"""
Unit Tests for the LLM client and providers (no network).
"""

import pytest
import requests

from prism.config import ProviderConfig
from prism.llm_abstraction import LLMClient
from prism.llm_layer import (
    HTTPProvider,
    ProviderAuthError,
    ProviderRateLimitError,
    ProviderRouter,
    ProviderTimeoutError,
    ServiceError,
)


PROFILES = {
    "merge": {"provider": "fake", "model": "tgi", "temperature": 0.3, "max_tokens": 100, "top_p": 0.9},
    "ping": {"provider": "fake", "model": "tgi", "temperature": 0.0, "max_tokens": 50},
}


class FakeRouter:
    def __init__(self, content="  Merged question?  ", error=None):
        self.content = content
        self.error = error
        self.calls = []

    def call(self, provider, messages, model, temperature, max_tokens, timeout, **kwargs):
        self.calls.append(dict(provider=provider, messages=messages, model=model,
                               temperature=temperature, max_tokens=max_tokens, **kwargs))
        if self.error:
            raise self.error
        return {"content": self.content, "tokens": {"total_tokens": 12}}


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.text = str(payload)

    def json(self):
        return self._payload


class TestLLMClient:
    """Tests for the provider-agnostic client."""

    def test_complete_when_success_then_stripped_text(self):
        """complete() returns trimmed content."""
        client = LLMClient(router=FakeRouter(), profiles=PROFILES)
        assert client.complete("Merge these", system_prompt="sys", profile="merge") == "Merged question?"

    def test_complete_when_profile_then_parameters_forwarded(self):
        """Profile values reach the provider, including top_p."""
        router = FakeRouter()
        LLMClient(router=router, profiles=PROFILES).complete("Merge", system_prompt="sys", profile="merge")
        call = router.calls[0]
        assert call["temperature"] == 0.3
        assert call["max_tokens"] == 100
        assert call["top_p"] == 0.9
        assert [m["role"] for m in call["messages"]] == ["system", "user"]

    def test_complete_when_provider_fails_then_service_error(self):
        """Provider errors surface as ServiceError."""
        client = LLMClient(router=FakeRouter(error=ProviderTimeoutError("slow")), profiles=PROFILES)
        with pytest.raises(ProviderTimeoutError):
            client.complete("Merge", profile="merge")

    def test_complete_when_retries_then_extra_attempts(self, monkeypatch):
        """Each retry is another provider call before the error is raised."""
        monkeypatch.setattr("prism.llm_abstraction.time.sleep", lambda seconds: None)
        router = FakeRouter(error=ProviderRateLimitError("busy"))
        with pytest.raises(ProviderRateLimitError):
            LLMClient(router=router, profiles=PROFILES).complete("Merge", profile="merge", retries=2)
        assert len(router.calls) == 3

    def test_generate_when_unknown_profile_then_value_error(self):
        """Unknown profiles are rejected."""
        client = LLMClient(router=FakeRouter(), profiles=PROFILES)
        with pytest.raises(ValueError, match="not found"):
            client.complete("Merge", profile="nope")

    def test_generate_when_bad_role_then_value_error(self):
        """Messages are validated before any call."""
        client = LLMClient(router=FakeRouter(), profiles=PROFILES)
        with pytest.raises(ValueError):
            client.generate([{"role": "robot", "content": "hi"}], profile="merge")

    def test_ping_when_called_then_ping_profile(self):
        """ping() uses the ping profile."""
        router = FakeRouter(content="Hello")
        assert LLMClient(router=router, profiles=PROFILES).ping() == "Hello"
        assert router.calls[0]["max_tokens"] == 50


class TestHTTPProvider:
    """Tests for the plain HTTP provider."""

    def provider(self):
        return HTTPProvider(ProviderConfig(base_url="http://llm.local/v1/", api_key="k", timeout=3.0))

    def test_call_when_ok_then_content_and_tokens(self, monkeypatch):
        """A chat completion body is unpacked."""
        payload = {"choices": [{"message": {"content": "Merged?"}}], "usage": {"total_tokens": 7}}
        seen = {}

        def fake_post(url, headers, json, timeout):
            seen.update(url=url, headers=headers, json=json, timeout=timeout)
            return FakeResponse(200, payload)

        monkeypatch.setattr(requests, "post", fake_post)
        result = self.provider().call([{"role": "user", "content": "x"}], "tgi", 0.3, 100, None, top_p=0.9)
        assert result["content"] == "Merged?"
        assert result["tokens"]["total_tokens"] == 7
        assert seen["url"] == "http://llm.local/v1/chat/completions"
        assert seen["headers"]["Authorization"] == "Bearer k"
        assert seen["json"]["top_p"] == 0.9
        assert seen["timeout"] == 3.0

    @pytest.mark.parametrize("status,error", [
        (429, ProviderRateLimitError),
        (401, ProviderAuthError),
        (500, ServiceError),
    ])
    def test_call_when_http_error_then_mapped(self, monkeypatch, status, error):
        """HTTP failures map onto the ServiceError hierarchy."""
        monkeypatch.setattr(requests, "post", lambda *a, **k: FakeResponse(status, {}))
        with pytest.raises(error):
            self.provider().call([{"role": "user", "content": "x"}], "tgi", 0.3, None, None)

    def test_call_when_timeout_then_timeout_error(self, monkeypatch):
        """Request timeouts become ProviderTimeoutError."""
        def slow(*args, **kwargs):
            raise requests.exceptions.Timeout()

        monkeypatch.setattr(requests, "post", slow)
        with pytest.raises(ProviderTimeoutError):
            self.provider().call([{"role": "user", "content": "x"}], "tgi", 0.3, None, None)

    def test_call_when_unexpected_body_then_service_error(self, monkeypatch):
        """Bodies without choices are rejected."""
        monkeypatch.setattr(requests, "post", lambda *a, **k: FakeResponse(200, {"error": "?"}))
        with pytest.raises(ServiceError):
            self.provider().call([{"role": "user", "content": "x"}], "tgi", 0.3, None, None)


class TestProviderRouter:
    """Tests for provider routing."""

    def test_router_when_openai_key_missing_then_skipped(self):
        """The SDK provider needs an API key."""
        router = ProviderRouter({"openai": ProviderConfig(base_url="http://x/v1", api_key="")})
        assert "openai" not in router.providers
        with pytest.raises(ServiceError):
            router.call("openai", [{"role": "user", "content": "x"}], "tgi", 0.1, None, None)

    def test_router_when_unknown_provider_then_service_error(self):
        """Unknown providers cannot be initialized."""
        with pytest.raises(ServiceError):
            ProviderRouter({}).call("nope", [{"role": "user", "content": "x"}], "tgi", 0.1, None, None)
