# prism/llm_abstraction.py
# Created: 2026-10-16
# Purpose: Profile-driven chat client used by the merge service

"""
LLM client for the merge service.

Sits above llm_layer: callers pick a profile ("merge", "merge_fallback",
"refine", "ping") and get text back. Provider selection, HTTP and SDK
details stay in llm_layer.
"""

import time
import logging
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field

from prism.config import APP_CONFIG
from prism.llm_layer import ProviderRouter, ServiceError


logger = logging.getLogger(__name__)

VALID_ROLES = ("system", "user", "assistant")


# ============================================================================
# Response Objects
# ============================================================================

@dataclass
class LLMResponse:
    """One completed (or failed) chat call."""
    content: str
    provider: str
    model: str
    latency: float
    tokens: Dict[str, int] = field(default_factory=dict)
    error: Optional[ServiceError] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def __str__(self) -> str:
        mark = "✓" if self.success else "✗"
        total = self.tokens.get("total_tokens", "?")
        return f"LLMResponse({mark} {self.provider}/{self.model}, {self.latency:.2f}s, {total} tokens)"


# ============================================================================
# Client
# ============================================================================

class LLMClient:
    """
    Text generation by profile.

    Usage:
        llm = LLMClient()
        text = llm.complete("Merge these questions...", system_prompt="...", profile="merge")
    """

    def __init__(self, router: Optional[ProviderRouter] = None, profiles: Optional[Dict[str, Dict[str, Any]]] = None):
        self.router = router or ProviderRouter()
        self.profiles = profiles if profiles is not None else APP_CONFIG.llm_profiles
        logger.info(f"LLM client ready with profiles: {sorted(self.profiles)}")

    def generate(self, messages: List[Dict[str, str]], profile: str, **overrides) -> LLMResponse:
        """
        Run one chat call with the parameters of `profile`.

        Keyword overrides replace profile values (temperature, max_tokens,
        top_p, timeout). Provider failures come back on the response.
        """
        check_messages(messages)
        params = dict(self.profile(profile))
        params.update(overrides)

        provider = params.pop("provider", None)
        model = params.pop("model", None)
        if not provider or not model:
            raise ValueError(f"Profile '{profile}' needs both provider and model")

        temperature = params.pop("temperature", 0.7)
        max_tokens = params.pop("max_tokens", None)
        timeout = params.pop("timeout", None)

        if APP_CONFIG.debug_mode:
            chars = sum(len(m["content"]) for m in messages)
            logger.debug(f"[{profile}] {provider}/{model} temp={temperature} chars={chars}")

        started = time.time()
        try:
            result = self.router.call(
                provider=provider,
                messages=messages,
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=timeout,
                **params
            )
        except ServiceError as e:
            logger.error(f"[{profile}] {provider}/{model} failed: {e}")
            return LLMResponse("", provider, model, time.time() - started, error=e)

        response = LLMResponse(
            result["content"] or "",
            provider,
            model,
            time.time() - started,
            tokens=result.get("tokens") or {},
        )
        logger.info(f"[{profile}] {response}")
        return response

    def complete(
        self,
        prompt: str,
        system_prompt: str = "",
        profile: Optional[str] = None,
        retries: int = 0,
        **overrides
    ) -> str:
        """
        Stripped text for a single prompt.

        `retries` extra attempts are made with exponential backoff before the
        last ServiceError is raised.
        """
        messages = [{"role": "system", "content": system_prompt}] if system_prompt else []
        messages.append({"role": "user", "content": prompt})

        attempt = 0
        while True:
            response = self.generate(messages, profile or "merge", **overrides)
            if response.success:
                return response.content.strip()
            if attempt >= retries:
                raise response.error
            wait = 2 ** attempt
            logger.warning(f"Attempt {attempt + 1} failed, retrying in {wait}s")
            time.sleep(wait)
            attempt += 1

    def ping(self, profile: str = "ping") -> str:
        """Minimal round trip to check the service answers."""
        return self.complete(
            "Hello, can you help me test the API?",
            system_prompt="You are a helpful assistant.",
            profile=profile,
        )

    def profile(self, name: str) -> Dict[str, Any]:
        if name not in self.profiles:
            raise ValueError(f"Profile '{name}' not found. Available: {sorted(self.profiles)}")
        return self.profiles[name]


def check_messages(messages: List[Dict[str, str]]) -> None:
    """Reject anything that is not a non-empty list of role/content dicts."""
    if not messages:
        raise ValueError("Messages list cannot be empty")
    for i, msg in enumerate(messages):
        if not isinstance(msg, dict) or "content" not in msg:
            raise ValueError(f"Message {i} must be a dict with 'role' and 'content'")
        if msg.get("role") not in VALID_ROLES:
            raise ValueError(f"Message {i} has invalid role {msg.get('role')!r}")


# ============================================================================
# Shared Instance
# ============================================================================

_client: Optional[LLMClient] = None


def get_client() -> LLMClient:
    """Process-wide client, created on first use."""
    global _client
    if _client is None:
        _client = LLMClient()
    return _client


__all__ = [
    "LLMClient",
    "LLMResponse",
    "check_messages",
    "get_client",
]
