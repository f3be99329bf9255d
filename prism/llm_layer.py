# prism/llm_layer.py
# Created: 2026-10-16
# Purpose: Provider-specific text-generation calls and routing

"""
LLM Provider Layer

Talks to an OpenAI-compatible chat-completions endpoint, either through the
OpenAI SDK ("openai") or with plain requests ("http"). Every failure leaves
this module as a ServiceError subclass; profiles and validation live in
llm_abstraction.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional

import openai
import requests

from prism.config import APP_CONFIG


logger = logging.getLogger(__name__)

Messages = List[Dict[str, str]]


# ============================================================================
# Exceptions
# ============================================================================

class ServiceError(Exception):
    """Text-generation service failure."""


class ProviderConnectionError(ServiceError):
    pass


class ProviderTimeoutError(ServiceError):
    pass


class ProviderAuthError(ServiceError):
    pass


class ProviderRateLimitError(ServiceError):
    pass


class ProviderModelError(ServiceError):
    pass


HTTP_STATUS_ERRORS = {
    401: ProviderAuthError,
    403: ProviderAuthError,
    404: ProviderModelError,
    429: ProviderRateLimitError,
}


def chat_payload(messages: Messages, model: str, temperature: float,
                 max_tokens: Optional[int], **extra) -> Dict[str, Any]:
    """Request body shared by both providers; max_tokens only when set."""
    payload: Dict[str, Any] = {"model": model, "messages": messages, "temperature": temperature}
    if max_tokens:
        payload["max_tokens"] = max_tokens
    payload.update(extra)
    return payload


def token_counts(usage: Optional[Dict[str, Any]]) -> Dict[str, int]:
    if not usage:
        return {}
    return {key: usage.get(key) or 0 for key in ("prompt_tokens", "completion_tokens", "total_tokens")}


# ============================================================================
# Providers
# ============================================================================

class LLMProvider(ABC):
    """A configured chat-completions backend."""

    default_base_url: Optional[str] = None

    def __init__(self, config):
        self.config = config
        self.base_url = (self._setting(config, "base_url", self.default_base_url) or "").rstrip("/")
        self.api_key = self._setting(config, "api_key")
        self.timeout = self._setting(config, "timeout", 10.0)

    @staticmethod
    def _setting(config, name: str, default: Any = None) -> Any:
        """Read a setting from a ProviderConfig or a plain dict."""
        if isinstance(config, dict):
            value = config.get(name)
        else:
            value = getattr(config, name, None)
        return default if value is None else value

    @abstractmethod
    def call(self, messages: Messages, model: str, temperature: float,
             max_tokens: Optional[int], timeout: Optional[float], **kwargs) -> Dict[str, Any]:
        """
        Return {"content": str, "tokens": {...}, "raw": ...}.

        Raises:
            ServiceError: any transport, HTTP or response-shape failure
        """


class OpenAIProvider(LLMProvider):
    """OpenAI SDK pointed at `base_url` (the TGI endpoint by default)."""

    def __init__(self, config):
        super().__init__(config)
        if not self.api_key:
            raise ProviderAuthError("API key not configured for OpenAI provider")

        options = self._setting(config, "options", {})
        self.client = openai.OpenAI(
            api_key=self.api_key,
            base_url=self.base_url or None,
            timeout=self.timeout,
            max_retries=options.get("max_retries", 2),
        )

    def call(self, messages, model, temperature, max_tokens, timeout, **kwargs):
        payload = chat_payload(messages, model, temperature, max_tokens, **kwargs)
        try:
            response = self.client.chat.completions.create(timeout=timeout or self.timeout, **payload)
        except openai.APITimeoutError as e:
            raise ProviderTimeoutError(f"Request to {self.base_url} timed out: {e}")
        except openai.APIConnectionError as e:
            raise ProviderConnectionError(f"Cannot connect to {self.base_url}: {e}")
        except openai.RateLimitError as e:
            raise ProviderRateLimitError(str(e))
        except openai.AuthenticationError as e:
            raise ProviderAuthError(str(e))
        except openai.NotFoundError as e:
            raise ProviderModelError(f"Model '{model}' not available: {e}")
        except openai.APIError as e:
            raise ServiceError(f"OpenAI error: {e}")

        content = response.choices[0].message.content if response.choices else ""
        usage = response.usage.model_dump() if response.usage is not None else None
        return {"content": content or "", "tokens": token_counts(usage), "raw": response.model_dump()}


class HTTPProvider(LLMProvider):
    """POSTs to {base_url}/chat/completions with requests."""

    default_base_url = "http://localhost:8080/v1"

    def call(self, messages, model, temperature, max_tokens, timeout, **kwargs):
        url = f"{self.base_url}/chat/completions"
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = requests.post(
                url,
                headers=headers,
                json=chat_payload(messages, model, temperature, max_tokens, **kwargs),
                timeout=timeout or self.timeout,
            )
        except requests.exceptions.Timeout:
            raise ProviderTimeoutError(f"Request to {url} timed out")
        except requests.exceptions.RequestException as e:
            raise ProviderConnectionError(f"Cannot connect to {url}: {e}")

        if response.status_code >= 400:
            error_class = HTTP_STATUS_ERRORS.get(response.status_code, ServiceError)
            raise error_class(f"HTTP {response.status_code}: {response.text}")

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ServiceError(f"Unexpected response format: {e}")

        return {"content": content or "", "tokens": token_counts(data.get("usage")), "raw": data}


PROVIDERS = {
    "openai": OpenAIProvider,
    "http": HTTPProvider,
}


# ============================================================================
# Provider Router
# ============================================================================

class ProviderRouter:
    """Holds one provider instance per configured name."""

    def __init__(self, provider_configs: Optional[Dict[str, Any]] = None):
        self.provider_configs = provider_configs if provider_configs is not None else APP_CONFIG.providers
        self.providers: Dict[str, LLMProvider] = {}

        for name, config in self.provider_configs.items():
            try:
                self.providers[name] = self._create(name, config)
                logger.info(f"Initialized provider: {name}")
            except ServiceError as e:
                logger.info(f"Skipping provider {name}: {e}")

    @staticmethod
    def _create(name: str, config) -> LLMProvider:
        if name not in PROVIDERS:
            raise ServiceError(f"Unknown provider '{name}'. Available: {sorted(PROVIDERS)}")
        return PROVIDERS[name](config)

    def call(self, provider: str, messages: Messages, model: str, temperature: float,
             max_tokens: Optional[int], timeout: Optional[float], **kwargs) -> Dict[str, Any]:
        """Dispatch to `provider`, creating it on first use. Raises ServiceError."""
        if provider not in self.providers:
            self.providers[provider] = self._create(provider, self.provider_configs.get(provider, {}))

        return self.providers[provider].call(
            messages=messages,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            **kwargs
        )


__all__ = [
    "LLMProvider",
    "ServiceError",
    "ProviderConnectionError",
    "ProviderTimeoutError",
    "ProviderAuthError",
    "ProviderRateLimitError",
    "ProviderModelError",
    "ProviderRouter",
    "OpenAIProvider",
    "HTTPProvider",
    "PROVIDERS",
]
