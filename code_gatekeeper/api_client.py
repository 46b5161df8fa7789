"""
Multi-provider LLM client for code generation and grading.

Supports:
- Anthropic (Claude Sonnet by default), including custom endpoints
- OpenAI (GPT-4o family)
- An OpenAI-compatible AI gateway (chat completions behind a bearer key)
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import anthropic
import openai

from .config import CredentialsConfig, ModelConfig

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """LLM call failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class Provider(Enum):
    """LLM provider."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GATEWAY = "gateway"


@dataclass
class APIResponse:
    """Response from LLM API."""

    content: str
    input_tokens: int
    output_tokens: int
    model: str
    provider: Provider
    stop_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


# Model registry with provider info
MODEL_REGISTRY: dict[str, tuple[Provider, str]] = {
    "sonnet": (Provider.ANTHROPIC, "claude-sonnet-4-20250514"),
    "haiku": (Provider.ANTHROPIC, "claude-haiku-4-5-20251001"),
    "claude-sonnet-4-20250514": (Provider.ANTHROPIC, "claude-sonnet-4-20250514"),
    "gpt-4o": (Provider.OPENAI, "gpt-4o"),
    "gpt-4o-mini": (Provider.OPENAI, "gpt-4o-mini"),
    "gemini-flash": (Provider.GATEWAY, "google/gemini-2.5-flash"),
    "google/gemini-2.5-flash": (Provider.GATEWAY, "google/gemini-2.5-flash"),
}


def resolve_model(model: str) -> tuple[Provider, str]:
    """Resolve model shorthand to (provider, full_model_id)."""
    if model in MODEL_REGISTRY:
        return MODEL_REGISTRY[model]
    if model.startswith("claude"):
        return (Provider.ANTHROPIC, model)
    if model.startswith(("gpt-", "o1", "o3")):
        return (Provider.OPENAI, model)
    # Namespaced ids ("vendor/model") are gateway routes
    if "/" in model:
        return (Provider.GATEWAY, model)
    return (Provider.ANTHROPIC, model)


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients."""

    provider: Provider

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ) -> APIResponse:
        """Get completion from LLM."""
        pass


class AnthropicClient(BaseLLMClient):
    """Anthropic Claude API client."""

    provider = Provider.ANTHROPIC

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str = "claude-sonnet-4-20250514",
    ):
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY") or os.environ.get("ANTHROPIC_AUTH_TOKEN")
        if not self.api_key:
            raise ValueError(
                "Anthropic API key required. Set ANTHROPIC_API_KEY or ANTHROPIC_AUTH_TOKEN environment variable."
            )
        # Support custom base URL for alternative endpoints
        self.base_url = base_url or os.environ.get("ANTHROPIC_BASE_URL")
        self.default_model = default_model
        client_kwargs: dict[str, Any] = {"api_key": self.api_key}
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        self.client = anthropic.AsyncAnthropic(**client_kwargs)

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ) -> APIResponse:
        model = model or self.default_model

        request_params: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
        }

        if system:
            request_params["system"] = system

        try:
            response = await self.client.messages.create(**request_params)
        except anthropic.APIStatusError as e:
            raise LLMError(f"Anthropic API error: {e}", status_code=e.status_code) from e
        except anthropic.APIError as e:
            raise LLMError(f"Anthropic API error: {e}") from e

        content = ""
        for block in response.content:
            if block.type == "text":
                content += block.text

        return APIResponse(
            content=content,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=model,
            provider=Provider.ANTHROPIC,
            stop_reason=response.stop_reason,
        )


class OpenAIClient(BaseLLMClient):
    """OpenAI chat completions client."""

    provider = Provider.OPENAI

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str = "gpt-4o",
    ):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError("OpenAI API key required. Set OPENAI_API_KEY environment variable.")
        self.default_model = default_model
        client_kwargs: dict[str, Any] = {"api_key": self.api_key}
        if base_url:
            client_kwargs["base_url"] = base_url
        self.client = openai.AsyncOpenAI(**client_kwargs)

    def _token_limit_param(self, model: str) -> str:
        # Reasoning models take max_completion_tokens instead of max_tokens
        if model.startswith(("gpt-5", "o1", "o3")):
            return "max_completion_tokens"
        return "max_tokens"

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ) -> APIResponse:
        model = model or self.default_model

        # OpenAI uses system message in messages array
        full_messages = []
        if system:
            full_messages.append({"role": "system", "content": system})
        full_messages.extend(messages)

        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=full_messages,
                temperature=temperature,
                **{self._token_limit_param(model): max_tokens},
            )
        except openai.APIStatusError as e:
            raise LLMError(f"{self.provider.value} API error: {e}", status_code=e.status_code) from e
        except openai.OpenAIError as e:
            raise LLMError(f"{self.provider.value} API error: {e}") from e

        if not response.choices:
            raise LLMError("No content in AI response")

        content = response.choices[0].message.content or ""
        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0

        return APIResponse(
            content=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=model,
            provider=self.provider,
            stop_reason=response.choices[0].finish_reason,
        )


class GatewayClient(OpenAIClient):
    """OpenAI-compatible AI gateway client (bearer key, custom base URL)."""

    provider = Provider.GATEWAY

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://ai.gateway.lovable.dev/v1",
        default_model: str = "google/gemini-2.5-flash",
    ):
        api_key = api_key or os.environ.get("AI_GATEWAY_API_KEY") or os.environ.get("LOVABLE_API_KEY")
        if not api_key:
            raise ValueError("AI gateway key required. Set AI_GATEWAY_API_KEY environment variable.")
        super().__init__(api_key=api_key, base_url=base_url, default_model=default_model)


class MultiProviderClient:
    """
    Unified LLM client that routes to the appropriate provider.

    Providers without credentials are skipped; a request for a missing
    provider falls back to the configured default provider.
    """

    def __init__(
        self,
        models: ModelConfig | None = None,
        credentials: CredentialsConfig | None = None,
    ):
        self.models = models or ModelConfig()
        credentials = credentials or CredentialsConfig.from_env()
        self._clients: dict[Provider, BaseLLMClient] = {}

        try:
            self._clients[Provider.ANTHROPIC] = AnthropicClient(
                api_key=credentials.anthropic_api_key or None,
                default_model=self.models.anthropic_model,
            )
        except ValueError:
            pass  # No Anthropic key available

        try:
            self._clients[Provider.OPENAI] = OpenAIClient(
                api_key=credentials.openai_api_key or None,
                default_model=self.models.openai_model,
            )
        except ValueError:
            pass  # No OpenAI key available

        try:
            self._clients[Provider.GATEWAY] = GatewayClient(
                api_key=credentials.gateway_api_key or None,
                base_url=self.models.gateway_url,
                default_model=self.models.gateway_model,
            )
        except ValueError:
            pass  # No gateway key available

        if not self._clients:
            raise ValueError(
                "No LLM provider available. Set ANTHROPIC_API_KEY, OPENAI_API_KEY or AI_GATEWAY_API_KEY."
            )

    @property
    def default_model(self) -> str:
        return self.models.model_for_provider()

    def _get_client(self, model: str) -> tuple[BaseLLMClient, str]:
        """Get appropriate client for model."""
        provider, full_model = resolve_model(model)

        if provider not in self._clients:
            fallback = Provider(self.models.provider)
            if fallback not in self._clients:
                fallback = next(iter(self._clients))
            logger.info(f"No {provider.value} client; routing {model} to {fallback.value}")
            return self._clients[fallback], self._default_for(fallback)

        return self._clients[provider], full_model

    def _default_for(self, provider: Provider) -> str:
        return {
            Provider.ANTHROPIC: self.models.anthropic_model,
            Provider.OPENAI: self.models.openai_model,
            Provider.GATEWAY: self.models.gateway_model,
        }[provider]

    async def complete(
        self,
        messages: list[dict[str, str]] | None = None,
        prompt: str | None = None,
        system: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> APIResponse:
        """
        Get completion, routing to appropriate provider.

        Args:
            messages: List of message dicts (for chat API)
            prompt: Single prompt string (converted to messages)
            system: System prompt
            model: Model to use (defaults to the configured provider's model)
            max_tokens: Max output tokens
            temperature: Sampling temperature

        Returns:
            APIResponse with content and metadata

        Raises:
            LLMError: If the provider call fails
        """
        model = model or self.default_model
        client, full_model = self._get_client(model)

        # Support prompt as alternative to messages
        if prompt is not None and messages is None:
            messages = [{"role": "user", "content": prompt}]
        elif messages is None:
            messages = []

        logger.debug(f"LLM request to {client.provider.value}:{full_model}")
        return await client.complete(
            messages=messages,
            system=system,
            model=full_model,
            max_tokens=max_tokens if max_tokens is not None else self.models.max_tokens,
            temperature=temperature if temperature is not None else self.models.temperature,
        )


__all__ = [
    "APIResponse",
    "AnthropicClient",
    "BaseLLMClient",
    "GatewayClient",
    "LLMError",
    "MODEL_REGISTRY",
    "MultiProviderClient",
    "OpenAIClient",
    "Provider",
    "resolve_model",
]
