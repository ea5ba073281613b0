"""Configured model providers and chat-model loading."""

from __future__ import annotations

import logging
from dataclasses import fields
from typing import Any, Dict, Mapping

from openai import AsyncOpenAI

from ..services.settings import ChatModelConfig, ModelProviderConfig, Settings, redact_secret
from .errors import UnknownModelError, UnknownProviderError
from .providers.base import BaseLLM
from .providers.openai_llm import ClientSettings, OpenAILLM
from .types import GenerateOptions, ModelCapabilities

LOGGER = logging.getLogger(__name__)

# Families routed through OpenRouter that still honour function calling.
_ROUTED_TOOL_FAMILIES: tuple[str, ...] = ("deepseek", "nex-agi")


def get_configured_model_providers(settings: Settings) -> list[ModelProviderConfig]:
    return list(settings.model_providers)


def get_configured_model_provider_by_id(settings: Settings, provider_id: str) -> ModelProviderConfig | None:
    for provider in settings.model_providers:
        if provider.id == provider_id:
            return provider
    return None


def resolve_capabilities(provider: ModelProviderConfig, model: ChatModelConfig) -> ModelCapabilities:
    """Return the capability descriptor for ``model``.

    Explicit flags on the model entry win. Otherwise defaults are derived from
    the provider endpoint and model name once, here, so the adapter never
    inspects names at call time.
    """

    key = model.key.lower()
    base_url = (provider.base_url or "").lower()
    routed = key.startswith("openrouter/") or "openrouter" in base_url
    groq = key.startswith("groq/") or "groq" in base_url

    supports_tools = model.supports_tools
    if supports_tools is None:
        supports_tools = not routed or any(family in key for family in _ROUTED_TOOL_FAMILIES)

    supports_structured_output = model.supports_structured_output
    if supports_structured_output is None:
        supports_structured_output = not (routed or groq)

    return ModelCapabilities(
        supports_tools=bool(supports_tools),
        supports_structured_output=bool(supports_structured_output),
    )


def _options_from_mapping(payload: Mapping[str, Any] | None) -> GenerateOptions:
    if not payload:
        return GenerateOptions()
    allowed = {item.name for item in fields(GenerateOptions)}
    unknown = sorted(set(payload) - allowed)
    if unknown:
        LOGGER.warning("Ignoring unknown generation options: %s", unknown)
    return GenerateOptions(**{key: value for key, value in payload.items() if key in allowed})


class ModelRegistry:
    """Builds chat models for configured providers and caches them per model."""

    def __init__(self, settings: Settings, *, client_factory: Any | None = None) -> None:
        self._settings = settings
        self._client_factory = client_factory
        self._models: Dict[tuple[str, str], BaseLLM] = {}

    def load_chat_model(self, provider_id: str | None = None, model_key: str | None = None) -> BaseLLM:
        """Return the chat model for ``provider_id``/``model_key``.

        Falls back to ``default_provider_id``/``default_model`` from settings.
        """

        provider_id = provider_id or self._settings.default_provider_id or ""
        provider = get_configured_model_provider_by_id(self._settings, provider_id)
        if provider is None:
            raise UnknownProviderError(provider_id=provider_id or None)

        model_key = model_key or self._settings.default_model or ""
        model = next((entry for entry in provider.chat_models if entry.key == model_key), None)
        if model is None:
            raise UnknownModelError(provider_id=provider.id, model_key=model_key or None)

        cache_key = (provider.id, model.key)
        cached = self._models.get(cache_key)
        if cached is not None:
            return cached

        if provider.type != "openai":
            raise UnknownProviderError(
                message=f"Unsupported provider type: {provider.type}",
                provider_id=provider.id,
            )

        capabilities = resolve_capabilities(provider, model)
        LOGGER.debug(
            "Loading chat model %s/%s (key=%s, tools=%s, structured_output=%s)",
            provider.id,
            model.key,
            redact_secret(provider.api_key) or "<unset>",
            capabilities.supports_tools,
            capabilities.supports_structured_output,
        )
        client_settings = ClientSettings(
            api_key=provider.api_key,
            model=model.key,
            base_url=provider.base_url,
            provider_id=provider.id,
            request_timeout=self._settings.request_timeout,
            max_retries=self._settings.max_retries,
            retry_min_seconds=self._settings.retry_min_seconds,
            retry_max_seconds=self._settings.retry_max_seconds,
            options=_options_from_mapping(provider.default_options),
            capabilities=capabilities,
            debug_logging=self._settings.debug_logging,
        )
        client: AsyncOpenAI | None = None
        if self._client_factory is not None:
            client = self._client_factory(client_settings)
        llm = OpenAILLM(client_settings, client=client)
        self._models[cache_key] = llm
        return llm

    async def aclose(self) -> None:
        models = list(self._models.values())
        self._models.clear()
        for model in models:
            await model.aclose()


__all__ = [
    "ModelRegistry",
    "get_configured_model_providers",
    "get_configured_model_provider_by_id",
    "resolve_capabilities",
]
