"""Tests for provider lookup and capability resolution."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from pandaresearch.ai.errors import UnknownModelError, UnknownProviderError
from pandaresearch.ai.providers.openai_llm import ClientSettings, OpenAILLM
from pandaresearch.ai.registry import (
    ModelRegistry,
    get_configured_model_provider_by_id,
    get_configured_model_providers,
    resolve_capabilities,
)
from pandaresearch.services.settings import ChatModelConfig, ModelProviderConfig, Settings
from tests.helpers import make_client


def _settings() -> Settings:
    return Settings(
        model_providers=[
            ModelProviderConfig(
                id="openai",
                api_key="sk-test",
                chat_models=[ChatModelConfig(key="gpt-4o-mini")],
                default_options={"temperature": 0.4, "bogus": 1},
            ),
            ModelProviderConfig(
                id="router",
                base_url="https://openrouter.ai/api/v1",
                chat_models=[
                    ChatModelConfig(key="meta-llama/llama-3.1-70b"),
                    ChatModelConfig(key="deepseek/deepseek-chat"),
                    ChatModelConfig(key="qwen/qwen-2.5", supports_tools=True, supports_structured_output=True),
                ],
            ),
        ],
        default_provider_id="openai",
        default_model="gpt-4o-mini",
    )


def test_provider_lookup_by_id() -> None:
    settings = _settings()

    assert [provider.id for provider in get_configured_model_providers(settings)] == ["openai", "router"]
    assert get_configured_model_provider_by_id(settings, "router") is settings.model_providers[1]
    assert get_configured_model_provider_by_id(settings, "missing") is None


@pytest.mark.parametrize(
    ("provider_index", "model_index", "tools", "structured"),
    [
        (0, 0, True, True),
        (1, 0, False, False),
        (1, 1, True, False),
        (1, 2, True, True),
    ],
)
def test_resolve_capabilities(provider_index: int, model_index: int, tools: bool, structured: bool) -> None:
    provider = _settings().model_providers[provider_index]

    capabilities = resolve_capabilities(provider, provider.chat_models[model_index])

    assert capabilities.supports_tools is tools
    assert capabilities.supports_structured_output is structured


def test_groq_endpoint_disables_structured_output_only() -> None:
    provider = ModelProviderConfig(id="groq", base_url="https://api.groq.com/openai/v1")

    capabilities = resolve_capabilities(provider, ChatModelConfig(key="llama-3.3-70b"))

    assert capabilities.supports_tools is True
    assert capabilities.supports_structured_output is False


def test_load_chat_model_uses_defaults_and_caches() -> None:
    built: list[ClientSettings] = []

    def _factory(client_settings: ClientSettings) -> Any:
        built.append(client_settings)
        return make_client()

    registry = ModelRegistry(_settings(), client_factory=_factory)

    first = registry.load_chat_model()
    second = registry.load_chat_model("openai", "gpt-4o-mini")

    assert isinstance(first, OpenAILLM)
    assert first is second
    assert len(built) == 1
    assert built[0].api_key == "sk-test"
    assert built[0].options.temperature == 0.4
    assert built[0].max_retries == 3


def test_load_chat_model_rejects_unknown_provider_and_model() -> None:
    registry = ModelRegistry(_settings(), client_factory=lambda _settings: make_client())

    with pytest.raises(UnknownProviderError):
        registry.load_chat_model("nope", "gpt-4o-mini")
    with pytest.raises(UnknownModelError) as excinfo:
        registry.load_chat_model("openai", "gpt-5-imaginary")

    assert excinfo.value.to_dict()["details"] == {"provider_id": "openai", "model_key": "gpt-5-imaginary"}


def test_load_chat_model_logs_only_a_redacted_key(caplog: pytest.LogCaptureFixture) -> None:
    registry = ModelRegistry(_settings(), client_factory=lambda _settings: make_client())

    with caplog.at_level(logging.DEBUG, logger="pandaresearch.ai.registry"):
        registry.load_chat_model()

    assert "key=sk***st" in caplog.text
    assert "sk-test" not in caplog.text
