"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pandaresearch.services.settings import (
    ChatModelConfig,
    ModelProviderConfig,
    SearchSettings,
    SecretVault,
    Settings,
    SettingsStore,
    get_caption_rag_url,
    redact_secret,
)


def _provider(**overrides) -> ModelProviderConfig:
    data = dict(
        id="openai",
        name="OpenAI",
        api_key="super-secret",
        chat_models=[ChatModelConfig(key="gpt-4o-mini", name="GPT-4o mini")],
        default_options={"temperature": 0.2},
    )
    data.update(overrides)
    return ModelProviderConfig(**data)


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json", vault=SecretVault(key_path=tmp_path / "key"))

    assert store.load() == Settings()


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    original = Settings(
        model_providers=[_provider()],
        default_provider_id="openai",
        default_model="gpt-4o-mini",
        request_timeout=45.0,
        max_retries=1,
        search=SearchSettings(caption_rag_url="https://rag.example"),
    )

    SettingsStore(path).save(original)
    reloaded = SettingsStore(path).load()

    assert reloaded == original


def test_api_keys_are_not_written_in_plaintext(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"

    SettingsStore(path).save(Settings(model_providers=[_provider()]))

    raw = path.read_text(encoding="utf-8")
    assert "super-secret" not in raw
    stored = json.loads(raw)["model_providers"][0]
    assert stored["api_key_ciphertext"].startswith("fernet:")
    assert "api_key" not in stored


def test_load_legacy_plaintext_api_key_migrates(tmp_path: Path) -> None:
    target = tmp_path / "settings.json"
    target.write_text(
        json.dumps({"model_providers": [{"id": "legacy", "api_key": "plain-key"}]}),
        encoding="utf-8",
    )

    loaded = SettingsStore(target).load()

    assert loaded.model_providers[0].api_key == "plain-key"
    migrated = json.loads(target.read_text(encoding="utf-8"))
    assert migrated["version"] == 1
    assert "api_key" not in migrated["model_providers"][0]


def test_undecryptable_api_key_loads_as_empty(tmp_path: Path) -> None:
    target = tmp_path / "settings.json"
    target.write_text(
        json.dumps(
            {
                "version": 1,
                "model_providers": [{"id": "broken", "api_key_ciphertext": "fernet:not-a-token"}],
            }
        ),
        encoding="utf-8",
    )

    loaded = SettingsStore(target).load()

    assert loaded.model_providers[0].api_key == ""


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    target = tmp_path / "settings.json"
    target.write_text("{not json", encoding="utf-8")

    assert SettingsStore(target).load() == Settings()


def test_unknown_keys_are_ignored(tmp_path: Path) -> None:
    target = tmp_path / "settings.json"
    target.write_text(json.dumps({"version": 1, "theme": "dark", "max_retries": 7}), encoding="utf-8")

    loaded = SettingsStore(target).load()

    assert loaded.max_retries == 7


def test_env_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(default_provider_id="openai", default_model="gpt-4o-mini"))
    monkeypatch.setenv("PANDARESEARCH_MODEL_PROVIDER", "groq")
    monkeypatch.setenv("PANDARESEARCH_MODEL", "llama-3.3-70b")
    monkeypatch.setenv("PANDARESEARCH_DEBUG_LOGGING", "true")
    monkeypatch.setenv("PANDARESEARCH_REQUEST_TIMEOUT", "12.5")
    monkeypatch.setenv("PANDARESEARCH_MAX_RETRIES", "5")

    overridden = SettingsStore(path).load()

    assert overridden.default_provider_id == "groq"
    assert overridden.default_model == "llama-3.3-70b"
    assert overridden.debug_logging is True
    assert overridden.request_timeout == pytest.approx(12.5)
    assert overridden.max_retries == 5


def test_invalid_numeric_env_override_is_ignored(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(max_retries=2))
    monkeypatch.setenv("PANDARESEARCH_MAX_RETRIES", "many")

    assert SettingsStore(path).load().max_retries == 2


def test_runtime_overrides_apply_before_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    monkeypatch.setenv("PANDARESEARCH_MODEL", "env-model")

    loaded = store.load(overrides={"default_model": "cli-model", "max_retries": 0, "unknown": 1})

    assert loaded.default_model == "env-model"
    assert loaded.max_retries == 0


def test_caption_rag_url_prefers_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(search=SearchSettings(caption_rag_url="https://stored")))

    assert get_caption_rag_url(SettingsStore(path).load()) == "https://stored"
    assert get_caption_rag_url() == ""

    monkeypatch.setenv("CLOUDFLARE_RAG_URL", "https://env-rag")

    assert SettingsStore(path).load().search.caption_rag_url == "https://env-rag"
    assert get_caption_rag_url(Settings()) == "https://env-rag"


def test_secret_vault_rejects_foreign_tokens(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "key")

    token = vault.encrypt("abc123")

    assert vault.decrypt(token) == "abc123"
    assert vault.decrypt("") == ""
    with pytest.raises(ValueError):
        vault.decrypt("dpapi:Zm9v")


@pytest.mark.parametrize(
    ("value", "expected"),
    [("", ""), ("abc", "***"), ("sk-12345678", "sk*******78")],
)
def test_redact_secret(value: str, expected: str) -> None:
    assert redact_secret(value) == expected
