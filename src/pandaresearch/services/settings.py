"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "SearchSettings",
    "ModelProviderConfig",
    "ChatModelConfig",
    "get_caption_rag_url",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIRNAME = ".pandaresearch"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "PANDARESEARCH_MODEL_PROVIDER": "default_provider_id",
    "PANDARESEARCH_MODEL": "default_model",
    "PANDARESEARCH_LOG_DIR": "log_dir",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "PANDARESEARCH_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "PANDARESEARCH_REQUEST_TIMEOUT": "request_timeout",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "PANDARESEARCH_MAX_RETRIES": "max_retries",
}
_SEARCH_ENV_OVERRIDES: Mapping[str, str] = {
    "CLOUDFLARE_RAG_URL": "caption_rag_url",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_API_KEY_FIELD = "api_key_ciphertext"


@dataclass(slots=True)
class ChatModelConfig:
    """A chat model exposed by a provider.

    Capability flags left as ``None`` are derived when the model is loaded.
    """

    key: str
    name: str = ""
    supports_tools: bool | None = None
    supports_structured_output: bool | None = None


@dataclass(slots=True)
class ModelProviderConfig:
    """Connection details for one OpenAI-compatible provider."""

    id: str
    name: str = ""
    type: str = "openai"
    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    chat_models: list[ChatModelConfig] = field(default_factory=list)
    default_options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ModelProviderConfig":
        allowed = {item.name for item in fields(cls)}
        data = {key: value for key, value in payload.items() if key in allowed}
        models: list[ChatModelConfig] = []
        for entry in data.pop("chat_models", None) or []:
            if isinstance(entry, ChatModelConfig):
                models.append(entry)
            elif isinstance(entry, Mapping) and entry.get("key"):
                model_fields = {item.name for item in fields(ChatModelConfig)}
                models.append(ChatModelConfig(**{k: v for k, v in entry.items() if k in model_fields}))
            else:
                LOGGER.warning("Ignoring malformed chat model entry for provider %s", payload.get("id"))
        return cls(chat_models=models, **data)


@dataclass(slots=True)
class SearchSettings:
    """Endpoints for the research search actions."""

    caption_rag_url: str = ""


@dataclass(slots=True)
class Settings:
    """Backend configuration persisted between runs."""

    model_providers: list[ModelProviderConfig] = field(default_factory=list)
    default_provider_id: str | None = None
    default_model: str | None = None
    request_timeout: float = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    debug_logging: bool = False
    log_dir: str | None = None
    search: SearchSettings = field(default_factory=SearchSettings)


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _settings_dir() / "settings.json"
        key_path = self._path.with_suffix(".key")
        self._vault = vault or SecretVault(key_path=key_path)

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying runtime and environment overrides."""

        payload = self._read_payload()
        settings = Settings()
        needs_migration = False

        if payload:
            data = _filter_fields(payload)
            providers, migrated = self._load_providers(data.pop("model_providers", None))
            needs_migration = migrated
            search_payload = data.pop("search", None)
            search = SearchSettings()
            if isinstance(search_payload, Mapping):
                try:
                    search = SearchSettings(**search_payload)
                except TypeError:
                    LOGGER.warning("Search settings contained unexpected keys; using defaults")
            try:
                settings = Settings(model_providers=providers, search=search, **data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings(model_providers=providers, search=search)

        version_mismatch = bool(payload) and payload.get("version") != _SETTINGS_VERSION
        if needs_migration or version_mismatch:
            try:
                self.save(settings)
            except OSError as exc:  # pragma: no cover - depends on filesystem
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = self._serialize(settings)
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug(
            "Settings saved to %s: %d provider(s)", self._path, len(settings.model_providers)
        )
        return self._path

    def _serialize(self, settings: Settings) -> Dict[str, Any]:
        data = asdict(settings)
        providers: list[dict[str, Any]] = []
        for provider in data.get("model_providers", []):
            api_key = provider.pop("api_key", "") or ""
            ciphertext = self._encrypt_secret_value(api_key, field_name=f"{provider['id']} API key")
            if ciphertext:
                provider[_API_KEY_FIELD] = ciphertext
            providers.append(provider)
        data["model_providers"] = providers
        data["version"] = _SETTINGS_VERSION
        return data

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _load_providers(self, payload: Any) -> tuple[list[ModelProviderConfig], bool]:
        if not isinstance(payload, list):
            return [], False
        providers: list[ModelProviderConfig] = []
        migrated = False
        for entry in payload:
            if not isinstance(entry, Mapping) or not entry.get("id"):
                LOGGER.warning("Ignoring model provider entry without an id")
                continue
            data = dict(entry)
            plaintext, was_legacy = self._decrypt_api_key(
                data.pop(_API_KEY_FIELD, None), data.pop("api_key", None)
            )
            migrated = migrated or was_legacy
            provider = ModelProviderConfig.from_payload(data)
            providers.append(replace(provider, api_key=plaintext))
        return providers, migrated

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        search_override = filtered.get("search")
        if isinstance(search_override, Mapping):
            filtered["search"] = replace(settings.search, **dict(search_override))
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid integer", env_name, value
                )
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid float", env_name, value
                )
        search_overrides = {
            field_name: os.environ[env_name]
            for env_name, field_name in _SEARCH_ENV_OVERRIDES.items()
            if os.environ.get(env_name)
        }
        if search_overrides:
            overrides["search"] = search_overrides
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings

    def _encrypt_secret_value(self, secret: str, *, field_name: str) -> str | None:
        if not secret:
            return None
        try:
            token = self._vault.encrypt(secret)
            LOGGER.debug("%s encrypted", field_name)
            return token
        except (OSError, ValueError) as exc:  # pragma: no cover - extremely rare
            LOGGER.warning("Failed to encrypt %s: %s", field_name, exc)
            return None

    def _decrypt_api_key(
        self, ciphertext: str | None, legacy_plaintext: str | None
    ) -> tuple[str, bool]:
        if ciphertext:
            try:
                return self._vault.decrypt(ciphertext), False
            except ValueError as exc:
                LOGGER.warning("Unable to decrypt API key: %s", exc)
                return "", False
        if legacy_plaintext:
            LOGGER.info("Detected plaintext API key; migrating to encrypted storage.")
            return legacy_plaintext, True
        return "", False


class SecretVault:
    """Encrypts and decrypts provider API keys with a Fernet key stored on disk."""

    prefix = "fernet"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_settings_dir() / "settings.key")
        self._fernet: Fernet | None = None

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._get_fernet().encrypt(secret.encode("utf-8")).decode("ascii")
        return f"{self.prefix}:{token}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, _, payload = token.partition(":")
        if prefix != self.prefix or not payload:
            raise ValueError(f"Unknown secret token format: {prefix or '<empty>'}")
        try:
            return self._get_fernet().decrypt(payload.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


def get_caption_rag_url(settings: Settings | None = None) -> str:
    """Return the caption search base URL: environment first, then settings."""

    env_value = os.environ.get("CLOUDFLARE_RAG_URL")
    if env_value:
        return env_value
    return settings.search.caption_rag_url if settings is not None else ""


def _settings_dir() -> Path:
    return Path.home() / _SETTINGS_DIRNAME


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)}
    result: Dict[str, Any] = {}
    for key, value in payload.items():
        if key not in allowed:
            if key != "version":
                LOGGER.warning("Ignoring unknown settings key %s", key)
            continue
        result[key] = value
    return result


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
