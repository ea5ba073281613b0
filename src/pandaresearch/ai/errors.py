"""Error types raised by the LLM adapter and research actions.

Every error carries a machine-readable ``error_code`` so callers can branch on
the failure without matching message text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ErrorCode:
    """Constants for error codes used across the adapters."""

    EMPTY_RESPONSE = "empty_response"
    OBJECT_PARSE_FAILED = "object_parse_failed"
    SCHEMA_VALIDATION_FAILED = "schema_validation_failed"
    UNKNOWN_PROVIDER = "unknown_provider"
    UNKNOWN_MODEL = "unknown_model"
    UNKNOWN_ACTION = "unknown_action"


@dataclass
class LLMAdapterError(Exception):
    """Base exception for adapter failures.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for logs and API responses."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class EmptyResponseError(LLMAdapterError):
    """The provider returned a completion without any choices."""

    error_code: str = field(default=ErrorCode.EMPTY_RESPONSE)
    message: str = field(default="No response from provider")
    details: dict[str, Any] = field(default_factory=dict)

    provider: str | None = field(default=None)
    model: str | None = field(default=None)

    def __post_init__(self) -> None:
        if self.provider:
            self.details.setdefault("provider", self.provider)
        if self.model:
            self.details.setdefault("model", self.model)
        super().__post_init__()


@dataclass
class ObjectParseError(LLMAdapterError):
    """Response text could not be turned into a JSON object."""

    error_code: str = field(default=ErrorCode.OBJECT_PARSE_FAILED)
    message: str = field(default="Error parsing response from provider")
    details: dict[str, Any] = field(default_factory=dict)

    raw_text: str | None = field(default=None)

    def __post_init__(self) -> None:
        if self.raw_text is not None:
            preview = self.raw_text if len(self.raw_text) <= 200 else f"{self.raw_text[:197]}..."
            self.details.setdefault("raw_text", preview)
        super().__post_init__()


@dataclass
class SchemaValidationError(LLMAdapterError):
    """A parsed object does not satisfy the requested JSON schema."""

    error_code: str = field(default=ErrorCode.SCHEMA_VALIDATION_FAILED)
    message: str = field(default="Response does not match the requested schema")
    details: dict[str, Any] = field(default_factory=dict)

    issues: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.issues:
            self.details.setdefault("issues", list(self.issues))
        super().__post_init__()


@dataclass
class UnknownProviderError(LLMAdapterError):
    """No configured model provider matches the requested id."""

    error_code: str = field(default=ErrorCode.UNKNOWN_PROVIDER)
    message: str = field(default="Model provider is not configured")
    details: dict[str, Any] = field(default_factory=dict)

    provider_id: str | None = field(default=None)

    def __post_init__(self) -> None:
        if self.provider_id:
            self.details.setdefault("provider_id", self.provider_id)
        super().__post_init__()


@dataclass
class UnknownModelError(LLMAdapterError):
    """The provider exists but does not list the requested model."""

    error_code: str = field(default=ErrorCode.UNKNOWN_MODEL)
    message: str = field(default="Model is not configured for this provider")
    details: dict[str, Any] = field(default_factory=dict)

    provider_id: str | None = field(default=None)
    model_key: str | None = field(default=None)

    def __post_init__(self) -> None:
        if self.provider_id:
            self.details.setdefault("provider_id", self.provider_id)
        if self.model_key:
            self.details.setdefault("model_key", self.model_key)
        super().__post_init__()


@dataclass
class UnknownActionError(LLMAdapterError):
    """A tool call names a research action that is not registered."""

    error_code: str = field(default=ErrorCode.UNKNOWN_ACTION)
    message: str = field(default="Research action is not registered")
    details: dict[str, Any] = field(default_factory=dict)

    action_name: str | None = field(default=None)

    def __post_init__(self) -> None:
        if self.action_name:
            self.details.setdefault("action", self.action_name)
        super().__post_init__()


__all__ = [
    "ErrorCode",
    "LLMAdapterError",
    "EmptyResponseError",
    "ObjectParseError",
    "SchemaValidationError",
    "UnknownProviderError",
    "UnknownModelError",
    "UnknownActionError",
]
