"""LLM adapter: provider-neutral types, the OpenAI-compatible provider, and model loading."""

from .errors import (
    EmptyResponseError,
    LLMAdapterError,
    ObjectParseError,
    SchemaValidationError,
    UnknownActionError,
    UnknownModelError,
    UnknownProviderError,
)
from .providers import BaseLLM, ClientSettings, OpenAILLM
from .registry import ModelRegistry, resolve_capabilities
from .types import (
    GenerateObjectInput,
    GenerateOptions,
    GenerateTextInput,
    GenerateTextOutput,
    Message,
    ModelCapabilities,
    StreamTextOutput,
    ToolCall,
    ToolDefinition,
)

__all__ = [
    "BaseLLM",
    "ClientSettings",
    "OpenAILLM",
    "ModelRegistry",
    "resolve_capabilities",
    "Message",
    "ToolCall",
    "ToolDefinition",
    "GenerateOptions",
    "GenerateTextInput",
    "GenerateTextOutput",
    "StreamTextOutput",
    "GenerateObjectInput",
    "ModelCapabilities",
    "LLMAdapterError",
    "EmptyResponseError",
    "ObjectParseError",
    "SchemaValidationError",
    "UnknownProviderError",
    "UnknownModelError",
    "UnknownActionError",
]
