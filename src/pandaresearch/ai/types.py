"""Provider-neutral request and response shapes for LLM calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Mapping, Sequence

ChatRole = Literal["user", "assistant", "system", "tool"]
JSONSchema = Mapping[str, Any]


@dataclass(slots=True)
class ToolCall:
    """A finalized tool invocation emitted by the model."""

    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Message:
    """One entry of the conversation history handed to a provider.

    ``id`` is only meaningful for ``tool`` messages, where it names the tool call
    the message answers.
    """

    role: ChatRole
    content: str
    id: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)

    @classmethod
    def from_value(cls, value: "Message | Mapping[str, Any]") -> "Message":
        if isinstance(value, Message):
            return value
        raw_calls = value.get("tool_calls") or []
        calls = [
            call if isinstance(call, ToolCall) else ToolCall(
                id=str(call.get("id", "")),
                name=str(call.get("name", "")),
                arguments=dict(call.get("arguments") or {}),
            )
            for call in raw_calls
        ]
        return cls(
            role=value["role"],
            content=value.get("content") or "",
            id=value.get("id"),
            tool_calls=calls,
        )


@dataclass(slots=True)
class ToolDefinition:
    """Tool offered to the model; ``schema`` is a JSON schema or a pydantic model class."""

    name: str
    description: str
    schema: Any


@dataclass(slots=True)
class GenerateOptions:
    """Sampling options; ``None`` means "not set" so defaults can fill the gap."""

    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    stop_sequences: list[str] | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None


@dataclass(slots=True)
class GenerateTextInput:
    messages: Sequence[Message]
    tools: Sequence[ToolDefinition] | None = None
    options: GenerateOptions | None = None


@dataclass(slots=True)
class GenerateTextOutput:
    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    additional_info: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class StreamTextOutput:
    """Partial update produced while streaming a text completion."""

    content_chunk: str
    tool_call_chunk: list[ToolCall] = field(default_factory=list)
    done: bool = False
    additional_info: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class GenerateObjectInput:
    messages: Sequence[Message]
    schema: Any
    options: GenerateOptions | None = None


@dataclass(slots=True, frozen=True)
class ModelCapabilities:
    """Features a configured model supports, resolved once at configuration time."""

    supports_tools: bool = True
    supports_structured_output: bool = True


@dataclass(slots=True)
class ToolCallAccumulator:
    """Argument text collected for one streamed tool call."""

    index: int
    id: str
    name: str
    arguments_text: str = ""

    def append(self, fragment: str | None) -> None:
        if fragment:
            self.arguments_text += fragment


__all__ = [
    "ChatRole",
    "JSONSchema",
    "Message",
    "ToolCall",
    "ToolDefinition",
    "GenerateOptions",
    "GenerateTextInput",
    "GenerateTextOutput",
    "StreamTextOutput",
    "GenerateObjectInput",
    "ModelCapabilities",
    "ToolCallAccumulator",
]
