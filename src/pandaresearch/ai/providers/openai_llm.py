"""OpenAI-compatible chat model adapter."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Sequence, cast

import httpx
from openai import AsyncOpenAI, APIConnectionError, APIStatusError, RateLimitError
from openai.types.chat import ChatCompletionMessageParam, ChatCompletionToolParam
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import EmptyResponseError, ObjectParseError, SchemaValidationError
from ..json_utils import (
    parse_model_json,
    parse_partial_json,
    schema_to_json,
    strict_json_schema,
    validate_against_schema,
)
from ..types import (
    GenerateObjectInput,
    GenerateOptions,
    GenerateTextInput,
    GenerateTextOutput,
    Message,
    ModelCapabilities,
    StreamTextOutput,
    ToolCall,
    ToolCallAccumulator,
    ToolDefinition,
)
from ...utils.logging import PAYLOAD_LOGGER_NAME
from .base import BaseLLM

LOGGER = logging.getLogger(__name__)
PAYLOAD_LOGGER = logging.getLogger(PAYLOAD_LOGGER_NAME)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TEMPERATURE = 1.0
_SCHEMA_FORMAT_NAME = "object"
_SCHEMA_PROMPT = (
    "You MUST respond with valid JSON matching this exact schema. "
    "All fields are required unless marked optional:\n{schema}\n\n"
    "Respond ONLY with the JSON object, no additional text."
)


@dataclass(slots=True)
class ClientSettings:
    """Subset of provider settings required to configure the adapter."""

    api_key: str
    model: str
    base_url: str = DEFAULT_BASE_URL
    provider_id: str = "openai"
    organization: str | None = None
    request_timeout: float | None = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: Mapping[str, str] | None = None
    options: GenerateOptions = field(default_factory=GenerateOptions)
    capabilities: ModelCapabilities = field(default_factory=ModelCapabilities)
    debug_logging: bool = False


class OpenAILLM(BaseLLM):
    """Chat model backed by an OpenAI-compatible endpoint."""

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or self._build_client(settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def capabilities(self) -> ModelCapabilities:
        return self._settings.capabilities

    # ------------------------------------------------------------------
    # Request shaping
    # ------------------------------------------------------------------
    def convert_messages(self, messages: Sequence[Message | Mapping[str, Any]]) -> List[ChatCompletionMessageParam]:
        """Translate internal messages into chat-completions message params."""

        converted: List[ChatCompletionMessageParam] = []
        for raw in messages:
            message = Message.from_value(raw)
            if message.role == "tool":
                converted.append(
                    cast(
                        ChatCompletionMessageParam,
                        {"role": "tool", "tool_call_id": message.id, "content": message.content},
                    )
                )
            elif message.role == "assistant":
                entry: Dict[str, Any] = {"role": "assistant", "content": message.content}
                if message.tool_calls:
                    entry["tool_calls"] = [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": json.dumps(call.arguments),
                            },
                        }
                        for call in message.tool_calls
                    ]
                converted.append(cast(ChatCompletionMessageParam, entry))
            else:
                converted.append(
                    cast(ChatCompletionMessageParam, {"role": message.role, "content": message.content})
                )
        return converted

    def convert_tools(self, tools: Sequence[ToolDefinition] | None) -> List[ChatCompletionToolParam]:
        """Return function tool specs, or nothing when the model cannot call tools."""

        if not tools:
            return []
        if not self.capabilities.supports_tools:
            LOGGER.debug(
                "Model %s does not support tools; dropping %d tool definition(s)",
                self._settings.model,
                len(tools),
            )
            return []
        return [
            cast(
                ChatCompletionToolParam,
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": schema_to_json(tool.schema),
                    },
                },
            )
            for tool in tools
        ]

    def resolve_options(self, options: GenerateOptions | None) -> GenerateOptions:
        """Merge per-call options over adapter defaults; per-call values win."""

        call = options or GenerateOptions()
        defaults = self._settings.options

        def pick(name: str) -> Any:
            value = getattr(call, name)
            return value if value is not None else getattr(defaults, name)

        temperature = pick("temperature")
        return GenerateOptions(
            temperature=DEFAULT_TEMPERATURE if temperature is None else temperature,
            top_p=pick("top_p"),
            max_tokens=pick("max_tokens"),
            stop_sequences=pick("stop_sequences"),
            frequency_penalty=pick("frequency_penalty"),
            presence_penalty=pick("presence_penalty"),
        )

    def _chat_payload(
        self,
        messages: Sequence[ChatCompletionMessageParam],
        options: GenerateOptions | None,
        *,
        tools: Sequence[ChatCompletionToolParam] | None = None,
        response_format: Mapping[str, Any] | None = None,
    ) -> Dict[str, Any]:
        resolved = self.resolve_options(options)
        payload: Dict[str, Any] = {
            "model": self._settings.model,
            "messages": list(messages),
            "temperature": resolved.temperature,
        }
        if tools:
            payload["tools"] = list(tools)
        if response_format is not None:
            payload["response_format"] = dict(response_format)
        if resolved.top_p is not None:
            payload["top_p"] = resolved.top_p
        if resolved.max_tokens is not None:
            payload["max_completion_tokens"] = resolved.max_tokens
        if resolved.stop_sequences:
            payload["stop"] = list(resolved.stop_sequences)
        if resolved.frequency_penalty is not None:
            payload["frequency_penalty"] = resolved.frequency_penalty
        if resolved.presence_penalty is not None:
            payload["presence_penalty"] = resolved.presence_penalty
        return payload

    # ------------------------------------------------------------------
    # Generation modes
    # ------------------------------------------------------------------
    async def generate_text(self, input: GenerateTextInput) -> GenerateTextOutput:
        payload = self._chat_payload(
            self.convert_messages(input.messages),
            input.options,
            tools=self.convert_tools(input.tools),
        )
        self._log_request("text completion", payload)
        response = await self._call_with_retries(self._client.chat.completions.create, payload)

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise EmptyResponseError(provider=self._settings.provider_id, model=self._settings.model)

        choice = choices[0]
        tool_calls: list[ToolCall] = []
        for call in getattr(choice.message, "tool_calls", None) or []:
            if getattr(call, "type", "function") != "function":
                continue
            tool_calls.append(
                ToolCall(
                    id=call.id,
                    name=call.function.name,
                    arguments=_load_tool_arguments(call.function.arguments),
                )
            )
        return GenerateTextOutput(
            content=choice.message.content or "",
            tool_calls=tool_calls,
            additional_info={"finish_reason": choice.finish_reason},
        )

    async def stream_text(self, input: GenerateTextInput) -> AsyncIterator[StreamTextOutput]:
        payload = self._chat_payload(
            self.convert_messages(input.messages),
            input.options,
            tools=self.convert_tools(input.tools),
        )
        payload["stream"] = True
        self._log_request("streamed text completion", payload)
        stream = await self._call_with_retries(self._client.chat.completions.create, payload)

        accumulators: Dict[int, ToolCallAccumulator] = {}
        async for chunk in stream:
            choices = getattr(chunk, "choices", None) or []
            if not choices:
                continue
            choice = choices[0]
            delta = choice.delta
            parsed_calls = [
                self._accumulate_tool_call(accumulators, tool_delta)
                for tool_delta in getattr(delta, "tool_calls", None) or []
            ]
            finish_reason = choice.finish_reason
            yield StreamTextOutput(
                content_chunk=getattr(delta, "content", None) or "",
                tool_call_chunk=parsed_calls,
                done=finish_reason is not None,
                additional_info={"finish_reason": finish_reason},
            )
            if finish_reason is not None:
                return

    async def generate_object(self, input: GenerateObjectInput) -> Any:
        json_schema = schema_to_json(input.schema)
        enforced = self.capabilities.supports_structured_output
        messages = self.convert_messages(input.messages)
        if enforced:
            response_format: Dict[str, Any] = {
                "type": "json_schema",
                "json_schema": {"name": _SCHEMA_FORMAT_NAME, **self._schema_format(input.schema, json_schema)},
            }
        else:
            messages = self._with_schema_instruction(messages, json_schema)
            response_format = {"type": "json_object"}

        payload = self._chat_payload(messages, input.options, response_format=response_format)
        self._log_request("object completion", payload)
        response = await self._call_with_retries(self._client.chat.completions.create, payload)

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise EmptyResponseError(provider=self._settings.provider_id, model=self._settings.model)

        parsed = parse_model_json(choices[0].message.content)
        issues = validate_against_schema(parsed, json_schema)
        if not issues:
            return parsed
        if not enforced:
            # Returned unvalidated; callers must tolerate missing fields.
            LOGGER.warning(
                "Schema validation failed for %s; returning best-effort object: %s",
                self._settings.model,
                issues,
            )
            return parsed
        raise SchemaValidationError(issues=issues)

    async def stream_object(self, input: GenerateObjectInput) -> AsyncIterator[Any]:
        json_schema = schema_to_json(input.schema)
        messages = self.convert_messages(input.messages)
        if self.capabilities.supports_structured_output:
            text_format: Dict[str, Any] = {
                "type": "json_schema",
                "name": _SCHEMA_FORMAT_NAME,
                **self._schema_format(input.schema, json_schema),
            }
        else:
            messages = self._with_schema_instruction(messages, json_schema)
            text_format = {"type": "json_object"}

        resolved = self.resolve_options(input.options)
        payload: Dict[str, Any] = {
            "model": self._settings.model,
            "input": self._to_response_input(messages),
            "temperature": resolved.temperature,
            "text": {"format": text_format},
            "stream": True,
        }
        if resolved.top_p is not None:
            payload["top_p"] = resolved.top_p
        if resolved.max_tokens is not None:
            payload["max_output_tokens"] = resolved.max_tokens
        self._log_request("streamed object response", payload)
        stream = await self._call_with_retries(self._client.responses.create, payload)

        received = ""
        async for event in stream:
            event_type = getattr(event, "type", None)
            if event_type == "response.output_text.delta":
                delta = getattr(event, "delta", None)
                if not delta:
                    continue
                received += delta
                try:
                    yield parse_partial_json(received)
                except ValueError as exc:
                    LOGGER.debug("Partial object is not parseable yet: %s", exc)
                    yield {}
            elif event_type == "response.output_text.done":
                text = getattr(event, "text", None) or received
                try:
                    final = parse_partial_json(text)
                except ValueError as exc:
                    raise ObjectParseError(
                        message=f"Error parsing response from provider: {exc}",
                        raw_text=text,
                    ) from exc
                yield final
                return

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _accumulate_tool_call(self, accumulators: Dict[int, ToolCallAccumulator], tool_delta: Any) -> ToolCall:
        index = int(getattr(tool_delta, "index", None) or 0)
        function = getattr(tool_delta, "function", None)
        name = getattr(function, "name", None) or ""
        fragment = getattr(function, "arguments", None) or ""

        accumulator = accumulators.get(index)
        if accumulator is None:
            accumulator = ToolCallAccumulator(
                index=index,
                id=getattr(tool_delta, "id", None) or f"tool_{index}",
                name=name,
            )
            accumulators[index] = accumulator
        elif name and not accumulator.name:
            accumulator.name = name
        accumulator.append(fragment)

        try:
            arguments = parse_partial_json(accumulator.arguments_text)
        except ValueError as exc:
            LOGGER.warning("Failed to parse tool call arguments for %s: %s", accumulator.id, exc)
            arguments = {}
        if not isinstance(arguments, dict):
            arguments = {}
        return ToolCall(id=accumulator.id, name=accumulator.name, arguments=arguments)

    def _schema_format(self, schema: Any, json_schema: Dict[str, Any]) -> Dict[str, Any]:
        """Schema and strict flag for a ``json_schema`` format.

        Responses are still validated against ``json_schema`` itself.
        """

        strict_schema = strict_json_schema(schema)
        if strict_schema is None:
            LOGGER.debug(
                "Schema for %s has optional or open properties; requesting non-strict structured output",
                self._settings.model,
            )
            return {"schema": json_schema, "strict": False}
        return {"schema": strict_schema, "strict": True}

    @staticmethod
    def _with_schema_instruction(
        messages: List[ChatCompletionMessageParam], json_schema: Mapping[str, Any]
    ) -> List[ChatCompletionMessageParam]:
        instruction = _SCHEMA_PROMPT.format(schema=json.dumps(json_schema, indent=2))
        updated = list(messages)
        if updated and updated[0].get("role") == "system":
            first = dict(updated[0])
            first["content"] = f"{first.get('content') or ''}\n\n{instruction}"
            updated[0] = cast(ChatCompletionMessageParam, first)
        else:
            updated.insert(0, cast(ChatCompletionMessageParam, {"role": "system", "content": instruction}))
        return updated

    @staticmethod
    def _to_response_input(messages: Sequence[ChatCompletionMessageParam]) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        for message in messages:
            role = message.get("role")
            if role == "tool":
                items.append(
                    {
                        "type": "function_call_output",
                        "call_id": message.get("tool_call_id"),
                        "output": message.get("content") or "",
                    }
                )
                continue
            content = message.get("content")
            if content:
                items.append({"role": role, "content": content})
            for call in message.get("tool_calls") or []:
                items.append(
                    {
                        "type": "function_call",
                        "call_id": call["id"],
                        "name": call["function"]["name"],
                        "arguments": call["function"]["arguments"],
                    }
                )
        return items

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url or DEFAULT_BASE_URL,
            organization=settings.organization,
            timeout=settings.request_timeout,
            default_headers=headers,
            max_retries=0,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(
                (
                    APIConnectionError,
                    RateLimitError,
                    APIStatusError,
                    httpx.TimeoutException,
                )
            ),
        )

    async def _call_with_retries(self, call: Callable[..., Awaitable[Any]], payload: Mapping[str, Any]) -> Any:
        result: Any = None
        async for attempt in self._retrying():
            with attempt:
                result = await call(**payload)
        return result

    def _log_request(self, kind: str, payload: Mapping[str, Any]) -> None:
        message_count = len(payload.get("messages") or payload.get("input") or [])
        LOGGER.debug(
            "Starting %s via %s/%s with %s message(s)",
            kind,
            self._settings.provider_id,
            self._settings.model,
            message_count,
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            serialized = repr(payload)
        PAYLOAD_LOGGER.debug("%s/%s payload:\n%s", self._settings.provider_id, self._settings.model, serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result


def _load_tool_arguments(raw: str | None) -> Dict[str, Any]:
    try:
        arguments = json.loads(raw or "{}")
    except json.JSONDecodeError as exc:
        raise ObjectParseError(message=f"Tool call arguments are not valid JSON: {exc}", raw_text=raw) from exc
    return arguments if isinstance(arguments, dict) else {}


__all__ = ["ClientSettings", "OpenAILLM", "DEFAULT_BASE_URL"]
