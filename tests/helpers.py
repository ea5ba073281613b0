"""Shared test helpers and stub classes.

Fakes emulate the slice of the OpenAI SDK the adapter touches: ``create``
coroutines on ``chat.completions`` and ``responses`` returning either a response
object or an async stream of chunks/events.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Iterable


class FakeAsyncStream:
    def __init__(self, items: Iterable[Any]):
        self._iterator = iter(list(items))
        self.consumed = 0

    def __aiter__(self) -> "FakeAsyncStream":
        return self

    async def __anext__(self) -> Any:
        try:
            item = next(self._iterator)
        except StopIteration as exc:
            raise StopAsyncIteration from exc
        self.consumed += 1
        return item


class FakeEndpoint:
    """Replays queued responses; exceptions in the queue are raised instead."""

    def __init__(self, responses: Iterable[Any]):
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []
        self.streams: list[FakeAsyncStream] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if kwargs.get("stream"):
            stream = FakeAsyncStream(response)
            self.streams.append(stream)
            return stream
        return response


def make_client(*, chat: Iterable[Any] = (), responses: Iterable[Any] = ()) -> SimpleNamespace:
    return SimpleNamespace(
        chat=SimpleNamespace(completions=FakeEndpoint(chat)),
        responses=FakeEndpoint(responses),
    )


def completion(
    content: str | None,
    *,
    tool_calls: list[Any] | None = None,
    finish_reason: str = "stop",
) -> SimpleNamespace:
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason=finish_reason)])


def function_call(call_id: str, name: str, arguments: str, *, type: str = "function") -> SimpleNamespace:
    return SimpleNamespace(id=call_id, type=type, function=SimpleNamespace(name=name, arguments=arguments))


def chunk(
    content: str | None = None,
    *,
    tool_calls: list[Any] | None = None,
    finish_reason: str | None = None,
) -> SimpleNamespace:
    delta = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)])


def tool_delta(
    index: int,
    arguments: str | None = None,
    *,
    name: str | None = None,
    call_id: str | None = None,
) -> SimpleNamespace:
    return SimpleNamespace(
        index=index,
        id=call_id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )


def text_delta(delta: str) -> SimpleNamespace:
    return SimpleNamespace(type="response.output_text.delta", delta=delta)


def text_done(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="response.output_text.done", text=text)
