"""Tests for research action registration and dispatch."""

from __future__ import annotations

from typing import Any, Mapping

import pytest

from pandaresearch.ai.errors import SchemaValidationError, UnknownActionError
from pandaresearch.ai.types import ToolCall
from pandaresearch.research import (
    ActionContext,
    ActionOutput,
    ActionRegistry,
    CaptionSearchAction,
    ResearchAction,
    ResearchConfig,
)


class _EchoAction(ResearchAction):
    name = "echo"
    schema = {
        "type": "object",
        "properties": {"type": {"const": "echo"}, "text": {"type": "string"}},
        "required": ["type", "text"],
        "additionalProperties": False,
    }

    def __init__(self) -> None:
        self.calls: list[Mapping[str, Any]] = []

    def get_tool_description(self) -> str:
        return "Echo text back."

    def get_description(self) -> str:
        return "  Use echo to repeat text.  "

    async def execute(self, params: Mapping[str, Any], context: ActionContext) -> ActionOutput:
        self.calls.append(params)
        return ActionOutput()


class _NamelessAction(_EchoAction):
    name = ""


def test_register_rejects_nameless_actions() -> None:
    with pytest.raises(ValueError):
        ActionRegistry([_NamelessAction()])


def test_tool_definitions_only_include_enabled_actions() -> None:
    registry = ActionRegistry([_EchoAction(), CaptionSearchAction()])

    web = [tool.name for tool in registry.tool_definitions(ResearchConfig(sources=["web"]))]
    offline = [tool.name for tool in registry.tool_definitions(ResearchConfig(sources=[]))]

    assert web == ["echo", "caption_search"]
    assert offline == ["echo"]


def test_caption_search_tool_definition_carries_schema() -> None:
    tool = CaptionSearchAction().as_tool_definition()

    assert tool.name == "caption_search"
    assert tool.schema["required"] == ["type", "query"]
    assert "CraftyPanda" in tool.description


def test_describe_wraps_each_prompt_in_tags() -> None:
    registry = ActionRegistry([_EchoAction()])

    assert registry.describe(ResearchConfig()) == "<echo>\nUse echo to repeat text.\n</echo>"


@pytest.mark.asyncio
async def test_execute_fills_type_and_dispatches() -> None:
    action = _EchoAction()
    registry = ActionRegistry([action])

    output = await registry.execute(ToolCall(id="call_1", name="echo", arguments={"text": "hi"}), ActionContext())

    assert output.results == []
    assert action.calls == [{"text": "hi", "type": "echo"}]


@pytest.mark.asyncio
async def test_execute_rejects_invalid_arguments() -> None:
    action = _EchoAction()
    registry = ActionRegistry([action])

    with pytest.raises(SchemaValidationError) as excinfo:
        await registry.execute(ToolCall(id="call_1", name="echo", arguments={"text": 3}), ActionContext())

    assert excinfo.value.issues
    assert action.calls == []


@pytest.mark.asyncio
async def test_execute_unknown_action() -> None:
    registry = ActionRegistry()

    with pytest.raises(UnknownActionError) as excinfo:
        await registry.execute(ToolCall(id="call_1", name="web_search", arguments={}), ActionContext())

    assert excinfo.value.to_dict()["error"] == "unknown_action"
