"""Registry of research actions exposed to the researcher model as tools."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping

from jsonschema import Draft7Validator

from ..ai.errors import SchemaValidationError, UnknownActionError
from ..ai.types import ToolCall, ToolDefinition
from .actions.base import ActionContext, ResearchAction
from .types import ActionOutput, ResearchConfig

LOGGER = logging.getLogger(__name__)


class ActionRegistry:
    """Keeps research actions by name and dispatches model tool calls to them."""

    def __init__(self, actions: Iterable[ResearchAction] | None = None) -> None:
        self._actions: Dict[str, ResearchAction] = {}
        for action in actions or ():
            self.register(action)

    def register(self, action: ResearchAction) -> None:
        if not action.name:
            raise ValueError("Research actions must define a name")
        if action.name in self._actions:
            LOGGER.debug("Replacing research action %s", action.name)
        self._actions[action.name] = action

    def get(self, name: str) -> ResearchAction | None:
        return self._actions.get(name)

    def enabled_actions(self, config: ResearchConfig) -> list[ResearchAction]:
        return [action for action in self._actions.values() if action.enabled(config)]

    def tool_definitions(self, config: ResearchConfig) -> list[ToolDefinition]:
        return [action.as_tool_definition() for action in self.enabled_actions(config)]

    def describe(self, config: ResearchConfig) -> str:
        """Concatenate usage prompts of enabled actions for the researcher system prompt."""

        sections = []
        for action in self.enabled_actions(config):
            sections.append(f"<{action.name}>\n{action.get_description().strip()}\n</{action.name}>")
        return "\n\n".join(sections)

    async def execute(self, call: ToolCall, context: ActionContext) -> ActionOutput:
        """Validate ``call.arguments`` against the action schema and run the action."""

        action = self._actions.get(call.name)
        if action is None:
            raise UnknownActionError(action_name=call.name)
        params: Dict[str, Any] = dict(call.arguments)
        params.setdefault("type", action.name)
        self._validate(action, params)
        LOGGER.debug("Executing research action %s (call %s)", action.name, call.id)
        return await action.execute(params, context)

    @staticmethod
    def _validate(action: ResearchAction, params: Mapping[str, Any]) -> None:
        validator = Draft7Validator(dict(action.schema))
        issues = [error.message for error in validator.iter_errors(params)]
        if issues:
            raise SchemaValidationError(
                message=f"Invalid arguments for {action.name}",
                issues=issues,
            )


__all__ = ["ActionRegistry"]
