"""Base classes for research actions.

A research action is something the researcher model can invoke as a tool. Each
action publishes a JSON schema for its input, a one-line tool description and a
longer usage prompt, and decides per request whether it is available.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Mapping

from ...ai.types import ToolDefinition
from ..session import Session
from ..types import ActionOutput, ResearchConfig


@dataclass(slots=True)
class ActionContext:
    """Runtime collaborators handed to an action.

    Attributes:
        session: UI session holding the research block.
        research_block_id: Block that receives progress sub-steps.
    """

    session: Session | None = None
    research_block_id: str | None = None


class ResearchAction(ABC):
    """Abstract base class for research actions.

    Subclasses must define ``name`` and ``schema`` and implement
    ``get_tool_description()``, ``get_description()`` and ``execute()``.
    """

    name: ClassVar[str] = ""
    schema: ClassVar[Mapping[str, Any]] = {}

    @abstractmethod
    def get_tool_description(self) -> str:
        """Short description shown to the model next to the tool name."""

    @abstractmethod
    def get_description(self) -> str:
        """Longer usage guidance folded into the researcher prompt."""

    def enabled(self, config: ResearchConfig) -> bool:
        return True

    @abstractmethod
    async def execute(self, params: Mapping[str, Any], context: ActionContext) -> ActionOutput:
        """Run the action for validated ``params``."""

    def as_tool_definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.get_tool_description(), schema=self.schema)
