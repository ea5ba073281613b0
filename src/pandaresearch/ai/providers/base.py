"""Provider-neutral LLM interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

from ..types import (
    GenerateObjectInput,
    GenerateTextInput,
    GenerateTextOutput,
    ModelCapabilities,
    StreamTextOutput,
)


class BaseLLM(ABC):
    """Abstract chat model exposing the four generation modes.

    Subclasses translate the provider-neutral inputs from :mod:`..types` into the
    provider's request shape and normalize the responses back.
    """

    @property
    @abstractmethod
    def capabilities(self) -> ModelCapabilities:
        """Features the configured model supports."""

    @abstractmethod
    async def generate_text(self, input: GenerateTextInput) -> GenerateTextOutput:
        """Return a complete text response plus any tool calls."""

    @abstractmethod
    def stream_text(self, input: GenerateTextInput) -> AsyncIterator[StreamTextOutput]:
        """Yield partial text and tool-call updates until the provider finishes."""

    @abstractmethod
    async def generate_object(self, input: GenerateObjectInput) -> Any:
        """Return a JSON object shaped by ``input.schema``."""

    @abstractmethod
    def stream_object(self, input: GenerateObjectInput) -> AsyncIterator[Any]:
        """Yield partial parses of a JSON object as it is generated."""

    async def aclose(self) -> None:
        """Release network resources held by the provider client."""
