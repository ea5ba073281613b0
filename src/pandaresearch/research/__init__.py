"""Research actions, their registry, and the session contract they report to."""

from .actions import ActionContext, CaptionSearchAction, ResearchAction
from .registry import ActionRegistry
from .session import InMemorySession, Session
from .types import ActionOutput, Chunk, ChunkMetadata, ResearchBlock, ResearchConfig

__all__ = [
    "ActionContext",
    "ActionOutput",
    "ActionRegistry",
    "CaptionSearchAction",
    "Chunk",
    "ChunkMetadata",
    "InMemorySession",
    "ResearchAction",
    "ResearchBlock",
    "ResearchConfig",
    "Session",
]
