"""Data shapes shared by research actions and sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal

SEARCH_RESULTS = "search_results"


@dataclass(slots=True, frozen=True)
class ChunkMetadata:
    """Source details attached to a search hit."""

    title: str
    url: str
    source: str
    image_count: int = 0
    score: float = 0.0
    platform: str | None = None
    holiday: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "title": self.title,
            "url": self.url,
            "source": self.source,
            "imageCount": self.image_count,
            "score": self.score,
        }
        if self.platform is not None:
            payload["platform"] = self.platform
        if self.holiday is not None:
            payload["holiday"] = self.holiday
        return payload


@dataclass(slots=True, frozen=True)
class Chunk:
    """A unit of searchable content with its source metadata."""

    content: str
    metadata: ChunkMetadata

    def as_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "metadata": self.metadata.as_dict()}


@dataclass(slots=True)
class ActionOutput:
    """Result returned by a research action."""

    type: Literal["search_results"] = SEARCH_RESULTS
    results: list[Chunk] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "results": [chunk.as_dict() for chunk in self.results]}


@dataclass(slots=True)
class ResearchBlock:
    """UI block owned by the session; research blocks keep ``data["subSteps"]``."""

    id: str
    type: str
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_research(self) -> bool:
        return self.type == "research"

    def sub_steps(self) -> list[Dict[str, Any]]:
        return self.data.setdefault("subSteps", [])


@dataclass(slots=True)
class ResearchConfig:
    """Per-request research options used to decide which actions run."""

    sources: list[str] = field(default_factory=list)
    skip_search: bool = False


__all__ = [
    "SEARCH_RESULTS",
    "Chunk",
    "ChunkMetadata",
    "ActionOutput",
    "ResearchBlock",
    "ResearchConfig",
]
