"""Session contract used by research actions, plus an in-memory implementation."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Protocol, Sequence

import jsonpatch

from .types import ResearchBlock

LOGGER = logging.getLogger(__name__)

PatchOperation = Mapping[str, Any]
PatchListener = Callable[[str, Sequence[PatchOperation]], None]


class Session(Protocol):
    """Narrow view of the UI session a research action may touch."""

    def get_block(self, block_id: str) -> ResearchBlock | None:
        """Return the live block for ``block_id`` or ``None``."""
        ...

    def update_block(self, block_id: str, patch: Sequence[PatchOperation]) -> None:
        """Apply JSON-patch operations to the block and notify observers."""
        ...


class InMemorySession:
    """Session keeping blocks in a dict and applying patches with :mod:`jsonpatch`.

    Overlapping calls that patch the same block are not synchronized.
    """

    def __init__(self, blocks: Sequence[ResearchBlock] | None = None) -> None:
        self._blocks: Dict[str, ResearchBlock] = {block.id: block for block in blocks or []}
        self._listeners: list[PatchListener] = []
        self.applied_patches: list[tuple[str, list[Dict[str, Any]]]] = []

    def add_block(self, block: ResearchBlock) -> None:
        self._blocks[block.id] = block

    def get_block(self, block_id: str) -> ResearchBlock | None:
        return self._blocks.get(block_id)

    def update_block(self, block_id: str, patch: Sequence[PatchOperation]) -> None:
        block = self._blocks.get(block_id)
        if block is None:
            LOGGER.warning("Ignoring patch for unknown block %s", block_id)
            return
        operations = [dict(op) for op in patch]
        document = {"id": block.id, "type": block.type, "data": block.data}
        patched = jsonpatch.apply_patch(document, operations)
        block.data = patched["data"]
        self.applied_patches.append((block_id, operations))
        for listener in list(self._listeners):
            listener(block_id, operations)

    def subscribe(self, listener: PatchListener) -> Callable[[], None]:
        """Register ``listener`` for patch notifications; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe


__all__ = ["Session", "InMemorySession", "PatchOperation"]
