"""Semantic search over CraftyPanda's historical social-media captions."""

from __future__ import annotations

import logging
import uuid
from typing import Any, ClassVar, Mapping

import httpx

from ...services.settings import Settings, SettingsStore, get_caption_rag_url
from ..types import SEARCH_RESULTS, ActionOutput, Chunk, ChunkMetadata, ResearchBlock, ResearchConfig
from .base import ActionContext, ResearchAction

LOGGER = logging.getLogger(__name__)

SEARCH_LIMIT = 5
SIMILARITY_THRESHOLD = 0.5
SOURCE_LABEL = "CraftyPanda Historical"
TITLE_PREFIX = "CraftyPanda: "
URL_PREFIX = "craftypanda://caption/"

_CAPTION_SEARCH_PROMPT = """
Use this tool to search CraftyPanda's historical Instagram captions when the user asks about:
- Past products, projects, or crafts the business has made
- Seasonal or holiday craft themes (Christmas, Halloween, etc.)
- Product descriptions, pricing patterns, or promotional content
- Craft-related information specific to CraftyPanda

This searches a curated database of historical posts with semantic similarity.
Always use this alongside web search when the query relates to crafts, decorations, or CraftyPanda-specific content.
"""


class CaptionSearchAction(ResearchAction):
    """Query the caption vector-search service and report progress to the research block.

    Never raises: a missing endpoint, transport failure, bad status or malformed
    payload all produce an empty result.
    """

    name: ClassVar[str] = "caption_search"
    schema: ClassVar[Mapping[str, Any]] = {
        "type": "object",
        "properties": {
            "type": {"type": "string", "const": "caption_search"},
            "query": {
                "type": "string",
                "description": "Search query for CraftyPanda historical captions and craft content",
            },
        },
        "required": ["type", "query"],
        "additionalProperties": False,
    }

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._settings = settings
        self._http_client = http_client
        self._timeout = timeout

    def get_tool_description(self) -> str:
        return (
            "Search CraftyPanda's historical Instagram captions for craft-related content, "
            "product descriptions, and seasonal themes."
        )

    def get_description(self) -> str:
        return _CAPTION_SEARCH_PROMPT

    def enabled(self, config: ResearchConfig) -> bool:
        # Rides on the web source; there is no separate captions toggle.
        return "web" in config.sources and not config.skip_search

    async def execute(self, params: Mapping[str, Any], context: ActionContext) -> ActionOutput:
        try:
            return await self._search(str(params.get("query") or ""), context)
        except Exception:
            LOGGER.exception("captionSearch: unexpected failure")
            return ActionOutput(type=SEARCH_RESULTS, results=[])

    async def _search(self, query: str, context: ActionContext) -> ActionOutput:
        base_url = get_caption_rag_url(self._resolve_settings())
        if not base_url:
            LOGGER.warning("captionSearch: CLOUDFLARE_RAG_URL not configured")
            return ActionOutput(type=SEARCH_RESULTS, results=[])

        block = self._research_block(context)
        if block is not None:
            self._append_sub_step(
                context,
                block,
                {"id": str(uuid.uuid4()), "type": "searching", "searching": [f"{TITLE_PREFIX}{query}"]},
            )

        try:
            payload = await self._post_search(base_url, query)
        except httpx.HTTPStatusError as exc:
            LOGGER.error("captionSearch: API error %s", exc.response.status_code)
            return ActionOutput(type=SEARCH_RESULTS, results=[])
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.error("captionSearch: fetch error %s", exc)
            return ActionOutput(type=SEARCH_RESULTS, results=[])

        try:
            results = [_to_chunk(hit) for hit in payload["results"]]
        except (KeyError, TypeError, AttributeError) as exc:
            LOGGER.error("captionSearch: unexpected response shape: %s", exc)
            return ActionOutput(type=SEARCH_RESULTS, results=[])

        LOGGER.debug("captionSearch: %d result(s) for %r", len(results), query)
        if block is not None:
            self._append_sub_step(
                context,
                block,
                {
                    "id": str(uuid.uuid4()),
                    "type": SEARCH_RESULTS,
                    "reading": [chunk.as_dict() for chunk in results],
                },
            )
        return ActionOutput(type=SEARCH_RESULTS, results=results)

    async def _post_search(self, base_url: str, query: str) -> Any:
        url = f"{base_url.rstrip('/')}/search"
        body = {"query": query, "limit": SEARCH_LIMIT, "threshold": SIMILARITY_THRESHOLD}
        if self._http_client is not None:
            response = await self._http_client.post(url, json=body)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, json=body)
        response.raise_for_status()
        return response.json()

    def _resolve_settings(self) -> Settings:
        if self._settings is None:
            self._settings = SettingsStore().load()
        return self._settings

    @staticmethod
    def _research_block(context: ActionContext) -> ResearchBlock | None:
        if context.session is None or not context.research_block_id:
            return None
        block = context.session.get_block(context.research_block_id)
        if block is None or not block.is_research:
            return None
        return block

    @staticmethod
    def _append_sub_step(context: ActionContext, block: ResearchBlock, step: dict[str, Any]) -> None:
        session = context.session
        if session is None or not context.research_block_id:
            return
        sub_steps = block.sub_steps()
        sub_steps.append(step)
        session.update_block(
            context.research_block_id,
            [{"op": "replace", "path": "/data/subSteps", "value": sub_steps}],
        )


def _to_chunk(hit: Mapping[str, Any]) -> Chunk:
    return Chunk(
        content=hit["content"],
        metadata=ChunkMetadata(
            title=f"{TITLE_PREFIX}{hit['folderName'].replace('_', ' ')}",
            url=f"{URL_PREFIX}{hit['id']}",
            source=SOURCE_LABEL,
            platform=hit.get("platform"),
            holiday=hit.get("holiday"),
            image_count=hit["imageCount"],
            score=hit["score"],
        ),
    )


__all__ = ["CaptionSearchAction"]
