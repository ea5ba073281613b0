"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from pandaresearch.research.types import ResearchBlock


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for name in (
        "CLOUDFLARE_RAG_URL",
        "PANDARESEARCH_MODEL_PROVIDER",
        "PANDARESEARCH_MODEL",
        "PANDARESEARCH_LOG_DIR",
        "PANDARESEARCH_DEBUG_LOGGING",
        "PANDARESEARCH_REQUEST_TIMEOUT",
        "PANDARESEARCH_MAX_RETRIES",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def research_block() -> ResearchBlock:
    return ResearchBlock(id="block-1", type="research", data={"subSteps": []})
