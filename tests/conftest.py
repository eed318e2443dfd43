"""Shared fixtures and fakes for the moodboard tests."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Callable

import pytest

from moodboard_curator.config import CuratorConfig
from moodboard_curator.models import Candidate, RawHit

RETAILERS = (
    "asos.com",
    "ssense.com",
    "farfetch.com",
    "uniqlo.com",
    "cos.com",
    "endclothing.com",
    "zara.com",
    "nordstrom.com",
)


@pytest.fixture()
def curator_config() -> CuratorConfig:
    return CuratorConfig(
        retailer_hosts=RETAILERS,
        search_api_key="test-key",
        search_engine_id="test-cx",
        request_timeout_seconds=5.0,
        search_timeout_seconds=2.0,
    )


def with_overrides(config: CuratorConfig, **changes) -> CuratorConfig:
    return replace(config, **changes)


def make_hit(
    host: str,
    path: str = "/product/item-1",
    title: str = "Relaxed wool jacket",
    *,
    image: str | None = None,
    thumbnail: str | None = None,
) -> RawHit:
    link = f"https://{host}{path}"
    return RawHit(
        image_link=image or f"https://img.{host}{path}.jpg",
        context_link=link,
        title=title,
        thumbnail_link=thumbnail,
    )


def make_candidate(
    host: str,
    *,
    path: str = "/product/item-1",
    category: str = "tops",
    score: int = 10,
    title: str = "Boxy cotton shirt",
    query: str = "boxy shirt",
    thumbnail: str | None = None,
    image: str | None = None,
) -> Candidate:
    return Candidate(
        title=title,
        source_link=f"https://{host}{path}",
        image_link=image or f"https://img.{host}{path}.jpg",
        thumbnail_link=thumbnail,
        host=host,
        origin_query=query,
        score=score,
        category=category,  # type: ignore[arg-type]
    )


class FakeSearchClient:
    """Serves scripted pages per query and records every page request."""

    def __init__(self, pages: dict[str, list[list[RawHit]]] | None = None, *, default: Callable | None = None) -> None:
        self.pages = pages or {}
        self.default = default
        self.calls: list[tuple[str, int, int]] = []
        self._lock = threading.Lock()

    def fetch_page(self, query: str, *, start: int, num: int, timeout: float) -> list[RawHit]:
        with self._lock:
            index = sum(1 for call in self.calls if call[0] == query)
            self.calls.append((query, start, num))
        if query in self.pages:
            script = self.pages[query]
            if index >= len(script):
                return []
            page = script[index]
            if isinstance(page, Exception):
                raise page
            return list(page)
        if self.default is not None:
            return self.default(query, start, num, index)
        return []


class FakeCohereClient:
    def __init__(self, reply: str | Exception = "") -> None:
        self.reply = reply
        self.prompts: list[str] = []

    def chat_text(self, *, prompt: str, model: str, temperature: float = 0.2) -> str:
        self.prompts.append(prompt)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


@pytest.fixture()
def stall_gate():
    """Blocks stalled fake pages until the test finishes, then frees the worker threads."""
    gate = threading.Event()
    yield gate
    gate.set()
