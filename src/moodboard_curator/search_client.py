"""Google Custom Search image client and the per-query pagination loop."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Iterator, Protocol
import urllib.error
import urllib.parse
import urllib.request

from moodboard_curator.config import CuratorConfig
from moodboard_curator.errors import ConfigurationError
from moodboard_curator.models import RawHit

_LOGGER = logging.getLogger(__name__)

MAX_PAGE_SIZE = 10
MAX_START_OFFSET = 91
MAX_PAGE_REQUESTS = 10


class SearchPageError(RuntimeError):
    pass


class ImageSearchClient(Protocol):
    def fetch_page(self, query: str, *, start: int, num: int, timeout: float) -> list[RawHit]:
        ...


class GoogleImageSearchClient:
    def __init__(self, *, api_key: str, engine_id: str, base_url: str, timeout_seconds: float) -> None:
        self.api_key = api_key
        self.engine_id = engine_id
        self.base_url = base_url
        self.timeout_seconds = max(1.0, float(timeout_seconds))

    @classmethod
    def from_config(cls, config: CuratorConfig) -> "GoogleImageSearchClient":
        if not config.search_api_key or not config.search_engine_id:
            raise ConfigurationError("Image search credentials are missing: set GOOGLE_CSE_KEY and GOOGLE_CSE_ID.")
        return cls(
            api_key=config.search_api_key,
            engine_id=config.search_engine_id,
            base_url=config.search_base_url,
            timeout_seconds=config.search_timeout_seconds,
        )

    def _get_json(self, params: dict[str, Any], timeout: float) -> dict[str, Any]:
        url = f"{self.base_url}?{urllib.parse.urlencode(params)}"
        request = urllib.request.Request(url, headers={"Accept": "application/json"}, method="GET")
        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                return json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            body = exc.read().decode("utf-8", errors="ignore")
            raise SearchPageError(f"Image search failed ({exc.code}): {body[:200] or exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise SearchPageError(f"Image search failed: {exc.reason}") from exc
        except (TimeoutError, ValueError) as exc:
            raise SearchPageError(f"Image search failed: {exc}") from exc

    def fetch_page(self, query: str, *, start: int, num: int, timeout: float) -> list[RawHit]:
        params = {
            "q": query,
            "searchType": "image",
            "imgType": "photo",
            "safe": "active",
            "num": max(1, min(int(num), MAX_PAGE_SIZE)),
            "start": int(start),
            "key": self.api_key,
            "cx": self.engine_id,
        }
        payload = self._get_json(params, min(self.timeout_seconds, max(0.1, timeout)))
        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            return []
        return [RawHit.from_item(item) for item in items]


def iter_image_hits(
    client: ImageSearchClient,
    query: str,
    *,
    want: int,
    deadline: float | None = None,
    timeout_seconds: float = 8.0,
) -> Iterator[RawHit]:
    """Yield raw hits for one query, page by page, until one of the stop conditions fires.

    Stops when ``want`` hits were produced, the next offset would pass the
    provider's 91 limit, ten pages were requested, a page fails or comes back
    empty, or ``deadline`` (a ``time.monotonic()`` value) has passed. Page
    failures end the loop quietly.
    """
    produced = 0
    start = 1
    pages = 0

    while produced < want and start <= MAX_START_OFFSET and pages < MAX_PAGE_REQUESTS:
        timeout = timeout_seconds
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                _LOGGER.info("Deadline reached while paging %r after %d hits.", query, produced)
                return
            timeout = min(timeout, remaining)

        num = min(MAX_PAGE_SIZE, want - produced)
        pages += 1
        try:
            hits = client.fetch_page(query, start=start, num=num, timeout=timeout)
        except Exception as exc:
            _LOGGER.warning("Image search page %d for %r failed: %s", pages, query, exc)
            return

        if not hits:
            return

        for hit in hits:
            yield hit
        produced += len(hits)
        start += len(hits)
