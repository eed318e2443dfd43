"""Query planning: turn a free-text style request into several product-oriented search strings."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
import logging
import re
import time
from typing import Protocol

from moodboard_curator.cohere_utils import CohereClient, generate_search_queries, make_client
from moodboard_curator.config import CuratorConfig
from moodboard_curator.models import QueryPlan

_LOGGER = logging.getLogger(__name__)
_COHERE_EXECUTOR = ThreadPoolExecutor(max_workers=4, thread_name_prefix="cohere-planner")

MIN_COLLABORATOR_QUERIES = 8
MAX_COLLABORATOR_QUERIES = 12
MAX_EXCERPT_WORDS = 6

BASE_GARMENTS: tuple[str, ...] = ("jacket", "shirt", "pants", "sneakers", "bag")
DATE_GARMENTS: tuple[str, ...] = ("loafers", "knit sweater")
ACTIVE_GARMENTS: tuple[str, ...] = ("hoodie", "track pants")

_DATE_PATTERN = re.compile(r"\b(date|dinner|night out|romantic|anniversary|cocktail|drinks)\b")
_ACTIVE_PATTERN = re.compile(r"\b(game|games|gym|sport|sports|stadium|match|hike|hiking|run|running|training)\b")
_WOMEN_PATTERN = re.compile(r"\b(women|womens|women's|woman|female|ladies)\b")
_MEN_PATTERN = re.compile(r"\b(men|mens|men's|man|male)\b")
_GENDER_WORDS = {
    "women",
    "womens",
    "women's",
    "woman",
    "female",
    "ladies",
    "men",
    "mens",
    "men's",
    "man",
    "male",
    "unisex",
}


def dedupe_queries(values: list[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for value in values:
        cleaned = " ".join(str(value or "").split())
        if not cleaned:
            continue
        key = cleaned.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(cleaned)
    return out


def detect_gender(prompt: str, gender_hint: str = "") -> str:
    text = (prompt or "").lower()
    if _WOMEN_PATTERN.search(text):
        return "women"
    if _MEN_PATTERN.search(text):
        return "men"
    hint = (gender_hint or "").lower()
    if _WOMEN_PATTERN.search(hint):
        return "women"
    if _MEN_PATTERN.search(hint):
        return "men"
    return "unisex"


def prompt_excerpt(prompt: str) -> str:
    words = re.sub(r"[^\w\s'-]", " ", (prompt or "").lower()).split()
    out: list[str] = []
    for word in words:
        if word in _GENDER_WORDS or word in out:
            continue
        out.append(word)
    return " ".join(out[:MAX_EXCERPT_WORDS])


class QueryPlanner(Protocol):
    def plan(self, prompt: str, gender_hint: str, *, deadline: float | None = None) -> QueryPlan:
        ...


class FallbackQueryPlanner:
    """Deterministic garment templates; never touches the network."""

    source = "fallback"

    def plan(self, prompt: str, gender_hint: str, *, deadline: float | None = None) -> QueryPlan:
        text = (prompt or "").lower()
        gender = detect_gender(text, gender_hint)
        excerpt = prompt_excerpt(text)

        garments = list(BASE_GARMENTS)
        if _DATE_PATTERN.search(text):
            garments.extend(DATE_GARMENTS)
        if _ACTIVE_PATTERN.search(text):
            garments.extend(ACTIVE_GARMENTS)

        queries = dedupe_queries([f"{excerpt} {garment} {gender}" for garment in garments])
        return QueryPlan(queries=queries, source=self.source)


class CohereQueryPlanner:
    """Asks Cohere for queries once; any failure or short answer falls back to the templates."""

    source = "cohere"

    def __init__(
        self,
        client: CohereClient,
        *,
        config: CuratorConfig,
        fallback: QueryPlanner | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.fallback = fallback or FallbackQueryPlanner()

    def _call_timeout(self, deadline: float | None) -> float:
        timeout = self.config.cohere_timeout_seconds
        if deadline is not None:
            timeout = min(timeout, deadline - time.monotonic())
        return timeout

    def plan(self, prompt: str, gender_hint: str, *, deadline: float | None = None) -> QueryPlan:
        timeout = self._call_timeout(deadline)
        if timeout <= 0:
            _LOGGER.warning("No time left for query generation; using fallback planner.")
            return self.fallback.plan(prompt, gender_hint, deadline=deadline)

        future = _COHERE_EXECUTOR.submit(
            generate_search_queries,
            self.client,
            prompt_text=prompt,
            gender=gender_hint or "unisex",
            retailer_hosts=list(self.config.retailer_hosts),
            model=self.config.cohere_model,
        )
        try:
            raw_queries = future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            _LOGGER.warning("Query generation timed out after %.1fs; using fallback planner.", timeout)
            return self.fallback.plan(prompt, gender_hint, deadline=deadline)
        except Exception as exc:
            _LOGGER.warning("Query generation failed (%s); using fallback planner.", exc)
            return self.fallback.plan(prompt, gender_hint, deadline=deadline)

        queries = dedupe_queries(raw_queries)
        if len(queries) < MIN_COLLABORATOR_QUERIES:
            _LOGGER.warning(
                "Query generation returned %d usable queries (need %d); using fallback planner.",
                len(queries),
                MIN_COLLABORATOR_QUERIES,
            )
            return self.fallback.plan(prompt, gender_hint, deadline=deadline)
        return QueryPlan(queries=queries[:MAX_COLLABORATOR_QUERIES], source=self.source)


def build_planner(config: CuratorConfig) -> QueryPlanner:
    fallback = FallbackQueryPlanner()
    if not config.ai_enabled:
        return fallback
    return CohereQueryPlanner(make_client(config, max_retries=0), config=config, fallback=fallback)
