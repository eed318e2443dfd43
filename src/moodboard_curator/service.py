"""Moodboard service: plans queries, fans out image searches and curates the final board."""

from __future__ import annotations

from collections import Counter
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError, wait
from itertools import islice
import logging
import re
import time
from typing import Any

from moodboard_curator.classify import classify
from moodboard_curator.cohere_utils import CohereClient, extract_style_intent, make_client, suggest_outfit
from moodboard_curator.config import CuratorConfig
from moodboard_curator.errors import InputValidationError, RetrievalTimeoutError
from moodboard_curator.filters import to_candidate
from moodboard_curator.models import Candidate, RawHit
from moodboard_curator.planner import (
    FallbackQueryPlanner,
    QueryPlanner,
    build_planner,
    detect_gender,
)
from moodboard_curator.scoring import score_candidate
from moodboard_curator.search_client import GoogleImageSearchClient, ImageSearchClient, iter_image_hits
from moodboard_curator.selection import select_results

_LOGGER = logging.getLogger(__name__)
_SEARCH_EXECUTOR = ThreadPoolExecutor(max_workers=12, thread_name_prefix="image-search")
_STYLIST_EXECUTOR = ThreadPoolExecutor(max_workers=2, thread_name_prefix="cohere-stylist")

SOURCE_NAME = "google-cse"

_EVENT_LEXICON: dict[str, set[str]] = {
    "dinner": {"dinner", "date", "restaurant"},
    "wedding": {"wedding", "ceremony"},
    "work": {"work", "office", "interview", "meeting"},
    "party": {"party", "cocktail", "club", "nightout"},
    "game": {"game", "stadium", "match"},
    "travel": {"travel", "airport", "vacation", "holiday"},
}
_MOOD_WORDS = {
    "minimal",
    "minimalist",
    "elegant",
    "casual",
    "grungy",
    "edgy",
    "relaxed",
    "bold",
    "clean",
    "cozy",
    "sporty",
    "oversized",
    "romantic",
    "classic",
}
_STYLE_PHRASES = (
    "japanese workwear",
    "workwear",
    "streetwear",
    "preppy",
    "techwear",
    "old money",
    "quiet luxury",
    "y2k",
    "scandi",
    "vintage",
    "western",
    "gorpcore",
)
_ITEM_WORDS = (
    "jacket",
    "coat",
    "blazer",
    "shirt",
    "tee",
    "sweater",
    "hoodie",
    "pants",
    "trousers",
    "jeans",
    "skirt",
    "dress",
    "sneakers",
    "boots",
    "loafers",
    "bag",
    "belt",
)


class MoodboardService:
    def __init__(
        self,
        config: CuratorConfig,
        *,
        planner: QueryPlanner | None = None,
        search_client: ImageSearchClient | None = None,
        cohere_client: CohereClient | None = None,
    ) -> None:
        self.config = config
        self._planner = planner
        self._search_client = search_client
        self._cohere_client = cohere_client

    @property
    def planner(self) -> QueryPlanner:
        if self._planner is None:
            self._planner = build_planner(self.config)
        return self._planner

    @property
    def search_client(self) -> ImageSearchClient:
        if self._search_client is None:
            self._search_client = GoogleImageSearchClient.from_config(self.config)
        return self._search_client

    def _ensure_cohere(self) -> CohereClient | None:
        if self._cohere_client is None and self.config.ai_enabled:
            self._cohere_client = make_client(self.config, max_retries=1)
        return self._cohere_client

    @staticmethod
    def _clean_prompt(prompt: Any) -> str:
        cleaned = str(prompt or "").strip()
        if not cleaned:
            raise InputValidationError("Please enter a style prompt.")
        return cleaned

    def _run_with_timeout(self, operation: str, fn, timeout_seconds: float):
        safe_timeout = max(1.0, float(timeout_seconds))
        future = _STYLIST_EXECUTOR.submit(fn)
        try:
            return future.result(timeout=safe_timeout)
        except FutureTimeoutError as exc:
            future.cancel()
            raise RuntimeError(f"{operation} timed out after {int(round(safe_timeout))}s.") from exc
        except Exception as exc:
            raise RuntimeError(f"{operation} failed: {exc}") from exc

    def _retrieve(self, client: ImageSearchClient, query: str, deadline: float, sink: list[RawHit]) -> None:
        """Page through one query, appending hits to ``sink`` as each page arrives."""
        hits = iter_image_hits(
            client,
            query,
            want=self.config.hits_per_query,
            deadline=deadline,
            timeout_seconds=self.config.search_timeout_seconds,
        )
        for hit in islice(hits, self.config.hits_per_query):
            sink.append(hit)

    def _fan_out(self, queries: list[str], deadline: float) -> tuple[dict[str, list[RawHit]], list[str]]:
        client = self.search_client
        sinks: dict[str, list[RawHit]] = {query: [] for query in queries}
        futures = {
            query: _SEARCH_EXECUTOR.submit(self._retrieve, client, query, deadline, sinks[query]) for query in queries
        }
        remaining = max(0.0, deadline - time.monotonic())
        done, pending = wait(list(futures.values()), timeout=remaining)

        results: dict[str, list[RawHit]] = {}
        timed_out: list[str] = []
        for query, future in futures.items():
            if future not in done:
                future.cancel()
                timed_out.append(query)
            else:
                exc = future.exception()
                if exc is not None:
                    _LOGGER.warning("Image search for %r failed: %s", query, exc)
            # Pending workers may still append; keep what had arrived by the deadline.
            results[query] = list(sinks[query])

        arrived = sum(len(hits) for hits in results.values())
        if pending and not done and not arrived:
            raise RetrievalTimeoutError(
                f"Image search did not finish within {self.config.request_timeout_seconds:.1f}s."
            )
        if timed_out:
            _LOGGER.warning(
                "Abandoned %d image searches at the request deadline; kept %d hits that had arrived.",
                len(timed_out),
                arrived,
            )
        return results, timed_out

    def _build_candidates(self, queries: list[str], hits_by_query: dict[str, list[RawHit]]) -> list[Candidate]:
        candidates: list[Candidate] = []
        for query in queries:
            for hit in hits_by_query.get(query, []):
                candidate = to_candidate(hit, query, self.config)
                if candidate is None:
                    continue
                candidate.category = classify(candidate.origin_query, candidate.title, candidate.source_link)
                candidate.score = score_candidate(candidate, self.config)
                candidates.append(candidate)
        return candidates

    def curate_moodboard(
        self,
        *,
        prompt: str,
        gender: str | None = "unisex",
        count: int | None = None,
        include_debug: bool = True,
    ) -> dict[str, Any]:
        self.config.validate()
        cleaned = self._clean_prompt(prompt)
        gender_hint = str(gender or "").strip() or "unisex"
        desired = self.config.clamp_count(count)

        deadline = time.monotonic() + self.config.request_timeout_seconds
        plan = self.planner.plan(cleaned, gender_hint, deadline=deadline)
        if not plan.queries:
            plan = FallbackQueryPlanner().plan(cleaned, gender_hint)

        hits_by_query, timed_out = self._fan_out(plan.queries, deadline)
        candidates = self._build_candidates(plan.queries, hits_by_query)
        images = select_results(candidates, desired, self.config)

        _LOGGER.info(
            "Curated %d/%d images from %d candidates across %d queries (planner=%s).",
            len(images),
            desired,
            len(candidates),
            len(plan.queries),
            plan.source,
        )

        payload: dict[str, Any] = {
            "images": [image.to_dict() for image in images],
            "source": SOURCE_NAME,
        }
        if include_debug:
            payload["debug"] = {
                "query_source": plan.source,
                "queries": plan.queries,
                "hits_per_query": {query: len(hits_by_query.get(query, [])) for query in plan.queries},
                "timed_out_queries": timed_out,
                "total_candidates": len(candidates),
                "count_requested": count,
                "count_effective": desired,
                "per_host": dict(Counter(image.provider for image in images)),
                "per_category": dict(Counter(image.category for image in images)),
            }
        return payload

    def _heuristic_intent(self, query_text: str) -> dict[str, Any]:
        text = query_text.lower()
        tokens = set(re.findall(r"[\w']+", text))

        event = ""
        for name, keywords in _EVENT_LEXICON.items():
            if tokens & keywords:
                event = name
                break

        mood = next((word for word in re.findall(r"[\w']+", text) if word in _MOOD_WORDS), "")
        style = next((phrase for phrase in _STYLE_PHRASES if phrase in text), "")
        items = [word for word in _ITEM_WORDS if re.search(rf"\b{word}s?\b", text)]

        return {
            "event": event,
            "mood": mood,
            "style": style,
            "gender": detect_gender(text),
            "items": items[:6],
        }

    def parse_intent(self, query_text: str) -> dict[str, Any]:
        cleaned = self._clean_prompt(query_text)
        heuristic = self._heuristic_intent(cleaned)
        client = self._ensure_cohere()
        if client is None:
            return {"q": cleaned, "parsed": heuristic, "source": "heuristic"}

        try:
            parsed = self._run_with_timeout(
                "Intent extraction request",
                lambda: extract_style_intent(client, query_text=cleaned, model=self.config.cohere_model),
                self.config.cohere_timeout_seconds,
            )
        except Exception:
            _LOGGER.warning("Intent extraction fell back to heuristic parsing.")
            return {"q": cleaned, "parsed": heuristic, "source": "heuristic"}

        merged = dict(heuristic)
        for key, value in parsed.items():
            if value:
                merged[key] = value
        return {"q": cleaned, "parsed": merged, "source": "cohere"}

    def _template_outfit(self, event: str, mood: str) -> str:
        return (
            f"For a {event} with a {mood} vibe, layer a light jacket over a simple shirt, "
            "add well-fitted pants, and finish with clean sneakers and a small leather bag."
        )

    def suggest_outfit(self, *, event: str, mood: str) -> dict[str, Any]:
        cleaned_event = str(event or "").strip()
        cleaned_mood = str(mood or "").strip()
        if not cleaned_event or not cleaned_mood:
            raise InputValidationError("Missing event or mood.")

        client = self._ensure_cohere()
        if client is None:
            return {"suggestion": self._template_outfit(cleaned_event, cleaned_mood), "source": "template"}

        try:
            suggestion = self._run_with_timeout(
                "Outfit suggestion request",
                lambda: suggest_outfit(client, event=cleaned_event, mood=cleaned_mood, model=self.config.cohere_model),
                self.config.cohere_timeout_seconds,
            )
        except Exception:
            _LOGGER.warning("Outfit suggestion fell back to the template.")
            return {"suggestion": self._template_outfit(cleaned_event, cleaned_mood), "source": "template"}

        return {"suggestion": suggestion or "No suggestion generated.", "source": "cohere"}

    def stats(self) -> dict[str, Any]:
        return self.config.summary()
