"""End-to-end curation through the service with scripted collaborators."""

from __future__ import annotations

from collections import Counter
import threading

import pytest

from moodboard_curator.errors import ConfigurationError, InputValidationError, RetrievalTimeoutError
from moodboard_curator.models import RawHit
from moodboard_curator.planner import FallbackQueryPlanner
from moodboard_curator.search_client import SearchPageError
from moodboard_curator.service import MoodboardService

from .conftest import RETAILERS, FakeCohereClient, FakeSearchClient, make_hit, with_overrides

PROMPT = "oversized japanese streetwear"


def retailer_pages(query: str, start: int, num: int, index: int) -> list[RawHit]:
    """One full page spread across every retailer, then nothing."""
    if index > 0:
        return []
    slug = query.replace(" ", "-")
    return [
        make_hit(RETAILERS[i % len(RETAILERS)], f"/product/{slug}-{start + i}", title=query.title())
        for i in range(num)
    ]


def make_service(config, search_client, **kwargs) -> MoodboardService:
    return MoodboardService(config, planner=FallbackQueryPlanner(), search_client=search_client, **kwargs)


def test_streetwear_board_respects_every_cap(curator_config):
    client = FakeSearchClient(default=retailer_pages)
    payload = make_service(curator_config, client).curate_moodboard(prompt=PROMPT, gender="unisex", count=12)

    images = payload["images"]
    assert payload["source"] == "google-cse"
    assert len(images) == 12

    per_host = Counter(image["provider"] for image in images)
    assert max(per_host.values()) <= 2
    assert per_host["farfetch.com"] <= 2

    per_category = Counter(image["category"] for image in images)
    for category, taken in per_category.items():
        assert taken <= curator_config.category_cap(category)

    pairs = {(image["sourceUrl"], image["imageUrl"]) for image in images}
    assert len(pairs) == len(images)
    assert all(image["provider"] in RETAILERS for image in images)
    assert all("site:" not in query for query, _, _ in client.calls)


def test_images_are_ordered_by_score(curator_config):
    client = FakeSearchClient(default=retailer_pages)
    images = make_service(curator_config, client).curate_moodboard(prompt=PROMPT, count=18)["images"]
    scores = [image["score"] for image in images]
    assert scores == sorted(scores, reverse=True)


def test_empty_allowlist_fails_before_any_search(curator_config):
    client = FakeSearchClient(default=retailer_pages)
    service = make_service(with_overrides(curator_config, retailer_hosts=()), client)

    with pytest.raises(ConfigurationError):
        service.curate_moodboard(prompt=PROMPT)
    assert client.calls == []


def test_blank_prompt_is_rejected(curator_config):
    client = FakeSearchClient(default=retailer_pages)
    with pytest.raises(InputValidationError):
        make_service(curator_config, client).curate_moodboard(prompt="   ")
    assert client.calls == []


def test_debug_block_describes_the_run(curator_config):
    client = FakeSearchClient(default=retailer_pages)
    payload = make_service(curator_config, client).curate_moodboard(prompt=PROMPT, count=100)

    debug = payload["debug"]
    assert debug["query_source"] == "fallback"
    assert len(debug["queries"]) == 5
    assert set(debug["hits_per_query"]) == set(debug["queries"])
    assert all(hits == 10 for hits in debug["hits_per_query"].values())
    assert debug["count_requested"] == 100
    assert debug["count_effective"] == 36
    assert debug["timed_out_queries"] == []
    assert sum(debug["per_host"].values()) == len(payload["images"])


def test_debug_block_can_be_omitted(curator_config):
    client = FakeSearchClient(default=retailer_pages)
    payload = make_service(curator_config, client).curate_moodboard(prompt=PROMPT, include_debug=False)
    assert "debug" not in payload


def test_one_failing_query_does_not_sink_the_board(curator_config):
    broken = f"{PROMPT} shirt unisex"
    client = FakeSearchClient({broken: [SearchPageError("HTTP 500")]}, default=retailer_pages)
    payload = make_service(curator_config, client).curate_moodboard(prompt=PROMPT, count=12)

    assert payload["debug"]["hits_per_query"][broken] == 0
    assert payload["images"]
    assert all(image["query"] != broken for image in payload["images"])


def test_all_queries_failing_returns_empty_board(curator_config):
    client = FakeSearchClient(default=lambda query, start, num, index: [])
    payload = make_service(curator_config, client).curate_moodboard(prompt=PROMPT)
    assert payload["images"] == []
    assert payload["source"] == "google-cse"
    assert payload["debug"]["total_candidates"] == 0


def test_filtered_hits_never_reach_the_board(curator_config):
    def mixed(query, start, num, index):
        if index > 0:
            return []
        slug = query.replace(" ", "-")
        return [
            make_hit("pinterest.com", f"/pin/{slug}"),
            make_hit("asos.com", f"/kids/{slug}"),
            make_hit("randomshop.net", f"/product/{slug}"),
            make_hit("asos.com", f"/product/{slug}", title=query),
        ]

    client = FakeSearchClient(default=mixed)
    images = make_service(curator_config, client).curate_moodboard(prompt=PROMPT, count=6)["images"]
    assert images
    assert {image["provider"] for image in images} == {"asos.com"}
    assert all("/kids/" not in image["sourceUrl"] for image in images)


def test_slow_provider_hits_the_request_deadline(curator_config, stall_gate):
    def stalled(query, start, num, index):
        stall_gate.wait(5)
        return []

    config = with_overrides(curator_config, request_timeout_seconds=0.3)
    service = make_service(config, FakeSearchClient(default=stalled))

    with pytest.raises(RetrievalTimeoutError, match=r"0\.3s"):
        service.curate_moodboard(prompt=PROMPT)


def test_deadline_keeps_pages_that_already_arrived(curator_config, stall_gate):
    def first_page_then_stall(query, start, num, index):
        if index == 0:
            return retailer_pages(query, start, num, index)
        stall_gate.wait(5)
        return []

    config = with_overrides(curator_config, request_timeout_seconds=0.5)
    client = FakeSearchClient(default=first_page_then_stall)
    payload = make_service(config, client).curate_moodboard(prompt=PROMPT, count=12)

    debug = payload["debug"]
    assert len(payload["images"]) == 12
    assert sorted(debug["timed_out_queries"]) == sorted(debug["queries"])
    assert all(hits == 10 for hits in debug["hits_per_query"].values())


def test_deadline_mixes_finished_and_partial_queries(curator_config, stall_gate):
    stalled = f"{PROMPT} bag unisex"

    def one_query_stalls(query, start, num, index):
        if query == stalled and index > 0:
            stall_gate.wait(5)
        return retailer_pages(query, start, num, index)

    config = with_overrides(curator_config, request_timeout_seconds=0.5)
    payload = make_service(config, FakeSearchClient(default=one_query_stalls)).curate_moodboard(prompt=PROMPT)

    debug = payload["debug"]
    assert debug["timed_out_queries"] == [stalled]
    assert debug["hits_per_query"][stalled] == 10
    assert any(image["query"] == stalled for image in payload["images"])


def test_parse_intent_heuristic(curator_config):
    service = make_service(curator_config, FakeSearchClient())
    result = service.parse_intent("Minimal dinner outfit for women with loafers")

    assert result["source"] == "heuristic"
    parsed = result["parsed"]
    assert parsed["event"] == "dinner"
    assert parsed["mood"] == "minimal"
    assert parsed["gender"] == "women"
    assert parsed["items"] == ["loafers"]


def test_parse_intent_merges_cohere_answer(curator_config):
    cohere = FakeCohereClient(
        '{"event": "wedding", "mood": "elegant", "style": "", "gender": "Women", "items": ["dress", 3, "heels"]}'
    )
    service = make_service(curator_config, FakeSearchClient(), cohere_client=cohere)
    result = service.parse_intent("old money wedding guest look")

    assert result["source"] == "cohere"
    assert result["parsed"]["event"] == "wedding"
    assert result["parsed"]["gender"] == "women"
    assert result["parsed"]["style"] == "old money"
    assert result["parsed"]["items"] == ["dress", "heels"]


def test_parse_intent_falls_back_when_cohere_fails(curator_config):
    cohere = FakeCohereClient(RuntimeError("Cohere request failed (503)"))
    service = make_service(curator_config, FakeSearchClient(), cohere_client=cohere)
    assert service.parse_intent("streetwear hoodie")["source"] == "heuristic"


def test_suggest_outfit_template_and_cohere(curator_config):
    template = make_service(curator_config, FakeSearchClient()).suggest_outfit(event="dinner", mood="minimal")
    assert template["source"] == "template"
    assert "dinner" in template["suggestion"]

    cohere = FakeCohereClient("  Try a navy overshirt with cream trousers.  ")
    styled = make_service(curator_config, FakeSearchClient(), cohere_client=cohere).suggest_outfit(
        event="dinner", mood="minimal"
    )
    assert styled == {"suggestion": "Try a navy overshirt with cream trousers.", "source": "cohere"}


def test_suggest_outfit_requires_event_and_mood(curator_config):
    with pytest.raises(InputValidationError):
        make_service(curator_config, FakeSearchClient()).suggest_outfit(event=" ", mood="minimal")


def test_stylist_calls_run_on_their_own_pool(curator_config):
    class ThreadRecordingCohere(FakeCohereClient):
        def chat_text(self, *, prompt: str, model: str, temperature: float = 0.2) -> str:
            self.thread_name = threading.current_thread().name
            return super().chat_text(prompt=prompt, model=model, temperature=temperature)

    cohere = ThreadRecordingCohere("Layer a chore coat over a white tee.")
    make_service(curator_config, FakeSearchClient(), cohere_client=cohere).suggest_outfit(event="brunch", mood="relaxed")
    assert cohere.thread_name.startswith("cohere-stylist")
