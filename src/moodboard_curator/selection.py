"""Greedy diversifier: best-scored candidates first, under domain, category and dedupe caps."""

from __future__ import annotations

from collections import Counter

from moodboard_curator.config import CuratorConfig
from moodboard_curator.models import Candidate, ImageResult


def to_image_result(candidate: Candidate, config: CuratorConfig) -> ImageResult:
    image_url = candidate.image_link
    if candidate.thumbnail_link and config.is_hotlink_risk(candidate.host):
        image_url = candidate.thumbnail_link
    return ImageResult(
        image_url=image_url,
        thumbnail_url=candidate.thumbnail_link,
        source_url=candidate.source_link,
        title=candidate.title,
        provider=candidate.host,
        score=candidate.score,
        query=candidate.origin_query,
        category=candidate.category,
    )


def select_results(candidates: list[Candidate], count: int, config: CuratorConfig) -> list[ImageResult]:
    """Walk candidates by descending score and keep those that fit every cap.

    ``count`` is clamped to the configured bounds. Ties keep discovery order.
    Skipped candidates are not consumed, so a later one from another domain or
    category can still fill the slot. Returning fewer than ``count`` is normal.
    """
    desired = config.clamp_count(count)
    domain_cap = config.domain_cap(desired)
    watched_cap = config.watched_cap(desired)

    per_host: Counter[str] = Counter()
    per_category: Counter[str] = Counter()
    watched_taken = 0
    seen: set[str] = set()
    projected: set[tuple[str, str]] = set()
    out: list[ImageResult] = []

    for candidate in sorted(candidates, key=lambda item: item.score, reverse=True):
        if len(out) >= desired:
            break
        if per_host[candidate.host] >= domain_cap:
            continue
        watched = config.is_watched(candidate.host)
        if watched and watched_taken >= watched_cap:
            continue
        if per_category[candidate.category] >= config.category_cap(candidate.category):
            continue
        if candidate.dedupe_key in seen:
            continue
        result = to_image_result(candidate, config)
        if (result.source_url, result.image_url) in projected:
            continue

        seen.add(candidate.dedupe_key)
        projected.add((result.source_url, result.image_url))
        per_host[candidate.host] += 1
        per_category[candidate.category] += 1
        if watched:
            watched_taken += 1
        out.append(result)

    return out
