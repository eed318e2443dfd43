"""Heuristic relevance score for a candidate."""

from __future__ import annotations

import re

from moodboard_curator.config import CuratorConfig
from moodboard_curator.models import Candidate
from moodboard_curator.urls import path_segments

PRODUCT_PATH_SEGMENTS = frozenset({"product", "products", "p", "item", "shop", "dp", "sku"})
PRODUCT_PAGE_BONUS = 10
QUERY_TOKEN_BONUS = 2
MIN_TOKEN_LENGTH = 3


def query_tokens(query: str) -> list[str]:
    tokens = re.split(r"[^\w]+", (query or "").lower())
    return list(dict.fromkeys(token for token in tokens if len(token) >= MIN_TOKEN_LENGTH))


def is_product_page(url: str) -> bool:
    return any(segment in PRODUCT_PATH_SEGMENTS for segment in path_segments(url))


def score_candidate(candidate: Candidate, config: CuratorConfig) -> int:
    score = 0
    if is_product_page(candidate.source_link):
        score += PRODUCT_PAGE_BONUS

    haystack = f"{candidate.title} {candidate.source_link}".lower()
    for token in query_tokens(candidate.origin_query):
        if token in haystack:
            score += QUERY_TOKEN_BONUS

    score += config.domain_weight(candidate.host)
    return score
