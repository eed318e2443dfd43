"""Candidate filter: retailer allowlist, blocked domains and non-product page rules."""

from __future__ import annotations

from functools import lru_cache
import logging
import re

from moodboard_curator.config import CuratorConfig
from moodboard_curator.models import Candidate, RawHit
from moodboard_curator.urls import host_from_url, host_matches

_LOGGER = logging.getLogger(__name__)

_NON_PRODUCT_SLUG = re.compile(r"(how-to|what-is|top-\d+|style-guide)")


@lru_cache(maxsize=32)
def _path_pattern(parts: tuple[str, ...]) -> re.Pattern[str] | None:
    # "/news" must not swallow "/newsboy-cap"; entries ending in "/" already carry their boundary.
    alternatives = [
        re.escape(part) if part.endswith("/") else re.escape(part) + r"(?=/|$|[-_.?#])"
        for part in (value.lower() for value in parts)
        if part
    ]
    if not alternatives:
        return None
    return re.compile("|".join(alternatives))


@lru_cache(maxsize=32)
def _term_pattern(terms: tuple[str, ...]) -> re.Pattern[str] | None:
    alternatives = sorted((re.escape(term.lower()) for term in terms if term), key=len, reverse=True)
    if not alternatives:
        return None
    return re.compile(r"(?<!\w)(?:" + "|".join(alternatives) + r")(?!\w)")


def is_blocked_domain(host: str, blocked_domains: tuple[str, ...] | list[str]) -> bool:
    return any(entry and entry in host for entry in blocked_domains)


def is_allowed_host(host: str, retailer_hosts: tuple[str, ...] | list[str]) -> bool:
    """True when ``host`` equals an allowlist entry or either one is a subdomain of the other.

    Subdomains of an entry are accepted too, so ``us.cos.com`` passes for ``cos.com``.
    Matching always stops at a dot, so ``notasos.com`` never passes for ``asos.com``.
    """
    for entry in retailer_hosts:
        if host_matches(host, entry) or host_matches(entry, host):
            return True
    return False


def is_non_product_page(url: str, excluded_path_parts: tuple[str, ...] | list[str]) -> bool:
    lowered = (url or "").lower()
    pattern = _path_pattern(tuple(excluded_path_parts))
    if pattern is not None and pattern.search(lowered):
        return True
    return bool(_NON_PRODUCT_SLUG.search(lowered))


def has_excluded_title_term(title: str, excluded_terms: tuple[str, ...] | list[str]) -> bool:
    """Whole-word match, so "Girls padded jacket" is caught and "boyfriend jeans" is not."""
    pattern = _term_pattern(tuple(excluded_terms))
    return pattern is not None and bool(pattern.search((title or "").lower()))


def to_candidate(hit: RawHit, query: str, config: CuratorConfig) -> Candidate | None:
    """Return a Candidate for an acceptable hit, or None when any rule rejects it."""
    if not hit.image_link or not hit.context_link:
        return None

    host = host_from_url(hit.context_link)
    if not host:
        return None

    if is_blocked_domain(host, config.blocked_domains):
        _LOGGER.debug("Rejected %s: blocked domain.", host)
        return None

    if not is_allowed_host(host, config.retailer_hosts):
        _LOGGER.debug("Rejected %s: not a configured retailer.", host)
        return None

    if is_non_product_page(hit.context_link, config.excluded_path_parts):
        _LOGGER.debug("Rejected %s: non-product page.", hit.context_link)
        return None

    if has_excluded_title_term(hit.title, config.excluded_title_terms):
        _LOGGER.debug("Rejected %r: excluded title term.", hit.title)
        return None

    return Candidate(
        title=hit.title,
        source_link=hit.context_link,
        image_link=hit.image_link,
        thumbnail_link=hit.thumbnail_link,
        host=host,
        origin_query=query,
    )
