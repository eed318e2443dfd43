"""Explicit configuration for the curation pipeline, loaded once from env and an optional JSON file."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from moodboard_curator.errors import ConfigurationError
from moodboard_curator.models import CATEGORIES
from moodboard_curator.urls import host_matches, normalize_host

_LOGGER = logging.getLogger(__name__)

DEFAULT_BLOCKED_DOMAINS: tuple[str, ...] = (
    "pinterest.",
    "pinimg.com",
    "reddit.",
    "twitter.",
    "x.com",
    "tumblr.",
    "instagram.",
    "facebook.",
    "tiktok.",
    "youtube.",
    "wikipedia.",
)

DEFAULT_EXCLUDED_PATH_PARTS: tuple[str, ...] = (
    "/help",
    "/blog",
    "/press",
    "/account",
    "/privacy",
    "/terms",
    "/size-guide",
    "/size_guide",
    "/sizeguide",
    "/lookbook",
    "/editorial",
    "/editors",
    "/review",
    "/reviews",
    "/magazine",
    "/journal",
    "/stories",
    "/story",
    "/guide",
    "/customer-service",
    "/customer_service",
    "/support",
    "/about",
    "/policies",
    "/news",
    "/campaign",
    "/kids/",
    "/kid/",
    "/children/",
    "/childrens/",
    "/baby/",
    "/toddler/",
    "/boys/",
    "/girls/",
)

DEFAULT_EXCLUDED_TITLE_TERMS: tuple[str, ...] = (
    "kids",
    "kid's",
    "kids'",
    "child",
    "children",
    "child's",
    "childrens",
    "children's",
    "toddler",
    "toddlers",
    "infant",
    "infants",
    "babies",
    "baby's",
    "boy",
    "boys",
    "boy's",
    "boys'",
    "girl",
    "girls",
    "girl's",
    "girls'",
    "youth",
    "junior",
    "juniors",
)

DEFAULT_CATEGORY_CAPS: dict[str, int] = {
    "tops": 5,
    "bottoms": 5,
    "outerwear": 4,
    "shoes": 3,
    "accessories": 3,
    "other": 3,
}

DEFAULT_DOMAIN_WEIGHTS: dict[str, int] = {
    "farfetch.com": -2,
    "ssense.com": 2,
    "endclothing.com": 1,
}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except Exception:
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except Exception:
        return default
    return value if value > 0 else default


def _env_list(name: str) -> list[str] | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return [part.strip() for part in raw.split(",") if part.strip()]


def _clean_hosts(values: Any) -> tuple[str, ...]:
    if isinstance(values, str):
        values = values.split(",")
    if not isinstance(values, (list, tuple)):
        return ()
    out: list[str] = []
    for value in values:
        host = normalize_host(str(value))
        if host and host not in out:
            out.append(host)
    return tuple(out)


def _int_pair(value: Any, default: tuple[int, int]) -> tuple[int, int]:
    if isinstance(value, int):
        return (value, value)
    if isinstance(value, (list, tuple)) and len(value) == 2:
        try:
            return (int(value[0]), int(value[1]))
        except Exception:
            return default
    return default


def _load_overrides() -> dict[str, Any]:
    config_path = os.getenv("MOODBOARD_CONFIG_PATH", "").strip()
    if not config_path:
        return {}

    path = Path(config_path)
    if not path.exists() or not path.is_file():
        _LOGGER.warning("MOODBOARD_CONFIG_PATH %s does not exist; ignoring.", config_path)
        return {}

    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        _LOGGER.warning("MOODBOARD_CONFIG_PATH %s is not valid JSON; ignoring.", config_path)
        return {}

    if not isinstance(parsed, dict):
        return {}
    return parsed


@dataclass(frozen=True)
class CuratorConfig:
    retailer_hosts: tuple[str, ...] = ()
    search_api_key: str = ""
    search_engine_id: str = ""
    search_base_url: str = "https://www.googleapis.com/customsearch/v1"
    blocked_domains: tuple[str, ...] = DEFAULT_BLOCKED_DOMAINS
    hotlink_risk_domains: tuple[str, ...] = ("farfetch.com", "ssense.com")
    excluded_path_parts: tuple[str, ...] = DEFAULT_EXCLUDED_PATH_PARTS
    excluded_title_terms: tuple[str, ...] = DEFAULT_EXCLUDED_TITLE_TERMS
    per_domain_cap: tuple[int, int] = (2, 3)
    watched_domain: str = "farfetch.com"
    watched_domain_cap: tuple[int, int] = (2, 3)
    small_board_threshold: int = 12
    category_caps: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_CATEGORY_CAPS))
    desired_count_bounds: tuple[int, int] = (6, 36)
    default_count: int = 18
    domain_weights: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_DOMAIN_WEIGHTS))
    hits_per_query: int = 20
    search_timeout_seconds: float = 8.0
    request_timeout_seconds: float = 25.0
    cohere_api_key: str = ""
    cohere_base_url: str = "https://api.cohere.com/v2"
    cohere_model: str = "command-r-08-2024"
    cohere_timeout_seconds: float = 12.0

    @classmethod
    def from_env(cls) -> "CuratorConfig":
        overrides = _load_overrides()
        defaults = cls()

        retailer_hosts = _env_list("RETAILER_SITES") or overrides.get("retailer_hosts", [])
        blocked = _env_list("BLOCKED_DOMAINS") or overrides.get("blocked_domains")
        if isinstance(blocked, str):
            blocked = blocked.split(",")
        hotlink = _env_list("HOTLINK_RISK_DOMAINS") or overrides.get("hotlink_risk_domains")

        category_caps = dict(DEFAULT_CATEGORY_CAPS)
        raw_caps = overrides.get("category_caps")
        if isinstance(raw_caps, dict):
            for name, value in raw_caps.items():
                if name in category_caps:
                    try:
                        category_caps[name] = max(0, int(value))
                    except Exception:
                        continue

        domain_weights = dict(DEFAULT_DOMAIN_WEIGHTS)
        raw_weights = overrides.get("domain_weights")
        if isinstance(raw_weights, dict):
            domain_weights = {}
            for domain, value in raw_weights.items():
                try:
                    domain_weights[normalize_host(domain)] = int(value)
                except Exception:
                    continue

        return cls(
            retailer_hosts=_clean_hosts(retailer_hosts),
            search_api_key=os.getenv("GOOGLE_CSE_KEY", "").strip() or str(overrides.get("search_api_key", "")).strip(),
            search_engine_id=os.getenv("GOOGLE_CSE_ID", "").strip()
            or str(overrides.get("search_engine_id", "")).strip(),
            blocked_domains=tuple(str(v).strip().lower() for v in blocked if str(v).strip())
            if blocked
            else defaults.blocked_domains,
            hotlink_risk_domains=_clean_hosts(hotlink) if hotlink else defaults.hotlink_risk_domains,
            per_domain_cap=_int_pair(overrides.get("per_domain_cap"), defaults.per_domain_cap),
            watched_domain=normalize_host(
                os.getenv("WATCHED_DOMAIN", "") or str(overrides.get("watched_domain", defaults.watched_domain))
            ),
            watched_domain_cap=_int_pair(overrides.get("watched_domain_cap"), defaults.watched_domain_cap),
            small_board_threshold=int(overrides.get("small_board_threshold", defaults.small_board_threshold)),
            category_caps=category_caps,
            desired_count_bounds=_int_pair(overrides.get("desired_count_bounds"), defaults.desired_count_bounds),
            default_count=_env_int("MOODBOARD_DEFAULT_COUNT", defaults.default_count),
            domain_weights=domain_weights,
            hits_per_query=_env_int("MOODBOARD_HITS_PER_QUERY", defaults.hits_per_query),
            search_timeout_seconds=_env_float("MOODBOARD_SEARCH_TIMEOUT_SECONDS", defaults.search_timeout_seconds),
            request_timeout_seconds=_env_float("MOODBOARD_REQUEST_TIMEOUT_SECONDS", defaults.request_timeout_seconds),
            cohere_api_key=os.getenv("COHERE_API_KEY", "").strip() or str(overrides.get("cohere_api_key", "")).strip(),
            cohere_base_url=os.getenv("COHERE_API_BASE_URL", "").strip() or defaults.cohere_base_url,
            cohere_model=os.getenv("MOODBOARD_COHERE_MODEL", "").strip() or defaults.cohere_model,
            cohere_timeout_seconds=_env_float("MOODBOARD_COHERE_TIMEOUT_SECONDS", defaults.cohere_timeout_seconds),
        )

    @property
    def ai_enabled(self) -> bool:
        return bool(self.cohere_api_key.strip())

    def validate(self) -> None:
        if not self.retailer_hosts:
            raise ConfigurationError("Retailer allowlist is empty: set RETAILER_SITES to a comma-separated host list.")
        if not self.search_api_key or not self.search_engine_id:
            raise ConfigurationError("Image search credentials are missing: set GOOGLE_CSE_KEY and GOOGLE_CSE_ID.")
        low, high = self.desired_count_bounds
        if low < 1 or high < low:
            raise ConfigurationError(f"Invalid desired_count_bounds {self.desired_count_bounds!r}.")

    def clamp_count(self, count: int | None) -> int:
        low, high = self.desired_count_bounds
        value = self.default_count if count is None else int(count)
        return max(low, min(high, value))

    def domain_cap(self, count: int) -> int:
        small, large = self.per_domain_cap
        return small if count <= self.small_board_threshold else large

    def watched_cap(self, count: int) -> int:
        small, large = self.watched_domain_cap
        return small if count <= self.small_board_threshold else large

    def category_cap(self, category: str) -> int:
        return int(self.category_caps.get(category, self.category_caps.get("other", 0)))

    def domain_weight(self, host: str) -> int:
        total = 0
        for domain, weight in self.domain_weights.items():
            if host_matches(host, domain):
                total += int(weight)
        return total

    def is_hotlink_risk(self, host: str) -> bool:
        return any(host_matches(host, domain) for domain in self.hotlink_risk_domains)

    def is_watched(self, host: str) -> bool:
        return bool(self.watched_domain) and host_matches(host, self.watched_domain)

    def summary(self) -> dict[str, Any]:
        return {
            "retailer_hosts": len(self.retailer_hosts),
            "search_configured": bool(self.search_api_key and self.search_engine_id),
            "ai_enabled": self.ai_enabled,
            "desired_count_bounds": list(self.desired_count_bounds),
            "categories": list(CATEGORIES),
        }
