"""Per-request records flowing through the curation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

Category = Literal["tops", "bottoms", "outerwear", "shoes", "accessories", "other"]

CATEGORIES: tuple[Category, ...] = ("tops", "bottoms", "outerwear", "shoes", "accessories", "other")


@dataclass(frozen=True)
class RawHit:
    """One image result as returned by the search provider, before any filtering."""

    image_link: str
    context_link: str
    title: str
    thumbnail_link: str | None = None

    @classmethod
    def from_item(cls, item: Any) -> "RawHit":
        if not isinstance(item, dict):
            return cls(image_link="", context_link="", title="")
        image = item.get("image") if isinstance(item.get("image"), dict) else {}
        thumbnail = str(image.get("thumbnailLink") or "").strip()
        return cls(
            image_link=str(item.get("link") or "").strip(),
            context_link=str(image.get("contextLink") or "").strip(),
            title=str(item.get("title") or "").strip(),
            thumbnail_link=thumbnail or None,
        )


@dataclass
class Candidate:
    title: str
    source_link: str
    image_link: str
    host: str
    origin_query: str
    thumbnail_link: str | None = None
    score: int = 0
    category: Category = "other"

    @property
    def dedupe_key(self) -> str:
        return f"{self.source_link}{self.image_link}"


@dataclass(frozen=True)
class ImageResult:
    image_url: str
    source_url: str
    title: str
    provider: str
    score: int
    query: str
    category: Category
    thumbnail_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "imageUrl": self.image_url,
            "thumbnailUrl": self.thumbnail_url,
            "sourceUrl": self.source_url,
            "title": self.title,
            "provider": self.provider,
            "score": self.score,
            "query": self.query,
            "category": self.category,
        }


@dataclass(frozen=True)
class QueryPlan:
    queries: list[str]
    source: str
