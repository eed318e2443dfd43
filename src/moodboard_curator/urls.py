"""Hostname helpers shared by filtering, scoring and selection."""

from __future__ import annotations

from urllib.parse import urlparse


def normalize_host(value: str) -> str:
    """Lower-case a hostname and strip a leading ``www.``.

    Accepts either a bare hostname or a full URL; returns ``""`` when nothing
    usable is left.
    """
    raw = str(value or "").strip().lower()
    if "://" in raw:
        try:
            raw = urlparse(raw).hostname or ""
        except ValueError:
            return ""
    raw = raw.rstrip(".")
    if raw.startswith("www."):
        raw = raw[4:]
    return raw


def host_from_url(url: str) -> str:
    try:
        parsed = urlparse(str(url or "").strip())
        hostname = parsed.hostname
    except ValueError:
        return ""
    if parsed.scheme not in {"http", "https"} or not hostname:
        return ""
    return normalize_host(hostname)


def host_matches(host: str, domain: str) -> bool:
    """True when ``host`` is ``domain`` or one of its subdomains."""
    if not host or not domain:
        return False
    return host == domain or host.endswith("." + domain)


def path_segments(url: str) -> list[str]:
    try:
        path = urlparse(str(url or "")).path
    except ValueError:
        return []
    return [segment for segment in path.lower().split("/") if segment]
