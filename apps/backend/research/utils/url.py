"""URL and domain normalization shared by every research component."""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit


def _ensure_absolute(url: str) -> str:
    url = (url or "").strip()
    if not url:
        return ""
    if url.startswith("//"):
        return f"https:{url}"
    if "://" not in url:
        return f"https://{url}"
    return url


def normalize_domain(url_or_host: str) -> str:
    """Hostname, lowercased, with protocol, port and a single leading "www." removed.

    Accepts either a full URL or a bare host, so the same function serves
    provider results, directory websites and model-suggested domains.

        >>> normalize_domain("https://WWW.Example.com/path")
        'example.com'
        >>> normalize_domain("example.com")
        'example.com'
    """
    absolute = _ensure_absolute(url_or_host)
    if not absolute:
        return ""
    try:
        host = urlsplit(absolute).hostname or ""
    except ValueError:
        return ""
    host = host.lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return host


def dedup_key(url: str) -> str:
    """Key used to collapse duplicate results within a single run."""
    return (url or "").strip().lower().rstrip("/")


def _resource_key(url: str) -> str:
    stripped = (url or "").strip().rstrip("/")
    try:
        parts = urlsplit(stripped)
    except ValueError:
        return stripped
    if not parts.scheme or not parts.netloc:
        return stripped
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, parts.query, parts.fragment))


def same_resource(first: str, second: str) -> bool:
    """True when two URLs name the same resource.

    Only scheme and host are case-insensitive; paths and query strings are
    compared exactly, since image hosts often treat them as case-sensitive.
    """
    if not first or not second:
        return False
    return _resource_key(first) == _resource_key(second)


__all__ = ["normalize_domain", "dedup_key", "same_resource"]
