"""Helpers for turning published permalinks into purge paths."""
from __future__ import annotations

import re
from urllib.parse import urlsplit


_ABSOLUTE_PREFIX_RE = re.compile(r"^(?:https?:)?//[^/]+", re.IGNORECASE)


def make_link_relative(url: str) -> str:
    """Strip the scheme and host from ``url``, keeping path, query and fragment.

    ``https://ex.com/post-1?p=2`` becomes ``/post-1?p=2``; a bare host becomes an empty
    string and already-relative links are returned unchanged.
    """

    if not isinstance(url, str):
        return ""
    return _ABSOLUTE_PREFIX_RE.sub("", url.strip(), count=1)


def site_origin(url: str) -> str:
    """Return ``scheme://host[:port]`` for ``url`` or an empty string when it is relative."""

    parsed = urlsplit((url or "").strip())
    if not parsed.scheme or not parsed.netloc:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}"


def join_purge_url(site_url: str, purge_path: str, relative_path: str) -> str:
    """Concatenate the purge endpoint for ``relative_path``, always ending in a slash."""

    path = f"{purge_path}{relative_path}"
    if not path.endswith("/"):
        path = f"{path}/"
    return f"{site_url.rstrip('/')}{path}"
