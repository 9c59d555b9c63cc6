"""Domain events raised by the host when content changes."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class PublishEvent:
    """Content identified by ``content_id`` was published at ``canonical_url``."""

    content_id: str | int
    canonical_url: str


@dataclass(slots=True, frozen=True)
class FlushEvent:
    """Request that every target drops all of its cached content."""

    reason: str = ""
