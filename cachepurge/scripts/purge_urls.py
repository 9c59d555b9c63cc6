"""Purge published URLs (or flush everything) from the configured cache targets.

Useful for purging by hand after a deploy, or for wiring into hosts that can run a
command but cannot call the webhook. Configuration comes from the same environment
variables as the webhook service; see ``cachepurge.services.config``.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Sequence

from cachepurge.models.events import FlushEvent, PublishEvent
from cachepurge.models.purge import PurgeResult
from cachepurge.services.config import PurgeSettings
from cachepurge.services.dispatcher import PurgeDispatcher

LOGGER = logging.getLogger("cachepurge.cli")


def _configure_logging() -> None:
    level_name = os.getenv("PURGE_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Purge URLs from the local cache and Cloudflare.")
    parser.add_argument("urls", nargs="*", help="Canonical URLs to purge.")
    parser.add_argument(
        "--content-id",
        default="cli",
        help="Identifier recorded in the logs for each purge (default: 'cli').",
    )
    parser.add_argument(
        "--all",
        dest="flush",
        action="store_true",
        help="Flush every cached entry instead of purging specific URLs.",
    )
    args = parser.parse_args(argv)
    if not args.urls and not args.flush:
        parser.error("provide at least one URL or --all")
    return args


def main(argv: Sequence[str] | None = None, *, dispatcher: PurgeDispatcher | None = None) -> int:
    _configure_logging()
    args = _parse_args(argv)

    owns_dispatcher = dispatcher is None
    dispatcher = dispatcher or PurgeDispatcher.from_settings(PurgeSettings.from_env())

    results: list[PurgeResult] = []
    try:
        if args.flush:
            results.extend(dispatcher.flush(FlushEvent(reason="manual flush from CLI")))
        for url in args.urls:
            results.extend(dispatcher.dispatch(PublishEvent(content_id=args.content_id, canonical_url=url)))
    finally:
        if owns_dispatcher:
            dispatcher.close()

    for result in results:
        print(json.dumps(result.to_dict(), ensure_ascii=False))

    failures = [result for result in results if result.is_failure]
    if failures:
        LOGGER.error("%d purge request(s) failed", len(failures))
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
