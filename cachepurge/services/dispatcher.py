"""Fan publish events out to purge targets and log every outcome."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
import logging
from typing import Any

from cachepurge.models.events import FlushEvent, PublishEvent
from cachepurge.models.purge import ErrorKind, PurgeOutcome, PurgeResult
from cachepurge.services.config import PurgeSettings
from cachepurge.services.targets import FLUSH_ALL, PurgeTarget, build_targets

LOGGER = logging.getLogger(__name__)


ResultSink = Callable[[PurgeResult], None]
EventHandler = Callable[[Any], None]


def log_result(result: PurgeResult) -> None:
    """Default sink: write one log record per purge outcome."""

    if result.outcome is PurgeOutcome.SUCCESS:
        LOGGER.info(
            "Purged %s from %s (status=%s)",
            result.url,
            result.target,
            result.status_code,
            extra={"event": "purge.success"},
        )
    elif result.outcome is PurgeOutcome.SKIPPED:
        LOGGER.info(
            "Skipped %s purge for %s: %s",
            result.target,
            result.url,
            result.reason,
            extra={"event": "purge.skipped"},
        )
    else:
        LOGGER.warning(
            "Failed to purge %s from %s (%s): %s",
            result.url,
            result.target,
            result.error_kind.value if result.error_kind else "unknown",
            result.detail,
            extra={"event": "purge.failed"},
        )


class PurgeDispatcher:
    """Invoke each configured target independently for every publish event.

    Targets share no state. A target that fails, or raises, never prevents the remaining
    targets from running, and nothing propagates back to the host that raised the event.
    """

    def __init__(self, targets: Iterable[PurgeTarget], *, sink: ResultSink | None = None) -> None:
        self._targets = list(targets)
        self._sink = sink or log_result

    @classmethod
    def from_settings(cls, settings: PurgeSettings, *, sink: ResultSink | None = None) -> "PurgeDispatcher":
        return cls(build_targets(settings), sink=sink)

    @property
    def targets(self) -> list[PurgeTarget]:
        return list(self._targets)

    def on_publish(self, event: PublishEvent) -> None:
        """Host-facing entry point; outcomes are only logged."""

        self.dispatch(event)

    def on_flush(self, event: FlushEvent) -> None:
        self.flush(event)

    def dispatch(self, event: PublishEvent) -> list[PurgeResult]:
        """Purge ``event.canonical_url`` from every target and return the results."""

        LOGGER.debug(
            "Dispatching purge for content %s at %s",
            event.content_id,
            event.canonical_url,
            extra={"event": "purge.publish"},
        )
        url = event.canonical_url
        return [self._run(target, url, target.purge, url) for target in self._targets]

    def flush(self, event: FlushEvent | None = None) -> list[PurgeResult]:
        """Ask every target to drop all cached content."""

        reason = event.reason if event is not None else ""
        LOGGER.info("Flushing all purge targets%s", f": {reason}" if reason else "", extra={"event": "purge.flush"})
        return [self._run(target, FLUSH_ALL, target.flush) for target in self._targets]

    def register(self, bus: "EventBus") -> None:
        """Subscribe this dispatcher to the events it handles."""

        bus.subscribe(PublishEvent, self.on_publish)
        bus.subscribe(FlushEvent, self.on_flush)

    def close(self) -> None:
        for target in self._targets:
            try:
                target.close()
            except Exception:  # pragma: no cover - defensive guard
                LOGGER.exception("Failed to close purge target %s", getattr(target, "name", target))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _run(self, target: PurgeTarget, url: str, call: Callable[..., PurgeResult], *args: Any) -> PurgeResult:
        name = getattr(target, "name", type(target).__name__)
        try:
            result = call(*args)
        except Exception as exc:
            LOGGER.exception("Purge target %s raised while handling %s", name, url)
            result = PurgeResult.failed(name, url, ErrorKind.INTERNAL, f"{type(exc).__name__}: {exc}")

        self._emit(result)
        return result

    def _emit(self, result: PurgeResult) -> None:
        try:
            self._sink(result)
        except Exception:
            LOGGER.exception("Purge result sink raised for %s", result.target)


class EventBus:
    """Typed publish/subscribe registry standing in for host event callbacks."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, event: Any) -> None:
        """Deliver ``event`` to its handlers in registration order.

        Handler errors are logged and swallowed so the publishing action always completes.
        """

        for handler in list(self._handlers.get(type(event), ())):
            try:
                handler(event)
            except Exception:
                LOGGER.exception(
                    "Handler %r failed for %s",
                    handler,
                    type(event).__name__,
                    extra={"event": "bus.handler_failed"},
                )
