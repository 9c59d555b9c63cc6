"""Data structures describing the outcome of a purge request."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class PurgeOutcome(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class ErrorKind(str, Enum):
    """Reason a dispatched purge request failed."""

    TRANSPORT = "transport"
    API = "api"
    INTERNAL = "internal"


@dataclass(slots=True, frozen=True)
class PurgeResult:
    """Outcome of a single target handling a single purge or flush.

    ``url`` is the published URL, or ``*`` for flushes. ``reason`` explains a
    skip and ``detail`` describes a failure; both are empty for successes.
    """

    target: str
    url: str
    outcome: PurgeOutcome
    reason: str = ""
    error_kind: ErrorKind | None = None
    detail: str = ""
    status_code: int | None = None

    @classmethod
    def success(cls, target: str, url: str, *, status_code: int | None = None) -> "PurgeResult":
        return cls(target=target, url=url, outcome=PurgeOutcome.SUCCESS, status_code=status_code)

    @classmethod
    def skipped(cls, target: str, url: str, reason: str) -> "PurgeResult":
        return cls(target=target, url=url, outcome=PurgeOutcome.SKIPPED, reason=reason)

    @classmethod
    def failed(
        cls,
        target: str,
        url: str,
        error_kind: ErrorKind,
        detail: str,
        *,
        status_code: int | None = None,
    ) -> "PurgeResult":
        return cls(
            target=target,
            url=url,
            outcome=PurgeOutcome.FAILED,
            error_kind=error_kind,
            detail=detail,
            status_code=status_code,
        )

    @property
    def is_success(self) -> bool:
        return self.outcome is PurgeOutcome.SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.outcome is PurgeOutcome.FAILED

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly mapping of the result."""

        payload: dict[str, Any] = {
            "target": self.target,
            "url": self.url,
            "outcome": self.outcome.value,
        }
        if self.reason:
            payload["reason"] = self.reason
        if self.error_kind is not None:
            payload["error_kind"] = self.error_kind.value
        if self.detail:
            payload["detail"] = self.detail
        if self.status_code is not None:
            payload["status_code"] = self.status_code
        return payload
