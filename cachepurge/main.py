"""FastAPI webhook receiver that turns host content events into cache purges."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache
import hmac
import logging

from fastapi import Depends, FastAPI, Header, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from cachepurge.models.events import FlushEvent, PublishEvent
from cachepurge.services.config import PurgeSettings
from cachepurge.services.dispatcher import PurgeDispatcher


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    # Only close a dispatcher that was actually built.
    if _cached_dispatcher.cache_info().currsize:
        _cached_dispatcher().close()
        _cached_dispatcher.cache_clear()


app = FastAPI(title="Cache Purge Hooks", lifespan=lifespan)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_settings() -> PurgeSettings:
    """Load settings once per process."""

    return PurgeSettings.from_env()


@lru_cache(maxsize=1)
def _cached_dispatcher() -> PurgeDispatcher:
    return PurgeDispatcher.from_settings(get_settings())


def get_dispatcher() -> PurgeDispatcher:
    """FastAPI dependency returning the shared dispatcher."""

    return _cached_dispatcher()


def require_hook_secret(
    settings: PurgeSettings = Depends(get_settings),
    x_hook_secret: str | None = Header(default=None),
) -> None:
    """Reject hook calls that do not present the configured shared secret."""

    if not settings.hook_secret:
        return
    if x_hook_secret is None or not hmac.compare_digest(
        x_hook_secret.encode("utf-8"), settings.hook_secret.encode("utf-8")
    ):
        logger.warning("Rejected hook call with invalid secret", extra={"event": "hook.unauthorized"})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid hook secret")


class PublishHookRequest(BaseModel):
    """Payload sent by the host when content is published."""

    content_id: str | int = Field(..., description="Host identifier of the published content.")
    url: str = Field(..., description="Canonical URL of the published content.")

    @field_validator("url")
    @classmethod
    def _ensure_url_not_empty(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("URL must not be empty.")
        return cleaned

    def to_event(self) -> PublishEvent:
        return PublishEvent(content_id=self.content_id, canonical_url=self.url)


class FlushHookRequest(BaseModel):
    reason: str = Field("", description="Free-form note recorded in the logs.")


class HookAccepted(BaseModel):
    accepted: bool = True


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.post(
    "/hooks/publish",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=HookAccepted,
    dependencies=[Depends(require_hook_secret)],
)
def publish_hook(
    payload: PublishHookRequest,
    dispatcher: PurgeDispatcher = Depends(get_dispatcher),
) -> HookAccepted:
    """Purge the published URL; the response never depends on purge outcomes."""

    logger.info(
        "Publish hook received for content %s",
        payload.content_id,
        extra={"event": "hook.publish"},
    )
    dispatcher.on_publish(payload.to_event())
    return HookAccepted()


@app.post(
    "/hooks/flush",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=HookAccepted,
    dependencies=[Depends(require_hook_secret)],
)
def flush_hook(
    payload: FlushHookRequest | None = None,
    dispatcher: PurgeDispatcher = Depends(get_dispatcher),
) -> HookAccepted:
    reason = payload.reason if payload is not None else ""
    logger.info("Flush hook received", extra={"event": "hook.flush"})
    dispatcher.on_flush(FlushEvent(reason=reason))
    return HookAccepted()
