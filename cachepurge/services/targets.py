"""Purge targets: one class per cache layer that can evict a published URL."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import httpx

from cachepurge.models.purge import ErrorKind, PurgeResult
from cachepurge.services.config import PurgeSettings
from cachepurge.utils.urls import join_purge_url, make_link_relative, site_origin

LOGGER = logging.getLogger(__name__)

FLUSH_ALL = "*"


class PurgeTarget(Protocol):
    """Contract implemented by every purge destination."""

    name: str

    def purge(self, url: str) -> PurgeResult:
        """Evict ``url`` from the cache layer."""

    def flush(self) -> PurgeResult:
        """Evict everything the cache layer holds."""

    def close(self) -> None:
        """Release network resources."""


class HTTPPurgeTarget:
    """Shared request/response flow for targets reached over HTTP.

    Subclasses provide the configuration check, the request builders and the response
    classifier. Each purge is terminal in one hop: a missing setting yields a skipped
    result, otherwise exactly one request is sent and classified. There are no retries.
    """

    name = "http"

    def __init__(self, settings: PurgeSettings, *, client: httpx.Client | None = None) -> None:
        self._settings = settings
        self._owns_client = client is None
        self._client = client or self._create_client()

    def purge(self, url: str) -> PurgeResult:
        missing = self.missing_configuration(url)
        if missing:
            return PurgeResult.skipped(self.name, url, missing)
        return self._dispatch(url, self.build_request(url))

    def flush(self) -> PurgeResult:
        missing = self.missing_flush_configuration()
        if missing:
            return PurgeResult.skipped(self.name, FLUSH_ALL, missing)
        return self._dispatch(FLUSH_ALL, self.build_flush_request())

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # ------------------------------------------------------------------
    # Hooks for subclasses
    # ------------------------------------------------------------------
    def missing_configuration(self, url: str) -> str | None:
        """Return a reason to skip ``url`` or ``None`` when the target is configured."""

        raise NotImplementedError

    def missing_flush_configuration(self) -> str | None:
        raise NotImplementedError

    def build_request(self, url: str) -> httpx.Request:
        raise NotImplementedError

    def build_flush_request(self) -> httpx.Request:
        raise NotImplementedError

    def classify_response(self, url: str, response: httpx.Response) -> PurgeResult:
        raise NotImplementedError

    def _create_client(self) -> httpx.Client:
        return httpx.Client()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _dispatch(self, url: str, request: httpx.Request) -> PurgeResult:
        LOGGER.debug("Dispatching %s purge for %s", self.name, url, extra={"event": "purge.dispatch"})
        try:
            response = self._client.send(request)
        except httpx.RequestError as exc:
            return PurgeResult.failed(self.name, url, ErrorKind.TRANSPORT, f"{type(exc).__name__}: {exc}")

        try:
            return self.classify_response(url, response)
        finally:
            response.close()


class LocalCacheTarget(HTTPPurgeTarget):
    """Purge the local reverse-proxy page cache through its purge path.

    The cache sits on trusted local infrastructure, so certificate verification is
    disabled. Only transport failures count as errors; the response is not inspected.
    """

    name = "local_cache"

    def missing_configuration(self, url: str) -> str | None:
        if not self._settings.purge_path:
            return "PURGE_PATH is not configured"
        if not self._site_url(url):
            return "SITE_URL is not configured and the published URL has no host"
        return None

    def missing_flush_configuration(self) -> str | None:
        if not self._settings.purge_path:
            return "PURGE_PATH is not configured"
        if not self._settings.site_url:
            return "SITE_URL is not configured"
        return None

    def purge_url(self, url: str) -> str:
        """Return the cache endpoint that evicts ``url``."""

        return join_purge_url(self._site_url(url), self._settings.purge_path, make_link_relative(url))

    def build_request(self, url: str) -> httpx.Request:
        return self._post(self.purge_url(url))

    def build_flush_request(self) -> httpx.Request:
        # A purge path with nothing after it tells the cache to drop every entry.
        return self._post(join_purge_url(self._settings.site_url, self._settings.purge_path, ""))

    def classify_response(self, url: str, response: httpx.Response) -> PurgeResult:
        return PurgeResult.success(self.name, url, status_code=response.status_code)

    def _create_client(self) -> httpx.Client:
        return httpx.Client(verify=False, timeout=self._settings.local_timeout)

    def _site_url(self, url: str) -> str:
        return self._settings.site_url or site_origin(url)

    def _post(self, endpoint: str) -> httpx.Request:
        headers: dict[str, str] = {}
        if self._settings.purge_key:
            headers[self._settings.purge_key_header] = self._settings.purge_key
        return self._client.build_request(
            "POST",
            endpoint,
            headers=headers,
            timeout=self._settings.local_timeout,
        )


class CloudflareTarget(HTTPPurgeTarget):
    """Purge Cloudflare's edge cache through the zone ``purge_cache`` API."""

    name = "cloudflare"

    def missing_configuration(self, url: str) -> str | None:
        return self.missing_flush_configuration()

    def missing_flush_configuration(self) -> str | None:
        if not self._settings.cloudflare_zone_id:
            return "CLOUDFLARE_ZONE_ID is not configured"
        if not self._settings.cloudflare_api_token:
            return "CLOUDFLARE_API_TOKEN is not configured"
        return None

    @property
    def endpoint(self) -> str:
        return f"{self._settings.cloudflare_api_base}/zones/{self._settings.cloudflare_zone_id}/purge_cache"

    def build_request(self, url: str) -> httpx.Request:
        return self._post({"files": [url]})

    def build_flush_request(self) -> httpx.Request:
        return self._post({"purge_everything": True})

    def classify_response(self, url: str, response: httpx.Response) -> PurgeResult:
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code != 200 or not isinstance(payload, dict) or payload.get("success") is not True:
            return PurgeResult.failed(
                self.name,
                url,
                ErrorKind.API,
                _describe_api_error(response, payload),
                status_code=response.status_code,
            )

        return PurgeResult.success(self.name, url, status_code=response.status_code)

    def _create_client(self) -> httpx.Client:
        return httpx.Client(timeout=self._settings.cloudflare_timeout)

    def _post(self, body: dict[str, Any]) -> httpx.Request:
        return self._client.build_request(
            "POST",
            self.endpoint,
            headers={"Authorization": f"Bearer {self._settings.cloudflare_api_token}"},
            json=body,
            timeout=self._settings.cloudflare_timeout,
        )


def build_targets(
    settings: PurgeSettings,
    *,
    local_client: httpx.Client | None = None,
    cloudflare_client: httpx.Client | None = None,
) -> list[PurgeTarget]:
    """Return every known target; unconfigured ones skip themselves at purge time."""

    return [
        LocalCacheTarget(settings, client=local_client),
        CloudflareTarget(settings, client=cloudflare_client),
    ]


def _describe_api_error(response: httpx.Response, payload: Any) -> str:
    """Summarise a rejected Cloudflare call, including its ``errors`` field when present."""

    if not isinstance(payload, dict):
        return f"HTTP {response.status_code}: response body is not a JSON object"

    detail = f"HTTP {response.status_code}: success={json.dumps(payload.get('success'))}"
    if "errors" in payload:
        detail = f"{detail} errors={json.dumps(payload['errors'], ensure_ascii=False)}"
    return detail
