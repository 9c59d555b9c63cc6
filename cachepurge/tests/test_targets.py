from __future__ import annotations

from dataclasses import replace
import json

import httpx
import pytest

from cachepurge.models.purge import ErrorKind, PurgeOutcome
from cachepurge.services.config import PurgeSettings
from cachepurge.services import targets as targets_module
from cachepurge.services.targets import (
    FLUSH_ALL,
    CloudflareTarget,
    LocalCacheTarget,
    build_targets,
)
from cachepurge.tests.http_stubs import RecordingTransport, raise_error, respond_with


# ----------------------------------------------------------------------
# Local cache
# ----------------------------------------------------------------------
def test_local_purge_url_concatenates_site_path_and_trailing_slash(settings: PurgeSettings) -> None:
    target = LocalCacheTarget(settings, client=httpx.Client())

    assert target.purge_url("https://ex.com/post-1") == "https://ex.com/purge/post-1/"


def test_local_purge_posts_with_purge_key_header(settings: PurgeSettings) -> None:
    transport = RecordingTransport(respond_with(200, text="OK"))
    target = LocalCacheTarget(settings, client=transport.client())

    result = target.purge("https://ex.com/post-1")

    assert result.outcome is PurgeOutcome.SUCCESS
    assert result.target == "local_cache"
    assert result.url == "https://ex.com/post-1"
    assert result.status_code == 200

    [request] = transport.requests
    assert request.method == "POST"
    assert str(request.url) == "https://ex.com/purge/post-1/"
    assert request.headers["X-Purge-Key"] == "local-secret"
    assert request.extensions["timeout"]["read"] is None


def test_local_purge_ignores_response_status(settings: PurgeSettings) -> None:
    transport = RecordingTransport(respond_with(500, text="boom"))
    target = LocalCacheTarget(settings, client=transport.client())

    result = target.purge("https://ex.com/post-1")

    assert result.is_success
    assert result.status_code == 500


def test_local_purge_uses_custom_header_and_timeout(settings: PurgeSettings) -> None:
    configured = replace(settings, purge_key_header="X-WPSidekick-Purge-Key", local_timeout=3.0)
    transport = RecordingTransport(respond_with(200))
    target = LocalCacheTarget(configured, client=transport.client())

    target.purge("https://ex.com/post-1")

    [request] = transport.requests
    assert request.headers["X-WPSidekick-Purge-Key"] == "local-secret"
    assert "X-Purge-Key" not in request.headers
    assert request.extensions["timeout"]["read"] == 3.0


def test_local_purge_omits_header_without_key(settings: PurgeSettings) -> None:
    transport = RecordingTransport(respond_with(200))
    target = LocalCacheTarget(replace(settings, purge_key=""), client=transport.client())

    target.purge("https://ex.com/post-1")

    assert "X-Purge-Key" not in transport.requests[0].headers


def test_local_purge_falls_back_to_published_url_origin(settings: PurgeSettings) -> None:
    transport = RecordingTransport(respond_with(200))
    target = LocalCacheTarget(replace(settings, site_url=""), client=transport.client())

    result = target.purge("https://blog.ex.com/news/post-1/")

    assert result.is_success
    assert str(transport.requests[0].url) == "https://blog.ex.com/purge/news/post-1/"


def test_local_purge_skips_without_purge_path(settings: PurgeSettings) -> None:
    transport = RecordingTransport(respond_with(200))
    target = LocalCacheTarget(replace(settings, purge_path=""), client=transport.client())

    result = target.purge("https://ex.com/post-1")

    assert result.outcome is PurgeOutcome.SKIPPED
    assert "PURGE_PATH" in result.reason
    assert result.error_kind is None
    assert transport.requests == []


def test_local_purge_skips_relative_url_without_site_url(settings: PurgeSettings) -> None:
    transport = RecordingTransport(respond_with(200))
    target = LocalCacheTarget(replace(settings, site_url=""), client=transport.client())

    result = target.purge("/post-1")

    assert result.outcome is PurgeOutcome.SKIPPED
    assert transport.requests == []


def test_local_purge_reports_transport_errors(settings: PurgeSettings) -> None:
    transport = RecordingTransport(raise_error(httpx.ConnectError, "Name or service not known"))
    target = LocalCacheTarget(settings, client=transport.client())

    result = target.purge("https://ex.com/post-1")

    assert result.outcome is PurgeOutcome.FAILED
    assert result.error_kind is ErrorKind.TRANSPORT
    assert "Name or service not known" in result.detail


def test_local_flush_posts_to_bare_purge_path(settings: PurgeSettings) -> None:
    transport = RecordingTransport(respond_with(200))
    target = LocalCacheTarget(settings, client=transport.client())

    result = target.flush()

    assert result.is_success
    assert result.url == FLUSH_ALL
    assert str(transport.requests[0].url) == "https://ex.com/purge/"


def test_local_flush_requires_site_url(settings: PurgeSettings) -> None:
    transport = RecordingTransport(respond_with(200))
    target = LocalCacheTarget(replace(settings, site_url=""), client=transport.client())

    result = target.flush()

    assert result.outcome is PurgeOutcome.SKIPPED
    assert "SITE_URL" in result.reason
    assert transport.requests == []


# ----------------------------------------------------------------------
# Cloudflare
# ----------------------------------------------------------------------
def test_cloudflare_success(settings: PurgeSettings) -> None:
    transport = RecordingTransport(respond_with(200, json={"success": True, "errors": [], "result": {"id": "x"}}))
    target = CloudflareTarget(settings, client=transport.client())

    result = target.purge("https://ex.com/post-1")

    assert result.outcome is PurgeOutcome.SUCCESS
    assert result.target == "cloudflare"

    [request] = transport.requests
    assert request.method == "POST"
    assert str(request.url) == "https://api.cloudflare.com/client/v4/zones/zone-123/purge_cache"
    assert request.headers["Authorization"] == "Bearer cf-token"
    assert json.loads(request.content) == {"files": ["https://ex.com/post-1"]}
    assert request.extensions["timeout"]["read"] == 15.0


def test_cloudflare_api_failure_includes_errors(settings: PurgeSettings) -> None:
    errors = [{"code": 1012, "message": "Request must contain one of files"}]
    transport = RecordingTransport(respond_with(200, json={"success": False, "errors": errors}))
    target = CloudflareTarget(settings, client=transport.client())

    result = target.purge("https://ex.com/post-1")

    assert result.outcome is PurgeOutcome.FAILED
    assert result.error_kind is ErrorKind.API
    assert json.dumps(errors) in result.detail
    assert result.status_code == 200


def test_cloudflare_non_200_is_api_failure(settings: PurgeSettings) -> None:
    transport = RecordingTransport(
        respond_with(403, json={"success": True, "errors": [{"code": 10000, "message": "Authentication error"}]})
    )
    target = CloudflareTarget(settings, client=transport.client())

    result = target.purge("https://ex.com/post-1")

    assert result.error_kind is ErrorKind.API
    assert result.status_code == 403
    assert "Authentication error" in result.detail


def test_cloudflare_unparseable_body_is_api_failure(settings: PurgeSettings) -> None:
    transport = RecordingTransport(respond_with(200, text="<html>gateway</html>"))
    target = CloudflareTarget(settings, client=transport.client())

    result = target.purge("https://ex.com/post-1")

    assert result.error_kind is ErrorKind.API
    assert "not a JSON object" in result.detail


def test_cloudflare_transport_error(settings: PurgeSettings) -> None:
    transport = RecordingTransport(raise_error(httpx.ConnectError, "DNS resolution failed"))
    target = CloudflareTarget(settings, client=transport.client())

    result = target.purge("https://ex.com/post-1")

    assert result.outcome is PurgeOutcome.FAILED
    assert result.error_kind is ErrorKind.TRANSPORT
    assert "DNS resolution failed" in result.detail


@pytest.mark.parametrize(
    "overrides",
    [{"cloudflare_zone_id": ""}, {"cloudflare_api_token": ""}, {"cloudflare_zone_id": "", "cloudflare_api_token": ""}],
)
def test_cloudflare_skips_without_credentials(settings: PurgeSettings, overrides: dict[str, str]) -> None:
    transport = RecordingTransport(respond_with(200, json={"success": True}))
    target = CloudflareTarget(replace(settings, **overrides), client=transport.client())

    result = target.purge("https://ex.com/post-1")

    assert result.outcome is PurgeOutcome.SKIPPED
    assert transport.requests == []


def test_cloudflare_flush_purges_everything(settings: PurgeSettings) -> None:
    transport = RecordingTransport(respond_with(200, json={"success": True}))
    target = CloudflareTarget(settings, client=transport.client())

    result = target.flush()

    assert result.is_success
    assert json.loads(transport.requests[0].content) == {"purge_everything": True}


def test_build_targets_returns_local_then_cloudflare(settings: PurgeSettings) -> None:
    targets = build_targets(settings, local_client=httpx.Client(), cloudflare_client=httpx.Client())

    assert [target.name for target in targets] == ["local_cache", "cloudflare"]


# ----------------------------------------------------------------------
# Client ownership
# ----------------------------------------------------------------------
class _RecordingClient:
    """Stand-in for ``httpx.Client`` that records how targets construct it."""

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.closed = False

    def close(self) -> None:
        self.closed = True


def test_local_target_owns_client_without_certificate_verification(
    settings: PurgeSettings, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(targets_module.httpx, "Client", _RecordingClient)

    target = LocalCacheTarget(replace(settings, local_timeout=4.0))
    client = target._client

    assert isinstance(client, _RecordingClient)
    assert client.kwargs == {"verify": False, "timeout": 4.0}

    target.close()

    assert client.closed


def test_cloudflare_target_owns_client_with_verification(
    settings: PurgeSettings, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(targets_module.httpx, "Client", _RecordingClient)

    target = CloudflareTarget(settings)
    client = target._client

    assert "verify" not in client.kwargs
    assert client.kwargs["timeout"] == 15.0

    target.close()

    assert client.closed


def test_close_leaves_injected_clients_open(settings: PurgeSettings) -> None:
    local_client = httpx.Client()
    cloudflare_client = httpx.Client()
    targets = build_targets(settings, local_client=local_client, cloudflare_client=cloudflare_client)

    for target in targets:
        target.close()

    assert not local_client.is_closed
    assert not cloudflare_client.is_closed
    local_client.close()
    cloudflare_client.close()
