"""Shared fixtures for the test suite."""

from __future__ import annotations

import pytest

from cachepurge.services.config import PurgeSettings


@pytest.fixture()
def settings() -> PurgeSettings:
    """Fully configured settings for both targets."""

    return PurgeSettings(
        site_url="https://ex.com",
        purge_path="/purge",
        purge_key="local-secret",
        cloudflare_zone_id="zone-123",
        cloudflare_api_token="cf-token",
    )
