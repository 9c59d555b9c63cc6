"""Runtime configuration for purge targets, loaded once from the environment."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import logging
import math
import os

LOGGER = logging.getLogger(__name__)

DEFAULT_PURGE_KEY_HEADER = "X-Purge-Key"
DEFAULT_CLOUDFLARE_API_BASE = "https://api.cloudflare.com/client/v4"
DEFAULT_CLOUDFLARE_TIMEOUT = 15.0


@dataclass(slots=True, frozen=True)
class PurgeSettings:
    """Explicit configuration shared by reference with every purge target.

    Empty strings mean "not configured". Targets translate missing values into skipped
    results rather than errors.
    """

    site_url: str = ""
    purge_path: str = ""
    purge_key: str = ""
    purge_key_header: str = DEFAULT_PURGE_KEY_HEADER
    local_timeout: float | None = None
    cloudflare_zone_id: str = ""
    cloudflare_api_token: str = ""
    cloudflare_api_base: str = DEFAULT_CLOUDFLARE_API_BASE
    cloudflare_timeout: float = DEFAULT_CLOUDFLARE_TIMEOUT
    hook_secret: str = ""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PurgeSettings":
        """Build settings from ``environ`` (defaults to :data:`os.environ`)."""

        env = os.environ if environ is None else environ
        return cls(
            site_url=_read(env, "SITE_URL"),
            purge_path=_read(env, "PURGE_PATH"),
            purge_key=_read(env, "PURGE_KEY"),
            purge_key_header=_read(env, "PURGE_KEY_HEADER") or DEFAULT_PURGE_KEY_HEADER,
            local_timeout=_read_timeout(env, "PURGE_LOCAL_TIMEOUT", None),
            cloudflare_zone_id=_read(env, "CLOUDFLARE_ZONE_ID"),
            cloudflare_api_token=_read(env, "CLOUDFLARE_API_TOKEN"),
            cloudflare_api_base=(_read(env, "CLOUDFLARE_API_BASE") or DEFAULT_CLOUDFLARE_API_BASE).rstrip("/"),
            cloudflare_timeout=_read_timeout(env, "CLOUDFLARE_TIMEOUT", DEFAULT_CLOUDFLARE_TIMEOUT),
            hook_secret=_read(env, "PURGE_HOOK_SECRET"),
        )

    @property
    def local_cache_configured(self) -> bool:
        return bool(self.purge_path)

    @property
    def cloudflare_configured(self) -> bool:
        return bool(self.cloudflare_zone_id and self.cloudflare_api_token)


def _read(env: Mapping[str, str], variable_name: str) -> str:
    value = env.get(variable_name)
    if value is None:
        return ""
    return str(value).strip()


def _read_timeout(env: Mapping[str, str], variable_name: str, default: float | None) -> float | None:
    """Return the timeout specified by ``variable_name``, falling back to ``default``."""

    raw_value = _read(env, variable_name)
    if not raw_value:
        return default

    try:
        timeout = float(raw_value)
    except ValueError:
        LOGGER.warning("Ignoring invalid timeout value in %s", variable_name)
        return default

    if not math.isfinite(timeout):
        LOGGER.warning("Ignoring non-finite timeout value in %s", variable_name)
        return default

    if timeout <= 0:
        LOGGER.warning("Ignoring non-positive timeout value in %s", variable_name)
        return default

    return timeout
