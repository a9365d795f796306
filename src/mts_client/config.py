"""
Environment-driven configuration.
"""

import os
from dataclasses import dataclass

from mts_client.errors import ValidationError

DEFAULT_BASE_URL = "https://api.mapbox.com"

ENV_ACCESS_TOKEN = "MAPBOX_ACCESS_TOKEN"
ENV_USERNAME = "MAPBOX_USERNAME"
ENV_BASE_URL = "MTS_API_BASE_URL"
ENV_TIMEOUT = "MTS_TIMEOUT"
ENV_LOG_LEVEL = "MTS_LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    """Client settings resolved from the environment."""

    access_token: str = ""
    username: str = ""
    base_url: str = DEFAULT_BASE_URL
    timeout: float | None = None
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Read settings from environment variables.

        Unset variables fall back to the defaults; an empty ``MTS_TIMEOUT``
        means no timeout.
        """
        timeout: float | None = None
        raw_timeout = os.environ.get(ENV_TIMEOUT, "").strip()
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError as e:
                raise ValidationError(
                    f"{ENV_TIMEOUT} must be a number of seconds, got {raw_timeout!r}"
                ) from e

        return cls(
            access_token=os.environ.get(ENV_ACCESS_TOKEN, ""),
            username=os.environ.get(ENV_USERNAME, ""),
            base_url=os.environ.get(ENV_BASE_URL) or DEFAULT_BASE_URL,
            timeout=timeout,
            log_level=os.environ.get(ENV_LOG_LEVEL) or "WARNING",
        )
