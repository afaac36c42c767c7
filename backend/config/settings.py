"""
Config — override domain constants from environment variables.
Call init_settings() once at application startup, after load_dotenv().
"""

import os

from domain import constants

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str) -> bool | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value.strip().lower() in _TRUTHY


def _env_float(name: str) -> float | None:
    value = os.getenv(name)
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def init_settings() -> None:
    """Override domain constants from environment. Call once at startup."""
    base_url = os.getenv("BCRA_API_BASE_URL")
    if base_url:
        constants.BCRA_API_BASE_URL = base_url.rstrip("/")

    verify_tls = _env_bool("BCRA_VERIFY_TLS")
    if verify_tls is not None:
        constants.BCRA_VERIFY_TLS = verify_tls

    warming_enabled = _env_bool("CACHE_WARMING_ENABLED")
    if warming_enabled is not None:
        constants.CACHE_WARMING_ENABLED = warming_enabled

    interval = _env_float("CACHE_WARMING_INTERVAL_SECONDS")
    if interval is not None:
        constants.CACHE_WARMING_INTERVAL_SECONDS = interval

    delay = _env_float("CACHE_WARMING_INITIAL_DELAY_SECONDS")
    if delay is not None:
        constants.CACHE_WARMING_INITIAL_DELAY_SECONDS = delay

    origins = os.getenv("CORS_ALLOW_ORIGIN")
    if origins:
        constants.CORS_ALLOW_ORIGINS = origins
