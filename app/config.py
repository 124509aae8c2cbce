"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior settings for external connectors.
    """

    timeout_seconds: float = 30.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    rate_limit_per_second: float = 5.0


@dataclass(frozen=True)
class NFSeAPISettings:
    """
    Municipal NFS-e API connector settings.
    """

    base_url: str = "https://api.nfse.example.gov.br/v1"
    documents_path: str = "/nfse"


@dataclass(frozen=True)
class NFSeSchedulerSettings:
    """
    Runtime settings for the automatic NFS-e fetch scheduler.

    interval is kept as the raw duration string (e.g. "1h", "15m"); it is
    parsed when the scheduler starts so a bad value fails startup.
    """

    enabled: bool = True
    interval: str = "1h"
    fetch_days_back: int = 30
    max_pages_per_run: int = 10
    api_delay_seconds: int = 2


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return shared connector HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 30.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        rate_limit_per_second=max(0.1, _get_float_env("EXTERNAL_HTTP_RATE_LIMIT_PER_SECOND", 5.0)),
    )


@lru_cache(maxsize=1)
def get_nfse_api_settings() -> NFSeAPISettings:
    """
    Return NFS-e connector settings from environment variables.
    """

    return NFSeAPISettings(
        base_url=_get_str_env("NFSE_API_BASE_URL", "https://api.nfse.example.gov.br/v1").rstrip("/"),
        documents_path=_get_str_env("NFSE_API_DOCUMENTS_PATH", "/nfse"),
    )


@lru_cache(maxsize=1)
def get_nfse_scheduler_settings() -> NFSeSchedulerSettings:
    """
    Return NFS-e scheduler settings from environment variables.
    """

    return NFSeSchedulerSettings(
        enabled=_get_bool_env("NFSE_SCHEDULER_ENABLED", True),
        interval=_get_str_env("NFSE_SCHEDULER_INTERVAL", "1h"),
        fetch_days_back=max(1, _get_int_env("NFSE_SCHEDULER_FETCH_DAYS_BACK", 30)),
        max_pages_per_run=max(1, _get_int_env("NFSE_SCHEDULER_MAX_PAGES_PER_RUN", 10)),
        api_delay_seconds=max(0, _get_int_env("NFSE_SCHEDULER_API_DELAY_SECONDS", 2)),
    )
