"""
app/connectors/base.py

Shared HTTP mechanics for document source connectors.

Connectors issue authenticated GET requests that return one JSON page of
documents. Transient failures (throttling, gateway errors, timeouts, dropped
connections) are retried with exponential backoff; a ``Retry-After`` header
sent with a 429 or 503 takes precedence over the computed backoff.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import requests

from app.config import ExternalHTTPSettings
from app.domain.nfse import CredentialRef, NFSePageResult

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
MAX_RETRY_AFTER_SECONDS = 60.0


class ConnectorRequestError(RuntimeError):
    """
    Raised when a page cannot be fetched: retries exhausted, a non-retryable
    HTTP status, or a body that is not JSON.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BaseConnector(ABC):
    """
    Base class for paginated document sources.

    Subclasses set ``page_size`` and implement ``fetch_page``; they call
    ``_get_json`` for the HTTP round trip.
    """

    source: str
    page_size: int

    def __init__(
        self,
        *,
        source: str,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        self.source = source
        self._session = session or requests.Session()
        self._http = http_settings
        self._min_interval_seconds = (
            1.0 / http_settings.rate_limit_per_second if http_settings.rate_limit_per_second > 0 else 0.0
        )
        self._last_request_at = 0.0

    @abstractmethod
    def fetch_page(
        self,
        *,
        credential: CredentialRef,
        start_date: datetime,
        end_date: datetime,
        page: int,
    ) -> NFSePageResult:
        """
        Fetch one page of documents issued within [start_date, end_date].
        """

    def _get_json(
        self,
        url: str,
        *,
        params: dict[str, Any],
        headers: dict[str, str],
    ) -> Any:
        """
        GET ``url`` and return the decoded JSON body.
        """

        attempts = self._http.max_retries + 1
        for attempt in range(1, attempts + 1):
            self._throttle()
            try:
                response = self._session.request(
                    method="GET",
                    url=url,
                    params=params,
                    headers=headers,
                    timeout=self._http.timeout_seconds,
                )
            except (requests.Timeout, requests.ConnectionError) as exc:
                failure = f"{type(exc).__name__}: {exc}"
                response = None
            else:
                if response.status_code < 400:
                    return self._decode(response, url)
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    logger.error(
                        "Source rejected request source=%s status=%s url=%s page=%s",
                        self.source,
                        response.status_code,
                        url,
                        params.get("pagina"),
                    )
                    raise ConnectorRequestError(
                        f"{self.source}: request rejected with status {response.status_code}.",
                        status_code=response.status_code,
                    )
                failure = f"status {response.status_code}"

            if attempt == attempts:
                break

            delay = self._retry_delay(attempt, response)
            logger.warning(
                "Retrying source request source=%s attempt=%s/%s wait_seconds=%.2f error=%s",
                self.source,
                attempt,
                attempts,
                delay,
                failure,
            )
            time.sleep(delay)

        logger.error(
            "Source request failed after retries source=%s attempts=%s url=%s last_error=%s",
            self.source,
            attempts,
            url,
            failure,
        )
        raise ConnectorRequestError(
            f"{self.source}: request failed after {attempts} attempts ({failure}).",
            status_code=response.status_code if response is not None else None,
        )

    def _decode(self, response: requests.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            logger.error("Source returned a non-JSON body source=%s url=%s", self.source, url)
            raise ConnectorRequestError(
                f"{self.source}: response was not valid JSON.",
                status_code=response.status_code,
            ) from exc

    def _retry_delay(self, attempt: int, response: requests.Response | None) -> float:
        backoff = self._http.backoff_initial_seconds * (self._http.backoff_multiplier ** (attempt - 1))
        if response is None or response.status_code not in (429, 503):
            return backoff

        retry_after = (getattr(response, "headers", None) or {}).get("Retry-After")
        try:
            seconds = float(retry_after)
        except (TypeError, ValueError):
            return backoff
        return min(max(seconds, 0.0), MAX_RETRY_AFTER_SECONDS)

    def _throttle(self) -> None:
        if self._min_interval_seconds <= 0:
            return
        remaining = self._min_interval_seconds - (time.monotonic() - self._last_request_at)
        if remaining > 0:
            time.sleep(remaining)
        self._last_request_at = time.monotonic()

    @staticmethod
    def parse_iso_datetime(value: str) -> datetime:
        """
        Parse an ISO date or datetime; naive values and bare dates are UTC.
        """

        normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
        parsed = datetime.fromisoformat(normalized)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed
