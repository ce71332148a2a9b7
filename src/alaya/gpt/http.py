# ABOUTME: HTTP transport for calls to the chat completions API.
# ABOUTME: Provides retry with backoff on transient failures and injectable transport for testing.

import logging
import time
from typing import Any, Protocol, runtime_checkable

import httpx

from alaya import __version__

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

USER_AGENT = f"alayascan/{__version__}"


class SummaryError(Exception):
    """Raised when a request to the completion API fails or returns garbage."""


@runtime_checkable
class JsonPoster(Protocol):
    """Protocol for authenticated JSON POST requests."""

    def post_json(
        self, url: str, payload: dict[str, Any], *, bearer: str
    ) -> dict[str, Any]: ...


class AlayaHttpClient:
    """HTTP client with retry for completion API calls.

    Wraps httpx.Client with retry logic for transient failures (429, 5xx)
    and a request timeout.
    """

    def __init__(
        self,
        *,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        client_kwargs: dict[str, Any] = {
            "headers": {"User-Agent": USER_AGENT},
            "timeout": timeout,
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.Client(**client_kwargs)
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    def post_json(self, url: str, payload: dict[str, Any], *, bearer: str) -> dict[str, Any]:
        """POST a JSON body and return the parsed JSON response.

        Raises:
            SummaryError: On transport errors, non-retryable HTTP errors,
                exhausted retries, or a body that is not JSON.
        """
        attempts = 1 + self._max_retries
        last_status = 0
        for attempt in range(attempts):
            try:
                response = self._client.post(
                    url,
                    json=payload,
                    headers={"Authorization": f"Bearer {bearer}"},
                )
                last_status = response.status_code
            except httpx.HTTPError as exc:
                raise SummaryError(f"Request failed: {url}: {exc}") from exc

            if response.status_code == 200:
                try:
                    return response.json()
                except ValueError as exc:
                    raise SummaryError(f"Failed to parse response JSON: {exc}") from exc

            if response.status_code not in _RETRYABLE_STATUS_CODES:
                raise SummaryError(
                    f"Request failed ({response.status_code}): {response.text[:500]}"
                )

            if attempt < attempts - 1:
                delay = self._retry_delay * (2**attempt)
                logger.warning(
                    "HTTP %d from %s, retrying in %.1fs (attempt %d/%d)",
                    response.status_code,
                    url,
                    delay,
                    attempt + 1,
                    self._max_retries,
                )
                time.sleep(delay)

        raise SummaryError(f"HTTP {last_status} from {url} after {attempts} attempts")

    def close(self) -> None:
        self._client.close()
