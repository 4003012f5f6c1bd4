"""HTTP retrieval of the origin calendar feed."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Optional
from urllib.parse import urlparse

import httpx

from calproxy.core.exceptions import FetchError
from calproxy.core.http_client import (
    build_timeout,
    get_shared_client,
    record_client_error,
    record_client_success,
)

from .models import OriginAuth

logger = logging.getLogger(__name__)

ORIGIN_CLIENT_ID = "origin_fetcher"
MAX_BACKOFF_SECONDS = 30.0
JITTER_MIN_FACTOR = 0.1
JITTER_MAX_FACTOR = 0.3


def validate_origin_url(url: str) -> bool:
    """Only http(s) URLs with a hostname are accepted as origins."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


class OriginFetcher:
    """Fetches the raw text of the origin feed.

    Credentials are only ever sent as an ``Authorization`` header, so the URL
    that shows up in logs and error messages never carries them.
    """

    def __init__(
        self,
        request_timeout: float = 30,
        max_retries: int = 0,
        retry_backoff_factor: float = 1.5,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize origin fetcher.

        Args:
            request_timeout: Read timeout in seconds
            max_retries: Extra attempts after a timeout or network error
            retry_backoff_factor: Base of the exponential backoff between attempts
            client: HTTP client to use instead of the shared pool
        """
        self.request_timeout = request_timeout
        self.max_retries = max(0, int(max_retries))
        self.retry_backoff_factor = float(retry_backoff_factor)
        self._client = client
        self._client_id = ORIGIN_CLIENT_ID

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await get_shared_client(self._client_id, build_timeout(self.request_timeout))

    def _calculate_backoff(self, attempt: int) -> float:
        base_backoff = min(self.retry_backoff_factor**attempt, MAX_BACKOFF_SECONDS)
        jitter = random.uniform(JITTER_MIN_FACTOR, JITTER_MAX_FACTOR) * base_backoff  # nosec B311 - jitter not cryptographic
        return base_backoff + jitter

    async def fetch(self, endpoint: str, auth: Optional[OriginAuth] = None) -> str:
        """Download the calendar text from ``endpoint``.

        Args:
            endpoint: Credential-free origin URL
            auth: Optional credential, sent as an Authorization header

        Returns:
            Response body decoded as text

        Raises:
            FetchError: On invalid URL, connection failure, timeout or a
                non-success HTTP status
        """
        if not validate_origin_url(endpoint):
            raise FetchError("Origin URL must be an http(s) URL with a hostname")

        headers = auth.get_headers() if auth is not None else {}

        try:
            response = await self._get_with_retry(endpoint, headers)
        except httpx.TimeoutException as e:
            raise FetchError(f"Timeout fetching {endpoint} after {self.request_timeout}s") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise FetchError(
                f"HTTP {status} {e.response.reason_phrase} from {endpoint}", status_code=status
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Network error fetching {endpoint}: {type(e).__name__}: {e}") from e

        content = response.text
        logger.debug("Fetched %d characters from %s", len(content), endpoint)
        return content

    async def _get_with_retry(self, url: str, headers: dict[str, str]) -> httpx.Response:
        """GET with retries on timeouts and network errors. Status errors are not retried."""
        client = await self._get_client()
        attempt = 0

        while True:
            try:
                response = await client.get(url, headers=headers)
                response.raise_for_status()
                if self._client is None:
                    await record_client_success(self._client_id)
                return response

            except httpx.HTTPStatusError:
                raise

            except (httpx.TimeoutException, httpx.NetworkError) as e:
                if self._client is None:
                    await record_client_error(self._client_id)
                if attempt >= self.max_retries:
                    raise

                backoff_time = self._calculate_backoff(attempt)
                logger.warning(
                    "Fetch failed (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1,
                    self.max_retries + 1,
                    backoff_time,
                    type(e).__name__,
                )
                await asyncio.sleep(backoff_time)
                attempt += 1
