"""Unit tests for calproxy.origin.fetcher."""

from collections.abc import Callable
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from calproxy.core.exceptions import FetchError
from calproxy.core.http_client import close_all_clients, get_client_health
from calproxy.origin.fetcher import MAX_BACKOFF_SECONDS, OriginFetcher, validate_origin_url
from calproxy.origin.models import OriginAuth, OriginAuthType

pytestmark = pytest.mark.unit

ENDPOINT = "https://cal.example.com/private.ics"
ICS_BODY = "BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"


def _fetcher(
    handler: Callable[[httpx.Request], httpx.Response], **kwargs: float
) -> OriginFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OriginFetcher(client=client, **kwargs)


class TestValidateOriginUrl:
    @pytest.mark.parametrize(
        "url",
        ["http://example.com/calendar.ics", "https://example.com:8443/a?b=c"],
    )
    def test_validate_origin_url_when_http_then_accepts(self, url: str) -> None:
        assert validate_origin_url(url) is True

    @pytest.mark.parametrize(
        "url", ["ftp://example.com/a.ics", "file:///etc/passwd", "http:///a.ics", "not-a-url", ""]
    )
    def test_validate_origin_url_when_not_http_with_host_then_rejects(self, url: str) -> None:
        assert validate_origin_url(url) is False


class TestOriginFetcherFetch:
    """Tests for successful and failing fetches."""

    async def test_fetch_when_ok_then_returns_body(self) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(200, text=ICS_BODY))

        assert await fetcher.fetch(ENDPOINT) == ICS_BODY

    async def test_fetch_when_auth_then_sent_as_header(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=ICS_BODY)

        auth = OriginAuth(type=OriginAuthType.BASIC, username="alice", password="pw")
        await _fetcher(handler).fetch(ENDPOINT, auth)

        assert seen[0].headers["Authorization"] == auth.get_headers()["Authorization"]
        assert str(seen[0].url) == ENDPOINT

    async def test_fetch_when_no_auth_then_no_authorization_header(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=ICS_BODY)

        await _fetcher(handler).fetch(ENDPOINT)

        assert "Authorization" not in seen[0].headers

    async def test_fetch_when_not_found_then_fetch_error_with_status(self) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(404, text="missing"))

        with pytest.raises(FetchError, match="HTTP 404") as exc_info:
            await fetcher.fetch(ENDPOINT)

        assert exc_info.value.status_code == 404

    async def test_fetch_when_server_error_then_not_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        fetcher = _fetcher(handler, max_retries=3)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(ENDPOINT)

        assert exc_info.value.status_code == 503
        assert len(calls) == 1

    async def test_fetch_when_timeout_then_fetch_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        fetcher = _fetcher(handler, request_timeout=5)

        with pytest.raises(FetchError, match="Timeout fetching .* after 5s"):
            await fetcher.fetch(ENDPOINT)

    async def test_fetch_when_connection_refused_then_fetch_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchError, match="Network error") as exc_info:
            await _fetcher(handler).fetch(ENDPOINT)

        assert exc_info.value.status_code is None

    async def test_fetch_when_invalid_url_then_fetch_error_without_request(self) -> None:
        handler = AsyncMock()
        fetcher = OriginFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(FetchError, match="http"):
            await fetcher.fetch("ftp://cal.example.com/a.ics")

        handler.assert_not_called()


class TestOriginFetcherRetry:
    """Tests for retries on transport errors."""

    async def test_fetch_when_network_errors_then_retries_until_exhausted(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("down", request=request)

        fetcher = _fetcher(handler, max_retries=2)

        with patch("calproxy.origin.fetcher.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(FetchError):
                await fetcher.fetch(ENDPOINT)

        assert len(calls) == 3
        assert sleep.await_count == 2

    async def test_fetch_when_transient_error_then_succeeds_on_retry(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, text=ICS_BODY)

        fetcher = _fetcher(handler, max_retries=1)

        with patch("calproxy.origin.fetcher.asyncio.sleep", new_callable=AsyncMock):
            assert await fetcher.fetch(ENDPOINT) == ICS_BODY

        assert len(calls) == 2

    def test_calculate_backoff_when_large_attempt_then_capped(self) -> None:
        fetcher = OriginFetcher(retry_backoff_factor=2)

        backoff = fetcher._calculate_backoff(10)

        assert MAX_BACKOFF_SECONDS * 1.1 <= backoff <= MAX_BACKOFF_SECONDS * 1.3

    def test_init_when_negative_retries_then_clamped_to_zero(self) -> None:
        assert OriginFetcher(max_retries=-3).max_retries == 0


class TestOriginFetcherSharedClient:
    """Tests for the shared client pool path."""

    async def test_fetch_when_shared_client_fails_then_error_recorded(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        fetcher = OriginFetcher()

        with patch(
            "calproxy.origin.fetcher.get_shared_client", new=AsyncMock(return_value=client)
        ):
            with pytest.raises(FetchError):
                await fetcher.fetch(ENDPOINT)

        health = get_client_health("origin_fetcher")
        assert health is not None
        assert health["error_count"] == 1
        await client.aclose()
        await close_all_clients()
