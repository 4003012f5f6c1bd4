"""Integration tests for the calendar routes served through aiohttp."""

from datetime import datetime, timezone

import pytest
from aiohttp.test_utils import TestClient, TestServer

from calproxy.api.access import AccessGateway
from calproxy.api.server import make_app
from calproxy.origin.models import Origin, Snapshot

pytestmark = pytest.mark.integration

SECRET = "s3cret"


@pytest.fixture
def gateway(published_origin: Origin) -> AccessGateway:
    return AccessGateway(SECRET, published_origin)


@pytest.fixture
async def client(gateway: AccessGateway):
    async with TestClient(TestServer(make_app(gateway))) as test_client:
        yield test_client


class TestCalendarRoutes:
    async def test_get_full_path_when_published_then_raw_calendar(
        self, client, gateway: AccessGateway
    ) -> None:
        resp = await client.get(gateway.full_path)

        assert resp.status == 200
        assert resp.content_type == "text/calendar"
        assert resp.charset == "utf-8"
        assert await resp.text() == "RAW CALENDAR"

    async def test_get_free_path_when_published_then_censored_calendar(
        self, client, gateway: AccessGateway
    ) -> None:
        resp = await client.get(gateway.free_path)

        assert resp.status == 200
        assert resp.content_type == "text/calendar"
        assert await resp.text() == "CENSORED CALENDAR"

    @pytest.mark.parametrize("path", ["/", "/calendar.ics", "/deadbeef.ics"])
    async def test_get_unknown_path_then_404(self, client, path: str) -> None:
        resp = await client.get(path)

        assert resp.status == 404

    async def test_get_full_path_without_extension_then_404(
        self, client, gateway: AccessGateway
    ) -> None:
        resp = await client.get(gateway.full_path[: -len(".ics")])

        assert resp.status == 404

    async def test_post_full_path_then_method_not_allowed(
        self, client, gateway: AccessGateway
    ) -> None:
        resp = await client.post(gateway.full_path)

        assert resp.status == 405

    async def test_get_when_snapshot_replaced_then_next_request_sees_new_one(
        self, client, gateway: AccessGateway, published_origin: Origin
    ) -> None:
        published_origin.publish(
            Snapshot("RAW 2", "CENSORED 2", datetime(2024, 1, 2, tzinfo=timezone.utc))
        )

        raw = await (await client.get(gateway.full_path)).text()
        free = await (await client.get(gateway.free_path)).text()

        assert (raw, free) == ("RAW 2", "CENSORED 2")

    async def test_get_when_request_served_then_logged_with_peer(
        self, client, gateway: AccessGateway, caplog
    ) -> None:
        caplog.set_level("INFO", logger="calproxy.api.routes.calendar_routes")

        await client.get(gateway.free_path)

        assert "Valid free/busy request from" in caplog.text
