"""Calendar routes: the raw feed and the free/busy feed."""

from __future__ import annotations

import logging
from typing import Any

from calproxy.api.access import AccessGateway

logger = logging.getLogger(__name__)

CALENDAR_CONTENT_TYPE = "text/calendar"


def register_calendar_routes(app: Any, gateway: AccessGateway) -> None:
    """Register the two token-gated calendar endpoints.

    Both serve whatever snapshot is currently published and never trigger a
    refresh. Any other path falls through to aiohttp's 404.

    Args:
        app: aiohttp web application
        gateway: Token and snapshot access for the origin
    """
    from aiohttp import web

    async def calendar_handler(request: Any) -> Any:
        logger.info("Valid calendar request from %s", request.remote)
        return web.Response(
            text=gateway.raw_calendar(), content_type=CALENDAR_CONTENT_TYPE, charset="utf-8"
        )

    async def free_busy_handler(request: Any) -> Any:
        logger.info("Valid free/busy request from %s", request.remote)
        return web.Response(
            text=gateway.free_busy_calendar(),
            content_type=CALENDAR_CONTENT_TYPE,
            charset="utf-8",
        )

    logger.info("Calendar will be served at %s", gateway.full_path)
    app.router.add_get(gateway.full_path, calendar_handler, allow_head=False)
    logger.info("Free/busy will be served at %s", gateway.free_path)
    app.router.add_get(gateway.free_path, free_busy_handler, allow_head=False)
