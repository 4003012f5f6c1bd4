"""calproxy.api.server: asyncio HTTP server for the proxied calendars.

This module:
- performs the initial origin fetch (fatal on failure)
- runs the aiohttp web server with the two token-gated calendar routes
- runs the background refresh loop until SIGINT/SIGTERM
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Optional

from aiohttp import web

from calproxy.api.access import AccessGateway
from calproxy.api.routes import register_calendar_routes
from calproxy.core.config_manager import ProxyConfig
from calproxy.core.http_client import close_all_clients, get_client_health
from calproxy.core.proxy_logging import configure_proxy_logging, get_logging_status
from calproxy.origin.fetcher import ORIGIN_CLIENT_ID, OriginFetcher
from calproxy.origin.models import Origin, OriginAuth, OriginAuthType
from calproxy.origin.scheduler import RefreshScheduler

logger = logging.getLogger(__name__)


def create_origin(config: ProxyConfig) -> Origin:
    """Build the Origin from configuration; a bearer token wins over URL userinfo."""
    auth = None
    if config.origin_bearer_token:
        auth = OriginAuth(type=OriginAuthType.BEARER, bearer_token=config.origin_bearer_token)
    origin = Origin(config.origin_url, auth=auth)
    logger.debug("Origin identifier: %s", origin.identifier)
    return origin


def create_fetcher(config: ProxyConfig) -> OriginFetcher:
    return OriginFetcher(
        request_timeout=config.request_timeout,
        max_retries=config.max_retries,
        retry_backoff_factor=config.retry_backoff_factor,
    )


def make_app(gateway: AccessGateway) -> web.Application:
    """Create the aiohttp application serving ``gateway``'s two calendars."""
    app = web.Application()
    register_calendar_routes(app, gateway)

    async def _shutdown(_app: web.Application) -> None:
        logger.info("Application shutdown requested")

    app.on_shutdown.append(_shutdown)
    return app


async def _serve(
    config: ProxyConfig,
    external_stop_event: Optional[asyncio.Event] = None,
    fetcher: Optional[OriginFetcher] = None,
) -> None:
    """Fetch once, then serve and refresh until signalled to stop.

    Args:
        config: Validated configuration
        external_stop_event: Optional event to signal shutdown. If provided,
            signal handlers are not registered (caller owns signal handling).
        fetcher: Fetcher to use instead of one built from ``config``

    Raises:
        FetchError: If the initial fetch fails
        ParseError: If the initially fetched calendar is invalid
        OSError: If the listen address cannot be bound
    """
    origin = create_origin(config)
    scheduler = RefreshScheduler(origin, fetcher or create_fetcher(config), config.fb_title)
    stop_event = external_stop_event or asyncio.Event()

    runner: Optional[web.AppRunner] = None
    try:
        await scheduler.initial_refresh()

        gateway = AccessGateway(config.secret, origin)
        runner = web.AppRunner(make_app(gateway))
        await runner.setup()
        site = web.TCPSite(runner, host=config.bind, port=config.port)
        await site.start()
        logger.info("Starting to listen on %s:%d", config.bind, config.port)

        scheduler.start(config.update_secs)

        if external_stop_event is None:
            loop = asyncio.get_running_loop()

            def _on_signal() -> None:
                logger.info("Shutdown signal received")
                stop_event.set()

            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError):
                    loop.add_signal_handler(sig, _on_signal)

        await stop_event.wait()
        logger.info("Stop event received, shutting down")

    finally:
        await scheduler.stop()
        if runner is not None:
            await runner.cleanup()
        logger.debug("Origin client health at shutdown: %s", get_client_health(ORIGIN_CLIENT_ID))
        try:
            await close_all_clients()
        except Exception as e:
            logger.warning("Error cleaning up shared HTTP clients: %s", e)

    logger.info("Server shutdown complete")


def start_server(config: ProxyConfig) -> None:
    """Run the server until SIGINT/SIGTERM.

    Startup failures (initial fetch, bind) propagate to the caller.
    """
    configure_proxy_logging(debug_mode=config.debug_logging, log_level=config.log_level)
    logger.debug("Resolved configuration: %s", config.diagnostic_summary())
    logger.debug("Logger levels: %s", get_logging_status())

    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
