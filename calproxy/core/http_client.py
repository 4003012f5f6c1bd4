"""Shared HTTP client manager for origin fetches.

Keeps one pooled ``httpx.AsyncClient`` per client id so periodic refreshes
reuse connections instead of creating a client per fetch. A client that keeps
failing is closed and recreated on the next request.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Optional

import httpx

from calproxy import __version__

logger = logging.getLogger(__name__)

DEFAULT_LIMITS = httpx.Limits(max_connections=4, max_keepalive_connections=2)

DEFAULT_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=30.0)

DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": f"calproxy/{__version__}",
    "Accept": "text/calendar, text/plain, */*",
}

# A client with this many errors, the last one within the window, is replaced.
HEALTH_ERROR_THRESHOLD = 3
HEALTH_TIMEOUT_SECONDS = 300


@dataclass
class ClientHealth:
    """Transport error bookkeeping for one client id."""

    error_count: int = 0
    last_error_time: float = 0.0
    created_time: float = field(default_factory=time.time)

    def unhealthy(self, now: float) -> bool:
        return (
            self.error_count >= HEALTH_ERROR_THRESHOLD
            and now - self.last_error_time < HEALTH_TIMEOUT_SECONDS
        )


_pool: dict[str, httpx.AsyncClient] = {}
_health: dict[str, ClientHealth] = {}
_pool_lock = asyncio.Lock()


def build_timeout(request_timeout: float) -> httpx.Timeout:
    """Timeout with ``request_timeout`` as the read limit."""
    return httpx.Timeout(connect=10.0, read=float(request_timeout), write=10.0, pool=30.0)


def _new_client(timeout: Optional[httpx.Timeout]) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        limits=DEFAULT_LIMITS,
        timeout=timeout or DEFAULT_TIMEOUT,
        follow_redirects=True,
        verify=True,
        headers=DEFAULT_HEADERS,
    )


async def _discard(client_id: str, reason: str) -> None:
    client = _pool.pop(client_id, None)
    _health.pop(client_id, None)
    if client is None or client.is_closed:
        return
    try:
        await client.aclose()
        logger.debug("Closed HTTP client '%s' (%s)", client_id, reason)
    except Exception as e:
        logger.warning("Error closing HTTP client '%s': %s", client_id, e)


async def get_shared_client(
    client_id: str = "default",
    timeout: Optional[httpx.Timeout] = None,
) -> httpx.AsyncClient:
    """Return the pooled client for ``client_id``, creating it if needed.

    Args:
        client_id: Identifier for the client
        timeout: Timeout configuration for a newly created client

    Raises:
        RuntimeError: If the client cannot be created
    """
    async with _pool_lock:
        health = _health.get(client_id)
        if health is not None and client_id in _pool and health.unhealthy(time.time()):
            logger.warning(
                "Replacing HTTP client '%s' after %d errors in the last %d seconds",
                client_id,
                health.error_count,
                HEALTH_TIMEOUT_SECONDS,
            )
            await _discard(client_id, "unhealthy")

        client = _pool.get(client_id)
        if client is not None and not client.is_closed:
            return client

        try:
            client = _new_client(timeout)
        except Exception as e:
            logger.exception("Could not create HTTP client '%s'", client_id)
            raise RuntimeError(f"Could not create HTTP client '{client_id}': {e}") from e

        _pool[client_id] = client
        _health[client_id] = ClientHealth()
        logger.debug("Created HTTP client '%s'", client_id)
        return client


async def close_all_clients() -> None:
    """Close every pooled client. Called on shutdown."""
    async with _pool_lock:
        for client_id in list(_pool):
            await _discard(client_id, "shutdown")
        _health.clear()


async def record_client_error(client_id: str = "default") -> None:
    """Count a transport error against ``client_id``."""
    async with _pool_lock:
        health = _health.setdefault(client_id, ClientHealth())
        health.error_count += 1
        health.last_error_time = time.time()
        logger.debug("HTTP client '%s' has %d recent errors", client_id, health.error_count)


async def record_client_success(client_id: str = "default") -> None:
    async with _pool_lock:
        health = _health.get(client_id)
        if health is not None:
            health.error_count = 0


def get_client_health(client_id: str = "default") -> Optional[dict[str, float]]:
    """Snapshot of the health counters for ``client_id``, or None if unknown."""
    health = _health.get(client_id)
    return asdict(health) if health is not None else None
