"""Periodic refresh of the origin feed.

Each cycle fetches the origin, censors it and publishes the raw and censored
text together as one ``Snapshot``. A failed cycle leaves the previously
published snapshot in place.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from calproxy.calendar.censor import censor_calendar
from calproxy.calendar.parser import CalendarParser, ICalendarParser
from calproxy.core.exceptions import CalProxyError

from .fetcher import OriginFetcher
from .models import Origin, Snapshot

logger = logging.getLogger(__name__)


class RefreshState(str, Enum):
    """Stage of the current refresh cycle."""

    IDLE = "idle"
    FETCHING = "fetching"
    TRANSFORMING = "transforming"
    PUBLISHED = "published"


class RefreshScheduler:
    """Drives fetch -> parse -> censor -> publish for one origin.

    At most one periodic loop exists per scheduler: ``start`` cancels a running
    loop before creating the next one.
    """

    def __init__(
        self,
        origin: Origin,
        fetcher: OriginFetcher,
        placeholder_title: str,
        parser: Optional[CalendarParser] = None,
    ) -> None:
        self.origin = origin
        self.fetcher = fetcher
        self.placeholder_title = placeholder_title
        self.parser = parser or ICalendarParser()
        self.state = RefreshState.IDLE
        self.last_error: Optional[BaseException] = None
        self.consecutive_failures = 0
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh_once(self) -> Snapshot:
        """Run one cycle and publish its snapshot.

        Raises:
            FetchError: If the origin could not be retrieved
            ParseError: If the origin text is not a valid calendar
        """
        try:
            self.state = RefreshState.FETCHING
            raw = await self.fetcher.fetch(self.origin.endpoint, self.origin.auth)
            fetched_at = datetime.now(timezone.utc)

            self.state = RefreshState.TRANSFORMING
            censored = censor_calendar(
                raw, self.origin.identifier, self.placeholder_title, parser=self.parser
            )
        except BaseException:
            self.state = RefreshState.IDLE
            raise

        snapshot = Snapshot(raw=raw, censored=censored, fetched_at=fetched_at)
        self.origin.publish(snapshot)
        self.state = RefreshState.PUBLISHED
        self.last_error = None
        self.consecutive_failures = 0
        self.state = RefreshState.IDLE
        return snapshot

    async def initial_refresh(self) -> Snapshot:
        """First fetch at startup. Errors propagate: there is nothing to serve without it."""
        logger.info("Starting initial fetch")
        snapshot = await self.refresh_once()
        logger.info("Initial fetch successful (%d bytes raw)", len(snapshot.raw))
        return snapshot

    def start(self, interval: float) -> asyncio.Task[None]:
        """Start refreshing every ``interval`` seconds, replacing any running loop.

        Must be called from within a running event loop.
        """
        if interval <= 0:
            raise ValueError("Refresh interval must be positive")
        if self._task is not None and not self._task.done():
            logger.debug("Stopping existing refresh loop before restart")
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(interval))
        logger.info("Refreshing origin every %s seconds", interval)
        return self._task

    async def stop(self) -> None:
        """Cancel the periodic loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            logger.info("Updating from origin")
            try:
                await self.refresh_once()
            except CalProxyError as e:
                self.last_error = e
                self.consecutive_failures += 1
                logger.error(
                    "Refresh failed (%d consecutive), keeping previous snapshot: %s",
                    self.consecutive_failures,
                    e,
                )
            except Exception as e:
                self.last_error = e
                self.consecutive_failures += 1
                logger.exception("Unexpected error during refresh, keeping previous snapshot")
            else:
                logger.info("Updated successfully")
