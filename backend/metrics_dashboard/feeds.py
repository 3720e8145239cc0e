"""Polling state holders for metrics API responses.

A feed keeps ``data``, ``loading`` and ``error`` for one kind of request and
re-issues it on a timer while it is started. Each refetch takes a ticket and
only the response for the newest ticket is applied, so a slow request cannot
overwrite the result of a later one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional

from .api.client import MetricsAPIClient
from .models import PagedMetricsList
from .parsers import PagedListParser, unwrap_payload

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class MetricsFeed:
    """State for the latest-metrics request."""

    name = "latest"

    def __init__(
        self,
        client: MetricsAPIClient,
        *,
        include_curves: bool = True,
        poll_interval: float = 0.0,
        initial: Any = None,
    ) -> None:
        self.client = client
        self.include_curves = include_curves
        self.data: Any = initial
        self.loading = False
        self.error: Optional[Exception] = None
        self._poll_interval = max(float(poll_interval or 0), 0.0)
        self._issued = 0
        self._poll_task: Optional[asyncio.Task] = None
        self._initial_task: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []
        self._started = False

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def started(self) -> bool:
        return self._started

    def subscribe(self, listener: Listener) -> None:
        """Call ``listener(data)`` after every applied response."""
        self._listeners.append(listener)

    async def _request(self) -> Any:
        return await self.client.get_latest_metrics(include_curves=self.include_curves)

    def _transform(self, response: Any) -> Any:
        return unwrap_payload(response)

    async def refetch(self) -> None:
        self._issued += 1
        ticket = self._issued
        self.loading = True
        self.error = None

        try:
            response = await self._request()
            if ticket != self._issued:
                logger.debug("Dropping stale %s response (ticket %d < %d)", self.name, ticket, self._issued)
                return
            data = self._transform(response)
        except Exception as exc:
            if ticket != self._issued:
                logger.debug("Dropping stale %s failure (ticket %d): %s", self.name, ticket, exc)
                return
            logger.warning("Fetching %s metrics failed: %s", self.name, exc)
            self.error = exc
            return
        finally:
            # also runs when the poll task is cancelled mid-request
            if ticket == self._issued:
                self.loading = False

        self.data = data
        for listener in list(self._listeners):
            try:
                listener(data)
            except Exception as exc:
                logger.exception("Applying %s metrics failed", self.name)
                self.error = exc

    async def _poll(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.refetch()

    def _start_timer(self) -> None:
        if self._poll_interval > 0:
            self._poll_task = asyncio.create_task(self._poll(self._poll_interval))

    async def _cancel_timer(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def start(self) -> None:
        """Issue the initial fetch and start polling. Needs a running loop."""
        if self._started:
            return
        self._started = True
        self._initial_task = asyncio.create_task(self.refetch())
        self._start_timer()
        logger.info("Started %s feed (poll interval %.1fs)", self.name, self._poll_interval)

    async def set_poll_interval(self, seconds: float) -> None:
        """Replace the polling timer; a non-positive value disables polling."""
        self._poll_interval = max(float(seconds or 0), 0.0)
        await self._cancel_timer()
        if self._started:
            self._start_timer()

    async def stop(self) -> None:
        """Cancel the timer and ignore any response still in flight."""
        if not self._started:
            return
        self._started = False
        # responses for earlier tickets are discarded on arrival
        self._issued += 1
        self.loading = False
        await self._cancel_timer()
        initial, self._initial_task = self._initial_task, None
        if initial is not None and not initial.done():
            initial.cancel()
            try:
                await initial
            except asyncio.CancelledError:
                pass
        logger.info("Stopped %s feed", self.name)


class MetricsListFeed(MetricsFeed):
    """State for one page of the run list."""

    name = "list"

    def __init__(
        self,
        client: MetricsAPIClient,
        *,
        limit: int = 10,
        page: int = 1,
        include_curves: bool = False,
        poll_interval: float = 0.0,
    ) -> None:
        super().__init__(
            client,
            include_curves=include_curves,
            poll_interval=poll_interval,
            initial=PagedMetricsList(page=page, limit=limit),
        )
        self.limit = limit
        self.page = page

    def set_query(
        self,
        *,
        limit: Optional[int] = None,
        page: Optional[int] = None,
        include_curves: Optional[bool] = None,
    ) -> bool:
        """Update the query; return True when it changed."""
        changed = False
        if limit is not None and limit != self.limit:
            self.limit, changed = limit, True
        if page is not None and page != self.page:
            self.page, changed = page, True
        if include_curves is not None and include_curves != self.include_curves:
            self.include_curves, changed = include_curves, True
        return changed

    async def _request(self) -> Any:
        return await self.client.list_metrics(
            limit=self.limit, page=self.page, include_curves=self.include_curves
        )

    def _transform(self, response: Any) -> PagedMetricsList:
        return PagedListParser(page=self.page, limit=self.limit).parse(response)
