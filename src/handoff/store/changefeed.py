"""In-process change feed for committed store writes.

The store publishes one :class:`ChangeEvent` per committed row change.
Subscribers register a table plus equality filters and consume matching
events as an async iterator on their own event loop::

    async with feed.subscribe("verification_items", {"session_id": sid}) as sub:
        async for event in sub:
            ...

Events are handed to each subscriber's loop with ``call_soon_threadsafe``, so
a commit made in a worker thread is delivered in commit order on the loop
that created the subscription.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Iterable, Mapping
from typing import Any

import structlog

from handoff.domain.models import ChangeEvent
from handoff.domain.types import ChangeKind

logger = structlog.get_logger()

_CLOSED = object()


class Subscription:
    """One scoped subscription to a table on the change feed.

    Iteration is lazy and restartable: breaking out of an ``async for`` and
    iterating again resumes with the next undelivered event.  Iteration ends
    once the subscription is closed and its queue has drained.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        table: str,
        filters: Mapping[str, Any] | None,
        kinds: Iterable[ChangeKind] | None,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._feed = feed
        self.table = table
        self.filters: dict[str, Any] = dict(filters or {})
        self.kinds: frozenset[ChangeKind] | None = frozenset(kinds) if kinds else None
        self._loop = loop
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        """Return True once the subscription has been released."""
        return self._closed

    def matches(self, event: ChangeEvent) -> bool:
        """Return True if *event* is on this table, kind, and filter set."""
        if event.table != self.table:
            return False
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        row = event.new if event.new is not None else event.old
        if row is None:
            return False
        return all(row.get(column) == value for column, value in self.filters.items())

    def deliver(self, event: ChangeEvent) -> None:
        """Queue *event* on the subscriber's loop.  Safe to call from any thread."""
        if self._closed:
            return
        self._put(event)

    def close(self) -> None:
        """Release the subscription.  Pending events remain readable."""
        if self._closed:
            return
        self._closed = True
        self._feed._remove(self)
        self._put(_CLOSED)

    def _put(self, item: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # The subscriber's loop is gone; nothing can consume further events.
            self._closed = True
            self._feed._remove(self)
            logger.warning("change_feed_loop_closed", table=self.table, filters=self.filters)

    async def get(self) -> ChangeEvent | None:
        """Wait for the next event, or return None once the subscription is closed."""
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the marker so later iterations also terminate.
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ChangeEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class ChangeFeed:
    """Fan-out of committed row changes to scoped subscriptions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []
        self._seq = 0

    @property
    def subscriber_count(self) -> int:
        """Return the number of open subscriptions."""
        with self._lock:
            return len(self._subscriptions)

    def subscribe(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        *,
        kinds: Iterable[ChangeKind] | None = None,
    ) -> Subscription:
        """Open a subscription bound to the running event loop.

        Args:
            table: Table name whose changes should be delivered.
            filters: Column equality filters applied to the changed row.
            kinds: Restrict delivery to these change kinds (default: all).

        Returns:
            The new :class:`Subscription`.  Use it as an async context
            manager so it is released on exit.
        """
        loop = asyncio.get_running_loop()
        subscription = Subscription(self, table, filters, kinds, loop)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug("change_feed_subscribed", table=table, filters=subscription.filters)
        return subscription

    def publish(
        self,
        table: str,
        kind: ChangeKind,
        new: Mapping[str, Any] | None = None,
        old: Mapping[str, Any] | None = None,
    ) -> ChangeEvent:
        """Assign the next sequence number to a committed change and fan it out.

        Must be called after the write has been committed, while the writer
        still holds the store lock, so sequence order equals commit order.
        """
        with self._lock:
            self._seq += 1
            event = ChangeEvent(
                table=table,
                kind=kind,
                seq=self._seq,
                new=dict(new) if new is not None else None,
                old=dict(old) if old is not None else None,
            )
            targets = [sub for sub in self._subscriptions if sub.matches(event)]

        for subscription in targets:
            subscription.deliver(event)
        return event

    def close_all(self) -> None:
        """Close every open subscription, ending their iterators."""
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.close()

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
