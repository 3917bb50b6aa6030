"""Keeps one client's view of a verification session in step with the store.

The synchronizer performs one full fetch, then folds change-feed events for
the session row and its items into local state.  Local state is only ever
replaced with rows the store returned or published; a failed write leaves it
untouched.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import structlog
from pydantic import ValidationError

from handoff.domain.errors import HandoffError
from handoff.domain.models import ChangeEvent, VerificationItem, VerificationSession
from handoff.domain.types import ChangeKind, SessionStatus
from handoff.progress import Progress, compute_progress
from handoff.store.accessor import ITEMS, SESSIONS, VerificationStore
from handoff.store.changefeed import ChangeFeed, Subscription

logger = structlog.get_logger()


def _is_stale(current: Any, incoming: Any) -> bool:
    """Return True if *incoming* is an older snapshot than *current*."""
    if current.updated_at is None or incoming.updated_at is None:
        return False
    return incoming.updated_at < current.updated_at


class RealtimeSynchronizer:
    """Authoritative local view of one verification session.

    Use as an async context manager so both subscriptions are released::

        async with RealtimeSynchronizer(store, session_id) as sync:
            await sync.toggle_verified(item_id, True)
            print(sync.progress.percent)

    Args:
        store: The verification store.
        session_id: The session to follow.
        feed: Change feed to subscribe on (defaults to the store's feed).
        on_change: Called with no arguments after local state changes.
    """

    def __init__(
        self,
        store: VerificationStore,
        session_id: str,
        *,
        feed: ChangeFeed | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._store = store
        self._feed = feed if feed is not None else store.feed
        self.session_id = session_id
        self._on_change = on_change

        self.session: VerificationSession | None = None
        self.items: list[VerificationItem] = []
        self.error: str | None = None
        self.active = False

        self._subscriptions: list[Subscription] = []
        self._tasks: list[asyncio.Task[None]] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def activate(self) -> None:
        """Fetch the session and items, then follow their change events."""
        if self.active:
            return
        self.active = True
        await self.refetch()

        session_sub = self._feed.subscribe(SESSIONS, {"id": self.session_id})
        items_sub = self._feed.subscribe(ITEMS, {"session_id": self.session_id})
        self._subscriptions = [session_sub, items_sub]
        self._tasks = [
            asyncio.create_task(self._follow(session_sub, self._apply_session_event)),
            asyncio.create_task(self._follow(items_sub, self._apply_item_event)),
        ]
        logger.info("realtime_sync_activated", session_id=self.session_id)

    async def deactivate(self) -> None:
        """Release both subscriptions and stop folding events."""
        if not self.active:
            return
        self.active = False
        for subscription in self._subscriptions:
            subscription.close()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._subscriptions = []
        self._tasks = []
        logger.info("realtime_sync_deactivated", session_id=self.session_id)

    async def __aenter__(self) -> RealtimeSynchronizer:
        await self.activate()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.deactivate()

    async def refetch(self) -> None:
        """Replace local state with a full fetch of the session and its items.

        On failure ``error`` is set and the last fetched state is kept.  Before
        any fetch has succeeded that state is no session and no items.
        """
        try:
            session = await asyncio.to_thread(self._store.get_session, self.session_id)
            items = await asyncio.to_thread(self._store.list_items, self.session_id)
        except HandoffError as exc:
            logger.warning("realtime_fetch_failed", session_id=self.session_id, error=str(exc))
            self.error = str(exc)
            self._changed()
            return

        self.error = None
        self.session = session
        self.items = items
        self._changed()

    @property
    def progress(self) -> Progress:
        """Progress over the current items, recomputed on every access."""
        return compute_progress(self.items)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def toggle_verified(self, item_id: str, verified: bool) -> VerificationItem:
        """Mark an item verified (stamping ``verified_at``) or clear it."""
        item = await asyncio.to_thread(self._store.update_item, item_id, is_verified=verified)
        self._replace_item(item)
        return item

    async def update_verified_value(self, item_id: str, value: str | None) -> VerificationItem:
        """Write a reviewed value; ``is_modified`` is recomputed by the store."""
        item = await asyncio.to_thread(self._store.update_item, item_id, verified_value=value)
        self._replace_item(item)
        return item

    async def update_notes(self, item_id: str, notes: str | None) -> VerificationItem:
        """Write an item's notes."""
        item = await asyncio.to_thread(self._store.update_item, item_id, notes=notes)
        self._replace_item(item)
        return item

    async def update_session_status(self, status: SessionStatus) -> VerificationSession:
        """Move the session forward to *status*.

        Raises:
            InvalidTransitionError: If *status* would move the session backwards.
        """
        session = await asyncio.to_thread(
            self._store.update_session_status, self.session_id, status
        )
        self._apply_session(session)
        return session

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def _follow(
        self,
        subscription: Subscription,
        apply: Callable[[ChangeEvent], None],
    ) -> None:
        try:
            async for event in subscription:
                if not self.active:
                    return
                try:
                    apply(event)
                except (HandoffError, ValidationError) as exc:
                    logger.warning(
                        "realtime_event_skipped",
                        session_id=self.session_id,
                        table=subscription.table,
                        seq=event.seq,
                        error=str(exc),
                    )
        finally:
            subscription.close()

        if self.active:
            logger.warning(
                "realtime_subscription_ended",
                session_id=self.session_id,
                table=subscription.table,
            )

    def _apply_session_event(self, event: ChangeEvent) -> None:
        if event.kind == ChangeKind.DELETE or event.new is None:
            return
        self._apply_session(VerificationSession.model_validate(event.new))

    def _apply_item_event(self, event: ChangeEvent) -> None:
        if event.kind == ChangeKind.DELETE:
            self.items = [item for item in self.items if item.id != event.record_id]
            self._changed()
            return
        if event.new is None:
            return
        incoming = VerificationItem.model_validate(event.new)
        if event.kind == ChangeKind.INSERT:
            self._insert_item(incoming)
        else:
            self._replace_item(incoming)

    def _apply_session(self, session: VerificationSession) -> None:
        if not self.active:
            return
        if self.session is not None and _is_stale(self.session, session):
            return
        self.session = session
        self._changed()

    def _insert_item(self, incoming: VerificationItem) -> None:
        """Append *incoming* unless an item with its id is already held."""
        if not self.active or any(item.id == incoming.id for item in self.items):
            return
        self.items.append(incoming)
        self._changed()

    def _replace_item(self, incoming: VerificationItem) -> None:
        """Swap in *incoming* for the held item with its id, unless it is older."""
        if not self.active:
            return
        for index, item in enumerate(self.items):
            if item.id == incoming.id:
                if _is_stale(item, incoming):
                    return
                self.items[index] = incoming
                self._changed()
                return

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
