"""Transient, unsaved edits kept apart from authoritative session state."""

from __future__ import annotations

from typing import Literal

import structlog

from handoff.domain.models import VerificationItem
from handoff.realtime.synchronizer import RealtimeSynchronizer

logger = structlog.get_logger()

BufferedField = Literal["verified_value", "notes"]


class EditBuffer:
    """Holds in-progress edits for one item field until they are committed.

    The synchronizer's items always reflect the store; what the agent is
    typing lives here.  :meth:`commit` writes through the synchronizer and
    drops the buffered value whether or not the write succeeds.

    Args:
        synchronizer: The synchronizer owning the authoritative items.
        field: Which item field this buffer edits.
    """

    def __init__(
        self,
        synchronizer: RealtimeSynchronizer,
        field: BufferedField = "verified_value",
    ) -> None:
        self._sync = synchronizer
        self.field: BufferedField = field
        self._pending: dict[str, str | None] = {}

    @property
    def pending(self) -> dict[str, str | None]:
        """Return a copy of the uncommitted edits keyed by item id."""
        return dict(self._pending)

    def set(self, item_id: str, value: str | None) -> None:
        """Buffer an edit for *item_id* without writing it."""
        self._pending[item_id] = value

    def is_dirty(self, item_id: str) -> bool:
        """Return True if *item_id* has an uncommitted edit."""
        return item_id in self._pending

    def discard(self, item_id: str) -> None:
        """Drop any uncommitted edit for *item_id*."""
        self._pending.pop(item_id, None)

    def display_value(self, item_id: str) -> str | None:
        """Return what the agent should see: the edit if any, else the stored value.

        For ``verified_value`` buffers the stored fallback is the verified
        value, or the original value when nothing has been verified yet.
        """
        if item_id in self._pending:
            return self._pending[item_id]
        for item in self._sync.items:
            if item.id == item_id:
                if self.field == "notes":
                    return item.notes
                return item.verified_value if item.verified_value is not None else item.original_value
        return None

    async def commit(self, item_id: str) -> VerificationItem:
        """Write the buffered edit for *item_id* through the synchronizer.

        Raises:
            KeyError: If nothing is buffered for *item_id*.
            Exception: Whatever the write raised; the edit is dropped so the
                field reverts to the stored value.
        """
        value = self._pending[item_id]
        try:
            if self.field == "notes":
                item = await self._sync.update_notes(item_id, value)
            else:
                item = await self._sync.update_verified_value(item_id, value)
        except Exception:
            self._pending.pop(item_id, None)
            logger.warning("edit_commit_failed", item_id=item_id, field=self.field)
            raise

        self._pending.pop(item_id, None)
        return item

    async def commit_all(self) -> list[VerificationItem]:
        """Commit every buffered edit in insertion order, stopping at the first failure."""
        committed: list[VerificationItem] = []
        for item_id in list(self._pending):
            committed.append(await self.commit(item_id))
        return committed
