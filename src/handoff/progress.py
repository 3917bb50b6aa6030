"""Verification progress shared by the buffer and licensed-agent screens.

Both screens call :func:`compute_progress` on the same item set, so the
result depends only on which items are verified, never on their order.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict

from handoff.domain.models import VerificationItem
from handoff.domain.types import ProgressBand

# Lower bound (inclusive) of each band, checked from the top down.
_BAND_THRESHOLDS: tuple[tuple[int, ProgressBand], ...] = (
    (76, ProgressBand.READY_FOR_TRANSFER),
    (51, ProgressBand.NEARLY_COMPLETE),
    (26, ProgressBand.IN_PROGRESS),
)


class Progress(BaseModel):
    """A snapshot of how much of a session has been verified."""

    model_config = ConfigDict(frozen=True)

    percent: int
    verified_count: int
    total_count: int
    band: ProgressBand


def progress_band(percent: int) -> ProgressBand:
    """Return the display band for a percentage in ``[0, 100]``."""
    for threshold, band in _BAND_THRESHOLDS:
        if percent >= threshold:
            return band
    return ProgressBand.JUST_STARTED


def compute_progress(items: Iterable[VerificationItem]) -> Progress:
    """Compute the verified percentage and band for a set of items.

    The percentage is rounded half-up, and is 0 when there are no items.

    Args:
        items: The session's verification items, in any order.

    Returns:
        A :class:`Progress` snapshot.
    """
    total = 0
    verified = 0
    for item in items:
        total += 1
        if item.is_verified:
            verified += 1

    if total == 0:
        percent = 0
    else:
        ratio = Decimal(100 * verified) / Decimal(total)
        percent = int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    return Progress(
        percent=percent,
        verified_count=verified,
        total_count=total,
        band=progress_band(percent),
    )
