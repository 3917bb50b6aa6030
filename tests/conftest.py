"""Shared pytest fixtures for the hand-off coordinator test suite."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from handoff.domain.models import Lead
from handoff.store.accessor import VerificationStore
from handoff.store.changefeed import ChangeFeed
from handoff.store.schema import close_handoff_db, init_handoff_db


class FakeClock:
    """Controllable UTC clock for store timestamps."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> datetime:
        self.current = self.current + timedelta(seconds=seconds)
        return self.current


@pytest.fixture
def anyio_backend() -> str:
    """Run anyio-marked tests on asyncio only."""
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    """A clock starting at a fixed instant."""
    return FakeClock(datetime(2026, 3, 2, 15, 0, 0, tzinfo=UTC))


@pytest.fixture
def db_conn(tmp_path: Path) -> Iterator[sqlite3.Connection]:
    """A freshly initialized hand-off database on disk."""
    conn = init_handoff_db(tmp_path / "handoff.db")
    yield conn
    close_handoff_db(conn)


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def store(db_conn: sqlite3.Connection, feed: ChangeFeed, clock: FakeClock) -> VerificationStore:
    """A store on the temp database, publishing on ``feed``, ticking on ``clock``."""
    return VerificationStore(db_conn, feed=feed, clock=clock)


@pytest.fixture
def sample_lead() -> Lead:
    """A representative lead from a mapped call center."""
    return Lead(
        submission_id="SUB-1001",
        customer_full_name="Jane Doe",
        phone_number="(555) 010-2020",
        email="jane@example.com",
        lead_vendor="Ark Tech",
        street_address="12 Elm St",
        carrier="Aetna",
        monthly_premium="54.20",
    )
