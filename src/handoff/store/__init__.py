"""SQLite verification store and its change feed."""

from handoff.store.accessor import (
    ProfileDirectory,
    SqliteProfileDirectory,
    VerificationStore,
    format_timestamp,
)
from handoff.store.changefeed import ChangeFeed, Subscription
from handoff.store.schema import close_handoff_db, init_handoff_db

__all__ = [
    "ChangeFeed",
    "ProfileDirectory",
    "SqliteProfileDirectory",
    "Subscription",
    "VerificationStore",
    "close_handoff_db",
    "format_timestamp",
    "init_handoff_db",
]
