"""SQLite schema for the verification store.

All tables are created by :func:`init_handoff_db`.  Timestamps are stored as
ISO 8601 UTC strings with microsecond precision so that lexical order matches
chronological order.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_DEFAULT_NOW = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"


def init_handoff_db(db_path: Path | str) -> sqlite3.Connection:
    """Create and initialize the hand-off database with WAL mode and indexes.

    The connection is opened with ``check_same_thread=False`` so store calls
    can run in worker threads via ``asyncio.to_thread``; callers serialize
    access through the store's lock.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.

    Returns:
        An open sqlite3.Connection with WAL mode enabled.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")

    init_verification_tables(conn)
    init_notification_table(conn)
    init_call_log_table(conn)
    init_directory_tables(conn)

    conn.commit()
    return conn


def init_verification_tables(conn: sqlite3.Connection) -> None:
    """Create ``verification_sessions`` and ``verification_items``."""
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS verification_sessions (
            id TEXT PRIMARY KEY,
            submission_id TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'not_started',
            buffer_agent_id TEXT,
            licensed_agent_id TEXT,
            started_at TEXT,
            completed_at TEXT,
            transferred_at TEXT,
            created_at TEXT NOT NULL DEFAULT {_DEFAULT_NOW},
            updated_at TEXT NOT NULL DEFAULT {_DEFAULT_NOW}
        )
    """)
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS verification_items (
            id TEXT PRIMARY KEY,
            session_id TEXT NOT NULL REFERENCES verification_sessions (id),
            field_name TEXT NOT NULL,
            original_value TEXT,
            verified_value TEXT,
            is_verified INTEGER NOT NULL DEFAULT 0,
            is_modified INTEGER NOT NULL DEFAULT 0,
            notes TEXT,
            verified_at TEXT,
            created_at TEXT NOT NULL DEFAULT {_DEFAULT_NOW},
            updated_at TEXT NOT NULL DEFAULT {_DEFAULT_NOW}
        )
    """)

    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_sessions_submission "
        "ON verification_sessions (submission_id)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_items_session ON verification_items (session_id)"
    )


def init_notification_table(conn: sqlite3.Connection) -> None:
    """Create ``retention_call_notifications`` with its gate-query and uniqueness indexes."""
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS retention_call_notifications (
            id TEXT PRIMARY KEY,
            verification_session_id TEXT,
            submission_id TEXT NOT NULL,
            notification_type TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            buffer_agent_id TEXT,
            buffer_agent_name TEXT,
            licensed_agent_id TEXT,
            licensed_agent_name TEXT,
            customer_name TEXT,
            lead_vendor TEXT,
            la_ready_at TEXT,
            seen_at TEXT,
            acknowledged_at TEXT,
            expired_at TEXT,
            created_at TEXT NOT NULL DEFAULT {_DEFAULT_NOW},
            updated_at TEXT NOT NULL DEFAULT {_DEFAULT_NOW}
        )
    """)

    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_notifications_gate "
        "ON retention_call_notifications (buffer_agent_id, notification_type, status)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_notifications_session "
        "ON retention_call_notifications (verification_session_id)"
    )
    # At most one pending la_ready per session and buffer agent.
    conn.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_notifications_one_pending_la_ready "
        "ON retention_call_notifications (verification_session_id, buffer_agent_id) "
        "WHERE notification_type = 'la_ready' AND status = 'pending'"
    )


def init_call_log_table(conn: sqlite3.Connection) -> None:
    """Create the append-only ``call_update_logs`` and ``callback_requests`` tables."""
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS call_update_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            submission_id TEXT NOT NULL,
            agent_id TEXT NOT NULL,
            agent_type TEXT NOT NULL,
            agent_name TEXT,
            event_type TEXT NOT NULL,
            event_details TEXT,
            session_id TEXT,
            verification_session_id TEXT,
            notification_id TEXT,
            call_result_id TEXT,
            customer_name TEXT,
            lead_vendor TEXT,
            is_retention_call INTEGER,
            created_at TEXT NOT NULL DEFAULT {_DEFAULT_NOW}
        )
    """)
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS callback_requests (
            id TEXT PRIMARY KEY,
            submission_id TEXT NOT NULL,
            request_type TEXT NOT NULL,
            customer_name TEXT,
            lead_vendor TEXT,
            notes TEXT,
            created_at TEXT NOT NULL DEFAULT {_DEFAULT_NOW}
        )
    """)

    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_call_logs_submission ON call_update_logs (submission_id)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_call_logs_agent ON call_update_logs (agent_id)")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_call_logs_created ON call_update_logs (created_at)"
    )


def init_directory_tables(conn: sqlite3.Connection) -> None:
    """Create the local ``leads`` and ``agent_profiles`` projections."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS leads (
            submission_id TEXT PRIMARY KEY,
            customer_full_name TEXT,
            phone_number TEXT,
            email TEXT,
            lead_vendor TEXT,
            data TEXT NOT NULL DEFAULT '{}'
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS agent_profiles (
            user_id TEXT PRIMARY KEY,
            display_name TEXT
        )
    """)


def close_handoff_db(conn: sqlite3.Connection) -> None:
    """Close the hand-off database connection."""
    conn.close()
