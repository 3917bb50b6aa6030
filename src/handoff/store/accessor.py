"""SQLite-backed verification store.

Every write runs inside one transaction guarded by a lock, and after commit a
:class:`~handoff.domain.models.ChangeEvent` carrying the authoritative row is
published on the change feed.  Methods are synchronous; async callers run
them through ``asyncio.to_thread``.  Uses parameterized queries exclusively.
"""

from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

import structlog

from handoff.domain.errors import (
    DuplicateRecordError,
    InvalidTransitionError,
    RecordNotFoundError,
    StoreError,
)
from handoff.domain.models import (
    AgentProfile,
    CallbackRequest,
    Lead,
    RetentionCallNotification,
    VerificationItem,
    VerificationSession,
)
from handoff.domain.types import (
    DEFAULT_VERIFICATION_FIELDS,
    SESSION_STATUS_RANK,
    ChangeKind,
    NotificationStatus,
    NotificationType,
    SessionStatus,
)
from handoff.state_machine.machine import (
    notification_transition_updates,
    session_status_updates,
)
from handoff.state_machine.transitions import NotificationEvent
from handoff.store.changefeed import ChangeFeed
from handoff.store.schema import TIMESTAMP_FORMAT

logger = structlog.get_logger()

SESSIONS = "verification_sessions"
ITEMS = "verification_items"
NOTIFICATIONS = "retention_call_notifications"
CALL_LOGS = "call_update_logs"
CALLBACKS = "callback_requests"

_LEAD_COLUMNS = ("customer_full_name", "phone_number", "email", "lead_vendor")

_NOTIFICATION_COLUMNS = frozenset(RetentionCallNotification.model_fields) - {"id"}
_STAMPABLE_NOTIFICATION_COLUMNS = frozenset(
    {"licensed_agent_id", "licensed_agent_name", "la_ready_at"}
)
_CALL_LOG_COLUMNS = frozenset(
    {
        "submission_id",
        "agent_id",
        "agent_type",
        "agent_name",
        "event_type",
        "event_details",
        "session_id",
        "verification_session_id",
        "notification_id",
        "call_result_id",
        "customer_name",
        "lead_vendor",
        "is_retention_call",
        "created_at",
    }
)

_UNSET: Any = object()

_UNIQUE_VIOLATIONS = frozenset({"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})


def format_timestamp(value: datetime) -> str:
    """Render *value* as the store's UTC ISO 8601 string."""
    return value.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def _sql_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    return value


class ProfileDirectory(Protocol):
    """Looks up agent display information by user id."""

    def get_profile(self, user_id: str) -> AgentProfile | None: ...


class VerificationStore:
    """Read and write sessions, items, notifications, and call logs.

    Args:
        conn: An open connection from :func:`~handoff.store.schema.init_handoff_db`.
        feed: Change feed to publish committed writes on.  A private feed
            is created when omitted.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        feed: ChangeFeed | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._conn = conn
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self.feed = feed if feed is not None else ChangeFeed()
        self._pending_events: list[tuple[str, ChangeKind, Any, Any]] = []
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def now(self) -> datetime:
        """Return the store clock's current time."""
        return self._clock()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the store lock across several calls so no other writer interleaves."""
        with self._lock:
            yield

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the lock for one transaction, rolling back on any failure.

        Changes queued with :meth:`_publish` inside the block reach the feed
        only once the commit has succeeded; a rollback discards them.
        """
        with self._lock:
            self._pending_events = []
            try:
                yield self._conn
                self._conn.commit()
            except sqlite3.Error as exc:
                self._abort()
                if exc.sqlite_errorname in _UNIQUE_VIOLATIONS:
                    logger.warning("store_duplicate_rejected", error=str(exc))
                    raise DuplicateRecordError(str(exc)) from exc
                logger.error("store_write_failed", error=str(exc))
                raise StoreError(str(exc)) from exc
            except BaseException:
                self._abort()
                raise

            committed, self._pending_events = self._pending_events, []
            for table, kind, new, old in committed:
                self.feed.publish(table, kind, new=new, old=old)

    def _publish(
        self,
        table: str,
        kind: ChangeKind,
        new: Mapping[str, Any] | None = None,
        old: Mapping[str, Any] | None = None,
    ) -> None:
        self._pending_events.append((table, kind, new, old))

    def _abort(self) -> None:
        self._pending_events = []
        self._rollback()

    def _rollback(self) -> None:
        try:
            self._conn.rollback()
        except sqlite3.Error as exc:
            logger.warning("store_rollback_failed", error=str(exc))

    def _fetch_one(self, query: str, params: Sequence[Any]) -> dict[str, Any] | None:
        with self._lock:
            try:
                row = self._conn.execute(query, params).fetchone()
            except sqlite3.Error as exc:
                logger.error("store_read_failed", error=str(exc))
                raise StoreError(str(exc)) from exc
        return None if row is None else dict(row)

    def _fetch_all(self, query: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        with self._lock:
            try:
                rows = self._conn.execute(query, params).fetchall()
            except sqlite3.Error as exc:
                logger.error("store_read_failed", error=str(exc))
                raise StoreError(str(exc)) from exc
        return [dict(row) for row in rows]

    def _require(self, table: str, record_id: str | int) -> dict[str, Any]:
        row = self._fetch_one(f"SELECT * FROM {table} WHERE id = ?", (record_id,))
        if row is None:
            raise RecordNotFoundError(table, record_id)
        return row

    def _update_row(
        self,
        conn: sqlite3.Connection,
        table: str,
        record_id: str | int,
        updates: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Apply *updates* to one row and return the row as committed."""
        assignments = ", ".join(f"{column} = ?" for column in updates)
        params = [_sql_value(value) for value in updates.values()]
        params.append(record_id)
        conn.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", params)
        return dict(conn.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,)).fetchone())

    # ------------------------------------------------------------------
    # Sessions and items
    # ------------------------------------------------------------------

    def create_session(
        self,
        submission_id: str,
        *,
        buffer_agent_id: str | None = None,
        lead: Lead | None = None,
        fields: Iterable[str] = DEFAULT_VERIFICATION_FIELDS,
    ) -> tuple[VerificationSession, list[VerificationItem]]:
        """Create a session and its verification items in one transaction.

        Each item's ``original_value`` is taken from the matching field of
        *lead*; fields the lead lacks start with no original value.

        Returns:
            The new session and its items in creation order.
        """
        now = format_timestamp(self.now())
        session_id = uuid.uuid4().hex
        lead_values = lead.model_dump() if lead is not None else {}

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO verification_sessions (
                    id, submission_id, status, buffer_agent_id, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    submission_id,
                    SessionStatus.NOT_STARTED.value,
                    buffer_agent_id,
                    now,
                    now,
                ),
            )
            for field_name in fields:
                original = lead_values.get(field_name)
                conn.execute(
                    """
                    INSERT INTO verification_items (
                        id, session_id, field_name, original_value, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        uuid.uuid4().hex,
                        session_id,
                        field_name,
                        None if original is None else str(original),
                        now,
                        now,
                    ),
                )
            session_row = dict(
                conn.execute(
                    "SELECT * FROM verification_sessions WHERE id = ?", (session_id,)
                ).fetchone()
            )
            item_rows = [
                dict(row)
                for row in conn.execute(
                    "SELECT * FROM verification_items WHERE session_id = ? "
                    "ORDER BY created_at ASC, rowid ASC",
                    (session_id,),
                ).fetchall()
            ]

            self._publish(SESSIONS, ChangeKind.INSERT, new=session_row)
            for item_row in item_rows:
                self._publish(ITEMS, ChangeKind.INSERT, new=item_row)

        logger.info(
            "verification_session_created",
            session_id=session_id,
            submission_id=submission_id,
            item_count=len(item_rows),
        )
        return (
            VerificationSession.model_validate(session_row),
            [VerificationItem.model_validate(row) for row in item_rows],
        )

    def get_session(self, session_id: str) -> VerificationSession:
        """Return the session with *session_id*.

        Raises:
            RecordNotFoundError: If no such session exists.
        """
        return VerificationSession.model_validate(self._require(SESSIONS, session_id))

    def find_session_by_submission(self, submission_id: str) -> VerificationSession | None:
        """Return the most recently created session for a submission, if any."""
        row = self._fetch_one(
            "SELECT * FROM verification_sessions WHERE submission_id = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT 1",
            (submission_id,),
        )
        return None if row is None else VerificationSession.model_validate(row)

    def count_active_sessions(self) -> int:
        """Return how many sessions have not yet completed or transferred."""
        row = self._fetch_one(
            "SELECT COUNT(*) AS active FROM verification_sessions WHERE status NOT IN (?, ?)",
            (SessionStatus.COMPLETED.value, SessionStatus.TRANSFERRED.value),
        )
        return int(row["active"]) if row else 0

    def list_items(self, session_id: str) -> list[VerificationItem]:
        """Return a session's items ordered by creation."""
        rows = self._fetch_all(
            "SELECT * FROM verification_items WHERE session_id = ? "
            "ORDER BY created_at ASC, rowid ASC",
            (session_id,),
        )
        return [VerificationItem.model_validate(row) for row in rows]

    def get_item(self, item_id: str) -> VerificationItem:
        """Return the item with *item_id*.

        Raises:
            RecordNotFoundError: If no such item exists.
        """
        return VerificationItem.model_validate(self._require(ITEMS, item_id))

    def update_item(
        self,
        item_id: str,
        *,
        is_verified: bool = _UNSET,
        verified_value: str | None = _UNSET,
        notes: str | None = _UNSET,
    ) -> VerificationItem:
        """Write one or more item fields and return the committed item.

        Setting ``is_verified`` stamps or clears ``verified_at``.  Writing
        ``verified_value`` recomputes ``is_modified`` against the item's
        ``original_value``.

        Raises:
            RecordNotFoundError: If no such item exists.
            StoreError: If the write fails.
        """
        now = self.now()
        with self._transaction() as conn:
            old = conn.execute("SELECT * FROM verification_items WHERE id = ?", (item_id,)).fetchone()
            if old is None:
                raise RecordNotFoundError(ITEMS, item_id)
            old = dict(old)

            updates: dict[str, Any] = {}
            if is_verified is not _UNSET:
                updates["is_verified"] = bool(is_verified)
                updates["verified_at"] = now if is_verified else None
            if verified_value is not _UNSET:
                updates["verified_value"] = verified_value
                updates["is_modified"] = VerificationItem.compute_is_modified(
                    old["original_value"], verified_value
                )
            if notes is not _UNSET:
                updates["notes"] = notes
            if not updates:
                return VerificationItem.model_validate(old)
            updates["updated_at"] = now

            new = self._update_row(conn, ITEMS, item_id, updates)
            self._publish(ITEMS, ChangeKind.UPDATE, new=new, old=old)

        return VerificationItem.model_validate(new)

    def update_session_status(
        self,
        session_id: str,
        status: SessionStatus,
    ) -> VerificationSession:
        """Move a session forward to *status*, stamping set-once timestamps.

        Re-applying the current status changes nothing and publishes no
        event.

        Raises:
            RecordNotFoundError: If no such session exists.
            InvalidTransitionError: If *status* would move the session backwards.
        """
        with self._transaction() as conn:
            old = self._locked_session(conn, session_id)
            current = VerificationSession.model_validate(old)
            if current.status == status:
                return current

            updates = session_status_updates(current, SessionStatus(status), self.now())
            new = self._update_row(conn, SESSIONS, session_id, updates)
            self._publish(SESSIONS, ChangeKind.UPDATE, new=new, old=old)

        logger.info(
            "verification_session_status_changed",
            session_id=session_id,
            from_status=current.status,
            to_status=status,
        )
        return VerificationSession.model_validate(new)

    def claim_session(self, session_id: str, licensed_agent_id: str) -> VerificationSession:
        """Record the licensed agent taking the call and mark it ready for transfer.

        Sessions already past ``ready_for_transfer`` keep their status and
        only have the licensed agent recorded.

        Raises:
            RecordNotFoundError: If no such session exists.
        """
        now = self.now()
        with self._transaction() as conn:
            old = self._locked_session(conn, session_id)
            current = VerificationSession.model_validate(old)

            updates: dict[str, Any] = {"licensed_agent_id": licensed_agent_id, "updated_at": now}
            target = SessionStatus.READY_FOR_TRANSFER
            if SESSION_STATUS_RANK[current.status] < SESSION_STATUS_RANK[target]:
                updates.update(session_status_updates(current, target, now))

            new = self._update_row(conn, SESSIONS, session_id, updates)
            self._publish(SESSIONS, ChangeKind.UPDATE, new=new, old=old)

        return VerificationSession.model_validate(new)

    def _locked_session(self, conn: sqlite3.Connection, session_id: str) -> dict[str, Any]:
        row = conn.execute("SELECT * FROM verification_sessions WHERE id = ?", (session_id,)).fetchone()
        if row is None:
            raise RecordNotFoundError(SESSIONS, session_id)
        return dict(row)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def insert_notification(self, **fields: Any) -> RetentionCallNotification:
        """Insert a notification row and return it as committed.

        Args:
            **fields: Column values; ``submission_id`` and
                ``notification_type`` are required.
        """
        unknown = set(fields) - _NOTIFICATION_COLUMNS
        if unknown:
            raise ValueError(f"Unknown notification columns: {sorted(unknown)}")

        now = self.now()
        row_values: dict[str, Any] = {
            "id": uuid.uuid4().hex,
            "status": NotificationStatus.PENDING,
            "created_at": now,
            "updated_at": now,
            **fields,
        }
        columns = ", ".join(row_values)
        placeholders = ", ".join("?" for _ in row_values)

        with self._transaction() as conn:
            conn.execute(
                f"INSERT INTO retention_call_notifications ({columns}) VALUES ({placeholders})",
                [_sql_value(value) for value in row_values.values()],
            )
            new = dict(
                conn.execute(
                    "SELECT * FROM retention_call_notifications WHERE id = ?",
                    (row_values["id"],),
                ).fetchone()
            )
            self._publish(NOTIFICATIONS, ChangeKind.INSERT, new=new)

        return RetentionCallNotification.model_validate(new)

    def get_notification(self, notification_id: str) -> RetentionCallNotification:
        """Return the notification with *notification_id*.

        Raises:
            RecordNotFoundError: If no such notification exists.
        """
        return RetentionCallNotification.model_validate(
            self._require(NOTIFICATIONS, notification_id)
        )

    def transition_notification(
        self,
        notification_id: str,
        event: NotificationEvent,
        extra_fields: Mapping[str, Any] | None = None,
    ) -> RetentionCallNotification:
        """Apply a lifecycle event to a notification atomically.

        Args:
            notification_id: The notification to change.
            event: The lifecycle event to apply.
            extra_fields: Licensed-agent columns to stamp in the same write.

        Raises:
            RecordNotFoundError: If no such notification exists.
            InvalidTransitionError: If the event is not valid from the stored status.
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM retention_call_notifications WHERE id = ?",
                (notification_id,),
            ).fetchone()
            if row is None:
                raise RecordNotFoundError(NOTIFICATIONS, notification_id)
            old = dict(row)

            try:
                updates = notification_transition_updates(
                    NotificationStatus(old["status"]), event, self.now()
                )
            except InvalidTransitionError:
                logger.info(
                    "notification_transition_rejected",
                    notification_id=notification_id,
                    status=old["status"],
                    event=str(event),
                )
                raise

            if extra_fields:
                unknown = set(extra_fields) - _STAMPABLE_NOTIFICATION_COLUMNS
                if unknown:
                    raise ValueError(f"Columns cannot be stamped on transition: {sorted(unknown)}")
                updates = {**extra_fields, **updates}

            new = self._update_row(conn, NOTIFICATIONS, notification_id, updates)
            self._publish(NOTIFICATIONS, ChangeKind.UPDATE, new=new, old=old)

        return RetentionCallNotification.model_validate(new)

    def find_notifications(
        self,
        *,
        verification_session_id: str | None = None,
        submission_id: str | None = None,
        buffer_agent_id: str | None = None,
        licensed_agent_id: str | None = None,
        notification_type: NotificationType | None = None,
        statuses: Iterable[NotificationStatus] | None = None,
        created_before: datetime | None = None,
        limit: int | None = None,
    ) -> list[RetentionCallNotification]:
        """Query notifications, newest first.  All filters are optional."""
        conditions: list[str] = []
        params: list[Any] = []

        if verification_session_id is not None:
            conditions.append("verification_session_id = ?")
            params.append(verification_session_id)

        if submission_id is not None:
            conditions.append("submission_id = ?")
            params.append(submission_id)

        if buffer_agent_id is not None:
            conditions.append("buffer_agent_id = ?")
            params.append(buffer_agent_id)

        if licensed_agent_id is not None:
            conditions.append("licensed_agent_id = ?")
            params.append(licensed_agent_id)

        if notification_type is not None:
            conditions.append("notification_type = ?")
            params.append(_sql_value(notification_type))

        if statuses is not None:
            status_values = [_sql_value(status) for status in statuses]
            conditions.append(f"status IN ({', '.join('?' for _ in status_values)})")
            params.extend(status_values)

        if created_before is not None:
            conditions.append("created_at < ?")
            params.append(format_timestamp(created_before))

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        query = (
            f"SELECT * FROM retention_call_notifications {where_clause} "
            "ORDER BY created_at DESC, rowid DESC"
        )
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        return [RetentionCallNotification.model_validate(row) for row in self._fetch_all(query, params)]

    # ------------------------------------------------------------------
    # Call-update log
    # ------------------------------------------------------------------

    def insert_call_log(self, values: Mapping[str, Any]) -> int:
        """Append one call-update log entry and return its row id.

        ``event_details`` is serialized to JSON when given as a mapping.
        """
        unknown = set(values) - _CALL_LOG_COLUMNS
        if unknown:
            raise ValueError(f"Unknown call log columns: {sorted(unknown)}")

        row_values = {"created_at": self.now(), **values}
        details = row_values.get("event_details")
        if details is not None and not isinstance(details, str):
            row_values["event_details"] = json.dumps(details)

        columns = ", ".join(row_values)
        placeholders = ", ".join("?" for _ in row_values)

        with self._transaction() as conn:
            cursor = conn.execute(
                f"INSERT INTO call_update_logs ({columns}) VALUES ({placeholders})",
                [_sql_value(value) for value in row_values.values()],
            )
            log_id = cursor.lastrowid or 0
            new = dict(
                conn.execute("SELECT * FROM call_update_logs WHERE id = ?", (log_id,)).fetchone()
            )
            self._publish(CALL_LOGS, ChangeKind.INSERT, new=new)

        return log_id

    def set_retention_flag(self, log_id: int, is_retention_call: bool) -> None:
        """Stamp ``is_retention_call`` on an existing log entry."""
        with self._transaction() as conn:
            conn.execute(
                "UPDATE call_update_logs SET is_retention_call = ? WHERE id = ?",
                (bool(is_retention_call), log_id),
            )

    def query_call_logs(
        self,
        *,
        submission_id: str | None = None,
        agent_id: str | None = None,
        event_type: str | None = None,
        from_date: str | None = None,
        to_date: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query the call-update log with flexible filtering.

        Args:
            submission_id: Filter by lead submission (exact match).
            agent_id: Filter by acting agent (exact match).
            event_type: Filter by event type (exact match).
            from_date: Entries on or after this ISO 8601 date.
            to_date: Entries on or before this ISO 8601 date.
            limit: Maximum number of results to return (default 50).

        Returns:
            A list of dicts, one per matching entry, newest first.
        """
        conditions, params = _call_log_conditions(
            submission_id=submission_id,
            agent_id=agent_id,
            event_type=event_type,
            from_date=from_date,
            to_date=to_date,
        )
        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        query = (
            f"SELECT * FROM call_update_logs {where_clause} "
            "ORDER BY created_at DESC, id DESC LIMIT ?"
        )
        params.append(limit)

        results: list[dict[str, Any]] = []
        for row in self._fetch_all(query, params):
            if row.get("event_details") is not None:
                row["event_details"] = json.loads(row["event_details"])
            if row.get("is_retention_call") is not None:
                row["is_retention_call"] = bool(row["is_retention_call"])
            results.append(row)
        return results

    def daily_agent_stats(
        self,
        *,
        agent_id: str | None = None,
        agent_type: str | None = None,
        from_date: str | None = None,
        to_date: str | None = None,
    ) -> list[dict[str, Any]]:
        """Count log entries per (day, agent, agent type, event type), newest day first."""
        conditions, params = _call_log_conditions(
            agent_id=agent_id, agent_type=agent_type, from_date=from_date, to_date=to_date
        )
        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        query = f"""
            SELECT substr(created_at, 1, 10) AS day,
                   agent_id, agent_type, event_type, COUNT(*) AS event_count
            FROM call_update_logs {where_clause}
            GROUP BY day, agent_id, agent_type, event_type
            ORDER BY day DESC, agent_id ASC, event_type ASC
        """
        return self._fetch_all(query, params)

    # ------------------------------------------------------------------
    # Callback requests
    # ------------------------------------------------------------------

    def insert_callback_request(
        self,
        submission_id: str,
        request_type: str,
        *,
        customer_name: str | None = None,
        lead_vendor: str | None = None,
        notes: str | None = None,
    ) -> CallbackRequest:
        """Persist a callback request and return it as committed."""
        record_id = uuid.uuid4().hex
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO callback_requests (
                    id, submission_id, request_type, customer_name, lead_vendor, notes, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record_id,
                    submission_id,
                    request_type,
                    customer_name,
                    lead_vendor,
                    notes,
                    format_timestamp(self.now()),
                ),
            )
            new = dict(
                conn.execute("SELECT * FROM callback_requests WHERE id = ?", (record_id,)).fetchone()
            )
            self._publish(CALLBACKS, ChangeKind.INSERT, new=new)

        return CallbackRequest.model_validate(new)

    # ------------------------------------------------------------------
    # Lead and agent projections
    # ------------------------------------------------------------------

    def upsert_lead(self, lead: Lead) -> None:
        """Insert or replace the local projection of a lead."""
        values = lead.model_dump()
        extra = {
            key: value
            for key, value in values.items()
            if key not in _LEAD_COLUMNS and key != "submission_id"
        }
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO leads (
                    submission_id, customer_full_name, phone_number, email, lead_vendor, data
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    lead.submission_id,
                    *(values.get(column) for column in _LEAD_COLUMNS),
                    json.dumps(extra, default=str),
                ),
            )

    def get_lead(self, submission_id: str) -> Lead | None:
        """Return the lead projection for *submission_id*, if known."""
        row = self._fetch_one("SELECT * FROM leads WHERE submission_id = ?", (submission_id,))
        if row is None:
            return None
        extra = json.loads(row.pop("data") or "{}")
        return Lead.model_validate({**extra, **row})

    def upsert_agent_profile(self, profile: AgentProfile) -> None:
        """Insert or replace an agent's display profile."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO agent_profiles (user_id, display_name) VALUES (?, ?)",
                (profile.user_id, profile.display_name),
            )

    def get_agent_profile(self, user_id: str) -> AgentProfile | None:
        """Return the display profile for *user_id*, if known."""
        row = self._fetch_one("SELECT * FROM agent_profiles WHERE user_id = ?", (user_id,))
        return None if row is None else AgentProfile.model_validate(row)


class SqliteProfileDirectory:
    """:class:`ProfileDirectory` backed by the store's ``agent_profiles`` table."""

    def __init__(self, store: VerificationStore) -> None:
        self._store = store

    def get_profile(self, user_id: str) -> AgentProfile | None:
        return self._store.get_agent_profile(user_id)


def _call_log_conditions(
    *,
    submission_id: str | None = None,
    agent_id: str | None = None,
    agent_type: str | None = None,
    event_type: str | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
) -> tuple[list[str], list[Any]]:
    conditions: list[str] = []
    params: list[Any] = []

    if submission_id is not None:
        conditions.append("submission_id = ?")
        params.append(submission_id)

    if agent_id is not None:
        conditions.append("agent_id = ?")
        params.append(agent_id)

    if agent_type is not None:
        conditions.append("agent_type = ?")
        params.append(agent_type)

    if event_type is not None:
        conditions.append("event_type = ?")
        params.append(event_type)

    if from_date is not None:
        conditions.append("created_at >= ?")
        params.append(from_date)

    if to_date is not None:
        # A bare YYYY-MM-DD bound covers the whole of that day.
        if len(to_date) == len("YYYY-MM-DD"):
            conditions.append("substr(created_at, 1, 10) <= ?")
        else:
            conditions.append("created_at <= ?")
        params.append(to_date)

    return conditions, params
