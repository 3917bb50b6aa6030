"""CLI query interface for the call-update log.

Provides an argparse-based command-line tool for querying log entries
by submission, agent, event type, date range, or a shorthand ``--last``
duration.  ``--stats`` switches to per-day agent counts.  Output formats:
table (default) or JSON.

Usage::

    handoff-logs --submission SUB-1042 --last 7d
    handoff-logs --agent agent-7 --stats --format json
"""

from __future__ import annotations

import argparse
import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from handoff.domain.types import AgentType, CallEventType
from handoff.store.accessor import VerificationStore, format_timestamp
from handoff.store.schema import close_handoff_db, init_handoff_db


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for call-log queries.

    Returns:
        A configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(description="Query the call-update log")

    parser.add_argument("--submission", type=str, help="Filter by lead submission ID")
    parser.add_argument("--agent", type=str, help="Filter by agent ID")
    parser.add_argument(
        "--agent-type",
        type=str,
        choices=[t.value for t in AgentType],
        help="Filter stats by agent type (with --stats)",
    )
    parser.add_argument(
        "--event-type",
        type=str,
        choices=[e.value for e in CallEventType],
        help="Filter by event type",
    )
    parser.add_argument("--from-date", type=str, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--to-date", type=str, help="End date (YYYY-MM-DD)")
    parser.add_argument(
        "--last",
        type=str,
        help='Shorthand duration (e.g., "7d", "24h")',
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Show per-day event counts per agent instead of entries",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["table", "json"],
        default="table",
        dest="output_format",
        help="Output format (default: table)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum results (default: 50)",
    )
    parser.add_argument(
        "--db",
        type=str,
        default="data/handoff.db",
        help="Path to the hand-off database (default: data/handoff.db)",
    )

    return parser


def parse_last_duration(last: str, now: datetime | None = None) -> str:
    """Convert a shorthand duration to an ISO 8601 timestamp.

    Supported formats:
        - ``Nd`` -- N days ago (e.g., ``7d``)
        - ``Nh`` -- N hours ago (e.g., ``24h``)

    Args:
        last: Duration string like ``"7d"`` or ``"24h"``.
        now: Reference time (defaults to the current UTC time).

    Returns:
        Timestamp string in the store's format for the computed past time.

    Raises:
        ValueError: If the format is not recognized.
    """
    if not last or len(last) < 2:
        msg = f"Unrecognized duration format: {last!r}"
        raise ValueError(msg)

    unit = last[-1]
    try:
        value = int(last[:-1])
    except ValueError:
        msg = f"Unrecognized duration format: {last!r}"
        raise ValueError(msg) from None

    now = now or datetime.now(tz=UTC)

    if unit == "d":
        result = now - timedelta(days=value)
    elif unit == "h":
        result = now - timedelta(hours=value)
    else:
        msg = f"Unrecognized duration format: {last!r}. Use 'd' for days or 'h' for hours."
        raise ValueError(msg)

    return format_timestamp(result)


def _truncate(value: Any, width: int) -> str:
    s = "" if value is None else str(value)
    if len(s) > width:
        return s[: width - 3] + "..."
    return s


def _render(headers: list[str], widths: list[int], rows: list[list[Any]]) -> str:
    lines: list[str] = []
    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths, strict=True))
    lines.append(header_line)
    lines.append("-" * len(header_line))
    for cells in rows:
        lines.append(
            "  ".join(_truncate(c, w).ljust(w) for c, w in zip(cells, widths, strict=True))
        )
    return "\n".join(lines)


def format_table(results: list[dict[str, Any]]) -> str:
    """Format log entries as a human-readable table.

    Columns: Timestamp, Event, Agent, Type, Customer, Vendor.

    Args:
        results: Entry dicts from ``query_call_logs``.

    Returns:
        Formatted table string with header row.
    """
    if not results:
        return "No results found."

    return _render(
        ["Timestamp", "Event", "Agent", "Type", "Customer", "Vendor"],
        [27, 30, 20, 8, 20, 15],
        [
            [
                row.get("created_at"),
                row.get("event_type"),
                row.get("agent_name") or row.get("agent_id"),
                row.get("agent_type"),
                row.get("customer_name"),
                row.get("lead_vendor"),
            ]
            for row in results
        ],
    )


def format_stats_table(results: list[dict[str, Any]]) -> str:
    """Format daily agent stats as a table: Day, Agent, Type, Event, Count."""
    if not results:
        return "No results found."

    return _render(
        ["Day", "Agent", "Type", "Event", "Count"],
        [10, 20, 8, 30, 6],
        [
            [
                row.get("day"),
                row.get("agent_id"),
                row.get("agent_type"),
                row.get("event_type"),
                row.get("event_count"),
            ]
            for row in results
        ],
    )


def format_json(results: list[dict[str, Any]]) -> str:
    """Format results as a pretty-printed JSON string."""
    return json.dumps(results, indent=2)


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, query the call-update log, and print results."""
    parser = build_parser()
    args = parser.parse_args(argv)

    from_date = args.from_date
    if args.last:
        from_date = parse_last_duration(args.last)

    db_path = Path(args.db)
    if not db_path.exists():
        db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = init_handoff_db(db_path)

    try:
        store = VerificationStore(conn)
        if args.stats:
            results = store.daily_agent_stats(
                agent_id=args.agent,
                agent_type=args.agent_type,
                from_date=from_date,
                to_date=args.to_date,
            )
            table = format_stats_table
        else:
            results = store.query_call_logs(
                submission_id=args.submission,
                agent_id=args.agent,
                event_type=args.event_type,
                from_date=from_date,
                to_date=args.to_date,
                limit=args.limit,
            )
            table = format_table

        output = format_json(results) if args.output_format == "json" else table(results)

        print(output)
    finally:
        close_handoff_db(conn)


if __name__ == "__main__":
    main()
