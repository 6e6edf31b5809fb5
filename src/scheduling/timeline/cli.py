"""Command-line reader for delivery timelines.

Prints the append-only timeline as a transcript (one entry per line, with the
proposed window when an entry changed it), as JSON, or as a per-action
summary.  ``--last`` accepts ``Nh``, ``Nd`` or ``Nw``.

Usage::

    scheduling-timeline --delivery 3f2a... --format json
    scheduling-timeline --action CANCELLED --last 7d
    scheduling-timeline --last 4w --summary
"""

from __future__ import annotations

import argparse
import json
from collections import Counter
from datetime import UTC, datetime, timedelta
from typing import Any

from scheduling.domain.types import TimelineAction
from scheduling.store.schema import open_database
from scheduling.timeline.store import query_timeline

DEFAULT_DB = "data/scheduling.db"

_DURATION_UNITS = {"h": "hours", "d": "days", "w": "weeks"}


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for timeline queries."""
    parser = argparse.ArgumentParser(
        prog="scheduling-timeline", description="Read delivery timelines"
    )
    parser.add_argument("--delivery", help="only entries of this delivery ID")
    parser.add_argument(
        "--action", choices=[a.value for a in TimelineAction], help="only this timeline action"
    )
    parser.add_argument("--from-date", help="entries on or after this date (YYYY-MM-DD)")
    parser.add_argument("--to-date", help="entries on or before this date (YYYY-MM-DD)")
    parser.add_argument("--last", help="relative window such as 24h, 7d or 2w")
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        dest="output_format",
        help="output format (default: text)",
    )
    parser.add_argument(
        "--summary", action="store_true", help="print entry counts per action instead"
    )
    parser.add_argument("--limit", type=int, default=50, help="maximum entries (default: 50)")
    parser.add_argument("--db", default=DEFAULT_DB, help=f"database path (default: {DEFAULT_DB})")
    return parser


def parse_last_duration(last: str, now: datetime | None = None) -> str:
    """Turn ``"24h"``, ``"7d"`` or ``"2w"`` into a UTC ISO timestamp that far back.

    The result uses the same microsecond format the store writes, so it
    compares correctly against ``created_at``.

    Raises:
        ValueError: If *last* is not a positive integer followed by a unit.
    """
    amount, unit = last[:-1], last[-1:]
    if unit not in _DURATION_UNITS or not amount.isdigit():
        units = ", ".join(_DURATION_UNITS)
        raise ValueError(f"Unrecognized duration format: {last!r} (units: {units})")
    start = (now or datetime.now(tz=UTC)) - timedelta(**{_DURATION_UNITS[unit]: int(amount)})
    return start.astimezone(UTC).isoformat(timespec="microseconds")


def _window(data: dict[str, Any] | None) -> str | None:
    if not data or "proposed_date" not in data:
        return None
    return (
        f"{data['proposed_date']} {data.get('proposed_time_start', '?')}"
        f"-{data.get('proposed_time_end', '?')}"
    )


def format_transcript(entries: list[dict[str, Any]]) -> str:
    """Render entries as ``time  delivery  action  user  description`` lines.

    Entries that carry a proposed window get a second, indented line showing
    the window before and after the action.
    """
    if not entries:
        return "No results found."

    lines: list[str] = []
    for entry in entries:
        stamp = str(entry.get("created_at") or "")[:19].replace("T", " ")
        lines.append(
            f"{stamp:<19}  {entry.get('delivery_id') or '-':<12}  "
            f"{entry.get('action') or '-':<18}  {entry.get('user_id') or 'system':<12}  "
            f"{entry.get('description') or ''}"
        )
        before, after = _window(entry.get("old_data")), _window(entry.get("new_data"))
        if after and after != before:
            lines.append(f"    window: {before or '-'} -> {after}")
    return "\n".join(lines)


def format_summary(entries: list[dict[str, Any]]) -> str:
    """Count entries per action, in lifecycle order."""
    counts = Counter(entry.get("action") for entry in entries)
    if not counts:
        return "No results found."
    width = max(len(action.value) for action in TimelineAction)
    return "\n".join(
        f"{action.value:<{width}}  {counts[action.value]}"
        for action in TimelineAction
        if counts[action.value]
    )


def format_json(entries: list[dict[str, Any]]) -> str:
    return json.dumps(entries, indent=2, ensure_ascii=False)


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, query the timeline, and print results."""
    args = build_parser().parse_args(argv)
    from_date = parse_last_duration(args.last) if args.last else args.from_date

    conn = open_database(args.db)
    try:
        entries = query_timeline(
            conn,
            delivery_id=args.delivery,
            action=args.action,
            from_date=from_date,
            to_date=args.to_date,
            limit=None if args.summary else args.limit,
            newest_first=True,
        )
    finally:
        conn.close()

    dumped = [entry.model_dump(mode="json") for entry in entries]
    if args.summary:
        print(format_summary(dumped))
    elif args.output_format == "json":
        print(format_json(dumped))
    else:
        print(format_transcript(dumped))


if __name__ == "__main__":
    main()
