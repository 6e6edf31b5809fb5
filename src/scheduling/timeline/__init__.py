"""Append-only delivery timeline: storage and CLI."""

from scheduling.timeline.cli import build_parser
from scheduling.timeline.store import insert_timeline_entry, query_timeline

__all__ = [
    "build_parser",
    "insert_timeline_entry",
    "query_timeline",
]
