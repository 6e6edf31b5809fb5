"""Change feed and debounced refetch for live views."""

from scheduling.realtime.debounce import DebouncedRefresher
from scheduling.realtime.feed import ChangeEvent, ChangeFeed, Collection, Operation

__all__ = [
    "ChangeEvent",
    "ChangeFeed",
    "Collection",
    "DebouncedRefresher",
    "Operation",
]
