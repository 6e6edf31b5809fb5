"""SQLite record store for the scheduling service.

Provides the schema, row serializers and the ``DeliveryStore``.
"""

from scheduling.store.schema import init_schema, open_database
from scheduling.store.serializers import (
    delivery_from_row,
    delivery_to_row,
    from_db_timestamp,
    to_db_timestamp,
)
from scheduling.store.store import DeliveryStore

__all__ = [
    "DeliveryStore",
    "delivery_from_row",
    "delivery_to_row",
    "from_db_timestamp",
    "init_schema",
    "open_database",
    "to_db_timestamp",
]
