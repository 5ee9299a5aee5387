"""Ad stores used by the batch ingest engine and the API."""

from .memory import MemoryAdStore
from .postgres import SCHEMA_SQL, PostgresAdStore, sql_connect
from .store import AdStore, StoredAd, StoredInsight

__all__ = [
    "SCHEMA_SQL",
    "AdStore",
    "MemoryAdStore",
    "PostgresAdStore",
    "StoredAd",
    "StoredInsight",
    "sql_connect",
]
