"""
Durable key-value store adapters
"""

from trave_cache.infrastructure.storage.memory_store import InMemoryKeyValueStore
from trave_cache.infrastructure.storage.protocols import KeyValueStore
from trave_cache.infrastructure.storage.sqlite_store import SqliteKeyValueStore

__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SqliteKeyValueStore",
]
