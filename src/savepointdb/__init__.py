"""
Savepoint Key-Value Database

A Python implementation of a key-value database with nested, savepoint-style
transactions layered over a pluggable storage backend.
"""

from .store import Database, new_database, new_database_with_storage
from .storage import StorageBackend, SQLiteStorage, InMemoryStorage
from .transaction import Frame
from .exceptions import (
    StoreError,
    TransactionError,
    NoActiveTransactionError,
    StorageError,
)

__version__ = "0.1.0"
__all__ = [
    "Database",
    "new_database",
    "new_database_with_storage",
    "Frame",
    "StorageBackend",
    "SQLiteStorage",
    "InMemoryStorage",
    "StoreError",
    "TransactionError",
    "NoActiveTransactionError",
    "StorageError",
]
