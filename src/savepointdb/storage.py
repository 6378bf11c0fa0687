"""
Storage backends for the savepoint key-value database.
"""

import sqlite3
import json
import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from .exceptions import StorageError


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    A backend is a flat mapping of string keys to values. Every operation
    may raise StorageError when the underlying medium fails.
    """

    def initialize(self) -> None:
        """Initialize the storage backend. Does nothing unless overridden."""
        pass

    @abstractmethod
    def save(self, key: str, value: Any) -> None:
        """Insert or replace the value stored under key."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present. Removing an absent key is not an error."""
        pass

    @abstractmethod
    def find(self, key: str) -> Tuple[Any, bool]:
        """
        Look up a key.

        Returns:
            A (value, found) pair. found is False when the key is absent,
            which is distinct from a key stored with a falsy value.
        """
        pass

    @abstractmethod
    def clone(self) -> 'StorageBackend':
        """Return an independent deep copy of this backend."""
        pass

    @abstractmethod
    def flush(self) -> None:
        """Finalize pending state."""
        pass

    def close(self) -> None:
        """Close the storage backend. Does nothing unless overridden."""
        pass


class SQLiteStorage(StorageBackend):
    """
    SQLite-based storage backend.

    Reads and writes go to an in-memory working copy of the database file.
    flush() copies the working copy back into the file, so a clone can be
    mutated freely and only reaches disk once it is flushed.
    """

    def __init__(self, db_path: str = "savepointdb.db",
                 connection: Optional[sqlite3.Connection] = None):
        self.db_path = db_path
        self.connection = connection

    @staticmethod
    def _connect_memory() -> sqlite3.Connection:
        # The owning Database serializes access, but callers may come from any thread.
        return sqlite3.connect(":memory:", check_same_thread=False, isolation_level=None)

    def initialize(self) -> None:
        """Load the database file into a fresh working copy and create tables."""
        if self.connection is not None:
            return

        connection = None
        try:
            connection = self._connect_memory()
            source = sqlite3.connect(self.db_path)
            try:
                source.backup(connection)
            finally:
                source.close()

            connection.execute("""
                CREATE TABLE IF NOT EXISTS kv_data (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
        except sqlite3.Error as e:
            if connection is not None:
                connection.close()
            raise StorageError(f"Failed to open database '{self.db_path}': {e}") from e

        self.connection = connection

    def _get_connection(self) -> sqlite3.Connection:
        if self.connection is None:
            self.initialize()
        return self.connection

    def save(self, key: str, value: Any) -> None:
        """Store a JSON-encoded value in the working copy."""
        connection = self._get_connection()

        try:
            value_json = json.dumps(value)
            connection.execute("""
                INSERT OR REPLACE INTO kv_data (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
            """, (key, value_json))
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise StorageError(f"Failed to save key '{key}': {e}") from e

    def delete(self, key: str) -> None:
        """Delete a key from the working copy."""
        connection = self._get_connection()

        try:
            connection.execute("DELETE FROM kv_data WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete key '{key}': {e}") from e

    def find(self, key: str) -> Tuple[Any, bool]:
        """Find a key in the working copy."""
        connection = self._get_connection()

        try:
            cursor = connection.execute("SELECT value FROM kv_data WHERE key = ?", (key,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to find key '{key}': {e}") from e

        if row is None:
            return None, False

        try:
            return json.loads(row[0]), True
        except json.JSONDecodeError:
            # Fallback for non-JSON values
            return row[0], True

    def clone(self) -> 'SQLiteStorage':
        """Copy the working copy into a new backend bound to the same file."""
        connection = self._get_connection()

        copy_connection = None
        try:
            copy_connection = self._connect_memory()
            connection.backup(copy_connection)
        except sqlite3.Error as e:
            if copy_connection is not None:
                copy_connection.close()
            raise StorageError(f"Failed to clone database '{self.db_path}': {e}") from e

        return SQLiteStorage(self.db_path, connection=copy_connection)

    def flush(self) -> None:
        """Write the working copy into the database file."""
        connection = self._get_connection()

        try:
            target = sqlite3.connect(self.db_path)
            try:
                connection.backup(target)
            finally:
                target.close()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to flush database '{self.db_path}': {e}") from e

    def close(self) -> None:
        """Close the working copy connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        """Context manager entry."""
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


class InMemoryStorage(StorageBackend):
    """In-memory storage backend."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = data if data is not None else {}

    def save(self, key: str, value: Any) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def find(self, key: str) -> Tuple[Any, bool]:
        if key not in self.data:
            return None, False
        return self.data[key], True

    def clone(self) -> 'InMemoryStorage':
        return InMemoryStorage(copy.deepcopy(self.data))

    def flush(self) -> None:
        """Flush in-memory storage."""
        pass  # Nothing to persist
