"""
Main Database class implementation for the savepoint key-value database.
"""

import logging
import threading
from typing import Callable, Optional, Tuple

from .storage import StorageBackend, InMemoryStorage
from .transaction import Frame
from .exceptions import NoActiveTransactionError


logger = logging.getLogger(__name__)


class Database:
    """
    A key-value database with nested, savepoint-style transactions.

    Outside a transaction, writes go straight to the storage backend.
    begin() opens a new innermost transaction holding a full copy of the
    current state; commit() adopts the innermost state and closes every
    open transaction at once; rollback() discards the innermost one only.

    Example usage:
        # In-memory database
        db = Database()

        # Database over a SQLite file
        from savepointdb.storage import SQLiteStorage
        db = Database(storage_backend=SQLiteStorage("mydb.db"))

        db.set("a", 10)
        db.begin()
        db.set("a", 50)
        db.begin()
        db.set("a", 60)
        db.rollback()
        db.get("a")     # (50, True)
        db.commit()
        db.get("a")     # (50, True), no transaction open
    """

    def __init__(self, storage_backend: Optional[StorageBackend] = None) -> None:
        """
        Initialize the database.

        Args:
            storage_backend: Optional storage backend. If None, uses
                           in-memory storage.
        """
        if storage_backend is None:
            storage_backend = InMemoryStorage()
        storage_backend.initialize()

        self._root = Frame(storage_backend)
        self._lock = threading.Lock()

    def set(self, key: str, value: int) -> None:
        """
        Set a key to the given value in the innermost transaction.

        Backend failures are logged and otherwise ignored.
        """
        with self._lock:
            self._root.set(key, value)

    def get(self, key: str) -> Tuple[Optional[int], bool]:
        """
        Get the value for a key.

        Returns:
            A (value, found) pair. found is False when the key is unset or
            holds something other than an integer, in which case value is None.
        """
        with self._lock:
            return self._root.get(key)

    def unset(self, key: str) -> None:
        """Unset a key in the innermost transaction. Unsetting a missing key is a no-op."""
        with self._lock:
            self._root.unset(key)

    def begin(self) -> None:
        """
        Begin a new innermost transaction.

        Raises:
            StorageError: If the backend cannot be cloned
        """
        with self._lock:
            self._root.begin()
            logger.debug("Transaction opened, depth=%d", self._root.depth())

    def commit(self) -> None:
        """
        Commit every open transaction.

        The innermost transaction's state becomes the database state and
        all open transactions are closed. The new state is then flushed.
        The replaced database storage is left open.

        Raises:
            NoActiveTransactionError: If no transaction is active
            StorageError: If flushing the backend fails
        """
        with self._lock:
            if self._root.child is None:
                raise NoActiveTransactionError("No active transaction to commit")

            innermost = self._root.innermost()
            frame = self._root.child
            while frame is not innermost:
                frame.storage.close()
                frame = frame.child

            depth = self._root.depth()
            self._root = Frame(innermost.storage)
            logger.debug("Committed %d open transaction(s)", depth)

            self._root.storage.flush()

    def rollback(self) -> None:
        """
        Rollback the innermost transaction.

        Outer transactions stay open.

        Raises:
            NoActiveTransactionError: If no transaction is active
        """
        with self._lock:
            if self._root.child is None:
                raise NoActiveTransactionError("No active transaction to rollback")

            discarded = self._root.discard_innermost()
            discarded.storage.close()
            logger.debug("Transaction rolled back, depth=%d", self._root.depth())

    # Additional utility methods

    def has_active_transaction(self) -> bool:
        """
        Check if there's an active transaction.

        Returns:
            True if there's an active transaction, False otherwise
        """
        with self._lock:
            return self._root.child is not None

    def get_transaction_depth(self) -> int:
        """Number of currently open transactions."""
        with self._lock:
            return self._root.depth()

    def close(self) -> None:
        """
        Close the storage of every open transaction and the database storage.

        Open transactions are discarded without being committed.
        """
        with self._lock:
            frame = self._root
            while frame is not None:
                frame.storage.close()
                frame = frame.child
            self._root.child = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


def new_database(storage_factory: Callable[[], StorageBackend] = InMemoryStorage) -> Database:
    """Build a database over a fresh backend from storage_factory (in-memory by default)."""
    return Database(storage_factory())


def new_database_with_storage(storage: StorageBackend) -> Database:
    """Build a database over a caller-supplied backend."""
    return Database(storage)
