"""
Custom exceptions for the savepoint key-value database.
"""


class StoreError(Exception):
    """Base exception for all database-related errors."""
    pass


class TransactionError(StoreError):
    """Exception raised for transaction-related errors."""
    pass


class NoActiveTransactionError(TransactionError):
    """Exception raised when trying to commit/rollback without an active transaction."""
    pass


class StorageError(StoreError):
    """Exception raised when a storage backend fails to read, write, clone or flush."""
    pass
