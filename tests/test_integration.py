"""
Integration tests for the database, its backends and concurrent callers.
"""

import logging
import pytest
import sys
import os
from concurrent.futures import ThreadPoolExecutor, as_completed

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from savepointdb import Database, InMemoryStorage, StorageBackend
from savepointdb.exceptions import NoActiveTransactionError, StorageError


class FailingStorage(InMemoryStorage):
    """In-memory storage whose operations can be made to fail."""

    def __init__(self, data=None, fail_on=(), clones=None):
        super().__init__(data)
        self.fail_on = set(fail_on)
        self.closed = False
        self.clones = clones if clones is not None else []

    def _check(self, operation):
        if operation in self.fail_on:
            raise StorageError(f"{operation} failed")

    def save(self, key, value):
        self._check("save")
        super().save(key, value)

    def delete(self, key):
        self._check("delete")
        super().delete(key)

    def find(self, key):
        self._check("find")
        return super().find(key)

    def clone(self):
        self._check("clone")
        clone = FailingStorage(dict(self.data), self.fail_on, self.clones)
        self.clones.append(clone)
        return clone

    def flush(self):
        self._check("flush")

    def close(self):
        self.closed = True


class TestBackendErrors:
    """Test how backend failures surface through the database."""

    def test_set_swallows_save_errors(self, caplog):
        """Test that a failed save is logged and not raised."""
        db = Database(FailingStorage(fail_on={"save"}))

        with caplog.at_level(logging.WARNING, logger="savepointdb"):
            db.set("key", 1)

        assert db.get("key") == (None, False)
        assert "Ignoring failed save of key 'key'" in caplog.text

    def test_unset_swallows_delete_errors(self, caplog):
        """Test that a failed delete is logged and not raised."""
        db = Database(FailingStorage({"key": 1}, fail_on={"delete"}))

        with caplog.at_level(logging.WARNING, logger="savepointdb"):
            db.unset("key")

        assert db.get("key") == (1, True)
        assert "Ignoring failed delete of key 'key'" in caplog.text

    def test_get_reports_find_errors_as_missing(self):
        """Test that a failed lookup reads as not found."""
        db = Database(FailingStorage({"key": 1}, fail_on={"find"}))

        assert db.get("key") == (None, False)

    def test_swallowed_errors_inside_transaction(self):
        """Test that nested frames swallow errors from their own clones."""
        db = Database(FailingStorage(fail_on={"save"}))
        db.begin()
        db.begin()

        db.set("key", 1)

        assert db.get_transaction_depth() == 2
        assert db.get("key") == (None, False)

    def test_commit_propagates_flush_errors(self):
        """Test that a failed flush surfaces from commit after the state is adopted."""
        db = Database(FailingStorage(fail_on={"flush"}))
        db.begin()
        db.set("key", 1)

        with pytest.raises(StorageError):
            db.commit()

        assert not db.has_active_transaction()
        assert db.get("key") == (1, True)

    def test_begin_propagates_clone_errors(self):
        """Test that a failed clone opens no transaction."""
        db = Database(FailingStorage(fail_on={"clone"}))

        with pytest.raises(StorageError):
            db.begin()

        assert not db.has_active_transaction()
        with pytest.raises(NoActiveTransactionError):
            db.rollback()

    def test_lock_released_after_error(self):
        """Test that the database stays usable after an operation raised."""
        db = Database(FailingStorage(fail_on={"flush"}))
        db.begin()

        with pytest.raises(StorageError):
            db.commit()

        db.set("after", 2)
        assert db.get("after") == (2, True)


class TestStorageLifecycle:
    """Test which storages the database closes."""

    def test_rollback_closes_discarded_storage(self):
        """Test that the rolled back frame's storage is closed."""
        root = FailingStorage()
        db = Database(root)
        db.begin()
        db.begin()

        outer, inner = root.clones
        db.rollback()

        assert inner.closed
        assert not outer.closed
        assert not root.closed

    def test_commit_closes_intermediate_storage_only(self):
        """Test that commit closes the outer frames but not the database storage it replaced."""
        root = FailingStorage()
        db = Database(root)
        db.begin()
        db.begin()
        db.set("key", 1)

        outer, inner = root.clones
        db.commit()

        assert not root.closed
        assert outer.closed
        assert not inner.closed
        assert db.get("key") == (1, True)
        assert root.find("key") == (None, False)

    def test_close_closes_every_storage(self):
        """Test that close() closes root and open frames."""
        root = FailingStorage()
        db = Database(root)
        db.begin()

        db.close()

        assert root.closed
        assert root.clones[0].closed
        assert not db.has_active_transaction()


class TestCustomBackend:
    """Test that any StorageBackend implementation is accepted."""

    def test_minimal_backend(self):
        """Test a backend implementing only the five point operations."""
        flushes = []

        class DictBackend(StorageBackend):
            def __init__(self, data=None):
                self.data = dict(data or {})

            def save(self, key, value):
                self.data[key] = value

            def delete(self, key):
                self.data.pop(key, None)

            def find(self, key):
                return self.data.get(key), key in self.data

            def clone(self):
                return DictBackend(self.data)

            def flush(self):
                flushes.append(dict(self.data))

        db = Database(DictBackend())
        db.begin()
        db.set("key", 1)
        db.commit()
        db.close()

        assert flushes == [{"key": 1}]
        assert db.get("key") == (1, True)

    def test_incomplete_backend_cannot_be_instantiated(self):
        """Test that the abstract contract must be fully implemented."""

        class PartialBackend(StorageBackend):
            def save(self, key, value):
                pass

        with pytest.raises(TypeError):
            PartialBackend()


class TestConcurrentAccess:
    """Test concurrent callers sharing one database."""

    def test_concurrent_sets(self):
        """Test that concurrent writers never lose a key."""
        db = Database()

        def writer(start):
            for i in range(start, start + 100):
                db.set(f"key{i}", i)

        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [executor.submit(writer, n * 100) for n in range(8)]
            for future in as_completed(futures):
                future.result()

        for i in range(800):
            assert db.get(f"key{i}") == (i, True)

    def test_concurrent_begin_and_rollback(self):
        """Test that interleaved begin/rollback keeps the chain consistent."""
        db = Database()
        db.set("base", 1)

        def worker(_):
            for _ in range(50):
                db.begin()
                db.set("base", 2)
                db.rollback()

        with ThreadPoolExecutor(max_workers=4) as executor:
            list(executor.map(worker, range(4)))

        assert db.get_transaction_depth() == 0
        assert db.get("base") == (1, True)

    def test_concurrent_begin_then_commit(self):
        """Test that every concurrent begin deepens the chain once."""
        db = Database()

        with ThreadPoolExecutor(max_workers=4) as executor:
            list(executor.map(lambda _: db.begin(), range(20)))

        assert db.get_transaction_depth() == 20
        db.set("key", 1)
        db.commit()
        assert db.get_transaction_depth() == 0
        assert db.get("key") == (1, True)
