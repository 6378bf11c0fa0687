#!/usr/bin/env python3
"""
Example running the database over the SQLite storage backend.
"""

import sys
import os
import tempfile

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from savepointdb import Database, SQLiteStorage


def demonstrate_sqlite_flush():
    """Demonstrate that commit flushes the adopted state to the file."""
    print("=== SQLite Storage Demo ===\n")

    # Create temporary database file
    temp_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
    temp_db.close()
    db_path = temp_db.name

    print(f"Using database: {db_path}")

    try:
        print("\n1. First database instance - committing data:")
        with Database(SQLiteStorage(db_path)) as db:
            db.begin()
            db.set("counter", 10)
            print("   - Outer transaction: counter=10")

            db.begin()
            db.set("counter", 20)
            print("   - Inner transaction: counter=20")

            db.rollback()
            print(f"   - Rolled back inner transaction, counter={db.get('counter')}")

            db.commit()
            print("   - Committed outer transaction")

            db.begin()
            db.set("counter", 99)
            print("   - Left a transaction open with counter=99")

        print("\n2. Second database instance - reading the file:")
        with Database(SQLiteStorage(db_path)) as db:
            print(f"   - counter: {db.get('counter')}")

    finally:
        # Clean up
        if os.path.exists(db_path):
            os.unlink(db_path)
            print(f"\n   - Cleaned up database: {db_path}")


if __name__ == "__main__":
    demonstrate_sqlite_flush()
