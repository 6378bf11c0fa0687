#!/usr/bin/env python3
"""
Example usage of the savepoint key-value database.
"""

import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from savepointdb import Database, NoActiveTransactionError


def main():
    """Demonstrate the Database functionality."""
    print("=== Savepoint Key-Value Database Demo ===\n")

    # Initialize database
    db = Database()
    print("1. Database initialized")

    # Basic operations
    print("\n2. Basic operations (no transaction):")
    db.set("visits", 3)
    db.set("errors", 0)
    print("   - Set visits=3, errors=0")
    print(f"   - Get visits: {db.get('visits')}")
    print(f"   - Get errors: {db.get('errors')}")
    print(f"   - Get missing: {db.get('missing')}")

    # Nested rollback
    print("\n3. Nested transactions with rollback:")
    db.begin()
    db.set("a", 50)
    print("   - Outer transaction: set a=50")

    db.begin()
    db.set("a", 60)
    print("   - Inner transaction: set a=60")
    print(f"   - Current value of a: {db.get('a')}")

    print("   - Rolling back inner transaction...")
    db.rollback()
    print(f"   - Value of a after rollback: {db.get('a')}")
    print(f"   - Open transactions: {db.get_transaction_depth()}")

    # Nested commit
    print("\n4. Commit closes every open transaction:")
    db.begin()
    db.set("a", 70)
    print("   - Inner transaction: set a=70")
    db.commit()
    print(f"   - Value of a after commit: {db.get('a')}")
    print(f"   - Open transactions: {db.get_transaction_depth()}")

    # Nothing left to commit
    print("\n5. Commit without a transaction:")
    try:
        db.commit()
    except NoActiveTransactionError as e:
        print(f"   - Refused (as expected): {e}")

    print("\n=== Demo completed successfully! ===")


if __name__ == "__main__":
    main()
