#!/usr/bin/env python3
"""
Check the test database configuration before running the suite.

Tests use a throwaway SQLite file unless TEST_DATABASE_URL is set; this
script makes sure a configured test database can never be the production one.
"""

import os
import sys

from dotenv import load_dotenv


def main() -> int:
    """Validate TEST_DATABASE_URL against DATABASE_URL."""
    print("=" * 70)
    print("Test Database Setup Verification")
    print("=" * 70)
    print()

    load_dotenv()

    prod_db = os.getenv("DATABASE_URL")
    test_db = os.getenv("TEST_DATABASE_URL")

    print("📊 Current Configuration:")
    print(f"   Application DB: {prod_db or '(default SQLite file)'}")
    print(f"   Test DB:        {test_db or '(temporary SQLite file per test)'}")
    print()

    errors = []
    warnings = []

    if test_db and test_db == prod_db:
        errors.append("❌ CRITICAL: Test database is the same as the application database!")
        errors.append("   Tests drop every table after each test.")

    if test_db and not test_db.startswith("sqlite") and "test" not in test_db.lower():
        warnings.append("⚠️  Test database URL doesn't contain 'test'")
        warnings.append("   Consider a database name like 'booking_test'")

    if errors:
        print("🚨 ERRORS FOUND:")
        for error in errors:
            print(f"   {error}")
        print()
        print("Fix these errors before running tests!")
        return 1

    if warnings:
        print("⚠️  WARNINGS:")
        for warning in warnings:
            print(f"   {warning}")
        print()

    print("✅ Test database configuration looks good!")
    print()
    print("Run tests with:")
    print("   pytest")
    return 0


if __name__ == "__main__":
    sys.exit(main())
