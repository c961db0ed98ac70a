#!/usr/bin/env python3
# scripts/check_db.py - Check database connection and ledger schema
import sys
import os

from sqlalchemy import inspect

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from enrollment_ledger.core.config import get_settings
from enrollment_ledger.core.db import DatabaseManager

# Columns the ledger cannot run without, per table
REQUIRED_COLUMNS = {
    "students": {"id", "balance", "course_id", "version"},
    "courses": {"id", "price", "status", "is_deleted"},
    "enrollments": {"id", "student_id", "course_id", "status", "amount_paid", "refunded"},
}
ACTIVE_INDEX = "uq_enrollment_active_student_course"


def check_database() -> bool:
    """Connect with the configured DATABASE_URL and verify the ledger tables"""
    settings = get_settings()
    db = DatabaseManager(settings)

    print("Database Connection Check")
    print("=" * 40)
    print(f"Database: {settings.database_location}")
    print("-" * 40)

    try:
        db.initialize()
    except Exception as e:
        print(f"❌ Connection failed: {e}")
        print("\nTroubleshooting:")
        print("1. Verify DATABASE_URL in the .env file")
        print("2. For PostgreSQL, check the server is running and the user can connect")
        return False

    try:
        health = db.health_check()
        print(f"✅ Connection successful ({health.get('response_time_ms')} ms)")

        inspector = inspect(db.engine)
        tables = set(inspector.get_table_names())
        ok = True

        for table, required in REQUIRED_COLUMNS.items():
            if table not in tables:
                print(f"❌ Missing table: {table}")
                ok = False
                continue

            columns = {c["name"] for c in inspector.get_columns(table)}
            missing = sorted(required - columns)
            if missing:
                print(f"❌ {table}: missing columns {', '.join(missing)}")
                ok = False
            else:
                print(f"✅ {table}")

        if "enrollments" in tables:
            indexes = {ix["name"] for ix in inspector.get_indexes("enrollments")}
            if ACTIVE_INDEX in indexes:
                print(f"✅ {ACTIVE_INDEX}")
            else:
                print(f"❌ Missing index {ACTIVE_INDEX}; duplicate active enrollments are possible")
                ok = False

        if not ok:
            print("\n📝 Run 'alembic upgrade head' to bring the schema up to date")
        return ok
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(0 if check_database() else 1)
