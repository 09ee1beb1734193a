#!/usr/bin/env python3
"""
Database initialization script for playerlink.

Creates the profile and provisioning intent tables.
For production, use migrations instead.
"""
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from sqlalchemy import inspect

from playerlink.database import close_database, get_database_url, init_database


def main():
    """Initialize database and create all tables."""
    print("=" * 60)
    print("playerlink Database Initialization")
    print("=" * 60)

    try:
        db_url = get_database_url()
        print(f"\nDatabase URL: {db_url.split('@')[1] if '@' in db_url else 'local'}")

        print("\nCreating database tables...")
        engine = init_database(db_url, create_tables=True)
        tables = sorted(inspect(engine).get_table_names())
        print(f"Tables present: {', '.join(tables)}")

        missing = {"profiles", "provisioning_intents"} - set(tables)
        if missing:
            print(f"\nMissing tables: {', '.join(sorted(missing))}")
            return 1

        print("\nDatabase initialization complete!")
        return 0

    except Exception as e:
        print(f"\nError initializing database: {e}")
        import traceback

        traceback.print_exc()
        return 1

    finally:
        close_database()


if __name__ == "__main__":
    sys.exit(main())
