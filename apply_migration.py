#!/usr/bin/env python3
"""
Apply SQL migrations to PostgreSQL

Usage:
    python apply_migration.py migrations/001_add_vip_subscriptions.sql
    python apply_migration.py --all
"""
import glob
import os
import sys

import psycopg2
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "migrations")


def _database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL not found in environment variables")
        sys.exit(1)
    # SQLAlchemy driver suffixes are not understood by libpq
    return database_url.replace("postgresql+psycopg2://", "postgresql://", 1)


def apply_migration(migration_file: str, database_url: str):
    """
    Apply a SQL migration file to the database.

    Args:
        migration_file: Path to the SQL migration file
        database_url: libpq connection string
    """
    if not os.path.exists(migration_file):
        print(f"ERROR: Migration file not found: {migration_file}")
        sys.exit(1)

    with open(migration_file, "r", encoding="utf-8") as f:
        sql_content = f.read()

    print(f"Applying migration: {migration_file}")
    print(f"Database: {database_url.split('@')[1] if '@' in database_url else database_url}")

    conn = None
    try:
        conn = psycopg2.connect(database_url)
        with conn:
            with conn.cursor() as cursor:
                cursor.execute(sql_content)
        print("Migration applied successfully!")
    except psycopg2.Error as e:
        print("ERROR applying migration:")
        print(f"   {e}")
        sys.exit(1)
    finally:
        if conn is not None:
            conn.close()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python apply_migration.py <migration_file.sql> | --all")
        sys.exit(1)

    url = _database_url()
    if sys.argv[1] == "--all":
        for path in sorted(glob.glob(os.path.join(MIGRATIONS_DIR, "*.sql"))):
            apply_migration(path, url)
    else:
        apply_migration(sys.argv[1], url)
