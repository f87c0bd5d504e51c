#!/usr/bin/env python3
"""
Schema migration runner - applies schema/*.sql files that have not been
recorded in schema_migrations yet.

Usage:
    python tools/migrate_schema.py [--dry-run]

Options:
    --dry-run    Show what would be executed without making changes
"""
import argparse
import sys
from pathlib import Path
from typing import List, Tuple

import psycopg

from tokenrisk.core.config import DATABASE_URL
from tokenrisk.core.logger import get_logger

SCHEMA_DIR = Path(__file__).parent.parent / "schema"

logger = get_logger("tools.migrate")


def create_migrations_table(cur):
    cur.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            id SERIAL PRIMARY KEY,
            migration_file TEXT NOT NULL UNIQUE,
            applied_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)


def get_applied_migrations(cur) -> List[str]:
    cur.execute("SELECT migration_file FROM schema_migrations ORDER BY migration_file")
    return [row[0] for row in cur.fetchall()]


def get_pending_migrations(applied: List[str], schema_dir: Path = SCHEMA_DIR) -> List[Tuple[str, str]]:
    """Migration files not yet applied, in filename order."""
    if not schema_dir.exists():
        return []
    files = sorted(f for f in schema_dir.iterdir() if f.is_file() and f.suffix == ".sql")
    return [(f.name, f.read_text()) for f in files if f.name not in applied]


def apply_migration(cur, filename: str, sql: str, dry_run: bool = False):
    if dry_run:
        preview = [line for line in sql.splitlines() if line.strip()][:10]
        logger.info(f"[DRY RUN] {filename} would execute:\n" + "\n".join(preview))
        return

    logger.info(f"Applying {filename}")
    cur.execute(sql)
    cur.execute("INSERT INTO schema_migrations (migration_file) VALUES (%s)", (filename,))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Apply pending schema migrations")
    parser.add_argument("--dry-run", action="store_true", help="show pending migrations without applying them")
    args = parser.parse_args(argv)

    if not DATABASE_URL:
        logger.error("DATABASE_URL environment variable not set")
        return 1

    try:
        with psycopg.connect(DATABASE_URL, connect_timeout=10) as conn:
            with conn.cursor() as cur:
                create_migrations_table(cur)
                conn.commit()

                applied = get_applied_migrations(cur)
                pending = get_pending_migrations(applied)
                logger.info(f"{len(applied)} applied, {len(pending)} pending")
                if not pending:
                    return 0

                for filename, sql in pending:
                    apply_migration(cur, filename, sql, args.dry_run)

            if args.dry_run:
                conn.rollback()
            else:
                conn.commit()
                logger.info("All migrations applied")
        return 0

    except psycopg.Error as e:
        logger.error(f"Migration failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
