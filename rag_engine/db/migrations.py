"""
Database migration utilities.
"""
import os
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from . import engine as default_engine
from ..logging_config import logger


def _split_statements(sql: str):
    """Split a script into single statements; the SQLite driver runs one per call."""
    lines = [line for line in sql.splitlines() if not line.strip().startswith("--")]
    for statement in "\n".join(lines).split(";"):
        if statement.strip():
            yield statement.strip()


def run_sql_migrations(db_engine: Optional[Engine] = None) -> int:
    """
    Run all SQL migration files in the scripts directory.

    Migration files should:
    - Be named with a sortable prefix (e.g., 001_initial.sql, 002_add_columns.sql)
    - End with .sql extension
    - Be idempotent (safe to run multiple times)

    Returns:
        Number of migration files executed

    Raises:
        Exception: If any migration fails
    """
    db_engine = db_engine or default_engine
    migrations_dir = os.path.join(os.path.dirname(__file__), "scripts")

    if not os.path.exists(migrations_dir):
        logger.warning("Migrations directory not found", path=migrations_dir)
        return 0

    migration_files = sorted(
        f for f in os.listdir(migrations_dir)
        if f.endswith(".sql")
    )

    if not migration_files:
        logger.warning("No migration files found", path=migrations_dir)
        return 0

    with db_engine.begin() as conn:
        for filename in migration_files:
            filepath = os.path.join(migrations_dir, filename)
            logger.debug("Running migration", file=filename)

            with open(filepath, "r", encoding="utf-8") as f:
                sql = f.read()

            for statement in _split_statements(sql):
                conn.execute(text(statement))

    logger.info("Executed migrations", count=len(migration_files))
    return len(migration_files)
