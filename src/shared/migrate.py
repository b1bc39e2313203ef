"""
Apply pending SQL migrations from a directory, in filename order.

    PYTHONPATH=src DATABASE_URL=postgresql://... python -m shared.migrate [--dir migrations]

Each file runs in its own transaction together with its row in
``schema_migrations``, so a failed file leaves no trace and a re-run resumes
from it. Files already recorded in the ledger are never re-applied.
"""

import argparse
import logging
import sys
from pathlib import Path

from sqlalchemy import Engine, text

from shared.db import get_engine

logger = logging.getLogger(__name__)

DEFAULT_MIGRATIONS_DIR = Path.cwd() / "migrations"

_CREATE_LEDGER = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    filename TEXT PRIMARY KEY,
    applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
)
"""


def list_sql_files(directory: Path) -> list[str]:
    if not directory.is_dir():
        return []
    return sorted(p.name for p in directory.iterdir() if p.suffix.lower() == ".sql")


def applied_migrations(engine: Engine) -> set[str]:
    with engine.begin() as conn:
        conn.execute(text(_CREATE_LEDGER))
        return set(conn.execute(text("SELECT filename FROM schema_migrations")).scalars())


def apply_migration(engine: Engine, filename: str, sql: str) -> None:
    # One migration == one transaction; an exception rolls back both statements.
    with engine.begin() as conn:
        conn.exec_driver_sql(sql)
        conn.execute(
            text("INSERT INTO schema_migrations (filename) VALUES (:filename)"),
            {"filename": filename},
        )


def run_migrations(engine: Engine, directory: Path) -> list[str]:
    """Apply every pending migration and return the filenames applied."""
    files = list_sql_files(directory)
    if not files:
        logger.info("No migrations found in %s", directory)
        return []

    done = applied_migrations(engine)
    pending = [f for f in files if f not in done]
    if not pending:
        logger.info("No pending migrations.")
        return []

    logger.info("Pending migrations (%d): %s", len(pending), ", ".join(pending))
    applied: list[str] = []
    for filename in pending:
        sql = (directory / filename).read_text(encoding="utf-8")
        if not sql.strip():
            logger.info("Skipping empty migration: %s", filename)
            continue
        logger.info("Applying: %s", filename)
        apply_migration(engine, filename, sql)
        applied.append(filename)

    logger.info("All pending migrations applied.")
    return applied


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--dir", type=Path, default=DEFAULT_MIGRATIONS_DIR)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    try:
        run_migrations(get_engine(), args.dir)
    except Exception as exc:
        logger.error("Migration failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
