from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# Columns added after the first bracket release; older databases lack them.
# (name, sqlite_type, postgres_type)
REQUIRED_FIXTURE_COLUMNS: List[Tuple[str, str, str]] = [
    ("placeholder_side_a", "TEXT", "TEXT"),
    ("placeholder_side_b", "TEXT", "TEXT"),
    ("tiebreak_a", "INTEGER", "INTEGER"),
    ("tiebreak_b", "INTEGER", "INTEGER"),
    ("finalized_at", "DATETIME", "TIMESTAMP"),
]

REQUIRED_TOURNAMENT_COLUMNS: List[Tuple[str, str, str]] = [
    ("sport", "TEXT", "TEXT"),
    ("start_date", "DATE", "DATE"),
    ("winner_team_id", "INTEGER", "INTEGER"),
]


def _is_sqlite(engine: Engine) -> bool:
    return engine.dialect.name.lower() == "sqlite"


def _get_existing_columns_sqlite(engine: Engine, table_name: str) -> Dict[str, str]:
    cols: Dict[str, str] = {}
    with engine.connect() as conn:
        res = conn.execute(text(f"PRAGMA table_info({table_name});")).fetchall()
        # PRAGMA table_info returns rows: (cid, name, type, notnull, dflt_value, pk)
        for row in res:
            cols[str(row[1])] = str(row[2])
    return cols


def _get_existing_columns_postgres(engine: Engine, table_name: str) -> Dict[str, str]:
    cols: Dict[str, str] = {}
    sql = """
    SELECT column_name, data_type
    FROM information_schema.columns
    WHERE table_schema = 'public' AND table_name = :table_name;
    """
    with engine.connect() as conn:
        res = conn.execute(text(sql), {"table_name": table_name}).fetchall()
        for row in res:
            cols[str(row[0])] = str(row[1])
    return cols


def _table_exists(engine: Engine, table: str) -> bool:
    with engine.connect() as conn:
        if _is_sqlite(engine):
            result = conn.execute(
                text("SELECT name FROM sqlite_master WHERE type='table' AND name=:table_name"),
                {"table_name": table},
            ).fetchone()
            return bool(result)
        result = conn.execute(
            text("""
            SELECT EXISTS (
                SELECT FROM information_schema.tables
                WHERE table_schema = 'public' AND table_name = :table_name
            )
        """),
            {"table_name": table},
        ).fetchone()
        return bool(result and result[0])


def ensure_columns(engine: Engine, table: str, required: List[Tuple[str, str, str]]) -> List[str]:
    """
    Idempotently adds missing columns to ``table``. Safe to run at every startup.
    Returns the names of the columns that were added.
    """
    if not _table_exists(engine, table):
        # create_all will create it with every column
        return []

    added: List[str] = []
    if _is_sqlite(engine):
        existing = _get_existing_columns_sqlite(engine, table)
        with engine.begin() as conn:
            for name, sqlite_type, _pg_type in required:
                if name in existing:
                    continue
                # SQLite supports ADD COLUMN without IF NOT EXISTS
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {sqlite_type};"))
                added.append(name)
    else:
        existing = _get_existing_columns_postgres(engine, table)
        with engine.begin() as conn:
            for name, _sqlite_type, pg_type in required:
                if name in existing:
                    continue
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS {name} {pg_type};"))
                added.append(name)
    return added


def ensure_fixture_columns(engine: Engine) -> None:
    try:
        from fixturedesk.models.fixture import Fixture

        added = ensure_columns(engine, Fixture.__table__.name, REQUIRED_FIXTURE_COLUMNS)
        if added:
            logger.info("Added fixture columns: %s", ", ".join(added))
    except Exception as e:
        # Log error but don't crash the server
        logger.warning(f"Failed to ensure fixture columns: {e}")


def ensure_tournament_columns(engine: Engine) -> None:
    try:
        from fixturedesk.models.tournament import Tournament

        added = ensure_columns(engine, Tournament.__table__.name, REQUIRED_TOURNAMENT_COLUMNS)
        if added:
            logger.info("Added tournament columns: %s", ", ".join(added))
    except Exception as e:
        logger.warning(f"Failed to ensure tournament columns: {e}")
