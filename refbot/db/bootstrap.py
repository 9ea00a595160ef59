"""Idempotent schema bootstrap run at boot.

Creates missing tables, adds columns that older deployments lack and makes
sure the singleton stats row exists. Safe to run multiple times.
"""

from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncEngine

from refbot.db import models  # noqa: F401
from refbot.db.base import Base
from refbot.db.session import get_engine, session_scope
from refbot.repo import ensure_stats_row

log = logging.getLogger(__name__)

# columns added after the first release; all nullable so ADD COLUMN is enough
_LATE_COLUMNS: dict[str, tuple[str, ...]] = {
    "payment_requests": ("card_number", "processed_at"),
    "stats": ("counters_date",),
}


def _missing_columns(sync_conn) -> dict[str, list[str]]:
    insp = inspect(sync_conn)
    missing: dict[str, list[str]] = {}
    for table, wanted in _LATE_COLUMNS.items():
        cols = {c["name"] for c in insp.get_columns(table)}
        absent = [name for name in wanted if name not in cols]
        if absent:
            missing[table] = absent
    return missing


async def ensure_columns(engine: AsyncEngine) -> list[str]:
    """Adds late columns to existing tables. Returns `table.column` names added."""
    added: list[str] = []
    async with engine.begin() as conn:
        missing = await conn.run_sync(_missing_columns)
        for table, names in missing.items():
            for name in names:
                column = Base.metadata.tables[table].c[name]
                ddl_type = column.type.compile(dialect=conn.dialect)
                await conn.execute(text(f'ALTER TABLE {table} ADD COLUMN "{name}" {ddl_type}'))
                added.append(f"{table}.{name}")
    return added


async def ensure_schema(engine: AsyncEngine | None = None) -> None:
    engine = engine or get_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    added = await ensure_columns(engine)
    if added:
        log.info("db_columns_added %s", ",".join(added))

    async with session_scope() as session:
        await ensure_stats_row(session)
        await session.commit()

    log.info("db_schema_ready")
