from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from refbot import repo

log = logging.getLogger(__name__)


async def reset_daily_counters_if_due(session: AsyncSession, *, today: date) -> bool:
    """Zeroes `today_users` once per local day. Returns True if it reset.

    A row that never went through a reset only gets its date stamped, so the
    first boot does not wipe counters collected earlier that day.
    """
    stats = await repo.ensure_stats_row(session)
    if stats.counters_date is None:
        stats.counters_date = today
        await session.flush()
        return False
    if stats.counters_date >= today:
        return False

    prev = stats.today_users
    await repo.reset_today_users(session, day=today)
    log.info("daily_stats_reset day=%s prev_today_users=%s", today.isoformat(), prev)
    return True
