from __future__ import annotations

import asyncio
import logging

from refbot.core.config import settings
from refbot.core.time import local_today
from refbot.db.locks import advisory_unlock, try_advisory_lock
from refbot.db.session import session_scope
from refbot.services.payouts.service import card_sessions
from refbot.services.stats.service import reset_daily_counters_if_due

log = logging.getLogger(__name__)

# how often scheduler loops
SLEEP_SECONDS = 60


async def run_maintenance_once() -> None:
    async with session_scope() as session:
        locked = await try_advisory_lock(session)
        if not locked:
            return
        try:
            today = local_today(settings.stats_timezone)
            await reset_daily_counters_if_due(session, today=today)
            await session.commit()
        finally:
            await advisory_unlock(session)

    dropped = card_sessions.purge_expired()
    if dropped:
        log.info("card_sessions_expired count=%s", dropped)


async def scheduler_loop() -> None:
    """Background maintenance.

    - Reset today_users at local midnight (STATS_TIMEZONE).
    - Drop abandoned card-collection sessions.
    """
    log.info("scheduler_start")

    while True:
        try:
            await run_maintenance_once()
        except Exception:
            log.exception("scheduler_loop_error")

        await asyncio.sleep(SLEEP_SECONDS)
