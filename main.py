import asyncio
import logging

from refbot.bot.app import run_bots
from refbot.core.config import settings
from refbot.core.logging import setup_logging
from refbot.db.bootstrap import ensure_schema
from refbot.db.session import dispose_engine, init_engine
from refbot.scheduler.worker import scheduler_loop

log = logging.getLogger(__name__)


async def main() -> None:
    setup_logging()

    init_engine(settings.database_url)
    await ensure_schema()

    scheduler_task = None
    if settings.scheduler_enabled:
        scheduler_task = asyncio.create_task(scheduler_loop())

    try:
        await run_bots()
    finally:
        if scheduler_task:
            scheduler_task.cancel()
        await dispose_engine()
        log.info("shutdown")


if __name__ == "__main__":
    asyncio.run(main())
