import asyncio
import contextlib
import logging

from aiogram import Bot, Dispatcher

from refbot.core.config import settings
from refbot.bot.handlers.admin import router as admin_router
from refbot.bot.handlers.menu import router as menu_router
from refbot.bot.handlers.payouts import router as payouts_router
from refbot.bot.handlers.start import router as start_router
from refbot.bot.handlers.subscription import router as subscription_router
from refbot.bot.middlewares import CorrelationIdMiddleware, RateLimitMiddleware, SubscriptionGateMiddleware
from refbot.services.subscriptions.gate import subscription_gate

log = logging.getLogger(__name__)


def build_user_dispatcher(admin_bot: Bot) -> Dispatcher:
    # admin_bot is injected into handlers that notify the admin
    dp = Dispatcher(admin_bot=admin_bot)
    dp.message.middleware(CorrelationIdMiddleware("user"))
    dp.callback_query.middleware(CorrelationIdMiddleware("user"))
    dp.callback_query.middleware(RateLimitMiddleware(min_interval_sec=0.4))
    dp.callback_query.middleware(SubscriptionGateMiddleware(subscription_gate))

    # card input goes first: it captures every message of a user with an open session
    dp.include_router(payouts_router)
    dp.include_router(start_router)
    dp.include_router(subscription_router)
    dp.include_router(menu_router)
    return dp


def build_admin_dispatcher(user_bot: Bot) -> Dispatcher:
    # decisions are announced to users through the user bot
    dp = Dispatcher(user_bot=user_bot)
    dp.message.middleware(CorrelationIdMiddleware("admin"))
    dp.callback_query.middleware(CorrelationIdMiddleware("admin"))
    dp.callback_query.middleware(RateLimitMiddleware(min_interval_sec=0.4))

    dp.include_router(admin_router)
    return dp


async def run_bots() -> None:
    user_bot = Bot(token=settings.bot_token)
    admin_bot = Bot(token=settings.admin_bot_token)

    user_dp = build_user_dispatcher(admin_bot)
    admin_dp = build_admin_dispatcher(user_bot)

    log.info("bot_start")
    admin_task = asyncio.create_task(admin_dp.start_polling(admin_bot, handle_signals=False))
    try:
        await user_dp.start_polling(user_bot)
    finally:
        admin_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await admin_task
        await admin_bot.session.close()
