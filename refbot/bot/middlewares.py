from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.exceptions import TelegramAPIError
from aiogram.types import TelegramObject, Update

from refbot.bot.callbacks import CHECK_SUBS
from refbot.bot.keyboards import kb_subscribe
from refbot.core.logging import bind_log_context, reset_log_context
from refbot.services.subscriptions.gate import SubscriptionGate

log = logging.getLogger(__name__)


class CorrelationIdMiddleware(BaseMiddleware):
    """Binds corr_id, update_id, tg_id and the bot name to every log record
    emitted while the update is handled."""

    def __init__(self, bot_name: str = "user"):
        self.bot_name = bot_name

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        fields: dict[str, Any] = {"bot": self.bot_name}
        update: Update | None = data.get("event_update")
        if update:
            data["corr_id"] = f"u{update.update_id}"
            fields["corr_id"] = data["corr_id"]
            fields["update_id"] = update.update_id
        from_user = getattr(event, "from_user", None)
        if from_user:
            fields["tg_id"] = from_user.id

        token = bind_log_context(**fields)
        try:
            return await handler(event, data)
        finally:
            reset_log_context(token)


class RateLimitMiddleware(BaseMiddleware):
    """Drops a callback repeated by the same user within `min_interval_sec`."""

    def __init__(self, min_interval_sec: float = 0.4, *, clock: Callable[[], float] = time.monotonic):
        self.min_interval_sec = min_interval_sec
        self._clock = clock
        self._last: dict[tuple[int, str], float] = {}

    def _prune(self, now: float) -> None:
        stale = [k for k, t in self._last.items() if now - t >= self.min_interval_sec]
        for k in stale:
            del self._last[k]

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        cb = getattr(event, "data", None)
        from_user = getattr(event, "from_user", None)
        if cb and from_user:
            key = (from_user.id, cb)
            now = self._clock()
            last = self._last.get(key)
            if last is not None and (now - last) < self.min_interval_sec:
                return None
            # only entries inside the window matter
            self._prune(now)
            self._last[key] = now
        return await handler(event, data)


class SubscriptionGateMiddleware(BaseMiddleware):
    """Blocks every callback except the recheck button until the user is
    subscribed to all required channels."""

    def __init__(self, gate: SubscriptionGate, *, exempt: frozenset[str] = frozenset({CHECK_SUBS})):
        self.gate = gate
        self.exempt = exempt

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        # registered on the callback_query observer only
        if event.data in self.exempt:
            return await handler(event, data)

        tg_id = event.from_user.id
        if await self.gate.is_subscribed(data["bot"], tg_id):
            return await handler(event, data)

        log.info("gate_blocked tg_id=%s action=%s", tg_id, event.data)
        try:
            await event.answer("Для использования бота необходимо подписаться на все каналы!", show_alert=True)
            if event.message:
                await event.message.answer(
                    "⚠️ Для доступа к функционалу бота необходимо подписаться на все каналы:",
                    reply_markup=kb_subscribe(),
                )
        except TelegramAPIError:
            log.exception("gate_prompt_failed tg_id=%s", tg_id)
        return None
