from __future__ import annotations

import logging
from typing import Iterable

from aiogram import Bot

from refbot.core.config import RequiredChannel, settings

log = logging.getLogger(__name__)

# anything else (member, administrator, creator, restricted) passes
NOT_SUBSCRIBED_STATUSES = frozenset({"left", "kicked", "banned"})


def _status_value(member) -> str:
    status = getattr(member, "status", None)
    # aiogram returns ChatMemberStatus (a str enum)
    return str(getattr(status, "value", status) or "")


class SubscriptionGate:
    """Fail-closed membership check against every required channel."""

    def __init__(self, channels: Iterable[RequiredChannel]) -> None:
        self.channels = tuple(channels)

    async def is_subscribed(self, bot: Bot, tg_id: int) -> bool:
        for channel in self.channels:
            try:
                member = await bot.get_chat_member(chat_id=channel.chat_id, user_id=tg_id)
            except Exception as e:
                # Bot not in channel, channel renamed, network... treat as not subscribed.
                log.warning("membership_check_failed channel=%s tg_id=%s err=%s", channel.chat_id, tg_id, e)
                return False
            if _status_value(member) in NOT_SUBSCRIBED_STATUSES:
                return False
        return True


subscription_gate = SubscriptionGate(settings.required_channels)
