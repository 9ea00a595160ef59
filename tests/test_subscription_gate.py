from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from aiogram.enums import ChatMemberStatus
from aiogram.exceptions import TelegramBadRequest

from refbot.core.config import RequiredChannel, parse_channels
from refbot.services.subscriptions.gate import SubscriptionGate

CHANNELS = (
    RequiredChannel(chat_id="@first", name="First", url="https://t.me/first"),
    RequiredChannel(chat_id="@second", name="Second", url="https://t.me/second"),
)


def _bot(*statuses):
    bot = AsyncMock()
    bot.get_chat_member.side_effect = [SimpleNamespace(status=s) for s in statuses]
    return bot


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [ChatMemberStatus.MEMBER, ChatMemberStatus.ADMINISTRATOR, ChatMemberStatus.CREATOR, ChatMemberStatus.RESTRICTED],
)
async def test_member_statuses_pass(status):
    gate = SubscriptionGate(CHANNELS)
    assert await gate.is_subscribed(_bot(status, status), 42) is True


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [ChatMemberStatus.LEFT, ChatMemberStatus.KICKED, "banned"])
async def test_non_member_statuses_fail(status):
    gate = SubscriptionGate(CHANNELS)
    assert await gate.is_subscribed(_bot(ChatMemberStatus.MEMBER, status), 42) is False


@pytest.mark.asyncio
async def test_first_failure_short_circuits():
    gate = SubscriptionGate(CHANNELS)
    bot = _bot(ChatMemberStatus.LEFT, ChatMemberStatus.MEMBER)

    assert await gate.is_subscribed(bot, 42) is False
    assert bot.get_chat_member.await_count == 1
    bot.get_chat_member.assert_awaited_with(chat_id="@first", user_id=42)


@pytest.mark.asyncio
async def test_lookup_error_counts_as_not_subscribed():
    gate = SubscriptionGate(CHANNELS)
    bot = AsyncMock()
    bot.get_chat_member.side_effect = TelegramBadRequest(method=AsyncMock(), message="chat not found")

    assert await gate.is_subscribed(bot, 42) is False


@pytest.mark.asyncio
async def test_no_channels_means_subscribed():
    bot = AsyncMock()
    assert await SubscriptionGate(()).is_subscribed(bot, 42) is True
    bot.get_chat_member.assert_not_awaited()


def test_parse_channels():
    parsed = parse_channels("@news|News;-1001234|Private|https://t.me/+abc")

    assert parsed[0] == RequiredChannel(chat_id="@news", name="News", url="https://t.me/news")
    assert parsed[1].chat_id == "-1001234"
    assert parsed[1].url == "https://t.me/+abc"
