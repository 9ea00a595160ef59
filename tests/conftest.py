"""Pytest configuration and fixtures."""

import os

# settings are read at import time
os.environ.setdefault("BOT_TOKEN", "123456:TEST")
os.environ.setdefault("ADMIN_BOT_TOKEN", "654321:TEST")
os.environ.setdefault("ADMIN_TG_ID", "1000")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "0")

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from refbot.db.bootstrap import ensure_schema
from refbot.db.session import dispose_engine, get_engine, init_engine
from refbot.services.payouts.service import PayoutService
from refbot.services.payouts.sessions import CardSessionStore
from refbot.services.referrals.service import ReferralService

ADMIN_ID = 1000


@pytest_asyncio.fixture
async def db(tmp_path):
    """Fresh SQLite database with the full schema."""
    init_engine(f"sqlite+aiosqlite:///{tmp_path / 'refbot.sqlite'}")
    await ensure_schema()
    yield get_engine()
    await dispose_engine()


@pytest.fixture
def referrals():
    return ReferralService(bonus=Decimal("0.5"))


@pytest.fixture
def sessions():
    return CardSessionStore(ttl_seconds=0)


@pytest.fixture
def payouts(sessions):
    return PayoutService(sessions, min_payout=Decimal("0.5"), min_referrals=1)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def make_message(text: str = "", user_id: int = 42, username: str | None = "tester"):
    message = MagicMock()
    message.text = text
    message.from_user = MagicMock()
    message.from_user.id = user_id
    message.from_user.username = username
    message.answer = AsyncMock()
    return message


def make_callback(data: str = "", user_id: int = 42):
    cb = MagicMock()
    cb.data = data
    cb.from_user = MagicMock()
    cb.from_user.id = user_id
    cb.from_user.username = "tester"
    cb.message = make_message(user_id=user_id)
    cb.message.edit_text = AsyncMock()
    cb.bot = AsyncMock()
    cb.answer = AsyncMock()
    return cb
