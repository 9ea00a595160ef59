"""Daily counter reset and scheduler maintenance."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from refbot import repo
from refbot.core.time import local_today
from refbot.db.session import session_scope
from refbot.scheduler import worker
from refbot.services.payouts.sessions import CardSessionStore
from refbot.services.stats.service import reset_daily_counters_if_due

DAY = date(2026, 3, 1)


async def _stats():
    async with session_scope() as session:
        return await repo.get_stats(session)


async def _reset(today: date) -> bool:
    async with session_scope() as session:
        done = await reset_daily_counters_if_due(session, today=today)
        await session.commit()
    return done


@pytest.mark.asyncio
async def test_first_run_only_stamps_the_day(db, referrals):
    await referrals.register(1, None)

    assert await _reset(DAY) is False

    stats = await _stats()
    assert stats.counters_date == DAY
    assert stats.today_users == 1


@pytest.mark.asyncio
async def test_reset_happens_once_per_day(db, referrals):
    await _reset(DAY)
    await referrals.register(1, None)
    await referrals.register(2, None)

    next_day = date(2026, 3, 2)
    assert await _reset(next_day) is True
    assert await _reset(next_day) is False

    stats = await _stats()
    assert stats.today_users == 0
    assert stats.total_users == 2
    assert stats.counters_date == next_day

    await referrals.register(3, None)
    assert await _reset(next_day) is False
    assert (await _stats()).today_users == 1


@pytest.mark.asyncio
async def test_reset_keeps_total_paid(db):
    async with session_scope() as session:
        await repo.add_total_paid(session, Decimal("2.5"))
        await session.commit()
    await _reset(DAY)

    await _reset(date(2026, 3, 2))

    assert Decimal((await _stats()).total_paid) == Decimal("2.5")


@pytest.mark.asyncio
async def test_maintenance_purges_expired_card_sessions(db, monkeypatch, clock):
    store = CardSessionStore(ttl_seconds=60, clock=clock)
    store.open(1, Decimal("1"))
    clock.advance(120)
    monkeypatch.setattr(worker, "card_sessions", store)

    await worker.run_maintenance_once()

    assert len(store) == 0
    assert (await _stats()).counters_date is not None


def test_local_today_uses_timezone():
    # 22:30 UTC is already the next day in Moscow
    now = datetime(2026, 3, 1, 22, 30, tzinfo=timezone.utc)

    assert local_today("Europe/Moscow", now) == date(2026, 3, 2)
    assert local_today("UTC", now) == date(2026, 3, 1)
