from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from refbot.core.time import utcnow
from refbot.db.models import PaymentRequest, PaymentStatus, Stats, User

log = logging.getLogger(__name__)


# ---- users -------------------------------------------------------------------

async def get_user(session: AsyncSession, tg_id: int) -> User | None:
    return await session.get(User, tg_id)


async def user_exists(session: AsyncSession, tg_id: int) -> bool:
    found = await session.scalar(select(User.tg_id).where(User.tg_id == tg_id).limit(1))
    return found is not None


async def insert_user(
    session: AsyncSession,
    tg_id: int,
    *,
    username: str | None,
    referrer_id: int | None,
) -> User:
    now = utcnow()
    user = User(
        tg_id=tg_id,
        username=username,
        balance=Decimal("0"),
        referrer_id=referrer_id,
        join_date=now,
        last_active=now,
    )
    session.add(user)
    await session.flush()
    return user


async def count_referrals(session: AsyncSession, tg_id: int) -> int:
    cnt = await session.scalar(select(func.count()).select_from(User).where(User.referrer_id == tg_id))
    return int(cnt or 0)


async def list_referrals(session: AsyncSession, tg_id: int, *, limit: int | None = None) -> list[User]:
    q = select(User).where(User.referrer_id == tg_id).order_by(User.join_date.asc(), User.tg_id.asc())
    if limit:
        q = q.limit(limit)
    return list((await session.scalars(q)).all())


async def sum_referral_balances(session: AsyncSession, tg_id: int) -> Decimal:
    total = await session.scalar(
        select(func.coalesce(func.sum(User.balance), 0)).where(User.referrer_id == tg_id)
    )
    return Decimal(str(total or 0))


async def credit_balance(session: AsyncSession, tg_id: int, amount: Decimal) -> int:
    """`balance = balance + amount`. Returns affected rows (0 if no such user)."""
    res = await session.execute(
        update(User).where(User.tg_id == tg_id).values(balance=User.balance + amount)
    )
    return int(res.rowcount or 0)


async def zero_balance(session: AsyncSession, tg_id: int) -> int:
    res = await session.execute(update(User).where(User.tg_id == tg_id).values(balance=Decimal("0")))
    return int(res.rowcount or 0)


async def detach_referrals(session: AsyncSession, tg_id: int) -> int:
    """Clears referrer_id for everyone invited by tg_id."""
    res = await session.execute(update(User).where(User.referrer_id == tg_id).values(referrer_id=None))
    return int(res.rowcount or 0)


# ---- stats -------------------------------------------------------------------

async def get_stats(session: AsyncSession) -> Stats | None:
    return await session.scalar(select(Stats).order_by(Stats.id.asc()).limit(1))


async def ensure_stats_row(session: AsyncSession) -> Stats:
    row = await get_stats(session)
    if row is None:
        row = Stats(total_users=0, today_users=0, total_paid=Decimal("0"))
        session.add(row)
        await session.flush()
        log.info("stats_row_created")
    return row


async def bump_registration_counters(session: AsyncSession) -> None:
    await session.execute(
        update(Stats).values(
            total_users=Stats.total_users + 1,
            today_users=Stats.today_users + 1,
            last_updated=utcnow(),
        )
    )


async def add_total_paid(session: AsyncSession, amount: Decimal) -> None:
    await session.execute(
        update(Stats).values(total_paid=Stats.total_paid + amount, last_updated=utcnow())
    )


async def reset_today_users(session: AsyncSession, *, day: date) -> None:
    await session.execute(
        update(Stats).values(today_users=0, counters_date=day, last_updated=utcnow())
    )


# ---- payment requests --------------------------------------------------------

async def create_payment_request(
    session: AsyncSession,
    tg_id: int,
    *,
    amount: Decimal,
    card_number: str,
) -> PaymentRequest:
    req = PaymentRequest(
        tg_id=tg_id,
        amount=amount,
        card_number=card_number,
        status=PaymentStatus.PENDING.value,
        request_date=utcnow(),
    )
    session.add(req)
    await session.flush()  # get id
    return req


async def latest_pending_request(session: AsyncSession, tg_id: int) -> PaymentRequest | None:
    q = (
        select(PaymentRequest)
        .where(PaymentRequest.tg_id == tg_id, PaymentRequest.status == PaymentStatus.PENDING.value)
        .order_by(PaymentRequest.request_date.desc(), PaymentRequest.id.desc())
        .limit(1)
    )
    return await session.scalar(q)


async def pending_requests(session: AsyncSession, tg_id: int) -> list[PaymentRequest]:
    q = select(PaymentRequest).where(
        PaymentRequest.tg_id == tg_id,
        PaymentRequest.status == PaymentStatus.PENDING.value,
    )
    return list((await session.scalars(q)).all())


async def list_pending_requests(session: AsyncSession, *, limit: int = 20) -> list[PaymentRequest]:
    q = (
        select(PaymentRequest)
        .where(PaymentRequest.status == PaymentStatus.PENDING.value)
        .order_by(PaymentRequest.request_date.asc(), PaymentRequest.id.asc())
        .limit(limit)
    )
    return list((await session.scalars(q)).all())


async def close_pending_request(
    session: AsyncSession,
    req_id: int,
    *,
    status: PaymentStatus,
    processed_at: datetime,
) -> int:
    """Moves a request out of `pending`. Returns 0 if it was already decided."""
    res = await session.execute(
        update(PaymentRequest)
        .where(PaymentRequest.id == req_id, PaymentRequest.status == PaymentStatus.PENDING.value)
        .values(status=status.value, processed_at=processed_at)
    )
    return int(res.rowcount or 0)
