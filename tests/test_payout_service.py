"""Payout request lifecycle: eligibility, card collection, admin decisions."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError

from refbot import repo
from refbot.core.time import utcnow
from refbot.db.models import PaymentRequest, PaymentStatus
from refbot.db.session import session_scope
from refbot.services.payouts.service import (
    BeginOutcome,
    DecisionOutcome,
    SubmitOutcome,
    evaluate_eligibility,
)

CARD = "1234-5678-9012-3456"


async def _eligible_user(referrals) -> int:
    """User 1 with one invitee and a 0.5 balance."""
    await referrals.register(1, "alice")
    await referrals.register(2, "bob", referrer_id=1)
    return 1


async def _requests(tg_id: int) -> list[PaymentRequest]:
    async with session_scope() as session:
        q = select(PaymentRequest).where(PaymentRequest.tg_id == tg_id).order_by(PaymentRequest.id)
        return list((await session.scalars(q)).all())


async def _balance(tg_id: int) -> Decimal:
    async with session_scope() as session:
        return Decimal((await repo.get_user(session, tg_id)).balance)


@pytest.mark.parametrize(
    "balance, referrals_count, eligible, unmet",
    [
        (Decimal("0.5"), 1, True, ()),
        (Decimal("3"), 5, True, ()),
        (Decimal("0.4"), 1, False, ("balance",)),
        (Decimal("0.5"), 0, False, ("referrals",)),
        (Decimal("0"), 0, False, ("referrals", "balance")),
    ],
)
def test_evaluate_eligibility(balance, referrals_count, eligible, unmet):
    elig = evaluate_eligibility(balance, referrals_count, min_balance=Decimal("0.5"), min_referrals=1)
    assert elig.eligible is eligible
    assert elig.unmet == unmet


@pytest.mark.asyncio
async def test_check_eligibility(db, referrals, payouts):
    tg_id = await _eligible_user(referrals)

    elig = await payouts.check_eligibility(tg_id)
    assert elig.eligible
    assert elig.balance == Decimal("0.5")
    assert elig.referrals_count == 1

    assert not (await payouts.check_eligibility(2)).eligible
    assert await payouts.check_eligibility(404) is None


@pytest.mark.asyncio
async def test_begin_request_requires_eligibility(db, referrals, payouts, sessions):
    await referrals.register(1, "alice")

    res = await payouts.begin_request(1)

    assert res.outcome is BeginOutcome.INELIGIBLE
    assert not sessions.is_awaiting(1)


@pytest.mark.asyncio
async def test_begin_request_rechecks_after_balance_reset(db, referrals, payouts, sessions):
    tg_id = await _eligible_user(referrals)
    assert (await payouts.check_eligibility(tg_id)).eligible

    # admin zeroed the balance while the payout screen was open
    await referrals.reset_balance(tg_id)

    res = await payouts.begin_request(tg_id)
    assert res.outcome is BeginOutcome.INELIGIBLE
    assert not sessions.is_awaiting(tg_id)


@pytest.mark.asyncio
async def test_begin_request_opens_session_with_balance_snapshot(db, referrals, payouts, sessions):
    tg_id = await _eligible_user(referrals)

    res = await payouts.begin_request(tg_id)

    assert res.outcome is BeginOutcome.STARTED
    assert sessions.is_awaiting(tg_id)
    assert sessions.get(tg_id).amount == Decimal("0.5")


@pytest.mark.asyncio
async def test_invalid_card_keeps_session_open(db, referrals, payouts, sessions):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)

    res = await payouts.submit_card(tg_id, "not a card")

    assert res.outcome is SubmitOutcome.INVALID_FORMAT
    assert sessions.is_awaiting(tg_id)
    assert await _requests(tg_id) == []


@pytest.mark.asyncio
async def test_submit_without_session(db, referrals, payouts):
    tg_id = await _eligible_user(referrals)

    res = await payouts.submit_card(tg_id, CARD)

    assert res.outcome is SubmitOutcome.NO_SESSION
    assert await _requests(tg_id) == []


@pytest.mark.asyncio
async def test_submit_creates_pending_request(db, referrals, payouts, sessions):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)

    res = await payouts.submit_card(tg_id, CARD)

    assert res.outcome is SubmitOutcome.SUBMITTED
    assert res.amount == Decimal("0.5")
    assert res.card_number == "1234567890123456"
    assert res.masked_card == "**** **** **** 3456"
    assert not sessions.is_awaiting(tg_id)

    (req,) = await _requests(tg_id)
    assert req.id == res.request_id
    assert req.status == PaymentStatus.PENDING.value
    assert Decimal(req.amount) == Decimal("0.5")
    assert req.card_number == "1234567890123456"
    # balance is only debited on approval
    assert await _balance(tg_id) == Decimal("0.5")


@pytest.mark.asyncio
async def test_second_request_while_pending(db, referrals, payouts, sessions):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    await payouts.submit_card(tg_id, CARD)

    res = await payouts.begin_request(tg_id)

    assert res.outcome is BeginOutcome.PENDING_EXISTS
    assert not sessions.is_awaiting(tg_id)


@pytest.mark.asyncio
async def test_approve_pays_out(db, referrals, payouts):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    sub = await payouts.submit_card(tg_id, CARD)

    res = await payouts.approve(tg_id)

    assert res.outcome is DecisionOutcome.APPLIED
    assert res.request_id == sub.request_id
    assert res.amount == Decimal("0.5")
    assert await _balance(tg_id) == Decimal("0")

    (req,) = await _requests(tg_id)
    assert req.status == PaymentStatus.APPROVED.value
    assert req.processed_at is not None

    stats = await referrals.get_stats()
    assert stats.total_paid == Decimal("0.5")


@pytest.mark.asyncio
async def test_approve_twice_is_reported(db, referrals, payouts):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    await payouts.submit_card(tg_id, CARD)
    await payouts.approve(tg_id)

    again = await payouts.approve(tg_id)

    assert again.outcome is DecisionOutcome.NO_PENDING
    stats = await referrals.get_stats()
    assert stats.total_paid == Decimal("0.5")


@pytest.mark.asyncio
async def test_approve_without_request(db, referrals, payouts):
    tg_id = await _eligible_user(referrals)

    res = await payouts.approve(tg_id)

    assert res.outcome is DecisionOutcome.NO_PENDING
    assert await _balance(tg_id) == Decimal("0.5")


@pytest.mark.asyncio
async def test_reject_keeps_balance(db, referrals, payouts):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    await payouts.submit_card(tg_id, CARD)

    res = await payouts.reject(tg_id)

    assert res.outcome is DecisionOutcome.APPLIED
    assert await _balance(tg_id) == Decimal("0.5")
    (req,) = await _requests(tg_id)
    assert req.status == PaymentStatus.REJECTED.value

    # user may ask again
    assert (await payouts.begin_request(tg_id)).outcome is BeginOutcome.STARTED
    assert (await payouts.reject(404)).outcome is DecisionOutcome.NO_PENDING


@pytest.mark.asyncio
async def test_clear_history(db, referrals, payouts, sessions):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    sub = await payouts.submit_card(tg_id, CARD)

    res = await payouts.clear_history(tg_id)

    assert res.outcome is DecisionOutcome.APPLIED
    assert res.canceled_request_ids == (sub.request_id,)
    assert res.detached_referrals == 1
    assert await _balance(tg_id) == Decimal("0")
    assert await referrals.get_referral_count(tg_id) == 0
    (req,) = await _requests(tg_id)
    assert req.status == PaymentStatus.CANCELED.value
    assert (await payouts.approve(tg_id)).outcome is DecisionOutcome.NO_PENDING


@pytest.mark.asyncio
async def test_clear_history_drops_open_card_session(db, referrals, payouts, sessions):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    assert sessions.is_awaiting(tg_id)

    res = await payouts.clear_history(tg_id)

    assert res.canceled_request_ids == ()
    assert not sessions.is_awaiting(tg_id)


@pytest.mark.asyncio
async def test_list_pending(db, referrals, payouts):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    sub = await payouts.submit_card(tg_id, CARD)

    assert await payouts.list_pending() == [(sub.request_id, tg_id, Decimal("0.5"))]

    await payouts.approve(tg_id)
    assert await payouts.list_pending() == []


@pytest.mark.asyncio
async def test_parallel_approvals_pay_once(db, referrals, payouts):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    await payouts.submit_card(tg_id, CARD)

    results = await asyncio.gather(payouts.approve(tg_id), payouts.approve(tg_id))

    outcomes = [r.outcome for r in results]
    assert outcomes.count(DecisionOutcome.APPLIED) == 1
    stats = await referrals.get_stats()
    assert stats.total_paid == Decimal("0.5")
    (req,) = await _requests(tg_id)
    assert req.status == PaymentStatus.APPROVED.value


@pytest.mark.asyncio
async def test_decided_request_is_not_closed_again(db, referrals, payouts):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    sub = await payouts.submit_card(tg_id, CARD)
    await payouts.reject(tg_id)

    async with session_scope() as session:
        closed = await repo.close_pending_request(
            session, sub.request_id, status=PaymentStatus.APPROVED, processed_at=utcnow()
        )
        await session.commit()

    assert closed == 0
    (req,) = await _requests(tg_id)
    assert req.status == PaymentStatus.REJECTED.value


@pytest.mark.asyncio
async def test_approve_of_request_decided_meanwhile(db, referrals, payouts, monkeypatch):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    await payouts.submit_card(tg_id, CARD)
    await payouts.reject(tg_id)
    stale = (await _requests(tg_id))[0]
    # the read still sees the request as pending
    monkeypatch.setattr(repo, "latest_pending_request", AsyncMock(return_value=stale))

    res = await payouts.approve(tg_id)

    assert res.outcome is DecisionOutcome.NO_PENDING
    assert await _balance(tg_id) == Decimal("0.5")
    assert (await referrals.get_stats()).total_paid == Decimal("0")


# ---- persistence failures --------------------------------------------------------

def _broken(*args, **kwargs):
    raise SQLAlchemyError("database unavailable")


@pytest.mark.asyncio
async def test_submit_failure_clears_session(db, referrals, payouts, sessions, monkeypatch):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    monkeypatch.setattr(repo, "create_payment_request", AsyncMock(side_effect=_broken))

    res = await payouts.submit_card(tg_id, CARD)

    assert res.outcome is SubmitOutcome.FAILED
    assert not sessions.is_awaiting(tg_id)
    assert await _requests(tg_id) == []


@pytest.mark.asyncio
async def test_submit_failure_when_table_is_gone(db, referrals, payouts, sessions):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    async with db.begin() as conn:
        await conn.execute(text("DROP TABLE payment_requests"))

    res = await payouts.submit_card(tg_id, CARD)

    assert res.outcome is SubmitOutcome.FAILED
    assert not sessions.is_awaiting(tg_id)


@pytest.mark.asyncio
async def test_approve_failure_rolls_back(db, referrals, payouts, monkeypatch):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    await payouts.submit_card(tg_id, CARD)
    monkeypatch.setattr(repo, "add_total_paid", AsyncMock(side_effect=_broken))

    res = await payouts.approve(tg_id)

    assert res.outcome is DecisionOutcome.FAILED
    (req,) = await _requests(tg_id)
    assert req.status == PaymentStatus.PENDING.value
    assert await _balance(tg_id) == Decimal("0.5")


@pytest.mark.asyncio
async def test_reject_and_clear_report_failure(db, referrals, payouts, monkeypatch):
    tg_id = await _eligible_user(referrals)
    await payouts.begin_request(tg_id)
    await payouts.submit_card(tg_id, CARD)
    monkeypatch.setattr(repo, "close_pending_request", AsyncMock(side_effect=_broken))

    assert (await payouts.reject(tg_id)).outcome is DecisionOutcome.FAILED
    assert (await payouts.clear_history(tg_id)).outcome is DecisionOutcome.FAILED
    assert await _balance(tg_id) == Decimal("0.5")
    assert await referrals.get_referral_count(tg_id) == 1


@pytest.mark.asyncio
async def test_lookups_degrade_on_failure(db, referrals, payouts, sessions, monkeypatch):
    tg_id = await _eligible_user(referrals)
    monkeypatch.setattr(repo, "get_user", AsyncMock(side_effect=_broken))
    monkeypatch.setattr(repo, "list_pending_requests", AsyncMock(side_effect=_broken))

    assert await payouts.check_eligibility(tg_id) is None
    assert (await payouts.begin_request(tg_id)).outcome is BeginOutcome.FAILED
    assert not sessions.is_awaiting(tg_id)
    assert await payouts.list_pending() == []
