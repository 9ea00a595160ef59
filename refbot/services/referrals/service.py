from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from refbot import repo
from refbot.core.config import settings
from refbot.db.session import session_scope

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationResult:
    created: bool
    # False when there was no referrer or the referrer row does not exist
    referrer_credited: bool = False
    failed: bool = False


@dataclass(frozen=True)
class Profile:
    tg_id: int
    username: str | None
    balance: Decimal
    referrals_count: int
    referrer_id: int | None


@dataclass(frozen=True)
class ReferralInfo:
    referrals_count: int
    # sum of referred users' *current* balances, not a ledger of bonuses
    total_earnings: Decimal


@dataclass(frozen=True)
class StatsView:
    total_users: int
    today_users: int
    total_paid: Decimal


class ReferralService:
    def __init__(self, *, bonus: Decimal | None = None) -> None:
        self.bonus = settings.referral_bonus if bonus is None else bonus

    async def register(
        self,
        tg_id: int,
        username: str | None,
        referrer_id: int | None = None,
    ) -> RegistrationResult:
        """Creates the user on first contact. Repeated calls change nothing."""
        if referrer_id is not None and int(referrer_id) == int(tg_id):
            # self-invite via own link
            referrer_id = None

        try:
            async with session_scope() as session:
                if await repo.user_exists(session, tg_id):
                    return RegistrationResult(created=False)

                await repo.insert_user(session, tg_id, username=username, referrer_id=referrer_id)
                await repo.bump_registration_counters(session)

                credited = False
                if referrer_id is not None:
                    credited = await repo.credit_balance(session, referrer_id, self.bonus) > 0
                    if not credited:
                        log.info("referral_bonus_no_referrer tg_id=%s referrer_id=%s", tg_id, referrer_id)

                await session.commit()
        except IntegrityError:
            # lost a race against a parallel /start of the same user
            log.info("register_duplicate tg_id=%s", tg_id)
            return RegistrationResult(created=False)
        except SQLAlchemyError:
            log.exception("register_failed tg_id=%s", tg_id)
            return RegistrationResult(created=False, failed=True)

        log.info("user_registered tg_id=%s referrer_id=%s credited=%s", tg_id, referrer_id, credited)
        return RegistrationResult(created=True, referrer_credited=credited)

    async def get_profile(self, tg_id: int) -> Profile | None:
        try:
            async with session_scope() as session:
                user = await repo.get_user(session, tg_id)
                if not user:
                    return None
                cnt = await repo.count_referrals(session, tg_id)
        except SQLAlchemyError:
            log.exception("get_profile_failed tg_id=%s", tg_id)
            return None

        return Profile(
            tg_id=int(user.tg_id),
            username=user.username,
            balance=Decimal(user.balance or 0),
            referrals_count=cnt,
            referrer_id=user.referrer_id,
        )

    async def get_referral_count(self, tg_id: int) -> int:
        try:
            async with session_scope() as session:
                return await repo.count_referrals(session, tg_id)
        except SQLAlchemyError:
            log.exception("get_referral_count_failed tg_id=%s", tg_id)
            return 0

    async def get_referral_info(self, tg_id: int) -> ReferralInfo:
        try:
            async with session_scope() as session:
                cnt = await repo.count_referrals(session, tg_id)
                earned = await repo.sum_referral_balances(session, tg_id)
        except SQLAlchemyError:
            log.exception("get_referral_info_failed tg_id=%s", tg_id)
            return ReferralInfo(referrals_count=0, total_earnings=Decimal("0"))
        return ReferralInfo(referrals_count=cnt, total_earnings=earned)

    async def list_referrals(self, tg_id: int, *, limit: int = 50) -> list[tuple[int, str | None]]:
        """(tg_id, username) of invited users, oldest first."""
        try:
            async with session_scope() as session:
                users = await repo.list_referrals(session, tg_id, limit=limit)
        except SQLAlchemyError:
            log.exception("list_referrals_failed tg_id=%s", tg_id)
            return []
        return [(int(u.tg_id), u.username) for u in users]

    async def reset_referrals(self, tg_id: int) -> bool:
        try:
            async with session_scope() as session:
                detached = await repo.detach_referrals(session, tg_id)
                await session.commit()
        except SQLAlchemyError:
            log.exception("reset_referrals_failed tg_id=%s", tg_id)
            return False
        log.info("referrals_reset tg_id=%s detached=%s", tg_id, detached)
        return True

    async def reset_balance(self, tg_id: int) -> bool:
        try:
            async with session_scope() as session:
                await repo.zero_balance(session, tg_id)
                await session.commit()
        except SQLAlchemyError:
            log.exception("reset_balance_failed tg_id=%s", tg_id)
            return False
        log.info("balance_reset tg_id=%s", tg_id)
        return True

    async def get_stats(self) -> StatsView | None:
        try:
            async with session_scope() as session:
                row = await repo.get_stats(session)
        except SQLAlchemyError:
            log.exception("get_stats_failed")
            return None
        if row is None:
            return None
        return StatsView(
            total_users=int(row.total_users),
            today_users=int(row.today_users),
            total_paid=Decimal(row.total_paid or 0),
        )


referral_service = ReferralService()
