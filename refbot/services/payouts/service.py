from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from refbot import repo
from refbot.core.config import settings
from refbot.core.time import utcnow
from refbot.db.models import PaymentStatus
from refbot.db.session import session_scope
from refbot.services.payouts.sessions import CardSessionStore

log = logging.getLogger(__name__)

CARD_MIN_DIGITS = 12
CARD_MAX_DIGITS = 19
_CARD_RE = re.compile(r"^[\d\s-]+$")


def mask_card_number(card: str) -> str:
    """Shows only the last 4 digits."""
    digits = re.sub(r"\D", "", card or "")
    if len(digits) < 4:
        return "****"
    return "**** **** **** " + digits[-4:]


def normalize_card_number(text: str) -> str | None:
    """Digits of a plausible card number, or None.

    Accepts digits separated by spaces or dashes (XXXX-XXXX-XXXX-XXXX).
    """
    raw = (text or "").strip()
    if not raw or not _CARD_RE.match(raw):
        return None
    digits = re.sub(r"\D", "", raw)
    if not CARD_MIN_DIGITS <= len(digits) <= CARD_MAX_DIGITS:
        return None
    return digits


# ---- eligibility ---------------------------------------------------------------

class EligibilityStatus(str, enum.Enum):
    ELIGIBLE = "eligible"
    INELIGIBLE = "ineligible"


@dataclass(frozen=True)
class Eligibility:
    status: EligibilityStatus
    balance: Decimal
    referrals_count: int
    # "referrals" and/or "balance"; empty when eligible
    unmet: tuple[str, ...] = ()

    @property
    def eligible(self) -> bool:
        return self.status is EligibilityStatus.ELIGIBLE


def evaluate_eligibility(
    balance: Decimal,
    referrals_count: int,
    *,
    min_balance: Decimal,
    min_referrals: int,
) -> Eligibility:
    unmet: list[str] = []
    if referrals_count < min_referrals:
        unmet.append("referrals")
    if balance < min_balance:
        unmet.append("balance")
    return Eligibility(
        status=EligibilityStatus.INELIGIBLE if unmet else EligibilityStatus.ELIGIBLE,
        balance=balance,
        referrals_count=referrals_count,
        unmet=tuple(unmet),
    )


# ---- outcomes ----------------------------------------------------------------------

class BeginOutcome(str, enum.Enum):
    STARTED = "started"
    INELIGIBLE = "ineligible"
    PENDING_EXISTS = "pending_exists"
    FAILED = "failed"


@dataclass(frozen=True)
class BeginResult:
    outcome: BeginOutcome
    eligibility: Eligibility | None = None


class SubmitOutcome(str, enum.Enum):
    SUBMITTED = "submitted"
    INVALID_FORMAT = "invalid_format"
    NO_SESSION = "no_session"
    FAILED = "failed"


@dataclass(frozen=True)
class SubmitResult:
    outcome: SubmitOutcome
    request_id: int | None = None
    amount: Decimal | None = None
    card_number: str | None = None

    @property
    def masked_card(self) -> str:
        return mask_card_number(self.card_number or "")


class DecisionOutcome(str, enum.Enum):
    APPLIED = "applied"
    NO_PENDING = "no_pending"
    FAILED = "failed"


@dataclass(frozen=True)
class DecisionResult:
    outcome: DecisionOutcome
    request_id: int | None = None
    amount: Decimal | None = None


@dataclass(frozen=True)
class ClearResult:
    outcome: DecisionOutcome
    canceled_request_ids: tuple[int, ...] = field(default_factory=tuple)
    detached_referrals: int = 0


# ---- workflow --------------------------------------------------------------------

class PayoutService:
    """Payout request lifecycle.

    Ineligible -> Eligible -> CollectingDestination (card session) ->
    Submitted (pending row) -> approved | rejected | canceled.
    Every admin transition is committed as a single transaction.
    """

    def __init__(
        self,
        sessions: CardSessionStore,
        *,
        min_payout: Decimal | None = None,
        min_referrals: int | None = None,
    ) -> None:
        self.sessions = sessions
        self.min_payout = settings.min_payout if min_payout is None else min_payout
        self.min_referrals = settings.min_referrals if min_referrals is None else min_referrals

    def _evaluate(self, balance: Decimal, referrals_count: int) -> Eligibility:
        return evaluate_eligibility(
            balance,
            referrals_count,
            min_balance=self.min_payout,
            min_referrals=self.min_referrals,
        )

    async def check_eligibility(self, tg_id: int) -> Eligibility | None:
        """None when the user is unknown or the lookup failed."""
        try:
            async with session_scope() as session:
                user = await repo.get_user(session, tg_id)
                if not user:
                    return None
                cnt = await repo.count_referrals(session, tg_id)
        except SQLAlchemyError:
            log.exception("check_eligibility_failed tg_id=%s", tg_id)
            return None
        return self._evaluate(Decimal(user.balance or 0), cnt)

    async def begin_request(self, tg_id: int) -> BeginResult:
        """Re-checks eligibility and opens the card-collection session."""
        try:
            async with session_scope() as session:
                user = await repo.get_user(session, tg_id)
                if not user:
                    return BeginResult(BeginOutcome.INELIGIBLE)
                cnt = await repo.count_referrals(session, tg_id)
                pending = await repo.latest_pending_request(session, tg_id)
        except SQLAlchemyError:
            log.exception("begin_request_failed tg_id=%s", tg_id)
            return BeginResult(BeginOutcome.FAILED)

        elig = self._evaluate(Decimal(user.balance or 0), cnt)
        if not elig.eligible:
            return BeginResult(BeginOutcome.INELIGIBLE, elig)
        if pending is not None:
            return BeginResult(BeginOutcome.PENDING_EXISTS, elig)

        self.sessions.open(tg_id, elig.balance)
        log.info("payout_session_opened tg_id=%s amount=%s", tg_id, elig.balance)
        return BeginResult(BeginOutcome.STARTED, elig)

    async def submit_card(self, tg_id: int, text: str) -> SubmitResult:
        if self.sessions.get(tg_id) is None:
            return SubmitResult(SubmitOutcome.NO_SESSION)

        card = normalize_card_number(text)
        if card is None:
            # session stays open, user may retry
            return SubmitResult(SubmitOutcome.INVALID_FORMAT)

        # consumed before any await: a second message cannot reuse it
        s = self.sessions.consume(tg_id)
        if s is None:
            return SubmitResult(SubmitOutcome.NO_SESSION)

        try:
            async with session_scope() as session:
                if not await repo.user_exists(session, tg_id):
                    log.warning("payout_submit_unknown_user tg_id=%s", tg_id)
                    return SubmitResult(SubmitOutcome.FAILED)
                req = await repo.create_payment_request(session, tg_id, amount=s.amount, card_number=card)
                await session.commit()
        except SQLAlchemyError:
            log.exception("payout_submit_failed tg_id=%s", tg_id)
            return SubmitResult(SubmitOutcome.FAILED)

        log.info("payout_request_created tg_id=%s request_id=%s amount=%s", tg_id, req.id, s.amount)
        return SubmitResult(SubmitOutcome.SUBMITTED, request_id=int(req.id), amount=s.amount, card_number=card)

    async def approve(self, tg_id: int) -> DecisionResult:
        try:
            async with session_scope() as session:
                req = await repo.latest_pending_request(session, tg_id)
                if req is None:
                    return DecisionResult(DecisionOutcome.NO_PENDING)

                req_id, amount = int(req.id), Decimal(req.amount)
                closed = await repo.close_pending_request(
                    session, req_id, status=PaymentStatus.APPROVED, processed_at=utcnow()
                )
                if not closed:
                    # decided by a parallel tap between the read and the write
                    return DecisionResult(DecisionOutcome.NO_PENDING)
                await repo.zero_balance(session, tg_id)
                await repo.add_total_paid(session, amount)
                await session.commit()
        except SQLAlchemyError:
            log.exception("payout_approve_failed tg_id=%s", tg_id)
            return DecisionResult(DecisionOutcome.FAILED)

        log.info("payout_approved tg_id=%s request_id=%s amount=%s", tg_id, req_id, amount)
        return DecisionResult(DecisionOutcome.APPLIED, request_id=req_id, amount=amount)

    async def reject(self, tg_id: int) -> DecisionResult:
        """Balance stays untouched so the user can request again."""
        try:
            async with session_scope() as session:
                req = await repo.latest_pending_request(session, tg_id)
                if req is None:
                    return DecisionResult(DecisionOutcome.NO_PENDING)

                req_id, amount = int(req.id), Decimal(req.amount)
                closed = await repo.close_pending_request(
                    session, req_id, status=PaymentStatus.REJECTED, processed_at=utcnow()
                )
                if not closed:
                    return DecisionResult(DecisionOutcome.NO_PENDING)
                await session.commit()
        except SQLAlchemyError:
            log.exception("payout_reject_failed tg_id=%s", tg_id)
            return DecisionResult(DecisionOutcome.FAILED)

        log.info("payout_rejected tg_id=%s request_id=%s", tg_id, req_id)
        return DecisionResult(DecisionOutcome.APPLIED, request_id=req_id, amount=amount)

    async def clear_history(self, tg_id: int) -> ClearResult:
        """Cancels pending requests, zeroes the balance and detaches invitees."""
        try:
            async with session_scope() as session:
                now = utcnow()
                canceled: list[int] = []
                for req_id in [int(r.id) for r in await repo.pending_requests(session, tg_id)]:
                    if await repo.close_pending_request(
                        session, req_id, status=PaymentStatus.CANCELED, processed_at=now
                    ):
                        canceled.append(req_id)
                await repo.zero_balance(session, tg_id)
                detached = await repo.detach_referrals(session, tg_id)
                await session.commit()
        except SQLAlchemyError:
            log.exception("clear_history_failed tg_id=%s", tg_id)
            return ClearResult(DecisionOutcome.FAILED)

        # any card conversation in flight is void now
        self.sessions.expire(tg_id)
        log.info("user_history_cleared tg_id=%s canceled=%s detached=%s", tg_id, canceled, detached)
        return ClearResult(DecisionOutcome.APPLIED, canceled_request_ids=tuple(canceled), detached_referrals=detached)

    async def list_pending(self, *, limit: int = 20) -> list[tuple[int, int, Decimal]]:
        """(request_id, tg_id, amount) of pending requests, oldest first."""
        try:
            async with session_scope() as session:
                reqs = await repo.list_pending_requests(session, limit=limit)
        except SQLAlchemyError:
            log.exception("list_pending_failed")
            return []
        return [(int(r.id), int(r.tg_id), Decimal(r.amount)) for r in reqs]


card_sessions = CardSessionStore(ttl_seconds=settings.card_session_ttl_seconds)
payout_service = PayoutService(card_sessions)
