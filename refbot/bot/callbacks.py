"""Callback data tokens shared by keyboards and handlers."""

from __future__ import annotations

CHECK_SUBS = "check_subs"
BACK_TO_MAIN = "back_to_main"
PROFILE = "profile"
STATISTICS = "statistics"
FUNCTIONALITY = "functionality"
REFERRALS = "referrals"
MANUALS = "manuals"
REVIEWS = "reviews"
REQUIRED_SUBSCRIPTIONS = "required_subscriptions"
PAYMENTS = "payments"
REQUEST_PAYMENT = "request_payment"

# parameterized families: "<prefix>:<tg_id>"
COPY_LINK = "copy_link"
APPROVE_PAYMENT = "approve_payment"
REJECT_PAYMENT = "reject_payment"
CLEAR_USER_HISTORY = "clear_user_history"

# admin bot
ADMIN_STATS = "admin_stats"
ADMIN_BACK = "admin_back"
ADMIN_BALANCE = "admin_balance"
ADMIN_REFERRALS = "admin_referrals"
ADMIN_PAYMENTS = "admin_payments"


def with_id(prefix: str, tg_id: int) -> str:
    return f"{prefix}:{tg_id}"


def parse_id(data: str | None, prefix: str) -> int | None:
    """`approve_payment:123` -> 123 for prefix `approve_payment`, else None."""
    if not data or not data.startswith(prefix + ":"):
        return None
    raw = data.split(":", 1)[1].strip()
    if not raw.isdigit():
        return None
    return int(raw)
