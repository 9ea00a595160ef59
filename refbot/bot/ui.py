from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from refbot.core.config import settings


def fmt_money(amount: Decimal | int | float | None) -> str:
    """One decimal place, as shown everywhere in the bot: 0.5💵."""
    value = Decimal(str(amount or 0)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"{value}💵"


def referral_link(tg_id: int) -> str:
    return f"https://t.me/{settings.bot_username}?start={tg_id}"


def fmt_username(username: str | None) -> str:
    return f"@{username}" if username else "—"
