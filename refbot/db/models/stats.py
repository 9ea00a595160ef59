from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from refbot.core.time import utcnow
from refbot.db.base import Base


class Stats(Base):
    """Singleton row with bot-wide counters."""

    __tablename__ = "stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    total_users: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    today_users: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    total_paid: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), server_default="0", nullable=False)

    # local day `today_users` belongs to; the scheduler resets when it changes
    counters_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
