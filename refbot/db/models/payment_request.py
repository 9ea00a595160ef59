from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from refbot.core.time import utcnow
from refbot.db.base import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELED = "canceled"


class PaymentRequest(Base):
    """User withdraw request.

    Created by the user in the bot, decided by the administrator.
    pending -> approved | rejected | canceled (terminal states are final).
    """

    __tablename__ = "payment_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    tg_id: Mapped[int] = mapped_column("user_id", BigInteger, ForeignKey("users.user_id"), index=True, nullable=False)
    # balance snapshot taken when the user opened the request
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    card_number: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(16), default=PaymentStatus.PENDING.value, server_default="pending", nullable=False
    )

    request_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
