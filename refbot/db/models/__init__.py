from .user import User
from .stats import Stats
from .payment_request import PaymentRequest, PaymentStatus
from .channel import Channel

__all__ = [
    "User",
    "Stats",
    "PaymentRequest",
    "PaymentStatus",
    "Channel",
]
