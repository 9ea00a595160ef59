from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable


@dataclass
class CardSession:
    """User is expected to send a card number for a payout of `amount`."""

    amount: Decimal
    opened_at: float
    awaiting_card: bool = True


class CardSessionStore:
    """In-process card-collection sessions keyed by user id.

    Not persisted: a restart drops conversations in flight. All access happens
    on the event loop thread, so get/consume need no locking.
    """

    def __init__(self, ttl_seconds: float = 0, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._items: dict[int, CardSession] = {}

    def _expired(self, s: CardSession) -> bool:
        return bool(self.ttl_seconds) and (self._clock() - s.opened_at) >= self.ttl_seconds

    def open(self, tg_id: int, amount: Decimal) -> CardSession:
        s = CardSession(amount=amount, opened_at=self._clock())
        self._items[tg_id] = s
        return s

    def get(self, tg_id: int) -> CardSession | None:
        s = self._items.get(tg_id)
        if s is None:
            return None
        if self._expired(s):
            del self._items[tg_id]
            return None
        return s

    def is_awaiting(self, tg_id: int) -> bool:
        s = self.get(tg_id)
        return s is not None and s.awaiting_card

    def consume(self, tg_id: int) -> CardSession | None:
        s = self.get(tg_id)
        if s is not None:
            del self._items[tg_id]
        return s

    def expire(self, tg_id: int) -> bool:
        return self._items.pop(tg_id, None) is not None

    def purge_expired(self) -> int:
        stale = [k for k, s in self._items.items() if self._expired(s)]
        for k in stale:
            del self._items[k]
        return len(stale)

    def __len__(self) -> int:
        return len(self._items)
