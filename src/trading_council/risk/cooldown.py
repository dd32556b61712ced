"""Per-instrument trade cooldowns.

The book owns the last approved action time per symbol.  Callers hold
``lock_for(symbol)`` across check-then-stamp so two concurrent reviews
of the same symbol cannot both pass.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

from trading_council.core.clock import IClock
from trading_council.core.ids import ensure_utc
from trading_council.core.locks import KeyedLocks


class CooldownBook:
    def __init__(self, clock: IClock) -> None:
        self._clock = clock
        self._locks = KeyedLocks()
        self._guard = threading.Lock()
        self._last: dict[str, datetime] = {}

    def lock_for(self, symbol: str) -> threading.Lock:
        return self._locks.lock_for(symbol)

    def last_action(self, symbol: str) -> datetime | None:
        with self._guard:
            return self._last.get(symbol)

    def remaining(self, symbol: str, cooldown_hours: float) -> timedelta:
        """Time left before *symbol* may trade again (zero if free)."""
        last = self.last_action(symbol)
        if last is None:
            return timedelta(0)
        left = last + timedelta(hours=cooldown_hours) - self._clock.now()
        return max(left, timedelta(0))

    def stamp(self, symbol: str, at: datetime | None = None) -> None:
        with self._guard:
            self._last[symbol] = ensure_utc(at) if at else self._clock.now()

    def snapshot(self) -> dict[str, datetime]:
        with self._guard:
            return dict(self._last)

    def load(self, entries: dict[str, datetime]) -> None:
        with self._guard:
            self._last = {s: ensure_utc(t) for s, t in entries.items()}

    def clear(self) -> None:
        with self._guard:
            self._last.clear()
