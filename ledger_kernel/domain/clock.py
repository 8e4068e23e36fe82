"""
Clock -- where posting timestamps come from.

VoucherPostingService stamps ``posted_at`` from an injected Clock rather
than calling ``datetime.now()``, so tests can pin or step time.
"""

from datetime import UTC, date, datetime, timedelta


class Clock:
    """Source of timezone-aware UTC timestamps."""

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Clock for tests.

    ``now()`` returns ``start`` and then moves forward by ``step`` on every
    call (zero by default, so the time stays pinned).  ``advance()`` moves
    it explicitly.
    """

    def __init__(
        self,
        start: datetime | None = None,
        step: timedelta = timedelta(0),
    ):
        self._current = start or datetime(2024, 4, 1, 9, 0, tzinfo=UTC)
        self._step = step

    def now(self) -> datetime:
        current = self._current
        self._current += self._step
        return current

    def advance(self, delta: timedelta | int = 1) -> None:
        if isinstance(delta, int):
            delta = timedelta(seconds=delta)
        self._current += delta
