"""Clock capability resolving "today" in the backup timezone."""

from __future__ import annotations

from datetime import date, datetime, time, timezone, tzinfo
from typing import Protocol

from .config import settings


class Clock(Protocol):
    def now(self) -> datetime: ...

    def today(self) -> date: ...


class ZoneClock:
    """Wall clock pinned to a civil timezone."""

    def __init__(self, tz: tzinfo | None = None) -> None:
        self.tz = tz or settings.tzinfo

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """Clock frozen at a single instant."""

    def __init__(self, instant: datetime, tz: tzinfo | None = None) -> None:
        self.tz = tz or settings.tzinfo
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self.tz)
        self.instant = instant.astimezone(self.tz)

    def now(self) -> datetime:
        return self.instant

    def today(self) -> date:
        return self.instant.date()


def local_midnight(clock: Clock) -> datetime:
    """Return the start of the clock's current civil day as naive UTC, matching stored timestamps."""

    current = clock.now()
    midnight = datetime.combine(current.date(), time.min, tzinfo=current.tzinfo)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)


def utc_now(clock: Clock) -> datetime:
    return clock.now().astimezone(timezone.utc).replace(tzinfo=None)


_default_clock = ZoneClock()


def get_clock() -> Clock:
    """FastAPI dependency returning the process clock."""

    return _default_clock
