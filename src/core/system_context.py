"""Deterministic clock and identifier context.

Every "what time is it" and "give me a new deal id" call goes through one
injected ``SystemContext``. Production wiring uses real time and uuid-based
ids; tests and synthetic datasets swap in fixed clocks and seeded or
sequential generators so the whole write path replays identically.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Protocol
from uuid import uuid4

from core.constants import DEAL_ID_PREFIX, DEFAULT_ID_BASE_DATE

_HEX_DIGITS = "0123456789ABCDEF"
_SUFFIX_LENGTH = 8


class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        """Return local wall-clock time."""
        ...

    def utc_now(self) -> datetime:
        """Return timezone-aware UTC time."""
        ...

    def today(self) -> date:
        """Return the local calendar date."""
        ...


class IdGenerator(Protocol):
    """Source of new deal identifiers."""

    def generate(self) -> str:
        """Return a fresh deal id."""
        ...


class SystemClock:
    """Clock backed by the operating system."""

    def now(self) -> datetime:
        return datetime.now()

    def utc_now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return date.today()


class FixedClock:
    """Clock pinned to one instant, movable only by explicit ``advance`` calls."""

    def __init__(self, fixed_time: datetime) -> None:
        self._fixed_time = fixed_time

    @classmethod
    def at_date(cls, year: int, month: int, day: int) -> "FixedClock":
        """Create a clock at midnight of the given date."""
        return cls(datetime(year, month, day))

    def now(self) -> datetime:
        return self._fixed_time

    def utc_now(self) -> datetime:
        if self._fixed_time.tzinfo is None:
            return self._fixed_time.replace(tzinfo=timezone.utc)
        return self._fixed_time.astimezone(timezone.utc)

    def today(self) -> date:
        return self._fixed_time.date()

    def advance(self, delta: timedelta) -> None:
        """Move the pinned instant forward."""
        self._fixed_time = self._fixed_time + delta


class DefaultIdGenerator:
    """Unique, non-reproducible ids: UTC date plus a uuid4 suffix."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()

    def generate(self) -> str:
        stamp = self._clock.utc_now().strftime("%Y%m%d")
        suffix = uuid4().hex[:_SUFFIX_LENGTH].upper()
        return f"{DEAL_ID_PREFIX}-{stamp}-{suffix}"


class SeededIdGenerator:
    """Reproducible ids drawn from a seeded pseudo-random sequence.

    The same seed yields the same id sequence in every process, which keeps
    synthetic datasets stable across restarts.
    """

    def __init__(self, seed: int, base_date: date | None = None) -> None:
        self._random = random.Random(seed)
        self._base_date = base_date or date.fromisoformat(DEFAULT_ID_BASE_DATE)

    def generate(self) -> str:
        suffix = "".join(self._random.choice(_HEX_DIGITS) for _ in range(_SUFFIX_LENGTH))
        day_offset = self._random.randrange(0, 365)
        stamp = (self._base_date + timedelta(days=day_offset)).strftime("%Y%m%d")
        return f"{DEAL_ID_PREFIX}-{stamp}-{suffix}"


class SequentialIdGenerator:
    """Predictable counter ids such as ``D-20250101-00000001``."""

    def __init__(self, base_date: date | None = None) -> None:
        self._base_date = base_date or date.fromisoformat(DEFAULT_ID_BASE_DATE)
        self._counter = 0

    def generate(self) -> str:
        self._counter += 1
        return f"{DEAL_ID_PREFIX}-{self._base_date:%Y%m%d}-{self._counter:08d}"

    def reset(self) -> None:
        """Restart the counter at zero."""
        self._counter = 0


@dataclass(frozen=True)
class SystemContext:
    """Single injection point for time and id generation.

    Attributes:
        clock: Clock used for created dates, backups, and metadata stamps.
        id_generator: Strategy used when a deal arrives without an id.
    """

    clock: Clock
    id_generator: IdGenerator

    @classmethod
    def default(cls) -> "SystemContext":
        """Build the live production context."""
        clock = SystemClock()
        return cls(clock=clock, id_generator=DefaultIdGenerator(clock))

    @classmethod
    def for_testing(cls, fixed_time: datetime) -> "SystemContext":
        """Build a fixed-clock context with sequential ids based on the fixed date."""
        return cls(
            clock=FixedClock(fixed_time),
            id_generator=SequentialIdGenerator(fixed_time.date()),
        )

    @classmethod
    def for_synthetic_data(cls, fixed_time: datetime, seed: int) -> "SystemContext":
        """Build a fixed-clock context with seeded ids for reproducible datasets."""
        return cls(
            clock=FixedClock(fixed_time),
            id_generator=SeededIdGenerator(seed, fixed_time.date()),
        )
