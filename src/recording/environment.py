"""Time and page-context sources injected into the event processor."""

import random
import string
import time
from datetime import UTC, datetime
from typing import Callable, Optional, Protocol

from .models import EventContext


class Clock(Protocol):
    """Source of wall-clock milliseconds."""

    def now_ms(self) -> int: ...


class SystemClock:
    """Clock backed by the system time."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class ManualClock:
    """Clock that only moves when told to. Used for deterministic runs."""

    def __init__(self, start_ms: int = 0):
        self._now = start_ms

    def now_ms(self) -> int:
        return self._now

    def advance(self, ms: int) -> int:
        self._now += ms
        return self._now


def iso_timestamp(clock: Clock) -> str:
    """Render the clock's current time as ISO-8601 UTC."""
    return datetime.fromtimestamp(clock.now_ms() / 1000, tz=UTC).isoformat()


# Returns the page context synthetic events are stamped with
PageContextProvider = Callable[[], EventContext]


def static_page_context(context: Optional[EventContext] = None) -> PageContextProvider:
    """Build a provider that always returns a copy of ``context``."""
    base = context or EventContext()

    def provide() -> EventContext:
        return EventContext.from_dict(base.to_dict())

    return provide


class IdGenerator:
    """Generates ``<prefix>_<ms>_<9 base36 chars>`` identifiers."""

    _ALPHABET = string.digits + string.ascii_lowercase

    def __init__(self, clock: Clock, rng: Optional[random.Random] = None):
        self.clock = clock
        self.rng = rng or random.Random()

    def new_id(self, prefix: str) -> str:
        suffix = "".join(self.rng.choice(self._ALPHABET) for _ in range(9))
        return f"{prefix}_{self.clock.now_ms()}_{suffix}"
