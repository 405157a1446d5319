"""Bounded ingestion buffer for raw recorded events."""

import structlog

from .models import RecordedEvent

logger = structlog.get_logger()


class IngestionBuffer:
    """Bounded FIFO of raw events with a processed/unprocessed boundary.

    Events before ``processed_index`` have already gone through the pipeline.
    When the buffer is full the oldest event is dropped to make room; the
    boundary moves with it so pending events are never skipped.
    """

    def __init__(self, max_size: int):
        self.max_size = max_size
        self._events: list[RecordedEvent] = []
        self._processed_index = 0
        self.evicted_count = 0

    def __len__(self) -> int:
        return len(self._events)

    @property
    def events(self) -> list[RecordedEvent]:
        """Snapshot of the buffered events, oldest first."""
        return list(self._events)

    @property
    def pending_count(self) -> int:
        """Number of buffered events not yet processed."""
        return len(self._events) - self._processed_index

    def append(self, event: RecordedEvent) -> None:
        """Append an event, evicting the oldest one when full."""
        while len(self._events) >= self.max_size:
            evicted = self._events.pop(0)
            self.evicted_count += 1
            if self._processed_index > 0:
                self._processed_index -= 1
            logger.debug(
                "Buffer full, evicted oldest event",
                event_id=evicted.id,
                max_size=self.max_size,
            )
        self._events.append(event)

    def peek_pending(self, limit: int | None = None) -> list[RecordedEvent]:
        """Return up to ``limit`` pending events without moving the boundary."""
        end = len(self._events)
        if limit is not None:
            end = min(self._processed_index + limit, end)
        return self._events[self._processed_index:end]

    def mark_processed(self, count: int) -> None:
        """Move the boundary past ``count`` pending events."""
        self._processed_index = min(self._processed_index + count, len(self._events))

    def take_pending(self, limit: int | None = None) -> list[RecordedEvent]:
        """Return up to ``limit`` pending events and mark them processed."""
        batch = self.peek_pending(limit)
        self.mark_processed(len(batch))
        return batch

    def clear(self) -> None:
        self._events = []
        self._processed_index = 0
        self.evicted_count = 0
