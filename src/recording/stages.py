"""Batch transform stages of the event processing pipeline.

Each stage takes the previous stage's event list and returns a new list
together with the counters it contributed. Stages never mutate their input
list; the processor applies them in a fixed order:

    deduplicate -> filter noise -> merge consecutive -> add smart waits -> group
"""

from dataclasses import dataclass, field, replace
from typing import Callable

import structlog

from .form_resolver import FormResolver, safe_resolve
from .models import (
    FORM_EVENT_TYPES,
    EventContext,
    EventMetadata,
    EventType,
    KeyboardEventData,
    MouseEventData,
    ProcessingStats,
    RecordedEvent,
    RecordedEventTarget,
    ReliabilityMetrics,
    ScrollEventData,
    WaitEventData,
)

logger = structlog.get_logger()

# Timing tolerance when comparing events for duplicates
DEDUP_BUCKET_MS = 100
# Two clicks closer than this become a double click
DOUBLE_CLICK_WINDOW_MS = 500
# Gaps longer than this get an explicit wait
SMART_WAIT_THRESHOLD_MS = 1000

SMART_WAIT_CONDITION = "Auto-detected delay"


# =============================================================================
# Deduplication
# =============================================================================


def event_key(event: RecordedEvent) -> str:
    """Build the duplicate-detection key for an event."""
    parts = [
        event.type.value,
        event.target.selector,
        event.target.text_content or "",
        str((event.timestamp // DEDUP_BUCKET_MS) * DEDUP_BUCKET_MS),
    ]

    if isinstance(event.data, KeyboardEventData):
        parts.extend([event.data.key, event.data.input_value or ""])
    elif isinstance(event.data, MouseEventData):
        parts.append(str(event.data.button))

    return "|".join(parts)


def deduplicate_events(
    events: list[RecordedEvent],
) -> tuple[list[RecordedEvent], ProcessingStats]:
    """Drop events whose key was already seen. First occurrence wins."""
    seen: set[str] = set()
    kept: list[RecordedEvent] = []

    for event in events:
        key = event_key(event)
        if key in seen:
            continue
        seen.add(key)
        kept.append(event)

    return kept, ProcessingStats(duplicates_removed=len(events) - len(kept))


# =============================================================================
# Noise filtering
# =============================================================================


def is_noise(event: RecordedEvent) -> bool:
    """Whether an event carries nothing useful for replay."""
    if event.type in (EventType.MOUSEMOVE, EventType.RESIZE):
        return True

    if event.type == EventType.SCROLL and isinstance(event.data, ScrollEventData):
        return event.data.scroll_x == 0 and event.data.scroll_y == 0

    if event.type == EventType.INPUT:
        value = getattr(event.data, "input_value", None)
        return not value or not value.strip()

    return False


def filter_noise_events(
    events: list[RecordedEvent],
) -> tuple[list[RecordedEvent], ProcessingStats]:
    """Remove mouse moves, resizes, zero scrolls and empty inputs."""
    kept = [event for event in events if not is_noise(event)]
    return kept, ProcessingStats(noisy_events_filtered=len(events) - len(kept))


# =============================================================================
# Consecutive-event merging
# =============================================================================


def _merged(first: RecordedEvent, second: RecordedEvent, event_type: EventType) -> RecordedEvent:
    metadata = replace(
        second.metadata,
        annotations=list(second.metadata.annotations),
        custom={**second.metadata.custom, "mergedFrom": [first.id, second.id]},
    )
    return replace(second, type=event_type, metadata=metadata)


def try_merge(first: RecordedEvent, second: RecordedEvent) -> RecordedEvent | None:
    """Merge two adjacent events if they form one logical action.

    Returns:
        The merged event, or None if the pair does not merge
    """
    if first.target.selector != second.target.selector:
        return None

    if first.type == EventType.KEYDOWN and second.type == EventType.INPUT:
        return _merged(first, second, EventType.INPUT)

    if first.type == EventType.CLICK and second.type == EventType.CLICK:
        if second.timestamp - first.timestamp < DOUBLE_CLICK_WINDOW_MS:
            return _merged(first, second, EventType.DBLCLICK)

    return None


def merge_consecutive_events(
    events: list[RecordedEvent],
) -> tuple[list[RecordedEvent], ProcessingStats]:
    """Greedy left-to-right merge of adjacent events on the same target."""
    if len(events) < 2:
        return list(events), ProcessingStats()

    merged: list[RecordedEvent] = []
    current = events[0]

    for following in events[1:]:
        combined = try_merge(current, following)
        if combined is not None:
            current = combined
        else:
            merged.append(current)
            current = following

    merged.append(current)
    return merged, ProcessingStats()


# =============================================================================
# Smart waits
# =============================================================================


WaitFactory = Callable[[int, int], RecordedEvent]


def build_wait_event(
    event_id: str,
    duration: int,
    timestamp: int,
    context: EventContext,
    condition: str = SMART_WAIT_CONDITION,
) -> RecordedEvent:
    """Build a synthetic wait event."""
    return RecordedEvent(
        id=event_id,
        type=EventType.WAIT,
        timestamp=timestamp,
        sequence=0,
        target=RecordedEventTarget(selector="window", tag_name="window"),
        data=WaitEventData(duration=duration, reason="timeout", condition=condition),
        context=context,
        metadata=EventMetadata(
            session_id="auto-generated",
            recording_mode="standard",
            reliability=ReliabilityMetrics(),
            custom={"autoGenerated": True, "reason": condition},
        ),
    )


def add_smart_waits(
    events: list[RecordedEvent],
    new_wait: WaitFactory,
) -> tuple[list[RecordedEvent], ProcessingStats]:
    """Insert a wait after any event followed by a gap over the threshold.

    Args:
        events: Merged event list
        new_wait: Factory ``(duration, timestamp) -> RecordedEvent``
    """
    result: list[RecordedEvent] = []
    added = 0

    for current, following in zip(events, events[1:] + [None]):
        result.append(current)
        if following is None:
            continue
        gap = following.timestamp - current.timestamp
        if gap > SMART_WAIT_THRESHOLD_MS:
            result.append(new_wait(gap, current.timestamp + 1))
            added += 1

    return result, ProcessingStats(wait_events_added=added)


# =============================================================================
# Grouping
# =============================================================================


@dataclass
class FormGroupProposal:
    """Form interactions that should become one event group."""

    form_selector: str
    events: list[RecordedEvent] = field(default_factory=list)

    @property
    def description(self) -> str:
        return f"Form interaction: {self.form_selector}"


def group_related_events(
    events: list[RecordedEvent],
    resolver: FormResolver,
) -> tuple[list[FormGroupProposal], ProcessingStats]:
    """Group form interactions by their enclosing form.

    Events whose form cannot be resolved are left ungrouped. Only forms with
    more than one interaction produce a proposal.
    """
    by_form: dict[str, FormGroupProposal] = {}

    for event in events:
        if event.type not in FORM_EVENT_TYPES or event.metadata.group is not None:
            continue
        form_selector = safe_resolve(resolver, event.target.selector)
        if form_selector is None:
            continue
        proposal = by_form.setdefault(form_selector, FormGroupProposal(form_selector))
        proposal.events.append(event)

    proposals = [p for p in by_form.values() if len(p.events) > 1]
    grouped = sum(len(p.events) for p in proposals)
    return proposals, ProcessingStats(events_grouped=grouped)
