"""Event processor - turns a raw recorded event stream into a clean test sequence.

Raw events from the capture layer are buffered and transformed in batches:
- Duplicates within a 100ms window are dropped
- Noise (mouse moves, resizes, empty scrolls and inputs) is filtered
- keydown+input and fast click pairs are merged
- Waits are synthesized where the user paused for more than a second
- Form interactions are grouped by enclosing form

The processed store is append-only and is exposed through read-only snapshots
for the UI and the code generator.
"""

import asyncio
import bisect
import json
import random
from collections import Counter
from typing import Any, Optional, Union

import structlog

from .buffer import IngestionBuffer
from .environment import (
    Clock,
    IdGenerator,
    PageContextProvider,
    SystemClock,
    iso_timestamp,
    static_page_context,
)
from .form_resolver import FormResolver, NullFormResolver
from .models import (
    SYSTEM_EVENT_TYPES,
    AnnotationType,
    EventAnnotation,
    EventFilters,
    EventGroup,
    GroupBy,
    MarkerType,
    ProcessingOptions,
    ProcessingResult,
    ProcessingStats,
    RecordedEvent,
    TimelineMarker,
)
from .stages import (
    add_smart_waits,
    build_wait_event,
    deduplicate_events,
    filter_noise_events,
    group_related_events,
    merge_consecutive_events,
)

logger = structlog.get_logger()

GROUP_COLORS = [
    "#007bff", "#28a745", "#dc3545", "#ffc107",
    "#6f42c1", "#e83e8c", "#fd7e14", "#20c997",
]

# Events below this confidence count as errors in the query view
LOW_CONFIDENCE_THRESHOLD = 0.5

_SORT_KEYS = {
    GroupBy.TYPE: lambda e: e.type.value.casefold(),
    GroupBy.ELEMENT: lambda e: e.target.selector.casefold(),
    GroupBy.PAGE: lambda e: e.context.url.casefold(),
}


class EventProcessor:
    """Buffered processing pipeline for recorded browser events.

    Example:
        processor = EventProcessor({"processing_batch_size": 50}, form_resolver=resolver)
        for event in captured:
            processor.add_event(event)
        result = await processor.process_all_events()
        snapshot = processor.export_for_test_generation()
    """

    def __init__(
        self,
        options: Union[ProcessingOptions, dict, None] = None,
        form_resolver: Optional[FormResolver] = None,
        clock: Optional[Clock] = None,
        page_context: Optional[PageContextProvider] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize processor.

        Args:
            options: Processing options, or a dict of overrides on the defaults
            form_resolver: Resolves enclosing forms for grouping
            clock: Time source for ids and synthetic events
            page_context: Context stamped on synthetic wait events
            rng: Random source for ids and group colors

        Raises:
            ValueError: If the options are invalid
        """
        self._options = self._coerce_options(options)
        self.form_resolver = form_resolver or NullFormResolver()
        self.clock = clock or SystemClock()
        self.page_context = page_context or static_page_context()
        self.rng = rng or random.Random()
        self.ids = IdGenerator(self.clock, self.rng)
        self.log = logger.bind(component="event_processor")

        self._buffer = IngestionBuffer(self._options.max_event_buffer_size)
        self._processed: list[RecordedEvent] = []
        self._events_by_id: dict[str, RecordedEvent] = {}
        self._groups: dict[str, EventGroup] = {}
        self._markers: list[TimelineMarker] = []
        self._stats = ProcessingStats()
        self._raw_consumed = 0
        self._auto_group_count = 0
        self._processing = False

    @staticmethod
    def _coerce_options(options: Union[ProcessingOptions, dict, None]) -> ProcessingOptions:
        if options is None:
            resolved = ProcessingOptions()
        elif isinstance(options, ProcessingOptions):
            resolved = options
        else:
            resolved = ProcessingOptions(**options)

        errors = resolved.validate()
        if errors:
            raise ValueError(f"Invalid processing options: {'; '.join(errors)}")
        return resolved

    # =========================================================================
    # Configuration and state
    # =========================================================================

    @property
    def options(self) -> ProcessingOptions:
        return self._options

    def set_options(self, options: Union[ProcessingOptions, dict]) -> None:
        """Replace the processing options wholesale.

        Raises:
            RuntimeError: If a processing run is in flight
            ValueError: If the options are invalid
        """
        if self._processing:
            raise RuntimeError("Cannot change processing options while processing")
        self._options = self._coerce_options(options)
        self._buffer.max_size = self._options.max_event_buffer_size

    @property
    def processing_in_progress(self) -> bool:
        return self._processing

    @property
    def buffer_size(self) -> int:
        return len(self._buffer)

    @property
    def pending_count(self) -> int:
        return self._buffer.pending_count

    def get_buffered_events(self) -> list[RecordedEvent]:
        """Snapshot of the raw ingestion buffer."""
        return self._buffer.events

    # =========================================================================
    # Ingestion
    # =========================================================================

    def add_event(self, event: RecordedEvent) -> None:
        """Add a raw event, running a batch once enough events are pending."""
        self._buffer.append(event)

        if self._processing:
            return

        if self._buffer.pending_count >= self._options.processing_batch_size:
            self._processing = True
            try:
                self._process_batch(limit=self._options.processing_batch_size)
            finally:
                self._processing = False

    def add_events(self, events: list[RecordedEvent]) -> None:
        for event in events:
            self.add_event(event)

    async def process_all_events(self) -> ProcessingResult:
        """Process every pending event.

        Returns:
            ProcessingResult for the session so far, or an empty result if a
            run is already in flight
        """
        if self._processing:
            self.log.warning("Processing already in progress")
            return ProcessingResult.empty()

        self._processing = True
        try:
            # Let callers on the same loop observe the in-flight guard
            await asyncio.sleep(0)
            self._process_batch()

            result = ProcessingResult(
                original_count=self._raw_consumed,
                processed_count=len(self._processed),
                removed_count=self._raw_consumed - (
                    len(self._processed) - self._stats.wait_events_added
                ),
                groups_created=len(self._groups),
                optimizations=self._optimization_summary(),
            )
        finally:
            self._processing = False

        self.log.info(
            "Processing complete",
            original=result.original_count,
            processed=result.processed_count,
            removed=result.removed_count,
            groups=result.groups_created,
        )
        return result

    def _process_batch(self, limit: Optional[int] = None) -> None:
        # The boundary only moves once the transform stages succeed
        batch = self._buffer.peek_pending(limit)
        if not batch:
            return

        opts = self._options
        stats = ProcessingStats()
        events = batch

        if opts.deduplicate_events:
            events, stage_stats = deduplicate_events(events)
            stats += stage_stats
        if opts.filter_noise_events:
            events, stage_stats = filter_noise_events(events)
            stats += stage_stats
        if opts.merge_consecutive_events:
            events, stage_stats = merge_consecutive_events(events)
            stats += stage_stats
        if opts.add_smart_waits:
            events, stage_stats = add_smart_waits(events, self._new_wait_event)
            stats += stage_stats

        self._buffer.mark_processed(len(batch))
        self._store(events)

        if opts.group_related_events:
            proposals, stage_stats = group_related_events(events, self.form_resolver)
            stats += stage_stats
            for proposal in proposals:
                self._auto_group_count += 1
                self.create_event_group(
                    [e.id for e in proposal.events],
                    f"Auto Group {self._auto_group_count}",
                    proposal.description,
                )

        stats += ProcessingStats(total_processed=len(events))
        self._stats += stats
        self._raw_consumed += len(batch)

        self.log.debug(
            "Batch processed",
            batch_size=len(batch),
            output_size=len(events),
            duplicates=stats.duplicates_removed,
            noise=stats.noisy_events_filtered,
            waits=stats.wait_events_added,
            grouped=stats.events_grouped,
        )

    def _store(self, events: list[RecordedEvent]) -> None:
        self._processed.extend(events)
        for event in events:
            self._events_by_id[event.id] = event

    def _new_wait_event(self, duration: int, timestamp: int) -> RecordedEvent:
        return build_wait_event(
            event_id=self.ids.new_id("wait"),
            duration=duration,
            timestamp=timestamp,
            context=self.page_context(),
        )

    # =========================================================================
    # Query view
    # =========================================================================

    def get_processed_events(self, filters: Optional[EventFilters] = None) -> list[RecordedEvent]:
        """Get processed events, optionally filtered and sorted."""
        events = list(self._processed)
        if filters is None:
            return events

        if filters.event_types:
            events = [e for e in events if e.type in filters.event_types]

        if filters.search:
            query = filters.search.lower()
            events = [e for e in events if self._matches_search(e, query)]

        if filters.show_only_errors:
            events = [
                e for e in events
                if e.metadata.custom.get("hasError")
                or e.metadata.reliability.confidence < LOW_CONFIDENCE_THRESHOLD
            ]

        if filters.hide_system:
            events = [e for e in events if e.type not in SYSTEM_EVENT_TYPES]

        sort_key = _SORT_KEYS.get(filters.group_by)
        if sort_key:
            events.sort(key=sort_key)

        return events

    @staticmethod
    def _matches_search(event: RecordedEvent, query: str) -> bool:
        if query in event.type.value.lower():
            return True
        if query in event.target.selector.lower():
            return True
        if event.target.text_content and query in event.target.text_content.lower():
            return True
        return any(query in a.content.lower() for a in event.metadata.annotations)

    def get_event(self, event_id: str) -> Optional[RecordedEvent]:
        return self._events_by_id.get(event_id)

    def get_event_groups(self) -> list[EventGroup]:
        return list(self._groups.values())

    def get_timeline_markers(self) -> list[TimelineMarker]:
        return list(self._markers)

    def get_statistics(self) -> ProcessingStats:
        return self._stats

    def get_most_used_event_types(self, limit: int = 10) -> list[dict]:
        """Most frequent processed event types, most used first."""
        counts = Counter(e.type.value for e in self._processed)
        return [{"type": t, "count": c} for t, c in counts.most_common(limit)]

    # =========================================================================
    # Groups, markers, annotations
    # =========================================================================

    def create_event_group(
        self,
        event_ids: list[str],
        name: str,
        description: Optional[str] = None,
    ) -> str:
        """Group processed events under a new name.

        Unknown ids are ignored. An event already in another group moves to
        the new one.

        Returns:
            The new group id
        """
        group = EventGroup(
            id=self.ids.new_id("group"),
            name=name,
            description=description,
            color=self.rng.choice(GROUP_COLORS),
        )

        for event_id in event_ids:
            event = self._events_by_id.get(event_id)
            if event is None or event_id in group.events:
                continue
            previous = event.metadata.group
            if previous is not None and event_id in previous.events:
                previous.events.remove(event_id)
            event.metadata.group = group
            group.events.append(event_id)

        self._groups[group.id] = group
        return group.id

    def add_timeline_marker(
        self,
        timestamp: int,
        type: Union[MarkerType, str],
        label: str,
        description: Optional[str] = None,
        color: Optional[str] = None,
    ) -> str:
        """Add a marker, keeping markers sorted by timestamp."""
        marker = TimelineMarker(
            id=self.ids.new_id("marker"),
            timestamp=timestamp,
            type=MarkerType(type),
            label=label,
            description=description,
            color=color,
        )
        bisect.insort_right(self._markers, marker, key=lambda m: m.timestamp)
        return marker.id

    def add_event_annotation(
        self,
        event_id: str,
        content: str,
        type: Union[AnnotationType, str] = AnnotationType.COMMENT,
        author: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> Optional[str]:
        """Attach an annotation to a processed event.

        Returns:
            The annotation id, or None if the event is unknown
        """
        event = self._events_by_id.get(event_id)
        if event is None:
            return None

        annotation = EventAnnotation(
            id=self.ids.new_id("annotation"),
            type=AnnotationType(type),
            content=content,
            author=author,
            timestamp=self.clock.now_ms() if timestamp is None else timestamp,
        )
        event.metadata.annotations.append(annotation)
        return annotation.id

    # =========================================================================
    # Lifecycle and export
    # =========================================================================

    def clear(self) -> None:
        """Reset buffer, store, groups, markers and counters."""
        self._buffer.clear()
        self._processed = []
        self._events_by_id = {}
        self._groups = {}
        self._markers = []
        self._stats = ProcessingStats()
        self._raw_consumed = 0
        self._auto_group_count = 0
        self._processing = False
        self.log.info("Event processor cleared")

    def export_for_test_generation(self) -> dict[str, Any]:
        """JSON-serializable snapshot for the code generator."""
        return {
            "events": [e.to_dict() for e in self._processed],
            "groups": [g.to_dict() for g in self._groups.values()],
            "timeline": [m.to_dict() for m in self._markers],
            "metadata": {
                "stats": self._stats.to_dict(),
                "processingOptions": self._options.to_dict(),
                "generatedAt": iso_timestamp(self.clock),
            },
        }

    def export_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.export_for_test_generation(), indent=indent)

    def _optimization_summary(self) -> list[str]:
        stats = self._stats
        optimizations = []
        if stats.duplicates_removed > 0:
            optimizations.append(f"Removed {stats.duplicates_removed} duplicate events")
        if stats.noisy_events_filtered > 0:
            optimizations.append(f"Filtered {stats.noisy_events_filtered} noisy events")
        if stats.wait_events_added > 0:
            optimizations.append(f"Added {stats.wait_events_added} smart wait events")
        if stats.events_grouped > 0:
            optimizations.append(f"Grouped {stats.events_grouped} related events")
        return optimizations
