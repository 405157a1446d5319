"""Recorded-event processing module - Turn raw browser events into replayable steps.

This module cleans up the raw event stream captured from a live browser session:
- Buffered ingestion with oldest-first eviction
- Deduplication, noise filtering and consecutive-event merging
- Smart waits synthesized from pauses in the recording
- Form interactions grouped by enclosing form
- Filtered queries, statistics and export for test generation
"""

from .environment import ManualClock, SystemClock, static_page_context
from .form_resolver import (
    ChainedFormResolver,
    FormResolver,
    MappingFormResolver,
    NullFormResolver,
    SnapshotFormResolver,
)
from .models import (
    AnnotationType,
    EventAnnotation,
    EventContext,
    EventFilters,
    EventGroup,
    EventMetadata,
    EventType,
    GroupBy,
    KeyboardEventData,
    MarkerType,
    MouseEventData,
    ProcessingOptions,
    ProcessingResult,
    ProcessingStats,
    RecordedEvent,
    RecordedEventTarget,
    ReliabilityMetrics,
    ScrollEventData,
    TimelineMarker,
    WaitEventData,
)
from .processor import EventProcessor
from .rrweb_adapter import RRWebEventAdapter, convert_rrweb_recording

__all__ = [
    # Models
    "EventType",
    "RecordedEvent",
    "RecordedEventTarget",
    "EventContext",
    "EventMetadata",
    "ReliabilityMetrics",
    "MouseEventData",
    "KeyboardEventData",
    "ScrollEventData",
    "WaitEventData",
    "EventAnnotation",
    "AnnotationType",
    "EventGroup",
    "TimelineMarker",
    "MarkerType",
    "EventFilters",
    "GroupBy",
    "ProcessingOptions",
    "ProcessingResult",
    "ProcessingStats",
    # Environment
    "SystemClock",
    "ManualClock",
    "static_page_context",
    # Form resolution
    "FormResolver",
    "NullFormResolver",
    "MappingFormResolver",
    "SnapshotFormResolver",
    "ChainedFormResolver",
    # Processor
    "EventProcessor",
    # rrweb
    "RRWebEventAdapter",
    "convert_rrweb_recording",
]
