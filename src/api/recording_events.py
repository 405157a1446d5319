"""Recorded-event API endpoints - ingest, process, query and export browser events."""

from collections import OrderedDict
from typing import Optional
from uuid import uuid4

import structlog
from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from src.config import get_settings
from src.recording import (
    AnnotationType,
    ChainedFormResolver,
    EventFilters,
    EventProcessor,
    GroupBy,
    MappingFormResolver,
    MarkerType,
    NullFormResolver,
    ProcessingOptions,
    RecordedEvent,
    RRWebEventAdapter,
)
from src.utils.logging import LogContext, log_operation

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/recorder", tags=["Recorder"])


# =============================================================================
# In-memory Storage (one processor per recording session)
# =============================================================================

_sessions: "OrderedDict[str, EventProcessor]" = OrderedDict()


def get_processor(session_id: str) -> EventProcessor:
    processor = _sessions.get(session_id)
    if processor is None:
        raise HTTPException(status_code=404, detail="Recording session not found")
    return processor


def reset_sessions() -> None:
    """Drop every session. Used by tests."""
    _sessions.clear()


# =============================================================================
# Request/Response Models
# =============================================================================


class ProcessingOptionsModel(BaseModel):
    """Processing options for a recording session."""

    deduplicate_events: bool = True
    merge_consecutive_events: bool = True
    filter_noise_events: bool = True
    group_related_events: bool = True
    optimize_selectors: bool = False
    add_smart_waits: bool = True
    max_event_buffer_size: int = Field(10000, gt=0, le=100000)
    processing_batch_size: int = Field(100, gt=0, le=100000)


class CreateSessionRequest(BaseModel):
    """Request to open a recording session."""

    options: Optional[ProcessingOptionsModel] = Field(
        None, description="Processing options (defaults from settings)"
    )
    form_selectors: Optional[dict[str, str]] = Field(
        None, description="Element selector -> enclosing form selector, used for grouping"
    )


class SessionResponse(BaseModel):
    """A recording session."""

    session_id: str
    options: dict
    buffer_size: int = 0
    pending: int = 0


class IngestEventsRequest(BaseModel):
    """Raw recorded events in capture order."""

    events: list[dict] = Field(..., max_length=50000)


class IngestResponse(BaseModel):
    """Result of ingesting events."""

    success: bool
    accepted: int
    buffer_size: int
    pending: int
    processed_total: int


class ProcessResponse(BaseModel):
    """Result of processing pending events."""

    success: bool
    original_count: int
    processed_count: int
    removed_count: int
    groups_created: int
    optimizations: list[str] = []


class CreateGroupRequest(BaseModel):
    """Manual event group."""

    event_ids: list[str]
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class CreateMarkerRequest(BaseModel):
    """Timeline marker."""

    timestamp: int
    type: MarkerType
    label: str
    description: Optional[str] = None
    color: Optional[str] = None


class CreateAnnotationRequest(BaseModel):
    """Annotation on a processed event."""

    content: str = Field(..., min_length=1)
    type: AnnotationType = AnnotationType.COMMENT
    author: Optional[str] = None


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/sessions", response_model=SessionResponse)
async def create_session(body: CreateSessionRequest):
    """Open a recording session with its own event processor."""
    settings = get_settings()

    options = (
        ProcessingOptions(**body.options.model_dump())
        if body.options
        else settings.processing_options()
    )
    errors = options.validate()
    if errors:
        raise HTTPException(status_code=422, detail=errors)

    resolver = MappingFormResolver(body.form_selectors) if body.form_selectors else NullFormResolver()
    session_id = str(uuid4())
    _sessions[session_id] = EventProcessor(options, form_resolver=resolver)

    while len(_sessions) > settings.recorder_max_sessions:
        evicted_id, _ = _sessions.popitem(last=False)
        logger.info("Recording session evicted", session_id=evicted_id)

    logger.info("Recording session created", session_id=session_id)
    return SessionResponse(session_id=session_id, options=options.to_dict())


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    """Get a session's options and buffer state."""
    processor = get_processor(session_id)
    return SessionResponse(
        session_id=session_id,
        options=processor.options.to_dict(),
        buffer_size=processor.buffer_size,
        pending=processor.pending_count,
    )


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    """Close a recording session."""
    get_processor(session_id)
    del _sessions[session_id]
    return {"success": True, "session_id": session_id}


@router.post("/sessions/{session_id}/events", response_model=IngestResponse)
async def ingest_events(session_id: str, body: IngestEventsRequest):
    """Ingest raw recorded events from the capture layer."""
    processor = get_processor(session_id)

    try:
        events = [RecordedEvent.from_dict(raw) for raw in body.events]
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    with LogContext(session_id=session_id):
        processor.add_events(events)

    return IngestResponse(
        success=True,
        accepted=len(events),
        buffer_size=processor.buffer_size,
        pending=processor.pending_count,
        processed_total=processor.get_statistics().total_processed,
    )


@router.post("/sessions/{session_id}/rrweb", response_model=IngestResponse)
async def ingest_rrweb(session_id: str, body: IngestEventsRequest):
    """Ingest an rrweb recording.

    Forms found in the recording's DOM snapshot are consulted first for
    grouping; the session's ``form_selectors`` and earlier recordings still
    apply to selectors the snapshot does not know.
    """
    processor = get_processor(session_id)

    adapter = RRWebEventAdapter(session_id=session_id)
    events = adapter.convert(body.events)

    current = processor.form_resolver
    existing = current.resolvers if isinstance(current, ChainedFormResolver) else [current]
    processor.form_resolver = ChainedFormResolver(adapter.form_resolver, *existing)

    with LogContext(session_id=session_id):
        processor.add_events(events)

    return IngestResponse(
        success=True,
        accepted=len(events),
        buffer_size=processor.buffer_size,
        pending=processor.pending_count,
        processed_total=processor.get_statistics().total_processed,
    )


@router.post("/sessions/{session_id}/process", response_model=ProcessResponse)
async def process_events(session_id: str):
    """Process every pending event in the session.

    A run already in flight yields a zero result rather than an error.
    """
    processor = get_processor(session_id)

    with LogContext(session_id=session_id), log_operation("process_events", session_id=session_id) as op:
        result = await processor.process_all_events()
        op["processed"] = result.processed_count

    return ProcessResponse(
        success=True,
        original_count=result.original_count,
        processed_count=result.processed_count,
        removed_count=result.removed_count,
        groups_created=result.groups_created,
        optimizations=result.optimizations,
    )


@router.get("/sessions/{session_id}/events")
async def list_events(
    session_id: str,
    types: list[str] = Query(default=[]),
    search: str = "",
    errors_only: bool = False,
    hide_system: bool = False,
    group_by: GroupBy = GroupBy.NONE,
):
    """List processed events with optional filters."""
    processor = get_processor(session_id)

    filters = EventFilters(
        event_types=set(types),
        search=search,
        show_only_errors=errors_only,
        hide_system=hide_system,
        group_by=group_by,
    )
    events = processor.get_processed_events(filters)
    return {
        "session_id": session_id,
        "total": len(events),
        "events": [e.to_dict() for e in events],
    }


@router.get("/sessions/{session_id}/statistics")
async def get_statistics(session_id: str, limit: int = Query(10, ge=1, le=50)):
    """Processing counters and most used event types."""
    processor = get_processor(session_id)
    return {
        "session_id": session_id,
        "stats": processor.get_statistics().to_dict(),
        "most_used_events": processor.get_most_used_event_types(limit),
        "buffer_size": processor.buffer_size,
        "pending": processor.pending_count,
    }


@router.get("/sessions/{session_id}/groups")
async def list_groups(session_id: str):
    """List event groups."""
    processor = get_processor(session_id)
    return {"groups": [g.to_dict() for g in processor.get_event_groups()]}


@router.post("/sessions/{session_id}/groups")
async def create_group(session_id: str, body: CreateGroupRequest):
    """Group processed events manually."""
    processor = get_processor(session_id)
    group_id = processor.create_event_group(body.event_ids, body.name, body.description)
    return {"success": True, "group_id": group_id}


@router.get("/sessions/{session_id}/markers")
async def list_markers(session_id: str):
    """List timeline markers, oldest first."""
    processor = get_processor(session_id)
    return {"markers": [m.to_dict() for m in processor.get_timeline_markers()]}


@router.post("/sessions/{session_id}/markers")
async def add_marker(session_id: str, body: CreateMarkerRequest):
    """Add a timeline marker."""
    processor = get_processor(session_id)
    marker_id = processor.add_timeline_marker(
        timestamp=body.timestamp,
        type=body.type,
        label=body.label,
        description=body.description,
        color=body.color,
    )
    return {"success": True, "marker_id": marker_id}


@router.post("/sessions/{session_id}/events/{event_id}/annotations")
async def add_annotation(session_id: str, event_id: str, body: CreateAnnotationRequest):
    """Annotate a processed event. Unknown events are ignored."""
    processor = get_processor(session_id)
    annotation_id = processor.add_event_annotation(
        event_id,
        body.content,
        type=body.type,
        author=body.author,
    )
    return {"success": annotation_id is not None, "annotation_id": annotation_id}


@router.get("/sessions/{session_id}/export")
async def export_session(session_id: str):
    """Snapshot of processed events, groups and timeline for test generation."""
    processor = get_processor(session_id)
    return processor.export_for_test_generation()


@router.post("/sessions/{session_id}/clear")
async def clear_session(session_id: str):
    """Reset a session's buffer, processed events, groups and markers."""
    processor = get_processor(session_id)
    processor.clear()
    return {"success": True, "session_id": session_id}
