"""Tests for recorded-event models."""

import json

import pytest

from src.recording.models import (
    EventFilters,
    EventGroup,
    EventType,
    GroupBy,
    KeyboardEventData,
    ProcessingOptions,
    ProcessingResult,
    ProcessingStats,
    RecordedEvent,
    ScrollEventData,
    CustomEventData,
    event_data_from_dict,
)

# =============================================================================
# Enum Tests
# =============================================================================


class TestEventType:
    """Tests for EventType enum."""

    def test_values(self):
        """Test event type values match the capture layer's names."""
        assert EventType.CLICK.value == "click"
        assert EventType.DBLCLICK.value == "dblclick"
        assert EventType.MOUSEMOVE.value == "mousemove"
        assert EventType.NAVIGATION.value == "navigation"

    def test_parse_unknown_maps_to_custom(self):
        """Test unknown kinds degrade to CUSTOM."""
        assert EventType.parse("pinch") == EventType.CUSTOM
        assert EventType.parse("input") == EventType.INPUT


# =============================================================================
# RecordedEvent Tests
# =============================================================================


@pytest.fixture
def wire_event():
    """Event in the capture layer's wire format."""
    return {
        "id": "evt-1",
        "type": "input",
        "timestamp": 1234,
        "sequence": 7,
        "target": {
            "selector": "#email",
            "tagName": "input",
            "alternativeSelectors": ["input[name='email']", "form input:nth-child(1)"],
            "path": [
                {"tagName": "form", "selector": "#login", "id": "login", "attributes": {}, "index": 0},
                {"tagName": "input", "selector": "#email", "attributes": {"type": "email"}, "index": 0},
            ],
            "boundingRect": {"x": 1, "y": 2, "width": 100, "height": 20},
        },
        "data": {"type": "keyboard", "key": "m", "code": "KeyM", "inputValue": "me@x.io"},
        "context": {
            "url": "https://example.com/login",
            "title": "Login",
            "viewport": {"width": 1280, "height": 720, "devicePixelRatio": 2},
            "userAgent": "Mozilla/5.0",
        },
        "metadata": {
            "sessionId": "s-1",
            "recordingMode": "standard",
            "reliability": {"selectorScore": 0.9, "confidence": 0.8, "alternativesCount": 2},
            "annotations": [{"id": "a1", "type": "label", "content": "email", "timestamp": 5}],
            "custom": {"hasError": False},
        },
    }


class TestRecordedEvent:
    """Tests for RecordedEvent."""

    def test_from_dict(self, wire_event):
        """Test parsing the wire format."""
        event = RecordedEvent.from_dict(wire_event)

        assert event.type == EventType.INPUT
        assert event.target.selector == "#email"
        assert event.target.alternative_selectors[0] == "input[name='email']"
        assert [n.tag_name for n in event.target.path] == ["form", "input"]
        assert isinstance(event.data, KeyboardEventData)
        assert event.data.input_value == "me@x.io"
        assert event.data.code == "KeyM"
        assert event.context.viewport.device_pixel_ratio == 2
        assert event.metadata.reliability.confidence == 0.8
        assert event.metadata.annotations[0].content == "email"

    def test_to_dict_is_json_serializable(self, wire_event):
        """Test serialization round-trips through JSON."""
        event = RecordedEvent.from_dict(wire_event)

        data = json.loads(json.dumps(event.to_dict()))

        assert data["data"]["inputValue"] == "me@x.io"
        assert data["data"]["type"] == "keyboard"
        assert data["metadata"]["reliability"]["selectorScore"] == 0.9
        assert data["target"]["path"][0]["id"] == "login"

    def test_group_exported_by_id(self, wire_event):
        """Test the group back-reference serializes as an id."""
        event = RecordedEvent.from_dict(wire_event)
        event.metadata.group = EventGroup(id="group-1", name="Login", events=[event.id])

        assert event.to_dict()["metadata"]["group"] == "group-1"

    def test_missing_id_rejected(self):
        """Test id and type are required."""
        with pytest.raises(ValueError):
            RecordedEvent.from_dict({"type": "click"})

    def test_null_timestamp_becomes_zero(self):
        """Test explicit nulls for timestamp and sequence default to zero."""
        event = RecordedEvent.from_dict({"id": "e", "type": "click", "timestamp": None, "sequence": None})

        assert event.timestamp == 0
        assert event.sequence == 0

    def test_non_numeric_timestamp_rejected(self):
        with pytest.raises(ValueError):
            RecordedEvent.from_dict({"id": "e", "type": "click", "timestamp": "soon"})

    def test_minimal_event(self):
        """Test missing optional sections get defaults."""
        event = RecordedEvent.from_dict({"id": "e", "type": "wheel"})

        assert event.target.selector == ""
        assert event.metadata.reliability.confidence == 1.0
        assert isinstance(event.data, CustomEventData)

    def test_unknown_data_type(self):
        """Test unknown payload kinds become custom payloads."""
        data = event_data_from_dict({"type": "gesture", "fingers": 2})

        assert isinstance(data, CustomEventData)
        assert data.event_type == "gesture"
        assert data.payload == {"fingers": 2}

    def test_scroll_data(self):
        """Test scroll payload field mapping."""
        data = event_data_from_dict({"type": "scroll", "scrollX": 0, "scrollY": 50})

        assert isinstance(data, ScrollEventData)
        assert data.scroll_y == 50


# =============================================================================
# Options, stats, results, filters
# =============================================================================


class TestProcessingOptions:
    """Tests for ProcessingOptions."""

    def test_validate_ok(self):
        assert ProcessingOptions().validate() == []

    def test_validate_errors(self):
        """Test invalid sizes are reported."""
        errors = ProcessingOptions(max_event_buffer_size=10, processing_batch_size=20).validate()
        assert errors == ["processing_batch_size cannot exceed max_event_buffer_size"]

        errors = ProcessingOptions(max_event_buffer_size=0, processing_batch_size=0).validate()
        assert len(errors) == 2

    def test_to_dict_camel_case(self):
        data = ProcessingOptions().to_dict()
        assert data["maxEventBufferSize"] == 10000
        assert data["addSmartWaits"] is True


class TestProcessingStats:
    """Tests for ProcessingStats accumulation."""

    def test_addition(self):
        """Test stage counters merge by summing."""
        total = ProcessingStats(duplicates_removed=2) + ProcessingStats(
            duplicates_removed=1, wait_events_added=3
        )

        assert total.duplicates_removed == 3
        assert total.wait_events_added == 3
        assert total.total_processed == 0


class TestProcessingResult:
    """Tests for ProcessingResult."""

    def test_empty(self):
        result = ProcessingResult.empty()
        assert result.to_dict() == {
            "originalCount": 0,
            "processedCount": 0,
            "removedCount": 0,
            "groupsCreated": 0,
            "optimizations": [],
        }


class TestEventFilters:
    """Tests for EventFilters coercion."""

    def test_strings_converted(self):
        filters = EventFilters(event_types={"click", "input"}, group_by="type")

        assert filters.event_types == {EventType.CLICK, EventType.INPUT}
        assert filters.group_by == GroupBy.TYPE
