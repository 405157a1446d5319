"""Shared fixtures for recorded-event processing tests."""

import itertools

import pytest

from src.recording.environment import ManualClock
from src.recording.models import (
    EventContext,
    EventMetadata,
    EventType,
    KeyboardEventData,
    MouseEventData,
    RecordedEvent,
    RecordedEventTarget,
    ReliabilityMetrics,
    ScrollEventData,
)


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "smoke: mark test as smoke test (fast, critical path - included in CI)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def _default_data(event_type: EventType, input_value):
    if event_type in (EventType.KEYDOWN, EventType.KEYUP, EventType.INPUT):
        return KeyboardEventData(key="a", input_value=input_value)
    if event_type == EventType.SCROLL:
        return ScrollEventData(scroll_x=0, scroll_y=100)
    return MouseEventData()


@pytest.fixture
def make_event():
    """Factory for RecordedEvents with increasing sequence numbers.

    Usage:
        click = make_event("click", 100, selector="#btn")
    """
    counter = itertools.count(1)

    def factory(
        event_type="click",
        timestamp=0,
        selector="#btn",
        data=None,
        text=None,
        url="https://example.com/",
        confidence=1.0,
        custom=None,
        input_value="hello",
        event_id=None,
    ) -> RecordedEvent:
        seq = next(counter)
        event_type = EventType(event_type)
        return RecordedEvent(
            id=event_id or f"evt_{seq}",
            type=event_type,
            timestamp=timestamp,
            sequence=seq,
            target=RecordedEventTarget(selector=selector, tag_name="button", text_content=text),
            data=data if data is not None else _default_data(event_type, input_value),
            context=EventContext(url=url, title="Example"),
            metadata=EventMetadata(
                session_id="session-1",
                reliability=ReliabilityMetrics(confidence=confidence),
                custom=dict(custom or {}),
            ),
        )

    return factory


@pytest.fixture
def clock():
    """Manual clock starting at 2023-11-14T22:13:20Z."""
    return ManualClock(1_700_000_000_000)


@pytest.fixture
def passthrough_options():
    """Options with every transform stage disabled."""
    return {
        "deduplicate_events": False,
        "merge_consecutive_events": False,
        "filter_noise_events": False,
        "group_related_events": False,
        "add_smart_waits": False,
    }


@pytest.fixture
def sample_rrweb_recording():
    """rrweb recording of a login form being filled in and submitted."""
    return [
        # Meta event
        {
            "type": 4,
            "timestamp": 1000,
            "data": {"href": "https://example.com/login", "width": 1920, "height": 1080},
        },
        # Full snapshot
        {
            "type": 2,
            "timestamp": 1100,
            "data": {
                "node": {
                    "type": 0,
                    "id": 1,
                    "childNodes": [
                        {
                            "id": 2,
                            "tagName": "html",
                            "childNodes": [
                                {
                                    "id": 3,
                                    "tagName": "body",
                                    "childNodes": [
                                        {
                                            "id": 4,
                                            "tagName": "form",
                                            "attributes": {"id": "login-form"},
                                            "childNodes": [
                                                {
                                                    "id": 5,
                                                    "tagName": "input",
                                                    "attributes": {"id": "email", "type": "email"},
                                                },
                                                {
                                                    "id": 6,
                                                    "tagName": "input",
                                                    "attributes": {"id": "password", "type": "password"},
                                                },
                                                {
                                                    "id": 7,
                                                    "tagName": "button",
                                                    "attributes": {"type": "submit", "class": "btn-primary"},
                                                    "childNodes": [
                                                        {"id": 8, "type": 3, "textContent": "Sign in"},
                                                    ],
                                                },
                                            ],
                                        },
                                    ],
                                },
                            ],
                        },
                    ],
                },
            },
        },
        # Mouse moves
        {
            "type": 3,
            "timestamp": 1200,
            "data": {
                "source": 1,
                "positions": [
                    {"x": 10, "y": 20, "id": 3, "timeOffset": 0},
                    {"x": 15, "y": 25, "id": 3, "timeOffset": 10},
                ],
            },
        },
        # Focus email
        {"type": 3, "timestamp": 1500, "data": {"source": 2, "type": 5, "id": 5}},
        # Type email
        {"type": 3, "timestamp": 1800, "data": {"source": 5, "id": 5, "text": "user@example.com"}},
        # Focus password
        {"type": 3, "timestamp": 2100, "data": {"source": 2, "type": 5, "id": 6}},
        # Type password
        {"type": 3, "timestamp": 2400, "data": {"source": 5, "id": 6, "text": "hunter22"}},
        # Click submit after a pause
        {"type": 3, "timestamp": 4000, "data": {"source": 2, "type": 2, "id": 7, "x": 40, "y": 60}},
    ]
