"""rrweb adapter - Convert DOM recordings into RecordedEvent streams.

rrweb records a full DOM snapshot plus incremental events keyed by node id.
This adapter resolves node ids to CSS selectors and emits one RecordedEvent
per interaction so recordings made outside the live capture layer can be fed
through the same EventProcessor. It also builds a SnapshotFormResolver from the
snapshot so form grouping works without a live DOM.
"""

import json
import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional

import structlog

from .form_resolver import SnapshotFormResolver, form_selector
from .models import (
    ElementPathNode,
    EventContext,
    EventMetadata,
    EventType,
    FormEventData,
    KeyboardEventData,
    MouseEventData,
    NavigationEventData,
    RecordedEvent,
    RecordedEventTarget,
    ScrollEventData,
    ViewportInfo,
)

logger = structlog.get_logger()


class RRWebEventType(IntEnum):
    """rrweb event types."""

    DOM_CONTENT_LOADED = 0
    LOAD = 1
    FULL_SNAPSHOT = 2
    INCREMENTAL_SNAPSHOT = 3
    META = 4
    CUSTOM = 5
    PLUGIN = 6


class RRWebIncrementalSource(IntEnum):
    """rrweb incremental snapshot sources the adapter understands."""

    MUTATION = 0
    MOUSE_MOVE = 1
    MOUSE_INTERACTION = 2
    SCROLL = 3
    VIEWPORT_RESIZE = 4
    INPUT = 5


class MouseInteractionType(IntEnum):
    """Mouse interaction types in rrweb."""

    MOUSE_UP = 0
    MOUSE_DOWN = 1
    CLICK = 2
    CONTEXT_MENU = 3
    DBL_CLICK = 4
    FOCUS = 5
    BLUR = 6


MOUSE_INTERACTION_EVENTS = {
    MouseInteractionType.MOUSE_UP: EventType.MOUSEUP,
    MouseInteractionType.MOUSE_DOWN: EventType.MOUSEDOWN,
    MouseInteractionType.CLICK: EventType.CLICK,
    MouseInteractionType.CONTEXT_MENU: EventType.CONTEXTMENU,
    MouseInteractionType.DBL_CLICK: EventType.DBLCLICK,
    MouseInteractionType.FOCUS: EventType.FOCUS,
    MouseInteractionType.BLUR: EventType.BLUR,
}

# Tailwind-style utility classes make poor selectors
_UTILITY_CLASS = re.compile(r'^(p|m|w|h|flex|grid|text|bg|border)-')


def build_selector(tag_name: str, attributes: dict) -> str:
    """Build a CSS selector for an element.

    Priority: id > data-testid > data-test > name > aria-label > class > tag
    """
    if attributes.get("id"):
        return f"#{attributes['id']}"

    if "data-testid" in attributes:
        return f'[data-testid="{attributes["data-testid"]}"]'

    if "data-test" in attributes:
        return f'[data-test="{attributes["data-test"]}"]'

    if "name" in attributes:
        return f'{tag_name}[name="{attributes["name"]}"]'

    if "aria-label" in attributes:
        return f'{tag_name}[aria-label="{attributes["aria-label"]}"]'

    class_list = (attributes.get("class") or "").split()
    if class_list:
        significant = [c for c in class_list if not _UTILITY_CLASS.match(c)]
        return f".{(significant or class_list)[0]}"

    if tag_name in ("input", "button", "textarea", "select") and "type" in attributes:
        return f'{tag_name}[type="{attributes["type"]}"]'

    return tag_name


@dataclass
class NodeInfo:
    """What the adapter knows about one snapshot node."""

    selector: str
    tag_name: str
    attributes: dict = field(default_factory=dict)
    parent_id: Optional[int] = None
    text: str = ""


class RRWebEventAdapter:
    """Converts rrweb recordings into RecordedEvents.

    Example:
        adapter = RRWebEventAdapter(session_id="rec-1")
        events = adapter.convert(rrweb_events)
        processor = EventProcessor(form_resolver=adapter.form_resolver)
        processor.add_events(events)
    """

    def __init__(self, session_id: str = "recording", recording_mode: str = "rrweb"):
        self.session_id = session_id
        self.recording_mode = recording_mode
        self.log = logger.bind(component="rrweb_adapter")
        self._reset_state()

    def _reset_state(self):
        self._nodes: dict[int, NodeInfo] = {}
        self._resolver = SnapshotFormResolver()
        self._context = EventContext()
        self._scroll_position: tuple[float, float] = (0, 0)
        self._start_ts: Optional[int] = None
        self._sequence = 0
        self._events: list[RecordedEvent] = []

    @property
    def form_resolver(self) -> SnapshotFormResolver:
        """Form resolver built from the snapshots seen so far."""
        return self._resolver

    def convert(self, events: list[dict] | str) -> list[RecordedEvent]:
        """Convert rrweb events into RecordedEvents.

        Args:
            events: List of rrweb event dicts, JSON string, or {"events": [...]}

        Returns:
            RecordedEvents in capture order
        """
        if isinstance(events, str):
            events = json.loads(events)
        if isinstance(events, dict) and "events" in events:
            events = events["events"]

        self._reset_state()
        self.log.info("Converting rrweb recording", event_count=len(events))

        for raw in events:
            try:
                event_type = RRWebEventType(raw.get("type", RRWebEventType.CUSTOM))
            except ValueError:
                event_type = RRWebEventType.CUSTOM
            timestamp = raw.get("timestamp", 0)
            if self._start_ts is None:
                self._start_ts = timestamp
            data = raw.get("data") or {}
            relative_ts = timestamp - self._start_ts

            if event_type == RRWebEventType.META:
                self._process_meta(data, relative_ts)
            elif event_type == RRWebEventType.FULL_SNAPSHOT:
                self._index_node(data.get("node") or {})
            elif event_type == RRWebEventType.INCREMENTAL_SNAPSHOT:
                self._process_incremental(data, relative_ts)

        self.log.info("Conversion complete", recorded_events=len(self._events))
        return list(self._events)

    # =========================================================================
    # Snapshot indexing
    # =========================================================================

    def _index_node(self, node: dict, parent_id: Optional[int] = None):
        """Index a snapshot (sub)tree by node id."""
        node_id = node.get("id")
        tag_name = (node.get("tagName") or "").lower()
        attributes = node.get("attributes") or {}

        if node_id is not None and tag_name:
            self._nodes[node_id] = NodeInfo(
                selector=build_selector(tag_name, attributes),
                tag_name=tag_name,
                attributes=attributes,
                parent_id=parent_id,
                text=self._direct_text(node),
            )

        for child in node.get("childNodes") or []:
            self._index_node(child, node_id if tag_name else parent_id)

        if parent_id is None and tag_name:
            self._resolver.add_tree(node, build_selector)

    def _enclosing_form(self, node_id: Optional[int]) -> Optional[str]:
        """Selector of the nearest indexed form at or above ``node_id``."""
        current = self._nodes.get(node_id)
        while current is not None:
            if current.tag_name == "form":
                return form_selector(current.attributes)
            current = self._nodes.get(current.parent_id)
        return None

    @staticmethod
    def _direct_text(node: dict) -> str:
        texts = [
            (child.get("textContent") or "").strip()
            for child in node.get("childNodes") or []
            if not child.get("tagName")
        ]
        return " ".join(t for t in texts if t)

    def _path(self, node_id: int) -> list[ElementPathNode]:
        path = []
        current = self._nodes.get(node_id)
        while current is not None:
            path.append(ElementPathNode(
                tag_name=current.tag_name,
                selector=current.selector,
                element_id=current.attributes.get("id"),
                class_name=current.attributes.get("class"),
                attributes=dict(current.attributes),
            ))
            current = self._nodes.get(current.parent_id) if current.parent_id is not None else None
        path.reverse()
        return path

    def _target(self, node_id: Optional[int]) -> RecordedEventTarget:
        info = self._nodes.get(node_id) if node_id is not None else None
        if info is None:
            fallback = f"[data-rrweb-id='{node_id}']" if node_id is not None else "window"
            return RecordedEventTarget(selector=fallback)

        attrs = info.attributes
        return RecordedEventTarget(
            selector=info.selector,
            tag_name=info.tag_name,
            path=self._path(node_id),
            text_content=info.text or None,
            element_id=attrs.get("id"),
            class_name=attrs.get("class"),
            name=attrs.get("name"),
            input_type=attrs.get("type"),
            placeholder=attrs.get("placeholder"),
        )

    # =========================================================================
    # Event conversion
    # =========================================================================

    def _emit(self, event_type: EventType, timestamp: int, target: RecordedEventTarget, data):
        self._sequence += 1
        self._events.append(RecordedEvent(
            id=f"{self.session_id}_{self._sequence}",
            type=event_type,
            timestamp=timestamp,
            sequence=self._sequence,
            target=target,
            data=data,
            context=EventContext.from_dict(self._context.to_dict()),
            metadata=EventMetadata(
                session_id=self.session_id,
                recording_mode=self.recording_mode,
            ),
        ))

    def _process_meta(self, data: dict, timestamp: int):
        width = data.get("width", 0)
        height = data.get("height", 0)
        self._context = EventContext(
            url=data.get("href", ""),
            viewport=ViewportInfo(width=width, height=height, is_landscape=width > height),
            user_agent=self._context.user_agent,
        )
        if self._context.url:
            self._emit(
                EventType.NAVIGATION,
                timestamp,
                RecordedEventTarget(selector="window", tag_name="window"),
                NavigationEventData(url=self._context.url, timestamp=timestamp),
            )

    def _process_incremental(self, data: dict, timestamp: int):
        source = data.get("source")

        if source == RRWebIncrementalSource.MOUSE_INTERACTION:
            self._process_mouse_interaction(data, timestamp)
        elif source == RRWebIncrementalSource.INPUT:
            self._process_input(data, timestamp)
        elif source == RRWebIncrementalSource.SCROLL:
            self._process_scroll(data, timestamp)
        elif source == RRWebIncrementalSource.MOUSE_MOVE:
            for position in data.get("positions") or []:
                self._emit(
                    EventType.MOUSEMOVE,
                    timestamp + position.get("timeOffset", 0),
                    self._target(position.get("id")),
                    MouseEventData(client_x=position.get("x", 0), client_y=position.get("y", 0)),
                )
        elif source == RRWebIncrementalSource.VIEWPORT_RESIZE:
            width, height = data.get("width", 0), data.get("height", 0)
            self._context.viewport = ViewportInfo(
                width=width, height=height, is_landscape=width > height,
            )
            self._emit(
                EventType.RESIZE,
                timestamp,
                RecordedEventTarget(selector="window", tag_name="window"),
                MouseEventData(),
            )
        elif source == RRWebIncrementalSource.MUTATION:
            for add in data.get("adds") or []:
                if not add.get("node"):
                    continue
                parent_id = add.get("parentId")
                self._index_node(add["node"], parent_id)
                if parent_id is not None:
                    self._resolver.add_tree(
                        add["node"], build_selector, form=self._enclosing_form(parent_id),
                    )

    def _process_mouse_interaction(self, data: dict, timestamp: int):
        node_id = data.get("id")
        if not node_id:
            return
        try:
            event_type = MOUSE_INTERACTION_EVENTS[MouseInteractionType(data.get("type"))]
        except (KeyError, ValueError):
            return

        target = self._target(node_id)
        if event_type in (EventType.FOCUS, EventType.BLUR):
            payload = FormEventData(event_type=event_type.value)
        else:
            payload = MouseEventData(
                client_x=data.get("x", 0),
                client_y=data.get("y", 0),
                detail=2 if event_type == EventType.DBLCLICK else 1,
            )
        self._emit(event_type, timestamp, target, payload)

    def _process_input(self, data: dict, timestamp: int):
        node_id = data.get("id")
        if not node_id:
            return
        target = self._target(node_id)

        # Checkboxes and radios
        if data.get("isChecked") is not None:
            self._emit(
                EventType.CHANGE,
                timestamp,
                target,
                FormEventData(event_type="change", value=str(bool(data["isChecked"])).lower()),
            )
            return

        # Select elements
        if target.tag_name == "select":
            self._emit(
                EventType.CHANGE,
                timestamp,
                target,
                FormEventData(
                    event_type="change",
                    value=data.get("text", ""),
                    selected_options=[data.get("text", "")],
                ),
            )
            return

        self._emit(
            EventType.INPUT,
            timestamp,
            target,
            KeyboardEventData(input_value=data.get("text", "")),
        )

    def _process_scroll(self, data: dict, timestamp: int):
        x, y = data.get("x", 0), data.get("y", 0)
        dx = x - self._scroll_position[0]
        dy = y - self._scroll_position[1]
        self._scroll_position = (x, y)

        self._emit(
            EventType.SCROLL,
            timestamp,
            self._target(data.get("id")),
            ScrollEventData(scroll_x=dx, scroll_y=dy, scroll_top=y, scroll_left=x),
        )


def convert_rrweb_recording(
    events: list[dict] | str,
    session_id: str = "recording",
) -> tuple[list[RecordedEvent], SnapshotFormResolver]:
    """Convenience function to convert an rrweb recording.

    Returns:
        The recorded events and a form resolver built from the snapshot
    """
    adapter = RRWebEventAdapter(session_id=session_id)
    recorded = adapter.convert(events)
    return recorded, adapter.form_resolver
