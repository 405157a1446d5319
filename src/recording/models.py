"""Data models for recorded browser events and their processed form."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class EventType(str, Enum):
    """Browser interaction kinds the capture layer can record."""

    # Mouse
    CLICK = "click"
    DBLCLICK = "dblclick"
    MOUSEDOWN = "mousedown"
    MOUSEUP = "mouseup"
    MOUSEOVER = "mouseover"
    MOUSEOUT = "mouseout"
    MOUSEMOVE = "mousemove"
    CONTEXTMENU = "contextmenu"
    WHEEL = "wheel"

    # Keyboard
    KEYDOWN = "keydown"
    KEYUP = "keyup"
    KEYPRESS = "keypress"
    INPUT = "input"

    # Form
    CHANGE = "change"
    SUBMIT = "submit"
    FOCUS = "focus"
    BLUR = "blur"
    SELECT = "select"

    # Navigation
    NAVIGATION = "navigation"
    RELOAD = "reload"
    BACK = "back"
    FORWARD = "forward"

    # Window
    RESIZE = "resize"
    SCROLL = "scroll"
    LOAD = "load"
    UNLOAD = "unload"
    BEFOREUNLOAD = "beforeunload"

    # Touch
    TOUCHSTART = "touchstart"
    TOUCHEND = "touchend"
    TOUCHMOVE = "touchmove"
    TOUCHCANCEL = "touchcancel"

    # Drag and drop
    DRAGSTART = "dragstart"
    DRAG = "drag"
    DRAGEND = "dragend"
    DRAGOVER = "dragover"
    DRAGENTER = "dragenter"
    DRAGLEAVE = "dragleave"
    DROP = "drop"

    # Synthetic
    WAIT = "wait"
    ASSERTION = "assertion"
    SCREENSHOT = "screenshot"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: Union[str, "EventType"]) -> "EventType":
        """Parse an event type, mapping unknown kinds to CUSTOM."""
        try:
            return cls(value)
        except ValueError:
            return cls.CUSTOM


class MarkerType(str, Enum):
    """Timeline marker kinds."""

    START = "start"
    END = "end"
    MILESTONE = "milestone"
    ERROR = "error"


class AnnotationType(str, Enum):
    """User annotation kinds."""

    COMMENT = "comment"
    LABEL = "label"
    TODO = "todo"
    ISSUE = "issue"


class GroupBy(str, Enum):
    """Sort order applied by the query view."""

    NONE = "none"
    TYPE = "type"
    ELEMENT = "element"
    PAGE = "page"


# Event types that form-interaction grouping considers
FORM_EVENT_TYPES = frozenset({
    EventType.INPUT,
    EventType.CHANGE,
    EventType.FOCUS,
    EventType.BLUR,
    EventType.SUBMIT,
})

# Event types hidden by the "hide system" filter
SYSTEM_EVENT_TYPES = frozenset({
    EventType.SCROLL,
    EventType.MOUSEMOVE,
    EventType.RESIZE,
    EventType.LOAD,
})


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _snake(name: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name)


def _camel_dict(data: dict) -> dict:
    return {_camel(k): v for k, v in data.items()}


def _snake_dict(data: Optional[dict]) -> dict:
    return {_snake(k): v for k, v in (data or {}).items()}


# =============================================================================
# Target
# =============================================================================


@dataclass
class BoundingRect:
    """Element position and size at capture time."""

    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    top: float = 0
    right: float = 0
    bottom: float = 0
    left: float = 0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "BoundingRect":
        data = data or {}
        return cls(**{k: data.get(k, 0) for k in cls.__dataclass_fields__})


@dataclass
class ElementPathNode:
    """One ancestor in an element's root-to-leaf path."""

    tag_name: str
    selector: str = ""
    index: int = 0
    element_id: Optional[str] = None
    class_name: Optional[str] = None
    attributes: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "tagName": self.tag_name,
            "selector": self.selector,
            "index": self.index,
            "id": self.element_id,
            "className": self.class_name,
            "attributes": dict(self.attributes),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ElementPathNode":
        return cls(
            tag_name=data.get("tagName", ""),
            selector=data.get("selector", ""),
            index=data.get("index", 0),
            element_id=data.get("id"),
            class_name=data.get("className"),
            attributes=dict(data.get("attributes") or {}),
        )


@dataclass
class RecordedEventTarget:
    """Structural description of the element an event acted on.

    Attributes:
        selector: Primary CSS selector
        tag_name: Lower-case tag name
        bounding_rect: Position and size at capture time
        path: Ancestor path ordered root to leaf
        alternative_selectors: Fallback selectors, most reliable first
        text_content: Visible text of the element, if any
    """

    selector: str
    tag_name: str = ""
    bounding_rect: BoundingRect = field(default_factory=BoundingRect)
    path: list[ElementPathNode] = field(default_factory=list)
    alternative_selectors: list[str] = field(default_factory=list)
    xpath: Optional[str] = None
    text_content: Optional[str] = None
    element_id: Optional[str] = None
    class_name: Optional[str] = None
    name: Optional[str] = None
    input_type: Optional[str] = None
    value: Optional[str] = None
    placeholder: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "selector": self.selector,
            "tagName": self.tag_name,
            "boundingRect": asdict(self.bounding_rect),
            "path": [node.to_dict() for node in self.path],
            "alternativeSelectors": list(self.alternative_selectors),
            "xpath": self.xpath,
            "textContent": self.text_content,
            "id": self.element_id,
            "className": self.class_name,
            "name": self.name,
            "type": self.input_type,
            "value": self.value,
            "placeholder": self.placeholder,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "RecordedEventTarget":
        data = data or {}
        return cls(
            selector=data.get("selector", ""),
            tag_name=data.get("tagName", ""),
            bounding_rect=BoundingRect.from_dict(data.get("boundingRect")),
            path=[ElementPathNode.from_dict(n) for n in data.get("path") or []],
            alternative_selectors=list(data.get("alternativeSelectors") or []),
            xpath=data.get("xpath"),
            text_content=data.get("textContent"),
            element_id=data.get("id"),
            class_name=data.get("className"),
            name=data.get("name"),
            input_type=data.get("type"),
            value=data.get("value"),
            placeholder=data.get("placeholder"),
        )


# =============================================================================
# Event data variants
# =============================================================================


@dataclass
class MouseEventData:
    """Pointer event payload."""

    button: int = 0
    buttons: int = 0
    client_x: float = 0
    client_y: float = 0
    page_x: float = 0
    page_y: float = 0
    screen_x: float = 0
    screen_y: float = 0
    ctrl_key: bool = False
    shift_key: bool = False
    alt_key: bool = False
    meta_key: bool = False
    detail: int = 0  # click count
    type: str = field(default="mouse", init=False)


@dataclass
class KeyboardEventData:
    """Keyboard event payload; ``input_value`` is set for input events."""

    key: str = ""
    code: str = ""
    key_code: int = 0
    char_code: int = 0
    ctrl_key: bool = False
    shift_key: bool = False
    alt_key: bool = False
    meta_key: bool = False
    repeat: bool = False
    input_value: Optional[str] = None
    type: str = field(default="keyboard", init=False)


@dataclass
class FormEventData:
    """Form change/submit/focus payload."""

    event_type: str = "change"
    value: Optional[str] = None
    selected_options: Optional[list[str]] = None
    files: Optional[list[dict]] = None
    form_data: Optional[dict[str, Any]] = None
    type: str = field(default="form", init=False)


@dataclass
class NavigationEventData:
    """Page navigation payload."""

    url: str = ""
    title: str = ""
    referrer: str = ""
    method: Optional[str] = None
    headers: Optional[dict[str, str]] = None
    timestamp: int = 0
    type: str = field(default="navigation", init=False)


@dataclass
class ScrollEventData:
    """Scroll payload; ``scroll_x``/``scroll_y`` are the deltas."""

    scroll_x: float = 0
    scroll_y: float = 0
    scroll_top: float = 0
    scroll_left: float = 0
    element: Optional[str] = None
    type: str = field(default="scroll", init=False)


@dataclass
class WaitEventData:
    """Explicit or synthesized wait."""

    duration: int = 0
    reason: str = "manual"
    condition: Optional[str] = None
    type: str = field(default="wait", init=False)


@dataclass
class AssertionEventData:
    """Assertion step payload."""

    assertion_type: str = ""
    expected: Any = None
    actual: Any = None
    message: str = ""
    passed: Optional[bool] = None
    type: str = field(default="assertion", init=False)


@dataclass
class CustomEventData:
    """Free-form payload for custom events."""

    event_type: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    type: str = field(default="custom", init=False)


EventData = Union[
    MouseEventData,
    KeyboardEventData,
    FormEventData,
    NavigationEventData,
    ScrollEventData,
    WaitEventData,
    AssertionEventData,
    CustomEventData,
]

EVENT_DATA_TYPES: dict[str, type] = {
    "mouse": MouseEventData,
    "keyboard": KeyboardEventData,
    "form": FormEventData,
    "navigation": NavigationEventData,
    "scroll": ScrollEventData,
    "wait": WaitEventData,
    "assertion": AssertionEventData,
    "custom": CustomEventData,
}


def event_data_to_dict(data: EventData) -> dict:
    """Serialize an event payload with camelCase keys."""
    return _camel_dict(asdict(data))


def event_data_from_dict(data: Optional[dict]) -> EventData:
    """Deserialize an event payload, falling back to CustomEventData."""
    data = dict(data or {})
    kind = data.pop("type", "custom")
    data_cls = EVENT_DATA_TYPES.get(kind)
    if data_cls is None:
        return CustomEventData(event_type=str(kind), payload=data)

    known = {name for name, f in data_cls.__dataclass_fields__.items() if f.init}
    kwargs = {k: v for k, v in _snake_dict(data).items() if k in known}
    return data_cls(**kwargs)


# =============================================================================
# Context
# =============================================================================


@dataclass
class ViewportInfo:
    """Viewport at capture time."""

    width: int = 0
    height: int = 0
    device_pixel_ratio: float = 1.0
    is_landscape: bool = False
    is_mobile: bool = False


@dataclass
class EventContext:
    """Page and browser context at capture time.

    The performance/network/console snapshots are passed through untouched.
    """

    url: str = ""
    title: str = ""
    viewport: ViewportInfo = field(default_factory=ViewportInfo)
    user_agent: str = ""
    performance: Optional[dict[str, Any]] = None
    network: Optional[dict[str, Any]] = None
    console: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "viewport": _camel_dict(asdict(self.viewport)),
            "userAgent": self.user_agent,
            "performance": self.performance,
            "network": self.network,
            "console": self.console,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "EventContext":
        data = data or {}
        viewport = _snake_dict(data.get("viewport"))
        return cls(
            url=data.get("url", ""),
            title=data.get("title", ""),
            viewport=ViewportInfo(**{
                k: v for k, v in viewport.items() if k in ViewportInfo.__dataclass_fields__
            }),
            user_agent=data.get("userAgent", ""),
            performance=data.get("performance"),
            network=data.get("network"),
            console=data.get("console"),
        )


# =============================================================================
# Metadata
# =============================================================================


@dataclass
class ReliabilityMetrics:
    """How likely an event's selector is to resolve on replay."""

    selector_score: float = 1.0
    alternatives_count: int = 0
    element_stable: bool = True
    position_stable: bool = True
    attributes_stable: bool = True
    timing_variability: float = 0.0
    network_dependency: bool = False
    confidence: float = 1.0  # 0-1


@dataclass
class EventAnnotation:
    """User comment or label attached to an event."""

    id: str
    type: AnnotationType
    content: str
    timestamp: int
    author: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "author": self.author,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EventAnnotation":
        return cls(
            id=data.get("id", ""),
            type=AnnotationType(data.get("type", "comment")),
            content=data.get("content", ""),
            timestamp=data.get("timestamp", 0),
            author=data.get("author"),
        )


@dataclass
class EventGroup:
    """A named collection of event ids forming one logical interaction."""

    id: str
    name: str
    events: list[str] = field(default_factory=list)
    description: Optional[str] = None
    color: Optional[str] = None
    collapsed: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "collapsed": self.collapsed,
            "events": list(self.events),
        }


@dataclass
class EventMetadata:
    """Recording metadata attached to each event."""

    session_id: str = ""
    recording_mode: str = "standard"
    reliability: ReliabilityMetrics = field(default_factory=ReliabilityMetrics)
    annotations: list[EventAnnotation] = field(default_factory=list)
    group: Optional[EventGroup] = None
    custom: dict[str, Any] = field(default_factory=dict)
    screenshot: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict:
        # The group is exported by id to keep snapshots acyclic
        return {
            "sessionId": self.session_id,
            "recordingMode": self.recording_mode,
            "reliability": _camel_dict(asdict(self.reliability)),
            "annotations": [a.to_dict() for a in self.annotations],
            "group": self.group.id if self.group else None,
            "custom": dict(self.custom),
            "screenshot": self.screenshot,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "EventMetadata":
        data = data or {}
        reliability = _snake_dict(data.get("reliability"))
        return cls(
            session_id=data.get("sessionId", ""),
            recording_mode=data.get("recordingMode", "standard"),
            reliability=ReliabilityMetrics(**{
                k: v for k, v in reliability.items()
                if k in ReliabilityMetrics.__dataclass_fields__
            }),
            annotations=[EventAnnotation.from_dict(a) for a in data.get("annotations") or []],
            custom=dict(data.get("custom") or {}),
            screenshot=data.get("screenshot"),
        )


# =============================================================================
# Recorded event
# =============================================================================


@dataclass
class RecordedEvent:
    """One observed browser interaction plus its context and metadata."""

    id: str
    type: EventType
    timestamp: int  # ms, monotonic capture time
    sequence: int
    target: RecordedEventTarget
    data: EventData = field(default_factory=CustomEventData)
    context: EventContext = field(default_factory=EventContext)
    metadata: EventMetadata = field(default_factory=EventMetadata)

    def __post_init__(self):
        """Convert string event types to the enum and null counters to zero."""
        if not isinstance(self.type, EventType):
            self.type = EventType.parse(self.type)
        try:
            self.timestamp = int(self.timestamp or 0)
            self.sequence = int(self.sequence or 0)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid timestamp or sequence on event {self.id}: {e}") from e

    @property
    def is_auto_generated(self) -> bool:
        """Whether the pipeline synthesized this event."""
        return bool(self.metadata.custom.get("autoGenerated"))

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp,
            "sequence": self.sequence,
            "target": self.target.to_dict(),
            "data": event_data_to_dict(self.data),
            "context": self.context.to_dict(),
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RecordedEvent":
        """Create a RecordedEvent from the capture layer's wire format.

        Raises:
            ValueError: If ``id`` or ``type`` is missing, or ``timestamp``/``sequence``
                is not a number
        """
        if not data.get("id") or not data.get("type"):
            raise ValueError("Recorded event requires 'id' and 'type'")

        return cls(
            id=data["id"],
            type=EventType.parse(data["type"]),
            timestamp=data.get("timestamp") or 0,
            sequence=data.get("sequence") or 0,
            target=RecordedEventTarget.from_dict(data.get("target")),
            data=event_data_from_dict(data.get("data")),
            context=EventContext.from_dict(data.get("context")),
            metadata=EventMetadata.from_dict(data.get("metadata")),
        )


# =============================================================================
# Timeline, options, results
# =============================================================================


@dataclass
class TimelineMarker:
    """Display-only marker on the recording timeline."""

    id: str
    timestamp: int
    type: MarkerType
    label: str
    description: Optional[str] = None
    color: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type.value,
            "label": self.label,
            "description": self.description,
            "color": self.color,
        }


@dataclass(frozen=True)
class ProcessingOptions:
    """Configuration for the event processing pipeline.

    Attributes:
        deduplicate_events: Drop events repeating type/target/text within 100ms
        merge_consecutive_events: Fold keydown+input and fast click pairs
        filter_noise_events: Drop mouse moves, resizes, empty scrolls and inputs
        group_related_events: Group form interactions by enclosing form
        optimize_selectors: Reserved for selector optimization
        add_smart_waits: Insert waits where gaps exceed one second
        max_event_buffer_size: Raw buffer capacity before oldest-first eviction
        processing_batch_size: Pending events that trigger a batch run
    """

    deduplicate_events: bool = True
    merge_consecutive_events: bool = True
    filter_noise_events: bool = True
    group_related_events: bool = True
    optimize_selectors: bool = False
    add_smart_waits: bool = True
    max_event_buffer_size: int = 10000
    processing_batch_size: int = 100

    def validate(self) -> list[str]:
        """Validate the options.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        if self.max_event_buffer_size <= 0:
            errors.append("max_event_buffer_size must be positive")
        if self.processing_batch_size <= 0:
            errors.append("processing_batch_size must be positive")
        if self.processing_batch_size > self.max_event_buffer_size:
            errors.append("processing_batch_size cannot exceed max_event_buffer_size")
        return errors

    def to_dict(self) -> dict:
        return _camel_dict(asdict(self))


@dataclass(frozen=True)
class ProcessingStats:
    """Counters accumulated by the transform stages."""

    total_processed: int = 0
    duplicates_removed: int = 0
    noisy_events_filtered: int = 0
    events_grouped: int = 0
    wait_events_added: int = 0

    def __add__(self, other: "ProcessingStats") -> "ProcessingStats":
        return ProcessingStats(
            total_processed=self.total_processed + other.total_processed,
            duplicates_removed=self.duplicates_removed + other.duplicates_removed,
            noisy_events_filtered=self.noisy_events_filtered + other.noisy_events_filtered,
            events_grouped=self.events_grouped + other.events_grouped,
            wait_events_added=self.wait_events_added + other.wait_events_added,
        )

    def to_dict(self) -> dict:
        return _camel_dict(asdict(self))


@dataclass
class ProcessingResult:
    """Summary of one ``process_all_events`` run."""

    original_count: int = 0
    processed_count: int = 0
    removed_count: int = 0
    groups_created: int = 0
    optimizations: list[str] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "ProcessingResult":
        """Zero result signalling that nothing new happened."""
        return cls()

    def to_dict(self) -> dict:
        return _camel_dict(asdict(self))


@dataclass
class EventFilters:
    """Read-side filters for the processed event list."""

    event_types: set[EventType] = field(default_factory=set)
    search: str = ""
    show_only_errors: bool = False
    hide_system: bool = False
    group_by: GroupBy = GroupBy.NONE

    def __post_init__(self):
        """Convert string values to enums."""
        self.event_types = {EventType.parse(t) for t in self.event_types}
        if isinstance(self.group_by, str):
            self.group_by = GroupBy(self.group_by)
