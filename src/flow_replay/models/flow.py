"""
Flow Models - Recorded steps, element selectors and flows.

A flow is the unit of persistence and replay: a named, ordered list of
steps plus the URL where playback begins. Wire dictionaries use the
camelCase keys of the export envelope.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from flow_replay.utils.ids import generate_id, now_ms


# Attribute-map key holding the chain of shadow host selectors
SHADOW_PATH_KEY = "__shadowPath"
SHADOW_PATH_SEPARATOR = " >>> "


class StepType(str, Enum):
    """Kinds of recorded interaction."""
    CLICK = "click"
    INPUT = "input"
    SELECT = "select"
    SCROLL = "scroll"
    NAVIGATION = "navigation"
    KEYPRESS = "keypress"
    WAIT = "wait"


# Step types that act on a resolved element
ELEMENT_STEP_TYPES = frozenset({
    StepType.CLICK,
    StepType.INPUT,
    StepType.SELECT,
    StepType.KEYPRESS,
})


@dataclass(frozen=True)
class Point:
    """An (x, y) pair in CSS pixels."""
    x: float
    y: float
    
    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Point":
        return cls(x=data.get("x", 0), y=data.get("y", 0))


@dataclass(frozen=True)
class ElementSelector:
    """
    Redundant description of how to find one element again.
    
    Several independent locators live side by side; none of them is
    authoritative. css and xpath are always present (possibly imprecise),
    text only when the element had short text.
    
    Attributes:
        css: CSS selector, relative to the element's own tree scope
        xpath: XPath expression
        tag_name: Lower-case tag name
        text: Trimmed short text content
        attributes: Curated attribute snapshot, plus the shadow host
            chain under SHADOW_PATH_KEY when the element is encapsulated
    """
    css: str
    xpath: str
    tag_name: str
    text: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    
    @classmethod
    def sentinel(cls, tag_name: str) -> "ElementSelector":
        """Empty-locator target for steps that act on no element."""
        return cls(css="", xpath="", tag_name=tag_name)
    
    @property
    def shadow_path(self) -> List[str]:
        """Host selectors from the outermost host inwards."""
        raw = self.attributes.get(SHADOW_PATH_KEY)
        if not raw:
            return []
        return [part for part in raw.split(SHADOW_PATH_SEPARATOR) if part]
    
    def without_shadow_path(self) -> "ElementSelector":
        attributes = {k: v for k, v in self.attributes.items() if k != SHADOW_PATH_KEY}
        return replace(self, attributes=attributes)
    
    def describe(self) -> str:
        """Short label for logs."""
        return self.css or self.xpath or self.tag_name
    
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "css": self.css,
            "xpath": self.xpath,
            "tagName": self.tag_name,
            "attributes": dict(self.attributes),
        }
        if self.text is not None:
            data["text"] = self.text
        return data
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ElementSelector":
        return cls(
            css=data.get("css", ""),
            xpath=data.get("xpath", ""),
            tag_name=data.get("tagName", ""),
            text=data.get("text"),
            attributes={str(k): str(v) for k, v in (data.get("attributes") or {}).items()},
        )


@dataclass(frozen=True)
class RecordedStep:
    """
    One captured or authored unit of interaction.
    
    Steps are immutable; edits go through with_changes() and produce a
    new value with the same id.
    
    Attributes:
        id: Opaque identifier, unique within a store
        type: Interaction kind
        timestamp: Capture time in epoch milliseconds
        target: Selector of the element acted on (sentinel for
            navigation and wait steps)
        delay: Milliseconds since the previous step was captured
        value: Typed text, selected value or key name
        position: Click coordinates
        scroll_position: Scroll target
        url: Navigation destination
        description: Optional user-provided label
    """
    id: str
    type: StepType
    timestamp: int
    target: ElementSelector
    delay: int = 0
    value: Optional[str] = None
    position: Optional[Point] = None
    scroll_position: Optional[Point] = None
    url: Optional[str] = None
    description: Optional[str] = None
    
    @classmethod
    def create(
        cls,
        type: StepType,
        target: ElementSelector,
        delay: int = 0,
        **fields: Any,
    ) -> "RecordedStep":
        """Build a step with a fresh id and the current timestamp."""
        fields.setdefault("timestamp", now_ms())
        return cls(id=generate_id(), type=StepType(type), target=target, delay=delay, **fields)
    
    @classmethod
    def navigation(cls, url: str, delay: int = 0, timestamp: Optional[int] = None) -> "RecordedStep":
        return cls.create(
            StepType.NAVIGATION,
            ElementSelector.sentinel("window"),
            delay=delay,
            url=url,
            timestamp=timestamp if timestamp is not None else now_ms(),
        )
    
    @classmethod
    def wait(cls, delay_ms: int) -> "RecordedStep":
        if delay_ms <= 0:
            raise ValueError("Wait time must be a positive number of milliseconds")
        return cls.create(StepType.WAIT, ElementSelector.sentinel("wait"), delay=delay_ms)
    
    @property
    def requires_element(self) -> bool:
        return self.type in ELEMENT_STEP_TYPES
    
    def with_changes(self, **changes: Any) -> "RecordedStep":
        """Return a copy with the given fields replaced; the id is kept."""
        changes.pop("id", None)
        return replace(self, **changes)
    
    def describe(self) -> str:
        """Human-readable summary of the step."""
        if self.description:
            return self.description
        
        target = self.target
        if self.type == StepType.CLICK:
            text = f' "{target.text[:30]}"' if target.text else ""
            return f"Click on {target.tag_name}{text}"
        if self.type == StepType.INPUT:
            return f'Type "{(self.value or "")[:30]}" into {target.tag_name}'
        if self.type == StepType.SELECT:
            return f'Select "{self.value or ""}" in {target.tag_name}'
        if self.type == StepType.SCROLL:
            pos = self.scroll_position or Point(0, 0)
            return f"Scroll to position ({pos.x:g}, {pos.y:g})"
        if self.type == StepType.KEYPRESS:
            return f"Press {self.value} key"
        if self.type == StepType.NAVIGATION:
            return f"Navigate to {(self.url or 'page')[:50]}"
        if self.type == StepType.WAIT:
            return f"Wait {self.delay}ms"
        return self.type.value
    
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp,
            "target": self.target.to_dict(),
            "delay": self.delay,
        }
        if self.value is not None:
            data["value"] = self.value
        if self.position is not None:
            data["position"] = self.position.to_dict()
        if self.scroll_position is not None:
            data["scrollPosition"] = self.scroll_position.to_dict()
        if self.url is not None:
            data["url"] = self.url
        if self.description is not None:
            data["description"] = self.description
        return data
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordedStep":
        position = data.get("position")
        scroll_position = data.get("scrollPosition")
        return cls(
            id=str(data["id"]),
            type=StepType(data["type"]),
            timestamp=int(data.get("timestamp", 0)),
            target=ElementSelector.from_dict(data.get("target") or {}),
            delay=int(data.get("delay", 0)),
            value=data.get("value"),
            position=Point.from_dict(position) if position else None,
            scroll_position=Point.from_dict(scroll_position) if scroll_position else None,
            url=data.get("url"),
            description=data.get("description"),
        )


@dataclass
class Flow:
    """
    A named, ordered sequence of steps plus its starting location.
    
    Step order defines execution order. The editing helpers below are
    the only way steps change after capture.
    """
    id: str
    name: str
    steps: List[RecordedStep] = field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0
    start_url: str = ""
    
    @classmethod
    def create(
        cls,
        name: str,
        start_url: str = "",
        steps: Optional[List[RecordedStep]] = None,
    ) -> "Flow":
        stamp = now_ms()
        return cls(
            id=generate_id(),
            name=name,
            steps=list(steps or []),
            created_at=stamp,
            updated_at=stamp,
            start_url=start_url,
        )
    
    # ==================== Editing ====================
    
    def index_of(self, step_id: str) -> int:
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        raise KeyError(f"Step not found: {step_id}")
    
    def add_step(self, step: RecordedStep) -> None:
        self.steps.append(step)
    
    def add_wait_step(self, delay_ms: int) -> RecordedStep:
        step = RecordedStep.wait(delay_ms)
        self.steps.append(step)
        return step
    
    def remove_step(self, step_id: str) -> RecordedStep:
        return self.steps.pop(self.index_of(step_id))
    
    def move_step(self, step_id: str, new_index: int) -> None:
        step = self.steps.pop(self.index_of(step_id))
        new_index = max(0, min(new_index, len(self.steps)))
        self.steps.insert(new_index, step)
    
    def replace_step(self, step_id: str, **changes: Any) -> RecordedStep:
        """Apply an explicit user edit to one step."""
        index = self.index_of(step_id)
        updated = self.steps[index].with_changes(**changes)
        self.steps[index] = updated
        return updated
    
    def copy_with_new_ids(self, name: Optional[str] = None) -> "Flow":
        """Copy the flow with fresh flow and step ids and fresh timestamps."""
        stamp = now_ms()
        return Flow(
            id=generate_id(),
            name=name if name is not None else self.name,
            steps=[replace(step, id=generate_id()) for step in self.steps],
            created_at=stamp,
            updated_at=stamp,
            start_url=self.start_url,
        )
    
    # ==================== Serialization ====================
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "steps": [step.to_dict() for step in self.steps],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "startUrl": self.start_url,
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Flow":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            steps=[RecordedStep.from_dict(s) for s in data.get("steps", [])],
            created_at=int(data.get("createdAt", 0)),
            updated_at=int(data.get("updatedAt", 0)),
            start_url=data.get("startUrl", ""),
        )
