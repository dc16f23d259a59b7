"""
Event Factory - Builds native-equivalent DOM events.

Field values follow what a browser sets for real mouse and keyboard
input, since reactive frameworks inspect them (buttons, pointerType,
isPrimary, inputType, ...).
"""

from typing import List, Optional

from flow_replay.interfaces.document import DomEvent
from flow_replay.simulation.keys import KeyDefinition

_RELEASE_EVENTS = {"mouseup", "pointerup", "click"}
_NON_BUBBLING = {"mouseenter", "mouseleave", "pointerenter", "pointerleave", "focus", "blur"}

# Pointer and mouse events of one click, in dispatch order
CLICK_SEQUENCE = [
    "pointerover",
    "pointerenter",
    "pointerdown",
    "mouseover",
    "mouseenter",
    "mousedown",
    "mouseup",
    "click",
    "pointerup",
]


def mouse_event(event_type: str, x: float, y: float) -> DomEvent:
    released = event_type in _RELEASE_EVENTS
    return DomEvent(
        type=event_type,
        event_class="MouseEvent",
        bubbles=event_type not in _NON_BUBBLING,
        cancelable=event_type not in _NON_BUBBLING,
        init={
            "clientX": x,
            "clientY": y,
            "screenX": x,
            "screenY": y,
            "button": 0,
            "buttons": 0 if released else 1,
            "detail": 1 if event_type == "click" else 0,
            "view": "window",
        },
    )


def pointer_event(event_type: str, x: float, y: float) -> DomEvent:
    released = event_type in _RELEASE_EVENTS
    return DomEvent(
        type=event_type,
        event_class="PointerEvent",
        bubbles=event_type not in _NON_BUBBLING,
        cancelable=event_type not in _NON_BUBBLING,
        init={
            "clientX": x,
            "clientY": y,
            "screenX": x,
            "screenY": y,
            "button": 0,
            "buttons": 0 if released else 1,
            "pointerId": 1,
            "pointerType": "mouse",
            "isPrimary": True,
            "pressure": 0 if released else 0.5,
            "width": 1,
            "height": 1,
        },
    )


def click_sequence(x: float, y: float) -> List[DomEvent]:
    return [
        pointer_event(t, x, y) if t.startswith("pointer") else mouse_event(t, x, y)
        for t in CLICK_SEQUENCE
    ]


def keyboard_event(event_type: str, key: KeyDefinition) -> DomEvent:
    return DomEvent(
        type=event_type,
        event_class="KeyboardEvent",
        cancelable=True,
        init={
            "key": key.key,
            "code": key.code,
            "keyCode": key.key_code,
            "which": key.key_code,
            "charCode": key.char_code if event_type == "keypress" else 0,
        },
    )


def input_event(input_type: str, data: Optional[str] = None) -> DomEvent:
    return DomEvent(
        type="input",
        event_class="InputEvent",
        init={"inputType": input_type, "data": data, "isComposing": False},
    )


def focus_event(event_type: str) -> DomEvent:
    return DomEvent(
        type=event_type,
        event_class="FocusEvent",
        bubbles=event_type not in _NON_BUBBLING,
    )


def basic_event(event_type: str, cancelable: bool = False) -> DomEvent:
    return DomEvent(type=event_type, event_class="Event", cancelable=cancelable)
