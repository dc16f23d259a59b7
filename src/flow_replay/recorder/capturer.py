"""
Recording Capturer - Turns live DOM events into recorded steps.

Listens in the capture phase on the document for clicks, text input,
selection changes, control keys and scrolling. Each captured event is
described with the SelectorGenerator and handed to the ``on_step``
callback as a RecordedStep carrying the delay since the previous step.

Text entry is debounced per element so a burst of keystrokes yields one
``input`` step holding the final value; the ``change`` fired on blur adds
no step when the value was already recorded. Scrolling is debounced too and
only recorded past a displacement threshold.
"""

import inspect
import logging
from typing import Awaitable, Callable, Dict, Hashable, Optional, Tuple, Union

from flow_replay.interfaces.document import DomEvent, IDocument, IElement
from flow_replay.locator.selector_generator import SelectorGenerator
from flow_replay.models.flow import ElementSelector, Point, RecordedStep, StepType
from flow_replay.recorder.debounce import KeyedDebouncer
from flow_replay.simulation.keys import CONTROL_KEYS, TEXT_FIELD_CONTROL_KEYS
from flow_replay.utils.ids import now_ms

logger = logging.getLogger(__name__)

StepCallback = Callable[[RecordedStep], Union[None, Awaitable[None]]]

TEXT_INPUT_TYPES = {
    "text", "email", "password", "search", "tel", "url", "number",
    "date", "datetime-local", "month", "time", "week",
}
_SCROLL_KEY = "__scroll__"


class RecordingCapturer:
    """
    Captures user interaction on one document at a time.

    Args:
        on_step: Called with every finished step (may be a coroutine function)
        generator: Selector generator describing targets
        input_debounce_ms: Quiet period before a text value is recorded
        scroll_debounce_ms: Quiet period before a scroll is evaluated
        scroll_threshold_px: Minimum displacement on either axis
        ui_marker_attribute: Attribute marking the tool's own UI
        clock: Millisecond clock, replaceable in tests

    Example:
        >>> capturer = RecordingCapturer(on_step=steps.append)
        >>> await capturer.start(document)
        >>> ...
        >>> await capturer.stop()
    """

    EVENT_TYPES = ("click", "input", "change", "keydown", "scroll")

    def __init__(
        self,
        on_step: StepCallback,
        generator: Optional[SelectorGenerator] = None,
        input_debounce_ms: int = 500,
        scroll_debounce_ms: int = 150,
        scroll_threshold_px: int = 50,
        ui_marker_attribute: str = "data-flow-recorder",
        clock: Callable[[], int] = now_ms,
    ):
        self._on_step = on_step
        self._generator = generator or SelectorGenerator()
        self.input_debounce_ms = input_debounce_ms
        self.scroll_debounce_ms = scroll_debounce_ms
        self.scroll_threshold_px = scroll_threshold_px
        self.ui_marker_attribute = ui_marker_attribute
        self._clock = clock

        self._debouncer = KeyedDebouncer()
        self._document: Optional[IDocument] = None
        self._is_recording = False
        self._last_event_ms: Optional[int] = None
        self._last_scroll: Tuple[float, float] = (0.0, 0.0)
        # node key -> last value recorded for a text control
        self._recorded_values: Dict[Hashable, str] = {}
        self._handlers = {
            "click": self._on_click,
            "input": self._on_input,
            "change": self._on_input,
            "keydown": self._on_keydown,
            "scroll": self._on_scroll,
        }

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    @property
    def document(self) -> Optional[IDocument]:
        return self._document

    @property
    def pending_count(self) -> int:
        return len(self._debouncer)

    # ==================== Lifecycle ====================

    async def start(self, document: IDocument) -> None:
        """Begin a capture session on a document."""
        self._is_recording = True
        self._last_event_ms = None
        self._recorded_values.clear()
        await self.attach(document)
        logger.info(f"Capturing events on {document.url}")

    async def stop(self) -> None:
        """
        End the session, recording pending text values first.

        A scroll still waiting for its quiet period is dropped.
        """
        if not self._is_recording:
            return
        self._debouncer.cancel(_SCROLL_KEY)
        await self._debouncer.flush()
        await self.detach()
        self._is_recording = False
        self._last_event_ms = None

    async def flush(self) -> None:
        """Record pending debounced values now."""
        await self._debouncer.flush()

    async def discard(self) -> None:
        """End the session dropping pending debounced values."""
        await self.detach()
        self._is_recording = False
        self._last_event_ms = None

    async def attach(self, document: IDocument) -> None:
        """
        Move the listeners to a document, e.g. after a navigation.

        Values still pending for the previous document are recorded first.
        """
        if self._document is not None:
            await self._debouncer.flush()
            await self.detach()
        self._document = document
        self._recorded_values.clear()
        self._last_scroll = await document.scroll_position()
        for event_type in self.EVENT_TYPES:
            await document.add_event_listener(event_type, self._handlers[event_type])

    async def detach(self) -> None:
        self._debouncer.cancel_all()
        document, self._document = self._document, None
        if document is None:
            return
        for event_type in self.EVENT_TYPES:
            try:
                await document.remove_event_listener(event_type, self._handlers[event_type])
            except Exception as e:
                # The page behind the document may already be gone
                logger.debug(f"Could not remove '{event_type}' listener: {e}")

    def note_external_step(self, timestamp: int) -> None:
        """Count a step recorded elsewhere (navigation) as the previous event."""
        self._last_event_ms = timestamp

    # ==================== Event handlers ====================

    async def _on_click(self, event: DomEvent) -> None:
        target = event.target
        if not self._is_recording or target is None:
            return
        if await self._is_own_ui(target) or await self._is_text_control(target):
            return

        await self._debouncer.flush()
        position = Point(float(event.get("clientX", 0)), float(event.get("clientY", 0)))
        await self._emit(StepType.CLICK, await self._generator.generate(target), position=position)

    async def _on_input(self, event: DomEvent) -> None:
        target = event.target
        if not self._is_recording or target is None or await self._is_own_ui(target):
            return

        tag = await target.tag_name()
        if tag == "select":
            # A selection fires input then change; record it once
            if event.type != "change":
                return
            await self._debouncer.flush()
            value = await target.get_property("value") or ""
            await self._emit(StepType.SELECT, await self._generator.generate(target), value=value)
            return

        if not await self._is_text_control(target):
            # Checkbox and radio changes are captured by their click
            return

        key = await target.node_key()
        if event.type == "change" and not self._debouncer.is_pending(key):
            # The change after typing repeats a value already recorded
            if await self._text_value(target) == self._recorded_values.get(key):
                return

        async def record_value() -> None:
            await self._record_input(target, key)

        self._debouncer.schedule(key, self.input_debounce_ms, record_value)

    async def _text_value(self, target: IElement) -> str:
        if await target.get_property("isContentEditable"):
            return await target.text_content() or ""
        return await target.get_property("value") or ""

    async def _record_input(self, target: IElement, key: Hashable) -> None:
        value = await self._text_value(target)
        self._recorded_values[key] = value
        await self._emit(StepType.INPUT, await self._generator.generate(target), value=value)

    async def _on_keydown(self, event: DomEvent) -> None:
        target = event.target
        key = event.get("key")
        if not self._is_recording or target is None or key not in CONTROL_KEYS:
            return
        if await self._is_own_ui(target):
            return
        if await self._is_text_control(target) and key not in TEXT_FIELD_CONTROL_KEYS:
            return

        await self._debouncer.flush()
        await self._emit(StepType.KEYPRESS, await self._generator.generate(target), value=key)

    async def _on_scroll(self, event: DomEvent) -> None:
        if not self._is_recording:
            return
        self._debouncer.schedule(_SCROLL_KEY, self.scroll_debounce_ms, self._record_scroll)

    async def _record_scroll(self) -> None:
        document = self._document
        if document is None:
            return
        x, y = await document.scroll_position()
        last_x, last_y = self._last_scroll
        if (
            abs(x - last_x) <= self.scroll_threshold_px
            and abs(y - last_y) <= self.scroll_threshold_px
        ):
            return

        self._last_scroll = (x, y)
        root = await document.document_element()
        await self._emit(
            StepType.SCROLL,
            await self._generator.generate(root),
            scroll_position=Point(float(x), float(y)),
        )

    # ==================== Helpers ====================

    async def _emit(self, step_type: StepType, target: ElementSelector, **fields) -> None:
        now = self._clock()
        delay = 0 if self._last_event_ms is None else max(0, now - self._last_event_ms)
        self._last_event_ms = now

        step = RecordedStep.create(step_type, target, delay=delay, timestamp=now, **fields)
        logger.debug(f"Captured: {step.describe()}")

        result = self._on_step(step)
        if inspect.isawaitable(result):
            await result

    async def _is_own_ui(self, element: IElement) -> bool:
        return await element.closest(f"[{self.ui_marker_attribute}]") is not None

    async def _is_text_control(self, element: IElement) -> bool:
        tag = await element.tag_name()
        if tag == "textarea":
            return True
        if tag == "input":
            input_type = (await element.get_property("type") or "text").lower()
            return input_type in TEXT_INPUT_TYPES
        return bool(await element.get_property("isContentEditable"))
