"""
Event Simulator - Reproduces recorded actions as native-equivalent input.

Reactive frameworks listen at many levels (pointer, mouse, key, input,
change) and often wrap the value property of inputs. The simulator
dispatches the full event sequence a real user produces and writes
values through the platform setter, so both the browser's default
handlers and framework handlers observe the input.
"""

from typing import Optional, Set, Tuple
import asyncio
import logging

from flow_replay.exceptions import SimulationError
from flow_replay.interfaces.document import IDocument, IElement
from flow_replay.locator.css import attribute_selector
from flow_replay.locator.deep_query import query_first_deep
from flow_replay.models.flow import Point, RecordedStep, StepType
from flow_replay.simulation.event_factory import (
    basic_event,
    click_sequence,
    focus_event,
    input_event,
    keyboard_event,
    mouse_event,
)
from flow_replay.simulation.keys import resolve_key

logger = logging.getLogger(__name__)

FOCUSABLE_SELECTOR = 'input, button, select, textarea, a[href], [tabindex]:not([tabindex="-1"])'
_FOCUSABLE_TAGS = {"input", "button", "select", "textarea"}
_TOGGLE_ROLES = {"checkbox", "radio"}


class EventSimulator:
    """
    Dispatches the event sequences of clicks, typing, selection, key
    presses and scrolling.

    Args:
        settle_delay_ms: Pause after scrolling an element into view
        highlight_duration_ms: How long the highlight outline stays
        highlight_outline: CSS outline used for highlighting

    Example:
        >>> simulator = EventSimulator()
        >>> ok = await simulator.perform(document, element, step)
    """

    def __init__(
        self,
        settle_delay_ms: int = 300,
        highlight_duration_ms: int = 500,
        highlight_outline: str = "3px solid #4CAF50",
    ):
        self.settle_delay_ms = settle_delay_ms
        self.highlight_duration_ms = highlight_duration_ms
        self.highlight_outline = highlight_outline
        self._highlight_tasks: Set[asyncio.Task] = set()

    async def perform(
        self,
        document: IDocument,
        element: IElement,
        step: RecordedStep,
        highlight: bool = True,
    ) -> bool:
        """
        Reproduce one element step.

        Args:
            document: Document the element belongs to
            element: Resolved target element
            step: The recorded step
            highlight: Outline the element before acting

        Returns:
            True on success, False on a simulation failure
        """
        try:
            await self.prepare(element, highlight)

            if step.type == StepType.CLICK:
                await self.click(document, element, step.position)
            elif step.type == StepType.INPUT:
                await self.input_text(document, element, step.value or "")
            elif step.type == StepType.SELECT:
                await self.select_option(element, step.value or "")
            elif step.type == StepType.KEYPRESS:
                await self.press_key(document, element, step.value or "")
            else:
                raise SimulationError(
                    f"Step type '{step.type.value}' does not act on an element",
                    action=step.type.value,
                )
            return True

        except SimulationError as e:
            logger.error(f"Cannot {step.describe()}: {e}")
            return False
        except Exception as e:
            logger.error(f"Error while simulating '{step.describe()}': {e}")
            return False

    # ==================== Preparation ====================

    async def prepare(self, element: IElement, highlight: bool = True) -> None:
        await element.scroll_into_view()
        if self.settle_delay_ms:
            await asyncio.sleep(self.settle_delay_ms / 1000)
        if highlight:
            await self.highlight(element)

    async def highlight(self, element: IElement) -> None:
        """Outline the element, restoring the previous outline shortly after."""
        previous = (
            await element.get_style("outline"),
            await element.get_style("outline-offset"),
        )
        await element.set_style("outline", self.highlight_outline)
        await element.set_style("outline-offset", "2px")

        task = asyncio.create_task(self._clear_highlight(element, previous))
        self._highlight_tasks.add(task)
        task.add_done_callback(self._highlight_tasks.discard)

    async def _clear_highlight(self, element: IElement, previous: Tuple[str, str]) -> None:
        await asyncio.sleep(self.highlight_duration_ms / 1000)
        try:
            await element.set_style("outline", previous[0])
            await element.set_style("outline-offset", previous[1])
        except Exception as e:
            # The page may have navigated away in the meantime
            logger.debug(f"Could not clear highlight: {e}")

    async def aclose(self) -> None:
        """Cancel pending highlight removals."""
        for task in list(self._highlight_tasks):
            task.cancel()
        if self._highlight_tasks:
            await asyncio.gather(*self._highlight_tasks, return_exceptions=True)
        self._highlight_tasks.clear()

    # ==================== Click ====================

    async def click(
        self,
        document: IDocument,
        element: IElement,
        position: Optional[Point] = None,
    ) -> None:
        tag = await element.tag_name()
        input_type = (await element.get_property("type") or "").lower() if tag == "input" else ""
        native_toggle = tag == "input" and input_type in ("checkbox", "radio")
        was_checked = bool(await element.get_property("checked")) if native_toggle else False

        role = (await element.get_attribute("role") or "").lower()
        aria_toggle = not native_toggle and role in _TOGGLE_ROLES
        aria_before = await element.get_attribute("aria-checked") if aria_toggle else None

        if await self._is_focusable(element):
            await element.focus()

        x, y = await self._click_point(element, position)
        for event in click_sequence(x, y):
            await element.dispatch_event(event)

        # Native activation as a catch-all for handlers bound to it
        await element.click()

        label = await self._find_label(document, element)
        if label is not None:
            lx, ly = await self._click_point(label, None)
            await label.dispatch_event(mouse_event("click", lx, ly))

        if native_toggle:
            expected = (not was_checked) if input_type == "checkbox" else True
            await self._ensure_checked(element, expected)

        if aria_toggle:
            current = await element.get_attribute("aria-checked")
            # Only flip when the page's own handlers did not
            if current == aria_before:
                checked = current == "true"
                if role == "checkbox" or not checked:
                    await element.set_attribute("aria-checked", "false" if checked else "true")

    async def _ensure_checked(self, element: IElement, expected: bool) -> None:
        if bool(await element.get_property("checked")) == expected:
            return
        await element.set_property("checked", expected)
        await element.dispatch_event(basic_event("input"))
        await element.dispatch_event(basic_event("change"))

    async def _click_point(self, element: IElement, position: Optional[Point]) -> Tuple[float, float]:
        if position is not None:
            return (position.x, position.y)
        box = await element.bounding_box()
        return box.center if box is not None else (0.0, 0.0)

    async def _find_label(self, document: IDocument, element: IElement) -> Optional[IElement]:
        label = await element.closest("label")
        if label is None:
            element_id = await element.get_attribute("id")
            if element_id:
                label = await query_first_deep(
                    document, attribute_selector("for", element_id, "label")
                )
        if label is not None and await label.is_same_node(element):
            return None
        return label

    async def _is_focusable(self, element: IElement) -> bool:
        tag = await element.tag_name()
        if tag in _FOCUSABLE_TAGS:
            return True
        if tag == "a" and await element.get_attribute("href") is not None:
            return True
        if await element.get_attribute("tabindex") is not None:
            return True
        return bool(await element.get_property("isContentEditable"))

    # ==================== Input ====================

    async def input_text(self, document: IDocument, element: IElement, value: str) -> None:
        if await self._is_focusable(element):
            await element.focus()
        await element.dispatch_event(focus_event("focus"))
        await element.dispatch_event(focus_event("focusin"))

        target = await self._editable_target(document, element)
        if target is None:
            raise SimulationError("No editable control found", action="input")

        target_tag = await target.tag_name()
        if target_tag not in ("input", "textarea"):
            await target.set_text_content(value)
            await target.dispatch_event(input_event("insertText", value))
            await target.dispatch_event(basic_event("change"))
            return

        await target.set_native_value("")
        await target.dispatch_event(input_event("deleteContentBackward"))

        typed = ""
        for char in value:
            key = resolve_key(char)
            await target.dispatch_event(keyboard_event("keydown", key))
            typed += char
            await target.set_native_value(typed)
            await target.dispatch_event(input_event("insertText", char))
            await target.dispatch_event(keyboard_event("keyup", key))

        await target.set_native_value(value)
        await target.dispatch_event(basic_event("input"))
        await target.dispatch_event(basic_event("change"))

    async def _editable_target(self, document: IDocument, element: IElement) -> Optional[IElement]:
        if await element.tag_name() in ("input", "textarea"):
            return element
        if await element.get_property("isContentEditable"):
            return element
        nested = await element.query_selector("input, textarea")
        if nested is not None:
            return nested
        active = await document.active_element()
        if active is not None and await active.tag_name() in ("input", "textarea"):
            return active
        return None

    # ==================== Select ====================

    async def select_option(self, element: IElement, value: str) -> None:
        tag = await element.tag_name()
        if tag != "select":
            raise SimulationError(
                "Element is not a selection control",
                action="select",
                reason=f"<{tag}>",
            )

        for index, option in enumerate(await element.query_selector_all("option")):
            option_value = await option.get_property("value")
            label = (await option.text_content() or "").strip()
            if option_value == value or label == value:
                await element.set_property("selectedIndex", index)
                await element.dispatch_event(basic_event("change"))
                await element.dispatch_event(basic_event("input"))
                return

        raise SimulationError(f"No option matches {value!r}", action="select")

    # ==================== Keys ====================

    async def press_key(self, document: IDocument, element: IElement, key: str) -> None:
        if not key:
            raise SimulationError("Keypress step has no key", action="keypress")

        definition = resolve_key(key)
        for event_type in ("keydown", "keypress", "keyup"):
            await element.dispatch_event(keyboard_event(event_type, definition))

        if key == "Enter":
            form = await element.closest("form")
            if form is not None:
                await form.dispatch_event(basic_event("submit", cancelable=True))
        elif key == "Tab":
            await self._focus_next(document, element)

    async def _focus_next(self, document: IDocument, element: IElement) -> None:
        focusable = await document.query_selector_all(FOCUSABLE_SELECTOR)
        for index, candidate in enumerate(focusable):
            if await candidate.is_same_node(element):
                if index + 1 < len(focusable):
                    await focusable[index + 1].focus()
                return

    # ==================== Scroll and wait ====================

    async def scroll(self, document: IDocument, position: Optional[Point]) -> bool:
        if position is None:
            logger.error("Scroll step has no scroll position")
            return False
        try:
            await document.scroll_to(position.x, position.y, smooth=True)
            return True
        except Exception as e:
            logger.error(f"Error while scrolling to ({position.x}, {position.y}): {e}")
            return False

    async def wait(self, delay_ms: int) -> bool:
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)
        return True
