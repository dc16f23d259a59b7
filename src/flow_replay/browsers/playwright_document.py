"""
Playwright Document - The document interfaces over a live browser page.

Elements wrap Playwright ElementHandles. Queries run through the page's
own ``querySelectorAll`` so that, as in the browser, they stop at shadow
boundaries (Playwright's selector engine would pierce them). Values are
written through the prototype value setter, and events are constructed
in page script with their real constructors.

Captured DOM events reach Python through a page binding installed by the
PlaywrightSurface; see ``deliver``.
"""

import logging
from typing import Any, Dict, Hashable, List, Optional, Tuple

from playwright.async_api import ElementHandle, Error as PlaywrightError, JSHandle, Page

from flow_replay.exceptions import InvalidSelectorError
from flow_replay.interfaces.document import (
    BoundingBox,
    ComputedStyle,
    DomEvent,
    EventListener,
    IDocument,
    IElement,
    IScope,
)

logger = logging.getLogger(__name__)

BINDING_NAME = "__flowReplayEvent"

_NODE_KEY_JS = """el => {
    if (!el.__flowReplayKey) {
        window.__flowReplayNextKey = (window.__flowReplayNextKey || 0) + 1;
        el.__flowReplayKey = window.__flowReplayNextKey;
    }
    return el.__flowReplayKey;
}"""

_SET_NATIVE_VALUE_JS = """(el, value) => {
    const proto = el instanceof HTMLTextAreaElement ? HTMLTextAreaElement.prototype
        : el instanceof HTMLSelectElement ? HTMLSelectElement.prototype
        : HTMLInputElement.prototype;
    const descriptor = Object.getOwnPropertyDescriptor(proto, 'value');
    if (descriptor && descriptor.set) {
        descriptor.set.call(el, value);
    } else {
        el.value = value;
    }
}"""

_DISPATCH_JS = """(el, ev) => {
    const Ctor = window[ev.eventClass] || Event;
    const init = Object.assign(
        {bubbles: ev.bubbles, cancelable: ev.cancelable, composed: ev.composed},
        ev.init,
    );
    if (Ctor.prototype instanceof UIEvent) {
        init.view = window;
    }
    const event = new Ctor(ev.type, init);
    for (const legacy of ['keyCode', 'charCode', 'which']) {
        if (legacy in ev.init) {
            Object.defineProperty(event, legacy, {get: () => ev.init[legacy]});
        }
    }
    return el.dispatchEvent(event);
}"""

_INSTALL_LISTENER_JS = """([type, binding]) => {
    const installed = window.__flowReplayListening || (window.__flowReplayListening = {});
    if (installed[type]) return;
    installed[type] = true;
    document.addEventListener(type, (event) => {
        const target = event.composedPath()[0];
        window[binding]({
            type: event.type,
            eventClass: event.constructor.name,
            target: target instanceof Element ? target : null,
            init: {clientX: event.clientX, clientY: event.clientY, key: event.key},
        });
    }, true);
}"""


def _is_selector_error(error: PlaywrightError) -> bool:
    message = str(error)
    return "not a valid selector" in message or "SyntaxError" in message


async def _elements_from_array(handle: JSHandle, document: "PlaywrightDocument") -> List[IElement]:
    properties = await handle.get_properties()
    elements: List[IElement] = []
    for prop in properties.values():
        element = prop.as_element()
        if element is not None:
            elements.append(PlaywrightElement(element, document))
    await handle.dispose()
    return elements


async def _element_or_none(handle: JSHandle, document: "PlaywrightDocument") -> Optional[IElement]:
    element = handle.as_element()
    if element is None:
        await handle.dispose()
        return None
    return PlaywrightElement(element, document)


class PlaywrightShadowRoot(IScope):
    """An open shadow root in the page."""

    def __init__(self, handle: JSHandle, document: "PlaywrightDocument"):
        self._handle = handle
        self._document = document

    async def query_selector_all(self, selector: str) -> List[IElement]:
        try:
            array = await self._handle.evaluate_handle(
                "(root, s) => Array.from(root.querySelectorAll(s))", selector
            )
        except PlaywrightError as e:
            if _is_selector_error(e):
                raise InvalidSelectorError(f"Invalid selector: {selector}", selector=selector)
            raise
        return await _elements_from_array(array, self._document)

    async def shadow_hosts(self) -> List[IElement]:
        array = await self._handle.evaluate_handle(
            "root => Array.from(root.querySelectorAll('*')).filter(e => e.shadowRoot)"
        )
        return await _elements_from_array(array, self._document)


class PlaywrightElement(IElement):
    """
    IElement over a Playwright ElementHandle.

    Args:
        handle: The element handle
        document: Owning document
    """

    def __init__(self, handle: ElementHandle, document: "PlaywrightDocument"):
        self._handle = handle
        self._document = document

    @property
    def handle(self) -> ElementHandle:
        return self._handle

    def __repr__(self) -> str:
        return f"<PlaywrightElement {self._handle!r}>"

    async def _element(self, script: str, *args: Any) -> Optional[IElement]:
        return await _element_or_none(await self._handle.evaluate_handle(script, *args), self._document)

    # ==================== Identity and structure ====================

    async def tag_name(self) -> str:
        return await self._handle.evaluate("el => el.tagName.toLowerCase()")

    async def node_key(self) -> Hashable:
        return await self._handle.evaluate(_NODE_KEY_JS)

    async def is_same_node(self, other: IElement) -> bool:
        if not isinstance(other, PlaywrightElement):
            return False
        return await self._handle.evaluate("(a, b) => a === b", other.handle)

    async def parent_element(self) -> Optional[IElement]:
        return await self._element("el => el.parentElement")

    async def children(self) -> List[IElement]:
        array = await self._handle.evaluate_handle("el => Array.from(el.children)")
        return await _elements_from_array(array, self._document)

    async def shadow_root(self) -> Optional[IScope]:
        if not await self._handle.evaluate("el => !!el.shadowRoot"):
            return None
        root = await self._handle.evaluate_handle("el => el.shadowRoot")
        return PlaywrightShadowRoot(root, self._document)

    async def shadow_host(self) -> Optional[IElement]:
        return await self._element(
            "el => { const r = el.getRootNode(); return r instanceof ShadowRoot ? r.host : null; }"
        )

    async def query_selector_all(self, selector: str) -> List[IElement]:
        try:
            array = await self._handle.evaluate_handle(
                "(el, s) => Array.from(el.querySelectorAll(s))", selector
            )
        except PlaywrightError as e:
            if _is_selector_error(e):
                raise InvalidSelectorError(f"Invalid selector: {selector}", selector=selector)
            raise
        return await _elements_from_array(array, self._document)

    async def matches(self, selector: str) -> bool:
        try:
            return await self._handle.evaluate("(el, s) => el.matches(s)", selector)
        except PlaywrightError as e:
            if _is_selector_error(e):
                raise InvalidSelectorError(f"Invalid selector: {selector}", selector=selector)
            raise

    # ==================== Content ====================

    async def get_attribute(self, name: str) -> Optional[str]:
        return await self._handle.get_attribute(name)

    async def set_attribute(self, name: str, value: str) -> None:
        await self._handle.evaluate("(el, [n, v]) => el.setAttribute(n, v)", [name, value])

    async def text_content(self) -> str:
        return await self._handle.text_content() or ""

    async def set_text_content(self, text: str) -> None:
        await self._handle.evaluate("(el, t) => { el.textContent = t; }", text)

    async def get_property(self, name: str) -> Any:
        return await self._handle.evaluate("(el, n) => el[n]", name)

    async def set_property(self, name: str, value: Any) -> None:
        await self._handle.evaluate("(el, [n, v]) => { el[n] = v; }", [name, value])

    async def set_native_value(self, value: str) -> None:
        await self._handle.evaluate(_SET_NATIVE_VALUE_JS, value)

    # ==================== Layout and style ====================

    async def bounding_box(self) -> Optional[BoundingBox]:
        rect = await self._handle.evaluate(
            "el => { const r = el.getBoundingClientRect(); "
            "return {x: r.left, y: r.top, width: r.width, height: r.height}; }"
        )
        return BoundingBox(rect["x"], rect["y"], rect["width"], rect["height"])

    async def computed_style(self) -> ComputedStyle:
        style = await self._handle.evaluate(
            "el => { const s = getComputedStyle(el); "
            "return {display: s.display, visibility: s.visibility, opacity: s.opacity}; }"
        )
        return ComputedStyle(
            display=style["display"],
            visibility=style["visibility"],
            opacity=float(style["opacity"] or 1),
        )

    async def get_style(self, name: str) -> str:
        return await self._handle.evaluate("(el, n) => el.style.getPropertyValue(n)", name)

    async def set_style(self, name: str, value: str) -> None:
        await self._handle.evaluate(
            "(el, [n, v]) => v ? el.style.setProperty(n, v) : el.style.removeProperty(n)",
            [name, value],
        )

    async def scroll_into_view(self) -> None:
        await self._handle.evaluate("el => el.scrollIntoView({behavior: 'smooth', block: 'center'})")

    # ==================== Interaction ====================

    async def focus(self) -> None:
        await self._handle.evaluate("el => el.focus()")

    async def click(self) -> None:
        await self._handle.evaluate("el => el.click()")

    async def dispatch_event(self, event: DomEvent) -> bool:
        event.target = self
        not_cancelled = await self._handle.evaluate(
            _DISPATCH_JS,
            {
                "type": event.type,
                "eventClass": event.event_class,
                "bubbles": event.bubbles,
                "cancelable": event.cancelable,
                "composed": event.composed,
                "init": event.init,
            },
        )
        if not not_cancelled:
            event.prevent_default()
        return bool(not_cancelled)


class PlaywrightDocument(IDocument):
    """
    IDocument over the main frame of a Playwright page.

    A new instance is created for every committed navigation.

    Args:
        page: The Playwright page
    """

    def __init__(self, page: Page):
        self._page = page
        self._listeners: Dict[str, List[EventListener]] = {}

    @property
    def page(self) -> Page:
        return self._page

    @property
    def url(self) -> str:
        return self._page.url

    async def ready_state(self) -> str:
        try:
            return await self._page.evaluate("document.readyState")
        except PlaywrightError as e:
            # The execution context is replaced while a navigation commits
            logger.debug(f"readyState unavailable: {e}")
            return "loading"

    async def query_selector_all(self, selector: str) -> List[IElement]:
        try:
            array = await self._page.evaluate_handle(
                "s => Array.from(document.querySelectorAll(s))", selector
            )
        except PlaywrightError as e:
            if _is_selector_error(e):
                raise InvalidSelectorError(f"Invalid selector: {selector}", selector=selector)
            raise
        return await _elements_from_array(array, self)

    async def shadow_hosts(self) -> List[IElement]:
        array = await self._page.evaluate_handle(
            "() => Array.from(document.querySelectorAll('*')).filter(e => e.shadowRoot)"
        )
        return await _elements_from_array(array, self)

    async def document_element(self) -> IElement:
        element = await _element_or_none(
            await self._page.evaluate_handle("() => document.documentElement"), self
        )
        if element is None:
            raise RuntimeError("Document has no root element")
        return element

    async def body(self) -> Optional[IElement]:
        return await _element_or_none(await self._page.evaluate_handle("() => document.body"), self)

    async def evaluate_xpath(self, expression: str) -> Optional[IElement]:
        try:
            handle = await self._page.evaluate_handle(
                "x => document.evaluate(x, document, null, "
                "XPathResult.FIRST_ORDERED_NODE_TYPE, null).singleNodeValue",
                expression,
            )
        except PlaywrightError as e:
            raise InvalidSelectorError(f"Invalid XPath: {e}", selector=expression)
        return await _element_or_none(handle, self)

    async def active_element(self) -> Optional[IElement]:
        return await _element_or_none(
            await self._page.evaluate_handle("() => document.activeElement"), self
        )

    async def scroll_to(self, x: float, y: float, smooth: bool = True) -> None:
        await self._page.evaluate(
            "([x, y, smooth]) => window.scrollTo({left: x, top: y, behavior: smooth ? 'smooth' : 'auto'})",
            [x, y, smooth],
        )

    async def scroll_position(self) -> Tuple[float, float]:
        x, y = await self._page.evaluate("() => [window.scrollX, window.scrollY]")
        return (float(x), float(y))

    # ==================== Event capture ====================

    async def add_event_listener(self, event_type: str, listener: EventListener) -> None:
        listeners = self._listeners.setdefault(event_type, [])
        if listener not in listeners:
            listeners.append(listener)
        await self._page.evaluate(_INSTALL_LISTENER_JS, [event_type, BINDING_NAME])

    async def remove_event_listener(self, event_type: str, listener: EventListener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    async def deliver(self, payload: JSHandle) -> None:
        """Hand an event reported by the page binding to the listeners."""
        event_type = await (await payload.get_property("type")).json_value()
        listeners = list(self._listeners.get(event_type, []))
        if not listeners:
            return

        target_handle = await payload.get_property("target")
        element = target_handle.as_element()
        event = DomEvent(
            type=event_type,
            event_class=await (await payload.get_property("eventClass")).json_value(),
            init=await (await payload.get_property("init")).json_value() or {},
            target=PlaywrightElement(element, self) if element is not None else None,
        )
        for listener in listeners:
            try:
                result = listener(event)
                if result is not None:
                    await result
            except Exception as e:
                logger.error(f"Listener for '{event_type}' raised: {e}")
