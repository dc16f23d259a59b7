"""
In-memory document model.

A small DOM over a BeautifulSoup tree implementing the document
interfaces: element trees with open shadow roots, capture/target/bubble
event dispatch across shadow boundaries, form-control state (value,
checked, selectedIndex), focus, inline style and a synthetic layout. It
lets flows be replayed without a browser (dry runs) and backs the engine
tests.

Markup and attributes live in bs4 tags; each tree scope (the document
and every shadow root) owns its own ``BeautifulSoup`` container, so
soupsieve queries stay inside one scope. Element wrappers are attached
to their tags, so the same tag always yields the same element.

Example:
    >>> document = parse_html('<button id="save">Save</button>', url="https://app.test/")
    >>> button = await document.query_selector("#save")
    >>> await button.click()
"""

import inspect
import itertools
import logging
from typing import Any, Callable, Dict, Hashable, Iterator, List, Optional, Tuple, Union

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from flow_replay.browsers.memory.selectors import element_matches, evaluate_xpath, select_all
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

_node_ids = itertools.count(1)

FOCUSABLE_TAGS = {"input", "select", "textarea", "button"}
_ROW_HEIGHT = 24

# Back-references stored on bs4 objects
_ELEMENT_ATTR = "_memory_element"
_SCOPE_ATTR = "_memory_scope"


def new_soup(markup: str = "") -> BeautifulSoup:
    """A bs4 tree that keeps ``class`` and every other attribute as one string."""
    return BeautifulSoup(markup, "html.parser", multi_valued_attributes=None)


_TAG_FACTORY = new_soup()


def element_for(node: Tag) -> "MemoryElement":
    """The element wrapping ``node``, created on first use."""
    element = node.__dict__.get(_ELEMENT_ATTR)
    if element is None:
        element = MemoryElement(node.name, node=node)
    return element


# =============================================================================
# EVENT TARGET
# =============================================================================

class _EventTarget:
    """Listener storage shared by elements, shadow roots and documents."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Tuple[Callable, bool]]] = {}

    def add_listener(self, event_type: str, listener: Callable, capture: bool = False) -> None:
        entries = self._listeners.setdefault(event_type, [])
        if (listener, capture) not in entries:
            entries.append((listener, capture))

    def remove_listener(self, event_type: str, listener: Callable, capture: bool = False) -> None:
        entries = self._listeners.get(event_type, [])
        if (listener, capture) in entries:
            entries.remove((listener, capture))

    async def _invoke(self, event: DomEvent, phase: str) -> None:
        for listener, capture in list(self._listeners.get(event.type, [])):
            if phase == "capture" and not capture:
                continue
            if phase == "bubble" and capture:
                continue
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                # Listener errors never abort dispatch, as in a browser
                logger.error(f"Listener for '{event.type}' raised: {e}")


# =============================================================================
# SCOPES
# =============================================================================

class _ScopeMixin:
    """Tree-scope queries over the scope's own soup."""

    soup: BeautifulSoup

    def _claim(self, soup: BeautifulSoup) -> BeautifulSoup:
        setattr(soup, _SCOPE_ATTR, self)
        return soup

    def iter_elements(self) -> Iterator["MemoryElement"]:
        """All elements of this scope in document order, not entering shadow roots."""
        for node in self.soup.find_all(True):
            yield element_for(node)

    async def query_selector_all(self, selector: str) -> List[IElement]:
        return [element_for(node) for node in select_all(self.soup, selector)]

    async def shadow_hosts(self) -> List[IElement]:
        return [el for el in self.iter_elements() if el.shadow is not None]

    async def get_element_by_id(self, element_id: str) -> Optional[IElement]:
        node = self.soup.find(True, attrs={"id": element_id})
        return element_for(node) if node is not None else None


class MemoryShadowRoot(_EventTarget, _ScopeMixin, IScope):
    """An open shadow root attached to a host element."""

    def __init__(self, host: "MemoryElement"):
        super().__init__()
        self.host = host
        self.soup = self._claim(new_soup())

    @property
    def children(self) -> List["MemoryElement"]:
        return [element_for(node) for node in self.soup.find_all(True, recursive=False)]

    def append_child(self, child: "MemoryElement") -> "MemoryElement":
        self.soup.append(child.node)
        return child

    def __repr__(self) -> str:
        return f"<shadow-root host={self.host!r}>"


# =============================================================================
# ELEMENT
# =============================================================================

class MemoryElement(_EventTarget, IElement):
    """
    An element of the in-memory document.

    Args:
        tag: Tag name for a new element
        attrs: Attributes for a new element
        node: Existing bs4 tag to wrap instead of creating one
    """

    def __init__(
        self,
        tag: str,
        attrs: Optional[Dict[str, str]] = None,
        node: Optional[Tag] = None,
    ):
        super().__init__()
        if node is None:
            node = _TAG_FACTORY.new_tag(tag.lower(), attrs=dict(attrs or {}))
        self.node = node
        setattr(node, _ELEMENT_ATTR, self)
        self.shadow: Optional[MemoryShadowRoot] = None
        self._key = next(_node_ids)
        self._order = self._key
        self._props: Dict[str, Any] = {}
        self._box: Optional[BoundingBox] = None
        self._style: Dict[str, str] = _parse_style(self.attrs.get("style", ""))
        self._checked = "checked" in self.attrs
        self._value: Optional[str] = None
        self._selected_index: Optional[int] = None
        self.scroll_into_view_calls = 0

    def __repr__(self) -> str:
        ident = f"#{self.attrs['id']}" if self.attrs.get("id") else ""
        return f"<{self.tag}{ident}>"

    # ==================== Tree building ====================

    @property
    def tag(self) -> str:
        return self.node.name

    @property
    def attrs(self) -> Dict[str, str]:
        return self.node.attrs

    @property
    def parent(self) -> Optional["MemoryElement"]:
        parent = self.node.parent
        if parent is None or isinstance(parent, BeautifulSoup):
            return None
        return element_for(parent)

    @property
    def _container(self) -> Optional[Union["MemoryDocument", MemoryShadowRoot]]:
        """The scope this element sits in directly, if it is a scope's top element."""
        parent = self.node.parent
        if isinstance(parent, BeautifulSoup):
            return parent.__dict__.get(_SCOPE_ATTR)
        return None

    @property
    def document(self) -> Optional["MemoryDocument"]:
        scope = self._tree_top()._container
        if isinstance(scope, MemoryShadowRoot):
            return scope.host.document
        return scope

    @property
    def element_children(self) -> List["MemoryElement"]:
        return [element_for(node) for node in self.node.find_all(True, recursive=False)]

    def append_child(self, child: "MemoryElement") -> "MemoryElement":
        self.node.append(child.node)
        return child

    def append_text(self, text: str) -> None:
        self.node.append(text)

    def remove(self) -> None:
        self.node.extract()

    def attach_shadow(self) -> MemoryShadowRoot:
        if self.shadow is None:
            self.shadow = MemoryShadowRoot(self)
        return self.shadow

    def _tree_top(self) -> "MemoryElement":
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def containing_shadow_root(self) -> Optional[MemoryShadowRoot]:
        container = self._tree_top()._container
        return container if isinstance(container, MemoryShadowRoot) else None

    # ==================== Test helpers ====================

    def set_layout(self, x: float, y: float, width: float, height: float) -> None:
        """Pin the element's layout box."""
        self._box = BoundingBox(x, y, width, height)

    # ==================== IElement: identity and structure ====================

    async def tag_name(self) -> str:
        return self.tag

    async def node_key(self) -> Hashable:
        return self._key

    async def is_same_node(self, other: IElement) -> bool:
        return other is self

    async def parent_element(self) -> Optional[IElement]:
        return self.parent

    async def children(self) -> List[IElement]:
        return list(self.element_children)

    async def shadow_root(self) -> Optional[IScope]:
        return self.shadow

    async def shadow_host(self) -> Optional[IElement]:
        root = self.containing_shadow_root()
        return root.host if root is not None else None

    async def query_selector_all(self, selector: str) -> List[IElement]:
        return [element_for(node) for node in select_all(self.node, selector)]

    async def matches(self, selector: str) -> bool:
        return element_matches(self.node, selector)

    # ==================== IElement: content ====================

    async def get_attribute(self, name: str) -> Optional[str]:
        return self.attrs.get(name.lower())

    async def set_attribute(self, name: str, value: str) -> None:
        self.attrs[name.lower()] = value
        if name.lower() == "style":
            self._style = _parse_style(value)

    def text(self) -> str:
        return "".join(
            str(node) for node in self.node.descendants
            if isinstance(node, NavigableString) and not isinstance(node, PreformattedString)
        )

    async def text_content(self) -> str:
        return self.text()

    async def set_text_content(self, text: str) -> None:
        self.node.string = text

    def _input_type(self) -> str:
        if self.tag == "input":
            return self.attrs.get("type", "text").lower() or "text"
        if self.tag == "button":
            return self.attrs.get("type", "submit").lower() or "submit"
        if self.tag == "select":
            return "select-multiple" if "multiple" in self.attrs else "select-one"
        if self.tag == "textarea":
            return "textarea"
        return ""

    def _options(self) -> List["MemoryElement"]:
        return [element_for(node) for node in self.node.find_all("option")]

    def _descendants(self) -> List["MemoryElement"]:
        return [element_for(node) for node in self.node.find_all(True)]

    def _option_value(self) -> str:
        return self.attrs["value"] if "value" in self.attrs else self.text().strip()

    def _current_selected_index(self) -> int:
        options = self._options()
        if not options:
            return -1
        if self._selected_index is not None:
            return self._selected_index
        for index, option in enumerate(options):
            if "selected" in option.attrs:
                return index
        return 0

    def _current_value(self) -> str:
        if self.tag == "select":
            index = self._current_selected_index()
            return self._options()[index]._option_value() if index >= 0 else ""
        if self.tag == "option":
            return self._option_value()
        if self._value is not None:
            return self._value
        if self.tag == "textarea":
            return self.text()
        if self.tag == "input" and self._input_type() in ("checkbox", "radio"):
            return self.attrs.get("value", "on")
        return self.attrs.get("value", "")

    def _is_content_editable(self) -> bool:
        node: Optional[MemoryElement] = self
        while node is not None:
            flag = node.attrs.get("contenteditable")
            if flag is not None:
                return flag.lower() in ("", "true", "plaintext-only")
            node = node.parent
        return False

    async def get_property(self, name: str) -> Any:
        if name == "value":
            return self._current_value()
        if name == "checked":
            return self._checked
        if name == "selectedIndex":
            return self._current_selected_index() if self.tag == "select" else None
        if name == "type":
            return self._input_type()
        if name == "isContentEditable":
            return self._is_content_editable()
        if name == "disabled":
            return "disabled" in self.attrs
        if name == "tagName":
            return self.tag.upper()
        return self._props.get(name)

    async def set_property(self, name: str, value: Any) -> None:
        if name == "value":
            if self.tag == "select":
                for index, option in enumerate(self._options()):
                    if option._option_value() == str(value):
                        self._selected_index = index
                        return
                self._selected_index = -1
            else:
                self._value = str(value)
        elif name == "checked":
            self._set_checked(bool(value))
        elif name == "selectedIndex":
            self._selected_index = int(value)
        else:
            self._props[name] = value

    async def set_native_value(self, value: str) -> None:
        self._value = value

    def _set_checked(self, checked: bool) -> None:
        self._checked = checked
        if checked and self._input_type() == "radio" and self.attrs.get("name"):
            scope = self.closest_form() or self._tree_top()
            candidates = [scope] + scope._descendants()
            for other in candidates:
                if (
                    other is not self
                    and other.tag == "input"
                    and other._input_type() == "radio"
                    and other.attrs.get("name") == self.attrs.get("name")
                ):
                    other._checked = False

    def closest_form(self) -> Optional["MemoryElement"]:
        node = self.parent
        while node is not None:
            if node.tag == "form":
                return node
            node = node.parent
        return None

    # ==================== IElement: layout and style ====================

    def _is_rendered(self) -> bool:
        node: Optional[MemoryElement] = self
        while node is not None:
            if "hidden" in node.attrs or node._style.get("display") == "none":
                return False
            if node.parent is not None:
                node = node.parent
            else:
                root = node.containing_shadow_root()
                node = root.host if root is not None else None
        return True

    async def bounding_box(self) -> Optional[BoundingBox]:
        if not self._is_rendered():
            return BoundingBox(0, 0, 0, 0)
        if self._box is not None:
            return self._box
        return BoundingBox(0, self._order * _ROW_HEIGHT, 120, 20)

    async def computed_style(self) -> ComputedStyle:
        visibility = "visible"
        opacity = 1.0
        node: Optional[MemoryElement] = self
        while node is not None:
            if visibility == "visible" and node._style.get("visibility") in ("hidden", "collapse"):
                visibility = node._style["visibility"]
            if "opacity" in node._style:
                try:
                    opacity *= float(node._style["opacity"])
                except ValueError:
                    pass
            node = node.parent
        display = "none" if not self._is_rendered() else self._style.get("display", "block")
        return ComputedStyle(display=display, visibility=visibility, opacity=opacity)

    async def get_style(self, name: str) -> str:
        return self._style.get(name, "")

    async def set_style(self, name: str, value: str) -> None:
        if value:
            self._style[name] = value
        else:
            self._style.pop(name, None)
        self.attrs["style"] = "; ".join(f"{k}: {v}" for k, v in self._style.items())
        if not self.attrs["style"]:
            del self.attrs["style"]

    async def scroll_into_view(self) -> None:
        self.scroll_into_view_calls += 1

    # ==================== IElement: interaction ====================

    def is_focusable(self) -> bool:
        if "disabled" in self.attrs:
            return False
        if self.tag in FOCUSABLE_TAGS:
            return not (self.tag == "input" and self._input_type() == "hidden")
        if self.tag == "a" and "href" in self.attrs:
            return True
        if "tabindex" in self.attrs:
            return True
        return self._is_content_editable()

    async def focus(self) -> None:
        document = self.document
        if document is None or not self.is_focusable() or document.focused is self:
            return
        previous = document.focused
        document.focused = self
        if previous is not None:
            await previous.dispatch_event(DomEvent("blur", "FocusEvent", bubbles=False))
            await previous.dispatch_event(DomEvent("focusout", "FocusEvent"))
        await self.dispatch_event(DomEvent("focus", "FocusEvent", bubbles=False))
        await self.dispatch_event(DomEvent("focusin", "FocusEvent"))

    async def click(self) -> None:
        if "disabled" in self.attrs:
            return
        await self.dispatch_event(
            DomEvent("click", "MouseEvent", cancelable=True, init={"detail": 1, "button": 0})
        )

    def composed_path(self, composed: bool = True) -> List[_EventTarget]:
        path: List[_EventTarget] = []
        node: Optional[MemoryElement] = self
        while node is not None:
            path.append(node)
            if node.parent is not None:
                node = node.parent
                continue
            container = node._container
            if isinstance(container, MemoryShadowRoot):
                path.append(container)
                node = container.host if composed else None
            else:
                if container is not None:
                    path.append(container)
                node = None
        return path

    async def dispatch_event(self, event: DomEvent) -> bool:
        event.target = self
        path = self.composed_path(event.composed)
        for node in reversed(path[1:]):
            await node._invoke(event, "capture")
        await self._invoke(event, "target")
        if event.bubbles:
            for node in path[1:]:
                await node._invoke(event, "bubble")
        if (
            event.type == "click"
            and event.event_class in ("MouseEvent", "PointerEvent")
            and not event.default_prevented
        ):
            await self._activate()
        return not event.default_prevented

    async def _fire(self, event_type: str, bubbles: bool = True) -> None:
        await self.dispatch_event(DomEvent(event_type, bubbles=bubbles))

    async def _activate(self) -> None:
        """Default action of a click, as a browser runs it."""
        target: Optional[MemoryElement] = self
        if not (self.tag in ("input", "button", "label")):
            target = self.parent
            while target is not None and target.tag not in ("label", "button", "a"):
                target = target.parent
            if target is None or target.tag == "a":
                return
        if "disabled" in target.attrs:
            return

        input_type = target._input_type()
        if target.tag == "input" and input_type == "checkbox":
            target._checked = not target._checked
            await target._fire("input")
            await target._fire("change")
        elif target.tag == "input" and input_type == "radio":
            if not target._checked:
                target._set_checked(True)
                await target._fire("input")
                await target._fire("change")
        elif (target.tag == "input" and input_type in ("submit", "image")) or (
            target.tag == "button" and input_type == "submit"
        ):
            form = target.closest_form()
            if form is not None:
                await form.dispatch_event(DomEvent("submit", cancelable=True))
        elif target.tag == "label":
            control = target.labeled_control()
            if control is not None and control is not self:
                await control.click()

    def labeled_control(self) -> Optional["MemoryElement"]:
        for_id = self.attrs.get("for")
        if for_id:
            root = self.containing_shadow_root()
            elements = root.iter_elements() if root is not None else (
                self.document.iter_elements() if self.document is not None else iter(())
            )
            for el in elements:
                if el.attrs.get("id") == for_id:
                    return el
            return None
        for el in self._descendants():
            if el.tag in ("input", "select", "textarea", "button"):
                return el
        return None


# =============================================================================
# DOCUMENT
# =============================================================================

class MemoryDocument(_EventTarget, _ScopeMixin, IDocument):
    """
    The in-memory document.

    Args:
        url: Document URL
        ready_state: 'loading', 'interactive' or 'complete'
    """

    def __init__(self, url: str = "about:blank", ready_state: str = "complete"):
        super().__init__()
        self._url = url
        self._ready_state = ready_state
        self.soup = self._claim(new_soup())
        self.focused: Optional[MemoryElement] = None
        self.scroll_x: float = 0
        self.scroll_y: float = 0

    @classmethod
    def blank(cls, url: str = "about:blank") -> "MemoryDocument":
        document = cls(url=url)
        html = MemoryElement("html")
        html.append_child(MemoryElement("head"))
        html.append_child(MemoryElement("body"))
        document.set_root(html)
        return document

    @property
    def root(self) -> Optional[MemoryElement]:
        node = self.soup.find(True, recursive=False)
        return element_for(node) if node is not None else None

    def set_root(self, root: MemoryElement) -> None:
        self.soup.clear()
        self.soup.append(root.node)

    def set_ready_state(self, state: str) -> None:
        self._ready_state = state

    def __repr__(self) -> str:
        return f"<document url={self._url!r}>"

    # ==================== IDocument ====================

    @property
    def url(self) -> str:
        return self._url

    async def ready_state(self) -> str:
        return self._ready_state

    async def document_element(self) -> IElement:
        root = self.root
        if root is None:
            raise RuntimeError("Document has no root element")
        return root

    async def body(self) -> Optional[IElement]:
        root = self.root
        if root is None:
            return None
        return next((c for c in root.element_children if c.tag == "body"), None)

    async def evaluate_xpath(self, expression: str) -> Optional[IElement]:
        root = self.root
        if root is None:
            return None
        matches = evaluate_xpath(root, expression)
        return matches[0] if matches else None

    async def active_element(self) -> Optional[IElement]:
        if self.focused is not None and self.focused.document is self:
            return self.focused
        return await self.body()

    async def scroll_to(self, x: float, y: float, smooth: bool = True) -> None:
        self.scroll_x = max(0.0, float(x))
        self.scroll_y = max(0.0, float(y))
        await self._invoke(DomEvent("scroll", bubbles=False), "target")

    async def scroll_position(self) -> Tuple[float, float]:
        return (self.scroll_x, self.scroll_y)

    async def add_event_listener(self, event_type: str, listener: EventListener) -> None:
        self.add_listener(event_type, listener, capture=True)

    async def remove_event_listener(self, event_type: str, listener: EventListener) -> None:
        self.remove_listener(event_type, listener, capture=True)


def _parse_style(style: str) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for declaration in style.split(";"):
        if ":" in declaration:
            name, value = declaration.split(":", 1)
            if name.strip():
                result[name.strip().lower()] = value.strip()
    return result
