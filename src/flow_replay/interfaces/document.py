"""
Document Interface - Abstract base classes for the live document model.

The selector generator, element resolver, event simulator and recording
capturer are written against these interfaces only, so the same engine
drives a real browser page and the in-memory document used for dry runs
and tests.

Example:
    >>> document = await surface.get_active_surface()
    >>> button = await document.query_selector("#save")
    >>> await button.dispatch_event(DomEvent("click", event_class="MouseEvent"))
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Tuple, Union


@dataclass
class BoundingBox:
    """Element layout box in viewport coordinates."""
    x: float
    y: float
    width: float
    height: float
    
    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)
    
    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass
class ComputedStyle:
    """The subset of computed style that decides visibility."""
    display: str = "block"
    visibility: str = "visible"
    opacity: float = 1.0


@dataclass
class DomEvent:
    """
    A DOM event to dispatch, or one observed by a listener.
    
    Attributes:
        type: Event type ('click', 'input', 'keydown', ...)
        event_class: Constructor name ('Event', 'MouseEvent', 'PointerEvent',
            'KeyboardEvent', 'InputEvent', 'FocusEvent')
        bubbles: Whether the event bubbles
        cancelable: Whether prevent_default() has an effect
        composed: Whether the event crosses shadow boundaries
        init: Remaining event init fields (clientX, key, keyCode, ...)
        target: Target element, set on dispatch or when observed
    """
    type: str
    event_class: str = "Event"
    bubbles: bool = True
    cancelable: bool = False
    composed: bool = True
    init: Dict[str, Any] = field(default_factory=dict)
    target: Optional["IElement"] = None
    default_prevented: bool = False
    
    def prevent_default(self) -> None:
        if self.cancelable:
            self.default_prevented = True
    
    def get(self, key: str, default: Any = None) -> Any:
        return self.init.get(key, default)


EventListener = Callable[[DomEvent], Union[None, Awaitable[None]]]


class IScope(ABC):
    """
    A tree scope: the document itself or a shadow root.
    
    Queries on a scope never descend into shadow roots hosted inside it.
    """
    
    @abstractmethod
    async def query_selector_all(self, selector: str) -> List["IElement"]:
        """
        Find all elements in this scope matching a CSS selector.
        
        Raises:
            InvalidSelectorError: If the selector cannot be parsed
        """
        pass
    
    async def query_selector(self, selector: str) -> Optional["IElement"]:
        """Find the first element in this scope matching a CSS selector."""
        matches = await self.query_selector_all(selector)
        return matches[0] if matches else None
    
    @abstractmethod
    async def shadow_hosts(self) -> List["IElement"]:
        """Elements of this scope, in document order, that host a shadow root."""
        pass
    
    async def get_element_by_id(self, element_id: str) -> Optional["IElement"]:
        escaped = element_id.replace("\\", "\\\\").replace('"', '\\"')
        return await self.query_selector(f'[id="{escaped}"]')


class IElement(ABC):
    """
    Abstract interface for a live element.
    
    Wraps a reference into the document and exposes the operations the
    engine needs for inspection and input simulation.
    """
    
    # ==================== Identity and structure ====================
    
    @abstractmethod
    async def tag_name(self) -> str:
        """Lower-case tag name."""
        pass
    
    @abstractmethod
    async def node_key(self) -> Hashable:
        """A key that stays the same for the same node across handles."""
        pass
    
    @abstractmethod
    async def is_same_node(self, other: "IElement") -> bool:
        pass
    
    @abstractmethod
    async def parent_element(self) -> Optional["IElement"]:
        """Parent element, or None at the top of a tree scope."""
        pass
    
    @abstractmethod
    async def children(self) -> List["IElement"]:
        pass
    
    @abstractmethod
    async def shadow_root(self) -> Optional[IScope]:
        """The open shadow root hosted by this element, if any."""
        pass
    
    @abstractmethod
    async def shadow_host(self) -> Optional["IElement"]:
        """Host of the shadow root this element lives in, if any."""
        pass
    
    @abstractmethod
    async def query_selector_all(self, selector: str) -> List["IElement"]:
        """Descendants in the same tree scope matching a CSS selector."""
        pass
    
    async def query_selector(self, selector: str) -> Optional["IElement"]:
        matches = await self.query_selector_all(selector)
        return matches[0] if matches else None
    
    @abstractmethod
    async def matches(self, selector: str) -> bool:
        pass
    
    async def closest(self, selector: str) -> Optional["IElement"]:
        """Nearest inclusive ancestor in the same tree scope matching a selector."""
        node: Optional[IElement] = self
        while node is not None:
            if await node.matches(selector):
                return node
            node = await node.parent_element()
        return None
    
    # ==================== Content ====================
    
    @abstractmethod
    async def get_attribute(self, name: str) -> Optional[str]:
        pass
    
    @abstractmethod
    async def set_attribute(self, name: str, value: str) -> None:
        pass
    
    @abstractmethod
    async def text_content(self) -> str:
        pass
    
    @abstractmethod
    async def set_text_content(self, text: str) -> None:
        pass
    
    @abstractmethod
    async def get_property(self, name: str) -> Any:
        """
        Read a DOM property.
        
        Supported names: value, checked, selectedIndex, type,
        isContentEditable, disabled.
        """
        pass
    
    @abstractmethod
    async def set_property(self, name: str, value: Any) -> None:
        pass
    
    @abstractmethod
    async def set_native_value(self, value: str) -> None:
        """Set value through the platform setter, bypassing framework wrappers."""
        pass
    
    # ==================== Layout and style ====================
    
    @abstractmethod
    async def bounding_box(self) -> Optional[BoundingBox]:
        pass
    
    @abstractmethod
    async def computed_style(self) -> ComputedStyle:
        pass
    
    @abstractmethod
    async def get_style(self, name: str) -> str:
        """Inline style property value ('' when unset)."""
        pass
    
    @abstractmethod
    async def set_style(self, name: str, value: str) -> None:
        pass
    
    @abstractmethod
    async def scroll_into_view(self) -> None:
        """Smoothly scroll the element to the center of the viewport."""
        pass
    
    # ==================== Interaction ====================
    
    @abstractmethod
    async def focus(self) -> None:
        pass
    
    @abstractmethod
    async def click(self) -> None:
        """Run the element's native activation behavior."""
        pass
    
    @abstractmethod
    async def dispatch_event(self, event: DomEvent) -> bool:
        """
        Dispatch an event at this element.
        
        Returns:
            False if a listener cancelled the event, True otherwise
        """
        pass


class IDocument(IScope):
    """
    The live document of the active surface.
    """
    
    @property
    @abstractmethod
    def url(self) -> str:
        pass
    
    @abstractmethod
    async def ready_state(self) -> str:
        """'loading', 'interactive' or 'complete'."""
        pass
    
    @abstractmethod
    async def document_element(self) -> IElement:
        pass
    
    @abstractmethod
    async def body(self) -> Optional[IElement]:
        pass
    
    @abstractmethod
    async def evaluate_xpath(self, expression: str) -> Optional[IElement]:
        """
        First element matching an XPath expression.
        
        Raises:
            InvalidSelectorError: If the expression cannot be evaluated
        """
        pass
    
    @abstractmethod
    async def active_element(self) -> Optional[IElement]:
        pass
    
    @abstractmethod
    async def scroll_to(self, x: float, y: float, smooth: bool = True) -> None:
        pass
    
    @abstractmethod
    async def scroll_position(self) -> Tuple[float, float]:
        pass
    
    @abstractmethod
    async def add_event_listener(self, event_type: str, listener: EventListener) -> None:
        """Register a capture-phase listener on the document."""
        pass
    
    @abstractmethod
    async def remove_event_listener(self, event_type: str, listener: EventListener) -> None:
        pass
