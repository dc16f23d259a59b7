"""
In-memory surface - a navigable tab backed by MemoryDocument.
"""

import inspect
import logging
from typing import Callable, Dict, List, Optional, Union

from flow_replay.browsers.memory.dom import MemoryDocument
from flow_replay.browsers.memory.html import parse_html
from flow_replay.exceptions import DestinationClosedError
from flow_replay.interfaces.surface import ISurface, NavigationHandler

logger = logging.getLogger(__name__)

PageSource = Union[str, MemoryDocument, Callable[[str], MemoryDocument]]


class MemorySurface(ISurface):
    """
    A surface serving documents from a URL map.

    Markup is parsed afresh on every navigation, so each visit renders
    a new document, as a page reload would.

    Args:
        pages: URL to markup, a ready document, or a factory taking the URL

    Example:
        >>> surface = MemorySurface({"https://app.test/": "<button>Go</button>"})
        >>> await surface.navigate("https://app.test/")
    """

    def __init__(self, pages: Optional[Dict[str, PageSource]] = None):
        self.pages: Dict[str, PageSource] = dict(pages or {})
        self.history: List[str] = []
        self._document = MemoryDocument.blank()
        self._handlers: List[NavigationHandler] = []
        self._closed = False

    @property
    def url(self) -> str:
        return self._document.url

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def document(self) -> MemoryDocument:
        return self._document

    def _render(self, url: str) -> MemoryDocument:
        source = self.pages.get(url)
        if source is None:
            logger.warning(f"No page registered for {url}, serving an empty document")
            return MemoryDocument.blank(url)
        if isinstance(source, MemoryDocument):
            return source
        if isinstance(source, str):
            return parse_html(source, url=url)
        return source(url)

    async def navigate(self, url: str) -> None:
        if self._closed:
            raise DestinationClosedError("Surface is closed", request_type="navigate", details={"url": url})
        logger.debug(f"Navigating to {url}")
        self._document = self._render(url)
        self.history.append(url)
        await self._notify(url)

    async def _notify(self, url: str) -> None:
        for handler in list(self._handlers):
            result = handler(url)
            if inspect.isawaitable(result):
                await result

    async def get_active_surface(self) -> MemoryDocument:
        if self._closed:
            raise DestinationClosedError("Surface is closed", request_type="get_active_surface")
        return self._document

    def on_navigation_complete(self, handler: NavigationHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def close(self) -> None:
        self._closed = True
        self._handlers.clear()
