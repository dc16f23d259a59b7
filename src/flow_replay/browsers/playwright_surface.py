"""
Playwright Surface - A real browser tab driven through Playwright.

Launches one browser with one context and page. Completed main-frame
loads are reported to navigation subscribers, and captured DOM events
reach the current PlaywrightDocument through a page binding.

Example:
    >>> surface = PlaywrightSurface(BrowserSettings(headless=False))
    >>> await surface.launch()
    >>> await surface.navigate("https://example.com")
    >>> document = await surface.get_active_surface()
    >>> await surface.close()
"""

import inspect
import logging
from typing import Any, Callable, List, Optional

from flow_replay.browsers.playwright_document import BINDING_NAME, PlaywrightDocument
from flow_replay.config.settings import BrowserSettings
from flow_replay.exceptions import (
    DestinationClosedError,
    InitializationError,
    NavigationTimeoutError,
    PlaybackError,
)
from flow_replay.interfaces.surface import ISurface, NavigationHandler

logger = logging.getLogger(__name__)


class PlaywrightSurface(ISurface):
    """
    ISurface over a Playwright page.

    Args:
        settings: Browser settings (type, headless, viewport, timeouts)
    """

    def __init__(self, settings: Optional[BrowserSettings] = None):
        self.settings = settings or BrowserSettings()
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None
        self._document: Optional[PlaywrightDocument] = None
        self._handlers: List[NavigationHandler] = []

    @classmethod
    def from_settings(cls, settings) -> "PlaywrightSurface":
        return cls(settings.browser)

    @property
    def page(self) -> Any:
        return self._page

    @property
    def url(self) -> str:
        return self._page.url if self._page else ""

    @property
    def is_closed(self) -> bool:
        return self._page is None or self._page.is_closed()

    async def launch(self) -> None:
        """
        Launch the browser and open the page.

        Raises:
            InitializationError: If Playwright or the browser cannot start
        """
        try:
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()

            browser_launchers = {
                "chromium": self._playwright.chromium,
                "firefox": self._playwright.firefox,
                "webkit": self._playwright.webkit,
            }
            launcher = browser_launchers.get(self.settings.browser_type, self._playwright.chromium)

            self._browser = await launcher.launch(
                headless=self.settings.headless,
                slow_mo=self.settings.slow_mo,
            )
            self._context = await self._browser.new_context(
                viewport={
                    "width": self.settings.viewport_width,
                    "height": self.settings.viewport_height,
                },
            )
            self._context.set_default_timeout(self.settings.timeout_ms)
            self._page = await self._context.new_page()
        except Exception as e:
            await self.close()
            raise InitializationError(f"Failed to launch browser: {e}")

        await self._page.expose_binding(BINDING_NAME, self._on_binding, handle=True)
        self._page.on("framenavigated", self._on_frame_navigated)
        self._page.on("load", self._on_load)
        self._document = PlaywrightDocument(self._page)

        logger.info(
            f"Launched {self.settings.browser_type} browser (headless={self.settings.headless})"
        )

    async def navigate(self, url: str) -> None:
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import TimeoutError as PlaywrightTimeoutError

        if self.is_closed:
            raise DestinationClosedError("Surface is closed", request_type="navigate", details={"url": url})

        logger.debug(f"Navigating to {url}")
        try:
            await self._page.goto(url, wait_until="load", timeout=self.settings.timeout_ms)
        except PlaywrightTimeoutError:
            raise NavigationTimeoutError(
                f"Timed out loading {url}", url=url, timeout_ms=self.settings.timeout_ms
            )
        except PlaywrightError as e:
            if self.is_closed:
                raise DestinationClosedError("Surface closed during navigation", request_type="navigate")
            raise PlaybackError(f"Failed to navigate to {url}: {e}", {"url": url})

    async def get_active_surface(self) -> PlaywrightDocument:
        if self.is_closed or self._document is None:
            raise DestinationClosedError("Surface is closed", request_type="get_active_surface")
        return self._document

    def on_navigation_complete(self, handler: NavigationHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def close(self) -> None:
        """Close the browser and cleanup."""
        self._handlers.clear()
        self._document = None
        self._page = None

        if self._context:
            await self._context.close()
            self._context = None

        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        logger.info("Browser closed")

    async def __aenter__(self) -> "PlaywrightSurface":
        await self.launch()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ==================== Page events ====================

    def _on_frame_navigated(self, frame: Any) -> None:
        if self._page is not None and frame == self._page.main_frame:
            self._document = PlaywrightDocument(self._page)

    async def _on_load(self, page: Any) -> None:
        url = page.url
        for handler in list(self._handlers):
            try:
                result = handler(url)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Navigation handler failed for {url}: {e}")

    async def _on_binding(self, source: Any, payload: Any) -> None:
        document = self._document
        if document is None:
            return
        if source.get("frame") is not None and source["frame"] != self._page.main_frame:
            return
        await document.deliver(payload)
