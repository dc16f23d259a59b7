"""
Browsers module - Surface implementations.

The in-memory backend is always available. The Playwright backend is
registered lazily so importing this package does not import Playwright.
"""

from flow_replay.browsers.memory import (
    MemoryDocument,
    MemoryElement,
    MemoryShadowRoot,
    MemorySurface,
    parse_html,
)

__all__ = [
    "MemoryDocument",
    "MemoryElement",
    "MemoryShadowRoot",
    "MemorySurface",
    "parse_html",
]


def _register_surfaces() -> None:
    """Register surface implementations with the registry."""
    from flow_replay.registry import ComponentRegistry
    
    # Register the in-memory surface (eager)
    ComponentRegistry.register_surface("memory")(MemorySurface)
    
    # Register Playwright (lazy - only loads when needed)
    def playwright_factory():
        from flow_replay.browsers.playwright_surface import PlaywrightSurface
        return PlaywrightSurface
    
    ComponentRegistry.register_surface_factory("playwright", playwright_factory)


# Auto-register on import
_register_surfaces()
