"""
Deep Query - Searches that descend into every shadow root.

Traversal uses an explicit stack of tree scopes, so arbitrarily deep
nesting of shadow roots never grows the Python call stack. Scopes are
visited depth-first in document order: a scope is searched fully before
the shadow roots hosted inside it, and those in the order of their hosts.
"""

import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from flow_replay.exceptions import InvalidSelectorError
from flow_replay.interfaces.document import IElement, IScope

logger = logging.getLogger(__name__)


async def iter_scopes(root: IScope) -> AsyncIterator[IScope]:
    """Yield root and every shadow root reachable from it."""
    stack: List[IScope] = [root]
    while stack:
        scope = stack.pop()
        yield scope
        hosted: List[IScope] = []
        for host in await scope.shadow_hosts():
            shadow = await host.shadow_root()
            if shadow is not None:
                hosted.append(shadow)
        stack.extend(reversed(hosted))


async def query_first_deep(root: IScope, selector: str) -> Optional[IElement]:
    """
    First element matching a CSS selector anywhere under root.
    
    Returns None for selectors the backend cannot parse.
    """
    try:
        async for scope in iter_scopes(root):
            match = await scope.query_selector(selector)
            if match is not None:
                return match
    except InvalidSelectorError as e:
        logger.debug(f"Skipping invalid selector {selector!r}: {e}")
    return None


async def query_all_deep(root: IScope, selector: str) -> List[IElement]:
    """All elements matching a CSS selector anywhere under root."""
    results: List[IElement] = []
    try:
        async for scope in iter_scopes(root):
            results.extend(await scope.query_selector_all(selector))
    except InvalidSelectorError as e:
        logger.debug(f"Skipping invalid selector {selector!r}: {e}")
        return []
    return results


async def find_first_deep(
    root: IScope,
    selector: str,
    predicate: Callable[[IElement], Awaitable[bool]],
) -> Optional[IElement]:
    """First element matching a selector and an async predicate."""
    try:
        async for scope in iter_scopes(root):
            for candidate in await scope.query_selector_all(selector):
                if await predicate(candidate):
                    return candidate
    except InvalidSelectorError as e:
        logger.debug(f"Skipping invalid selector {selector!r}: {e}")
    return None
