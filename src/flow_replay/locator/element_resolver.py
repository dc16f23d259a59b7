"""
Element Resolver - Multi-strategy re-location of recorded elements.

Strategies (tried in order, first match wins):
1. SHADOW_PATH - Descend through the recorded shadow hosts, then apply css
2. CSS - Stored css, searched in the document and every shadow root
3. XPATH - Stored xpath (cannot reach into shadow roots)
4. ID - id attribute
5. NAME - name attribute
6. PLACEHOLDER - placeholder attribute
7. ARIA_LABEL - aria-label attribute
8. TEST_ID - data-testid / data-test-id attribute
9. ROLE_TEXT - role attribute plus exact text
10. TEXT - exact text among elements of the recorded tag
11. FUZZY_TEXT - either text contains the other, among elements of the recorded tag

Each strategy returns a StrategyOutcome: FOUND with an element, MISSED
when it ran and matched nothing, or NOT_APPLICABLE when the selector
lacks the data it needs. The whole chain is retried on an interval to
tolerate asynchronous rendering.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple
import asyncio
import logging

from flow_replay.exceptions import InvalidSelectorError
from flow_replay.interfaces.document import IDocument, IElement, IScope
from flow_replay.locator.css import attribute_selector, css_escape
from flow_replay.locator.deep_query import find_first_deep, query_first_deep
from flow_replay.models.flow import ElementSelector

logger = logging.getLogger(__name__)


class ResolutionStrategy(Enum):
    """Which strategy resolved the element."""
    SHADOW_PATH = "shadow_path"
    CSS = "css"
    XPATH = "xpath"
    ID = "id"
    NAME = "name"
    PLACEHOLDER = "placeholder"
    ARIA_LABEL = "aria_label"
    TEST_ID = "test_id"
    ROLE_TEXT = "role_text"
    TEXT = "text"
    FUZZY_TEXT = "fuzzy_text"
    FAILED = "failed"


class OutcomeKind(Enum):
    FOUND = "found"
    MISSED = "missed"
    NOT_APPLICABLE = "not_applicable"


@dataclass
class StrategyOutcome:
    """Tagged result of one strategy."""
    kind: OutcomeKind
    element: Optional[IElement] = None

    @classmethod
    def found(cls, element: IElement) -> "StrategyOutcome":
        return cls(OutcomeKind.FOUND, element)

    @classmethod
    def missed(cls) -> "StrategyOutcome":
        return cls(OutcomeKind.MISSED)

    @classmethod
    def not_applicable(cls) -> "StrategyOutcome":
        return cls(OutcomeKind.NOT_APPLICABLE)

    @classmethod
    def from_element(cls, element: Optional[IElement]) -> "StrategyOutcome":
        return cls.found(element) if element is not None else cls.missed()


@dataclass
class ResolvedElement:
    """Result of resolving one selector."""
    element: Optional[IElement] = None
    strategy: ResolutionStrategy = ResolutionStrategy.FAILED
    attempts: int = 0

    @property
    def is_resolved(self) -> bool:
        return self.element is not None and self.strategy != ResolutionStrategy.FAILED


@dataclass
class ResolutionContext:
    """Inputs shared by all strategies."""
    document: IDocument
    selector: ElementSelector


Strategy = Callable[[ResolutionContext], Awaitable[StrategyOutcome]]


# =============================================================================
# STRATEGIES
# =============================================================================

async def by_shadow_path(ctx: ResolutionContext) -> StrategyOutcome:
    chain = ctx.selector.shadow_path
    if not chain or not ctx.selector.css:
        return StrategyOutcome.not_applicable()

    scope: IScope = ctx.document
    try:
        for host_selector in chain:
            host = await scope.query_selector(host_selector)
            if host is None:
                logger.debug(f"Shadow host {host_selector!r} not found")
                return StrategyOutcome.missed()
            shadow = await host.shadow_root()
            if shadow is None:
                logger.debug(f"Element {host_selector!r} hosts no shadow root")
                return StrategyOutcome.missed()
            scope = shadow
        return StrategyOutcome.from_element(await scope.query_selector(ctx.selector.css))
    except InvalidSelectorError:
        return StrategyOutcome.not_applicable()


async def by_css(ctx: ResolutionContext) -> StrategyOutcome:
    if not ctx.selector.css:
        return StrategyOutcome.not_applicable()
    return StrategyOutcome.from_element(await query_first_deep(ctx.document, ctx.selector.css))


async def by_xpath(ctx: ResolutionContext) -> StrategyOutcome:
    if not ctx.selector.xpath:
        return StrategyOutcome.not_applicable()
    try:
        return StrategyOutcome.from_element(await ctx.document.evaluate_xpath(ctx.selector.xpath))
    except InvalidSelectorError as e:
        logger.debug(f"XPath not evaluable: {e}")
        return StrategyOutcome.not_applicable()


def _attribute_strategy(*names: str) -> Strategy:
    async def strategy(ctx: ResolutionContext) -> StrategyOutcome:
        applicable = False
        for name in names:
            value = ctx.selector.attributes.get(name)
            if not value:
                continue
            applicable = True
            element = await query_first_deep(ctx.document, attribute_selector(name, value))
            if element is not None:
                return StrategyOutcome.found(element)
        return StrategyOutcome.missed() if applicable else StrategyOutcome.not_applicable()
    strategy.__name__ = f"by_{'_'.join(n.replace('-', '_') for n in names)}"
    return strategy


by_id = _attribute_strategy("id")
by_name = _attribute_strategy("name")
by_placeholder = _attribute_strategy("placeholder")
by_aria_label = _attribute_strategy("aria-label")
by_test_id = _attribute_strategy("data-testid", "data-test-id")


async def _text_of(element: IElement) -> str:
    return (await element.text_content() or "").strip()


async def by_role_text(ctx: ResolutionContext) -> StrategyOutcome:
    role = ctx.selector.attributes.get("role")
    text = ctx.selector.text
    if not role or not text:
        return StrategyOutcome.not_applicable()

    async def has_text(element: IElement) -> bool:
        return await _text_of(element) == text

    return StrategyOutcome.from_element(
        await find_first_deep(ctx.document, attribute_selector("role", role), has_text)
    )


async def by_text(ctx: ResolutionContext) -> StrategyOutcome:
    text = ctx.selector.text
    if not text or not ctx.selector.tag_name:
        return StrategyOutcome.not_applicable()

    async def has_text(element: IElement) -> bool:
        return await _text_of(element) == text

    return StrategyOutcome.from_element(
        await find_first_deep(ctx.document, css_escape(ctx.selector.tag_name), has_text)
    )


async def by_fuzzy_text(ctx: ResolutionContext) -> StrategyOutcome:
    text = ctx.selector.text
    if not text or not ctx.selector.tag_name:
        return StrategyOutcome.not_applicable()

    async def overlaps(element: IElement) -> bool:
        candidate = await _text_of(element)
        # Empty text would be "contained" in anything
        return bool(candidate) and (text in candidate or candidate in text)

    return StrategyOutcome.from_element(
        await find_first_deep(ctx.document, css_escape(ctx.selector.tag_name), overlaps)
    )


DEFAULT_STRATEGIES: List[Tuple[ResolutionStrategy, Strategy]] = [
    (ResolutionStrategy.SHADOW_PATH, by_shadow_path),
    (ResolutionStrategy.CSS, by_css),
    (ResolutionStrategy.XPATH, by_xpath),
    (ResolutionStrategy.ID, by_id),
    (ResolutionStrategy.NAME, by_name),
    (ResolutionStrategy.PLACEHOLDER, by_placeholder),
    (ResolutionStrategy.ARIA_LABEL, by_aria_label),
    (ResolutionStrategy.TEST_ID, by_test_id),
    (ResolutionStrategy.ROLE_TEXT, by_role_text),
    (ResolutionStrategy.TEXT, by_text),
    (ResolutionStrategy.FUZZY_TEXT, by_fuzzy_text),
]


# =============================================================================
# RESOLVER
# =============================================================================

class ElementResolver:
    """
    Finds the live element an ElementSelector describes.

    Args:
        max_attempts: Times the full strategy chain is run
        interval_ms: Pause between attempts
        strategies: Ordered (name, strategy) pairs; defaults to DEFAULT_STRATEGIES

    Example:
        >>> resolver = ElementResolver(max_attempts=10, interval_ms=500)
        >>> result = await resolver.resolve(document, step.target)
        >>> if result.is_resolved:
        ...     await result.element.click()
    """

    def __init__(
        self,
        max_attempts: int = 10,
        interval_ms: int = 500,
        strategies: Optional[List[Tuple[ResolutionStrategy, Strategy]]] = None,
    ):
        self.max_attempts = max_attempts
        self.interval_ms = interval_ms
        self.strategies = strategies if strategies is not None else list(DEFAULT_STRATEGIES)

    async def resolve_once(self, document: IDocument, selector: ElementSelector) -> ResolvedElement:
        """Run the strategy chain a single time."""
        ctx = ResolutionContext(document=document, selector=selector)
        for name, strategy in self.strategies:
            outcome = await strategy(ctx)
            if outcome.kind == OutcomeKind.FOUND:
                logger.debug(f"Resolved {selector.describe()!r} via {name.value}")
                return ResolvedElement(element=outcome.element, strategy=name, attempts=1)
            logger.debug(f"Strategy {name.value}: {outcome.kind.value}")
        return ResolvedElement(attempts=1)

    async def resolve(
        self,
        document: IDocument,
        selector: ElementSelector,
        max_attempts: Optional[int] = None,
        interval_ms: Optional[int] = None,
    ) -> ResolvedElement:
        """
        Resolve with retries.

        Args:
            document: Document to search
            selector: Recorded selector
            max_attempts: Override of the attempt budget
            interval_ms: Override of the pause between attempts

        Returns:
            ResolvedElement; is_resolved is False after the budget is spent
        """
        attempts = max_attempts if max_attempts is not None else self.max_attempts
        interval = interval_ms if interval_ms is not None else self.interval_ms

        for attempt in range(1, attempts + 1):
            result = await self.resolve_once(document, selector)
            if result.is_resolved:
                result.attempts = attempt
                return result
            if attempt < attempts:
                await asyncio.sleep(interval / 1000)

        logger.warning(
            f"Element not found after {attempts} attempts: {selector.describe()!r}"
        )
        return ResolvedElement(attempts=attempts)


async def is_visible(element: IElement) -> bool:
    """Non-zero layout box, displayed, not hidden and not fully transparent."""
    box = await element.bounding_box()
    if box is None or box.is_empty:
        return False
    style = await element.computed_style()
    if style.display == "none" or style.visibility == "hidden":
        return False
    return style.opacity > 0
