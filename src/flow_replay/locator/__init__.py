"""
Locator module - Generating and resolving redundant element selectors.
"""

from flow_replay.locator.selector_generator import SelectorGenerator
from flow_replay.locator.element_resolver import (
    ElementResolver,
    ResolutionStrategy,
    ResolvedElement,
    StrategyOutcome,
    OutcomeKind,
    is_visible,
)
from flow_replay.locator.deep_query import query_first_deep, query_all_deep, iter_scopes

__all__ = [
    "SelectorGenerator",
    "ElementResolver",
    "ResolutionStrategy",
    "ResolvedElement",
    "StrategyOutcome",
    "OutcomeKind",
    "is_visible",
    "query_first_deep",
    "query_all_deep",
    "iter_scopes",
]
