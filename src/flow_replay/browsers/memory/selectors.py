"""
Selector evaluation for the in-memory document.

CSS selectors run on soupsieve against the bs4 tree of one tree scope
(a document or a shadow root fragment), so they never reach into shadow
roots. XPath is limited to the forms the selector generator emits:
absolute and ``//`` location paths, name tests and ``*``, positional
predicates and ``[@attr="value"]`` predicates.
"""

import re
from typing import TYPE_CHECKING, Iterator, List, Sequence, Tuple

import soupsieve
from bs4 import Tag

from flow_replay.exceptions import InvalidSelectorError

if TYPE_CHECKING:
    from flow_replay.browsers.memory.dom import MemoryElement


# =============================================================================
# CSS
# =============================================================================

def _compile(selector: str) -> soupsieve.SoupSieve:
    if not isinstance(selector, str) or not selector.strip():
        raise InvalidSelectorError("Empty selector", selector=str(selector))
    try:
        return soupsieve.compile(selector)
    except soupsieve.SelectorSyntaxError as e:
        raise InvalidSelectorError(f"Invalid selector: {e}", selector=selector) from e


def select_all(scope: Tag, selector: str) -> List[Tag]:
    """Descendants of ``scope`` matching ``selector``, in document order."""
    return _compile(selector).select(scope)


def element_matches(node: Tag, selector: str) -> bool:
    return _compile(selector).match(node)


# =============================================================================
# XPATH
# =============================================================================

_XPATH_STEP = re.compile(
    r"(?P<axis>//|/)"
    r"(?P<name>\*|[A-Za-z_][\w.\-]*)"
    r"(?P<predicates>(?:\[[^\]]*\])*)"
)
_XPATH_PREDICATE = re.compile(r"\[([^\]]*)\]")
_XPATH_ATTR_PREDICATE = re.compile(r"""^@([\w:.\-]+)\s*=\s*(?:"([^"]*)"|'([^']*)')$""")


def _parse_xpath(expression: str) -> List[Tuple[str, str, List[str]]]:
    steps = []
    pos = 0
    expression = expression.strip()
    while pos < len(expression):
        match = _XPATH_STEP.match(expression, pos)
        if match is None:
            raise InvalidSelectorError(f"Unsupported XPath at position {pos}", selector=expression)
        predicates = _XPATH_PREDICATE.findall(match.group("predicates"))
        steps.append((match.group("axis"), match.group("name").lower(), predicates))
        pos = match.end()
    if not steps:
        raise InvalidSelectorError("Empty XPath", selector=expression)
    return steps


def _apply_predicate(
    nodes: List["MemoryElement"],
    predicate: str,
    expression: str,
) -> List["MemoryElement"]:
    predicate = predicate.strip()
    if predicate.isdigit():
        index = int(predicate)
        return [nodes[index - 1]] if 0 < index <= len(nodes) else []
    match = _XPATH_ATTR_PREDICATE.match(predicate)
    if match:
        name = match.group(1).lower()
        value = match.group(2) if match.group(2) is not None else match.group(3)
        return [n for n in nodes if n.attrs.get(name) == value]
    raise InvalidSelectorError(f"Unsupported XPath predicate [{predicate}]", selector=expression)


def _descendants_or_self(nodes: Sequence) -> Iterator:
    for node in nodes:
        stack = [node]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.element_children))


def evaluate_xpath(document_root: "MemoryElement", expression: str) -> List["MemoryElement"]:
    """
    Evaluate an XPath location path against a document.

    Shadow roots are never entered.
    """
    steps = _parse_xpath(expression)
    # A virtual document node whose single child is the root element
    context: List = [_DocumentNode(document_root)]
    for axis, name, predicates in steps:
        parents = context if axis == "/" else list(_descendants_or_self(context))
        selected: List["MemoryElement"] = []
        seen = set()
        for parent in parents:
            candidates = [
                c for c in parent.element_children
                if name == "*" or c.tag == name
            ]
            for predicate in predicates:
                candidates = _apply_predicate(candidates, predicate, expression)
            for candidate in candidates:
                if id(candidate) not in seen:
                    seen.add(id(candidate))
                    selected.append(candidate)
        context = selected
        if not context:
            break
    return context


class _DocumentNode:
    def __init__(self, root: "MemoryElement"):
        self.element_children = [root]
