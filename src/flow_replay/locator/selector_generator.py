"""
Selector Generator - Redundant locators for a recorded element.

Every locator that can be derived from the element is recorded at once
(CSS, XPath, text, an attribute snapshot and, for elements inside shadow
roots, the chain of host selectors), so the resolver can fall back from
one to the next at replay time.

CSS priority (first candidate that matches only this element in its tree
scope wins):
1. ID - ``#id`` when the id is safe to use as an anchor
2. TEST_ID - ``[data-testid="..."]`` / ``[data-test-id="..."]``
3. NAME - ``tag[name="..."]``, plus ``[value="..."]`` for radios and checkboxes
4. ARIA_LABEL - ``[aria-label="..."]`` when short
5. PLACEHOLDER - ``[placeholder="..."]`` when short
6. STRUCTURAL - ancestor path of tag, meaningful classes and nth-of-type
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union
import logging

from flow_replay.exceptions import InvalidSelectorError
from flow_replay.interfaces.document import IElement, IScope
from flow_replay.locator.css import (
    attribute_selector,
    css_escape,
    is_meaningful_class,
    is_safe_id,
    xpath_literal,
)
from flow_replay.models.flow import SHADOW_PATH_KEY, SHADOW_PATH_SEPARATOR, ElementSelector

logger = logging.getLogger(__name__)


# Attributes copied into the selector for auxiliary matching
SNAPSHOT_ATTRIBUTES = [
    "id", "name", "type", "placeholder",
    "aria-label", "aria-labelledby", "aria-describedby",
    "data-testid", "data-test-id", "data-value",
    "role", "href", "value", "for", "title", "alt",
]
CUSTOM_DATA_ATTRIBUTE = "data-params"
MAX_CUSTOM_DATA_LENGTH = 200
MAX_LABEL_LENGTH = 50
MAX_CLASSES_PER_SEGMENT = 2
# Inputs whose name is shared by a group; the value tells members apart
GROUPED_INPUT_TYPES = ("radio", "checkbox")


@dataclass
class ElementFacts:
    """Attributes of one element, fetched once for all CSS strategies."""
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    classes: List[str] = field(default_factory=list)


CssStrategy = Callable[[ElementFacts], Optional[str]]


def css_by_id(facts: ElementFacts) -> Optional[str]:
    element_id = facts.attributes.get("id")
    if is_safe_id(element_id):
        return f"#{css_escape(element_id)}"
    return None


def css_by_test_id(facts: ElementFacts) -> Optional[str]:
    for name in ("data-testid", "data-test-id"):
        value = facts.attributes.get(name)
        if value:
            return attribute_selector(name, value)
    return None


def css_by_name(facts: ElementFacts) -> Optional[str]:
    value = facts.attributes.get("name")
    if not value:
        return None
    css = attribute_selector("name", value, facts.tag)
    input_type = facts.attributes.get("type", "").lower()
    if facts.tag == "input" and input_type in GROUPED_INPUT_TYPES and "value" in facts.attributes:
        css += attribute_selector("value", facts.attributes["value"])
    return css


def css_by_aria_label(facts: ElementFacts) -> Optional[str]:
    value = facts.attributes.get("aria-label")
    if value and len(value) < MAX_LABEL_LENGTH:
        return attribute_selector("aria-label", value)
    return None


def css_by_placeholder(facts: ElementFacts) -> Optional[str]:
    value = facts.attributes.get("placeholder")
    if value and len(value) < MAX_LABEL_LENGTH:
        return attribute_selector("placeholder", value)
    return None


CSS_STRATEGIES: List[CssStrategy] = [
    css_by_id,
    css_by_test_id,
    css_by_name,
    css_by_aria_label,
    css_by_placeholder,
]


class SelectorGenerator:
    """
    Builds an ElementSelector for a live element.
    
    Args:
        max_depth: Ancestor levels walked for the structural CSS path
        max_text_length: Text at least this long is not recorded
    
    Example:
        >>> generator = SelectorGenerator()
        >>> selector = await generator.generate(element)
        >>> selector.css
        '#email'
    """
    
    def __init__(self, max_depth: int = 5, max_text_length: int = 100):
        self.max_depth = max_depth
        self.max_text_length = max_text_length
    
    async def generate(self, element: IElement) -> ElementSelector:
        facts = await self._collect_facts(element)
        css = await self.build_css(element, facts)
        xpath = await self.build_xpath(element)
        text = await self.extract_text(element)
        attributes = self._snapshot(facts)
        
        chain = await self.build_host_chain(element)
        if chain:
            attributes[SHADOW_PATH_KEY] = SHADOW_PATH_SEPARATOR.join(chain)
        
        selector = ElementSelector(
            css=css,
            xpath=xpath,
            tag_name=facts.tag,
            text=text,
            attributes=attributes,
        )
        logger.debug(f"Generated selector for <{facts.tag}>: css={css!r} xpath={xpath!r}")
        return selector
    
    # ==================== CSS ====================
    
    async def build_css(self, element: IElement, facts: Optional[ElementFacts] = None) -> str:
        """CSS selector relative to the element's own tree scope."""
        facts = facts or await self._collect_facts(element)
        scope = await self._tree_scope(element)
        for strategy in CSS_STRATEGIES:
            css = strategy(facts)
            if css and await self._matches_only(scope, css, element):
                return css
        return await self._structural_path(element)
    
    @staticmethod
    async def _tree_scope(element: IElement) -> Union[IScope, IElement]:
        """The shadow root holding the element, else its topmost ancestor."""
        host = await element.shadow_host()
        if host is not None:
            shadow = await host.shadow_root()
            if shadow is not None:
                return shadow
        top = element
        parent = await top.parent_element()
        while parent is not None:
            top = parent
            parent = await top.parent_element()
        return top
    
    @staticmethod
    async def _matches_only(scope: Union[IScope, IElement], css: str, element: IElement) -> bool:
        try:
            matches = await scope.query_selector_all(css)
            if isinstance(scope, IElement) and await scope.matches(css):
                matches.insert(0, scope)
        except InvalidSelectorError:
            return False
        if len(matches) != 1:
            logger.debug(f"Skipping {css!r}: {len(matches)} elements match")
            return False
        return await matches[0].is_same_node(element)
    
    async def _structural_path(self, element: IElement) -> str:
        segments: List[str] = []
        current: Optional[IElement] = element
        
        while current is not None and len(segments) < self.max_depth:
            tag = await current.tag_name()
            if tag in ("html", "body"):
                segments.insert(0, tag)
                break
            
            element_id = await current.get_attribute("id")
            if is_safe_id(element_id):
                segments.insert(0, f"#{css_escape(element_id)}")
                break
            
            segment = tag
            classes = (await current.get_attribute("class") or "").split()
            meaningful = [c for c in classes if is_meaningful_class(c)]
            for token in meaningful[:MAX_CLASSES_PER_SEGMENT]:
                segment += f".{css_escape(token)}"
            
            parent = await current.parent_element()
            if parent is not None:
                position, count = await self._type_position(parent, current, tag)
                if count > 1:
                    segment += f":nth-of-type({position})"
            
            segments.insert(0, segment)
            current = parent
        
        return " > ".join(segments)
    
    @staticmethod
    async def _type_position(parent: IElement, element: IElement, tag: str) -> tuple:
        """1-based position among same-tag siblings, and their count."""
        position = 0
        count = 0
        for sibling in await parent.children():
            if await sibling.tag_name() != tag:
                continue
            count += 1
            if position == 0 and await sibling.is_same_node(element):
                position = count
        return position, count
    
    # ==================== XPath ====================
    
    async def build_xpath(self, element: IElement) -> str:
        segments: List[str] = []
        current: Optional[IElement] = element
        
        while current is not None:
            element_id = await current.get_attribute("id")
            if element_id:
                anchor = f"//*[@id={xpath_literal(element_id)}]"
                return "/".join([anchor] + segments)
            
            tag = await current.tag_name()
            parent = await current.parent_element()
            index = 1
            if parent is not None:
                for sibling in await parent.children():
                    if await sibling.is_same_node(current):
                        break
                    if await sibling.tag_name() == tag:
                        index += 1
            segments.insert(0, tag if index == 1 else f"{tag}[{index}]")
            current = parent
        
        return "/" + "/".join(segments)
    
    # ==================== Text and attributes ====================
    
    async def extract_text(self, element: IElement) -> Optional[str]:
        text = (await element.text_content() or "").strip()
        if text and len(text) < self.max_text_length:
            return text
        return None
    
    async def _collect_facts(self, element: IElement) -> ElementFacts:
        tag = await element.tag_name()
        attributes: Dict[str, str] = {}
        for name in SNAPSHOT_ATTRIBUTES + [CUSTOM_DATA_ATTRIBUTE]:
            value = await element.get_attribute(name)
            if value is not None:
                attributes[name] = value
        classes = (await element.get_attribute("class") or "").split()
        return ElementFacts(tag=tag, attributes=attributes, classes=classes)
    
    @staticmethod
    def _snapshot(facts: ElementFacts) -> Dict[str, str]:
        snapshot = {k: v for k, v in facts.attributes.items() if k in SNAPSHOT_ATTRIBUTES}
        custom = facts.attributes.get(CUSTOM_DATA_ATTRIBUTE)
        if custom:
            snapshot[CUSTOM_DATA_ATTRIBUTE] = custom[:MAX_CUSTOM_DATA_LENGTH]
        return snapshot
    
    # ==================== Shadow hosts ====================
    
    async def build_host_chain(self, element: IElement) -> List[str]:
        """CSS selectors of the enclosing shadow hosts, outermost first."""
        chain: List[str] = []
        host = await element.shadow_host()
        while host is not None:
            chain.insert(0, await self.build_css(host))
            host = await host.shadow_host()
        return chain
