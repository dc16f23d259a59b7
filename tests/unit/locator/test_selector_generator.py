"""
Tests for the selector generator.
"""

import pytest
from flow_replay.browsers.memory import parse_html
from flow_replay.locator.css import css_escape, is_meaningful_class, xpath_literal
from flow_replay.locator.selector_generator import SelectorGenerator
from flow_replay.models.flow import SHADOW_PATH_KEY


NESTED_SHADOW_PAGE = """
<outer-app id="outer">
  <template shadowrootmode="open">
    <inner-card id="card">
      <template shadowrootmode="open">
        <button class="confirm">Confirm</button>
      </template>
    </inner-card>
  </template>
</outer-app>
"""


@pytest.fixture
def generator():
    return SelectorGenerator()


class TestCssPriority:
    """Test which CSS form is chosen."""

    async def test_id_wins(self, generator, document):
        """Test a safe id is used first."""
        email = await document.query_selector("#email")
        selector = await generator.generate(email)

        assert selector.css == "#email"
        assert selector.xpath == '//*[@id="email"]'
        assert selector.tag_name == "input"
        assert selector.text is None
        assert selector.attributes["placeholder"] == "you@example.com"
        assert SHADOW_PATH_KEY not in selector.attributes

    async def test_test_id(self, generator, document):
        """Test data-testid is used when there is no id."""
        menu = await document.query_selector('[data-testid="menu"]')
        selector = await generator.generate(menu)

        assert selector.css == '[data-testid="menu"]'
        assert selector.xpath == "/html/body/nav/button"
        assert selector.text == "Menu"

    async def test_name(self, generator, document):
        """Test the name attribute is qualified by the tag."""
        bio = await document.query_selector("textarea")
        selector = await generator.generate(bio)

        assert selector.css == 'textarea[name="bio"]'
        assert selector.xpath == '//*[@id="signup"]/textarea'

    async def test_aria_label(self, generator):
        """Test a short aria-label is used."""
        document = parse_html('<button aria-label="Close dialog">x</button>')
        selector = await generator.generate(await document.query_selector("button"))
        assert selector.css == '[aria-label="Close dialog"]'

    async def test_structural_path(self, generator, document):
        """Test elements without identifying attributes get an ancestor path."""
        link = await document.query_selector("nav a")
        selector = await generator.generate(link)

        assert selector.css == "body > nav > a"
        assert selector.text == "Help"
        assert selector.attributes["href"] == "/help"

    async def test_nth_of_type_and_classes(self, generator):
        """Test sibling position and hand-written classes are encoded."""
        document = parse_html(
            "<div><button>A</button><button class='btn-primary css-1x2y3z'>B</button></div>"
        )
        buttons = await document.query_selector_all("button")
        selector = await generator.generate(buttons[1])

        assert selector.css == "body > div > button.btn-primary:nth-of-type(2)"
        assert selector.xpath == "/html/body/div/button[2]"
        assert await document.query_selector(selector.css) is buttons[1]

    async def test_unsafe_id_is_not_an_anchor(self, generator):
        """Test ids with whitespace fall back to other strategies."""
        document = parse_html('<button id="save draft">Save</button>')
        selector = await generator.generate(await document.query_selector("button"))

        assert selector.css == "body > button"
        assert selector.xpath == '//*[@id="save draft"]'


class TestTextAndAttributes:
    """Test text and attribute capture."""

    async def test_long_text_is_dropped(self):
        """Test text at or above the length limit is not recorded."""
        generator = SelectorGenerator(max_text_length=10)
        document = parse_html("<p>This paragraph is long</p><p>Short</p>")
        long_p, short_p = await document.query_selector_all("p")

        assert (await generator.generate(long_p)).text is None
        assert (await generator.generate(short_p)).text == "Short"

    async def test_custom_data_is_truncated(self, generator):
        """Test data-params is capped in the snapshot."""
        document = parse_html(f'<button data-params="{"x" * 500}">Go</button>')
        selector = await generator.generate(await document.query_selector("button"))
        assert len(selector.attributes["data-params"]) == 200


class TestShadowHosts:
    """Test the shadow host chain."""

    async def test_host_chain_outermost_first(self, generator):
        """Test nested hosts are recorded from the outside in."""
        document = parse_html(NESTED_SHADOW_PAGE)
        outer = await document.query_selector("#outer")
        card = await (await outer.shadow_root()).query_selector("#card")
        button = await (await card.shadow_root()).query_selector("button")

        selector = await generator.generate(button)

        assert selector.shadow_path == ["#outer", "#card"]
        assert selector.css == "button.confirm"


class TestCssHelpers:
    """Test escaping and class heuristics."""

    @pytest.mark.parametrize("value, expected", [
        ("email", "email"),
        ("1st", "\\31 st"),
        ("a.b", "a\\.b"),
        ("user:name", "user\\:name"),
    ])
    def test_css_escape(self, value, expected):
        """Test identifiers are escaped like CSS.escape."""
        assert css_escape(value) == expected

    @pytest.mark.parametrize("token, meaningful", [
        ("btn-primary", True),
        ("nav", True),
        ("css-1x2y3z", False),
        ("mt-4", False),
        ("_hidden", False),
        ("hover:bg-red", False),
        ("ab", False),
    ])
    def test_meaningful_class(self, token, meaningful):
        """Test generated class tokens are filtered out."""
        assert is_meaningful_class(token) is meaningful

    def test_xpath_literal_quotes(self):
        """Test strings with both quote kinds use concat."""
        assert xpath_literal("plain") == '"plain"'
        assert xpath_literal('say "hi"') == "'say \"hi\"'"
        assert xpath_literal("it's \"x\"").startswith("concat(")
