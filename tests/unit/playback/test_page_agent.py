"""
Tests for the page agent.
"""

import pytest
from flow_replay.browsers.memory import parse_html
from flow_replay.interfaces.agent import AgentRequest, MessageType
from flow_replay.models.flow import ElementSelector, Point, RecordedStep, StepType
from flow_replay.playback.agent import PageAgent
from flow_replay.simulation.event_simulator import EventSimulator


def execute(step, highlight=False):
    return AgentRequest(MessageType.EXECUTE_STEP, {"step": step.to_dict(), "highlight": highlight})


def click_step(css, tag):
    return RecordedStep.create(StepType.CLICK, ElementSelector(css=css, xpath="", tag_name=tag))


@pytest.fixture
def agent(document, resolver, simulator):
    return PageAgent(document, resolver, simulator, visibility_timeout_ms=20, visibility_poll_ms=10)


class TestPing:
    """Test readiness checks."""

    async def test_ping(self, agent):
        """Test PING reports the document state."""
        response = await agent.handle(AgentRequest(MessageType.PING))

        assert response.success
        assert response.data == {
            "loaded": True,
            "url": "https://app.test/signup",
            "readyState": "complete",
        }


class TestExecuteStep:
    """Test step execution."""

    async def test_click_step(self, agent, document):
        """Test a click step is resolved and simulated."""
        response = await agent.handle(execute(click_step("#terms", "input")))

        assert response.success
        assert response.error is None
        assert await (await document.query_selector("#terms")).get_property("checked") is True

    async def test_input_step(self, agent, document):
        """Test an input step types into the resolved field."""
        step = RecordedStep.create(
            StepType.INPUT,
            ElementSelector(css="#email", xpath="", tag_name="input"),
            value="ada@example.com",
        )

        response = await agent.handle(execute(step))

        assert response.success
        assert await (await document.query_selector("#email")).get_property("value") == "ada@example.com"

    async def test_missing_element(self, agent):
        """Test an unresolvable target fails with a description of the step."""
        response = await agent.handle(execute(click_step("#gone", "video")))

        assert not response.success
        assert response.error == "Step failed: Click on video"

    async def test_navigation_step_is_rejected(self, agent):
        """Test navigation is not the agent's job."""
        response = await agent.handle(execute(RecordedStep.navigation("https://app.test/done")))
        assert not response.success

    async def test_wait_step(self, agent):
        """Test wait steps succeed without a target."""
        response = await agent.handle(execute(RecordedStep.wait(5)))
        assert response.success

    async def test_scroll_step(self, agent, document):
        """Test scroll steps move the document."""
        step = RecordedStep.create(
            StepType.SCROLL,
            ElementSelector.sentinel("html"),
            scroll_position=Point(0, 640),
        )

        response = await agent.handle(execute(step))

        assert response.success
        assert await document.scroll_position() == (0, 640)

    async def test_invisible_element_is_acted_on_after_timeout(self, resolver, simulator):
        """Test a hidden element is still acted on once the visibility wait ends."""
        document = parse_html("<button id='late' style='opacity: 0'>Later</button>")
        agent = PageAgent(document, resolver, simulator, visibility_timeout_ms=20, visibility_poll_ms=10)
        clicks = []
        (await document.query_selector("#late")).add_listener("click", clicks.append)

        response = await agent.handle(execute(click_step("#late", "button")))

        assert response.success
        assert clicks

    async def test_malformed_payload(self, agent):
        """Test bad payloads become failed responses."""
        response = await agent.handle(AgentRequest(MessageType.EXECUTE_STEP, {}))
        assert not response.success
        assert response.error


class TestHighlight:
    """Test highlight requests."""

    async def test_highlight(self, document, resolver):
        """Test the resolved element gets outlined."""
        simulator = EventSimulator(settle_delay_ms=0, highlight_duration_ms=10_000)
        agent = PageAgent(document, resolver, simulator)
        target = ElementSelector(css="#submit", xpath="", tag_name="button")

        response = await agent.handle(
            AgentRequest(MessageType.HIGHLIGHT, {"target": target.to_dict()})
        )

        assert response.success
        button = await document.query_selector("#submit")
        assert await button.get_style("outline") == simulator.highlight_outline
        await simulator.aclose()

    async def test_highlight_missing(self, agent):
        """Test highlighting an unknown element fails."""
        target = ElementSelector(css="#gone", xpath="", tag_name="div")

        response = await agent.handle(
            AgentRequest(MessageType.HIGHLIGHT, {"target": target.to_dict()})
        )

        assert not response.success
        assert response.error == "Element not found"


class TestUnknown:
    """Test unsupported requests."""

    async def test_unknown_message_type(self, agent):
        """Test requests meant for the service are refused."""
        response = await agent.handle(AgentRequest(MessageType.GET_STATE))

        assert not response.success
        assert response.error == "Unknown message type"
