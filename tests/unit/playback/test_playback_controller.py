"""
Tests for the playback controller.
"""

import asyncio

import pytest
from flow_replay.config import PlaybackSettings
from flow_replay.browsers.memory import MemoryDocument
from flow_replay.exceptions import AgentUnavailableError, DestinationClosedError, FlowNotFoundError
from flow_replay.interfaces.agent import AgentResponse, IAgentDispatcher, MessageType
from flow_replay.models.flow import ElementSelector, Flow, RecordedStep, StepType
from flow_replay.models.state import PlaybackOptions
from flow_replay.playback.channel import LocalAgentDispatcher
from flow_replay.playback.controller import PlaybackController, PlaybackEvent
from flow_replay.playback.scheduler import StepScheduler

SIGNUP_URL = "https://app.test/signup"
DONE_URL = "https://app.test/done"
SLOW_URL = "https://app.test/slow"


def target(css, tag):
    return ElementSelector(css=css, xpath="", tag_name=tag)


def click(css, tag="button", delay=0):
    return RecordedStep.create(StepType.CLICK, target(css, tag), delay=delay)


def signup_steps():
    return [
        RecordedStep.create(StepType.INPUT, target("#email", "input"), value="ada@example.com"),
        RecordedStep.create(StepType.SELECT, target("#plan", "select"), value="pro"),
        click("#terms", "input"),
    ]


class InstantScheduler(StepScheduler):
    """Records each requested delay and runs the callback without waiting."""

    def __init__(self):
        super().__init__()
        self.delays = []

    def schedule(self, delay_ms, callback):
        self.delays.append(delay_ms)
        super().schedule(0, callback)


class PingOnlyDispatcher(IAgentDispatcher):
    """Answers PING and fails every step with the given error."""

    def __init__(self, error):
        self.error = error
        self.step_calls = 0

    async def send(self, request):
        if request.type == MessageType.PING:
            return AgentResponse(success=True, data={"loaded": True})
        self.step_calls += 1
        raise self.error


@pytest.fixture
def events():
    return []


@pytest.fixture
def make_controller(surface, store, settings, resolver, simulator, events):
    def factory(dispatcher=None, **options):
        options.setdefault("highlight_elements", False)
        controller = PlaybackController(
            surface,
            store,
            dispatcher=dispatcher or LocalAgentDispatcher(surface, resolver, simulator, visibility_timeout_ms=0),
            settings=settings.playback,
            transport=settings.transport,
            options=PlaybackOptions(**options),
        )
        controller.on_event(lambda event, data: events.append((event, data)))
        return controller
    return factory


async def save(store, steps, start_url=SIGNUP_URL, name="Sign up"):
    flow = Flow.create(name, start_url=start_url, steps=steps)
    await store.save_flow(flow)
    return flow


def kinds(events):
    return [event for event, _ in events]


class TestRun:
    """Test complete playbacks."""

    async def test_plays_flow_to_completion(self, make_controller, store, surface, events):
        """Test every step runs against a freshly loaded start page."""
        flow = await save(store, signup_steps())
        controller = make_controller()

        await controller.start(flow.id)
        await controller.wait_until_idle(timeout=2)

        document = surface.document
        assert await (await document.query_selector("#email")).get_property("value") == "ada@example.com"
        assert await (await document.query_selector("#plan")).get_property("value") == "pro"
        assert await (await document.query_selector("#terms")).get_property("checked") is True

        assert kinds(events)[0] == PlaybackEvent.STARTED
        assert kinds(events).count(PlaybackEvent.STEP_SUCCEEDED) == 3
        assert events[-1] == (
            PlaybackEvent.COMPLETED,
            {"flow_id": flow.id, "executed": 3, "failed": 0, "error": None},
        )
        assert controller.last_session.outcome == PlaybackEvent.COMPLETED
        assert not controller.is_active

    async def test_navigation_step(self, make_controller, store, surface):
        """Test navigation steps load the next page before continuing."""
        flow = await save(store, [
            click("#submit"),
            RecordedStep.navigation(DONE_URL),
            click("#continue"),
        ])
        controller = make_controller()

        await controller.start(flow.id)
        await controller.wait_until_idle(timeout=2)

        assert surface.history == [SIGNUP_URL, DONE_URL]
        assert controller.last_session.outcome == PlaybackEvent.COMPLETED
        assert all(r.success for r in controller.last_session.results)

    async def test_wait_step(self, make_controller, store):
        """Test wait steps succeed."""
        flow = await save(store, [RecordedStep.wait(20)])
        controller = make_controller()

        await controller.start(flow.id)
        await controller.wait_until_idle(timeout=2)

        assert controller.last_session.results[0].success

    async def test_unknown_flow(self, make_controller):
        """Test starting a missing flow raises FlowNotFoundError."""
        controller = make_controller()
        with pytest.raises(FlowNotFoundError):
            await controller.start("missing")
        assert not controller.is_active


class TestFailures:
    """Test failing steps and aborted sessions."""

    async def test_stop_on_error(self, make_controller, store, surface, events):
        """Test the first failed step ends playback."""
        flow = await save(store, [click("#submit"), click("#gone", "video"), click("#terms", "input")])
        controller = make_controller(stop_on_error=True)

        await controller.start(flow.id)
        await controller.wait_until_idle(timeout=2)

        session = controller.last_session
        assert session.outcome == PlaybackEvent.STOPPED
        assert [r.success for r in session.results] == [True, False]
        assert session.error == "Step failed: Click on video"
        assert await (await surface.document.query_selector("#terms")).get_property("checked") is False
        assert PlaybackEvent.STEP_FAILED in kinds(events)

    async def test_continue_on_error(self, make_controller, store, surface, events):
        """Test failed steps are skipped when stop_on_error is off."""
        flow = await save(store, [click("#gone", "video"), click("#terms", "input")])
        controller = make_controller(stop_on_error=False)

        await controller.start(flow.id)
        await controller.wait_until_idle(timeout=2)

        assert controller.last_session.outcome == PlaybackEvent.COMPLETED
        assert events[-1][1]["failed"] == 1
        assert await (await surface.document.query_selector("#terms")).get_property("checked") is True

    async def test_navigation_timeout_aborts(self, make_controller, store, surface):
        """Test a page that never becomes ready aborts playback."""
        surface.pages[SLOW_URL] = lambda url: loading_document(url)
        flow = await save(store, [
            click("#submit"),
            RecordedStep.navigation(SLOW_URL),
            click("#continue"),
        ])
        controller = make_controller()

        await controller.start(flow.id)
        await controller.wait_until_idle(timeout=2)

        session = controller.last_session
        assert session.outcome == PlaybackEvent.ABORTED
        assert "Page not ready" in session.error
        assert len(session.results) == 1

    async def test_start_page_timeout_aborts(self, make_controller, store, surface):
        """Test an unreachable start page aborts before the first step."""
        surface.pages[SLOW_URL] = lambda url: loading_document(url)
        flow = await save(store, [click("#submit")], start_url=SLOW_URL)
        controller = make_controller()

        await controller.start(flow.id)

        assert not controller.is_active
        assert controller.last_session.outcome == PlaybackEvent.ABORTED
        assert controller.last_session.results == []

    async def test_closed_destination_fails_fast(self, make_controller, store):
        """Test a closed destination aborts without retrying."""
        dispatcher = PingOnlyDispatcher(DestinationClosedError("Surface is closed"))
        flow = await save(store, [click("#submit")])
        controller = make_controller(dispatcher=dispatcher)

        await controller.start(flow.id)
        await controller.wait_until_idle(timeout=2)

        assert controller.last_session.outcome == PlaybackEvent.ABORTED
        assert dispatcher.step_calls == 1

    async def test_exhausted_delivery_aborts(self, make_controller, store):
        """Test a step that cannot be delivered aborts after every attempt."""
        dispatcher = PingOnlyDispatcher(AgentUnavailableError("Page agent is not ready"))
        flow = await save(store, [click("#submit")])
        controller = make_controller(dispatcher=dispatcher)

        await controller.start(flow.id)
        await controller.wait_until_idle(timeout=2)

        assert controller.last_session.outcome == PlaybackEvent.ABORTED
        assert "Could not deliver step after 3 attempts" in controller.last_session.error
        assert dispatcher.step_calls == 3


class TestControls:
    """Test pause, resume, stop and step-by-step playback."""

    async def test_pause_and_resume(self, make_controller, store, events):
        """Test pausing holds the next step until resumed."""
        flow = await save(store, [click("#submit"), click("#terms", "input", delay=200)])
        controller = make_controller()
        first_done = asyncio.Event()
        controller.on_event(
            lambda event, data: first_done.set() if event == PlaybackEvent.STEP_SUCCEEDED else None
        )

        await controller.start(flow.id)
        await first_done.wait()

        assert controller.pause()
        assert not controller.pause()
        assert controller.state.is_paused
        await asyncio.sleep(0.3)
        assert len(controller._session.results) == 1

        assert controller.resume()
        assert not controller.resume()
        await controller.wait_until_idle(timeout=2)

        assert controller.last_session.outcome == PlaybackEvent.COMPLETED
        assert PlaybackEvent.PAUSED in kinds(events)
        assert PlaybackEvent.RESUMED in kinds(events)

    async def test_stop(self, make_controller, store, surface):
        """Test stop discards the remaining steps."""
        flow = await save(store, [click("#submit"), click("#terms", "input", delay=5000)])
        controller = make_controller()
        first_done = asyncio.Event()
        controller.on_event(
            lambda event, data: first_done.set() if event == PlaybackEvent.STEP_SUCCEEDED else None
        )

        await controller.start(flow.id)
        await first_done.wait()

        assert controller.stop()
        assert not controller.stop()
        await controller.wait_until_idle(timeout=1)

        assert controller.last_session.outcome == PlaybackEvent.STOPPED
        assert not controller.scheduler.pending
        assert await (await surface.document.query_selector("#terms")).get_property("checked") is False

    async def test_step_by_step(self, make_controller, store, events):
        """Test every step waits for an explicit advance."""
        flow = await save(store, [click("#submit"), click("#terms", "input")])
        controller = make_controller(step_by_step=True)

        await controller.start(flow.id)

        assert controller.awaiting_advance
        assert controller.state.is_playing
        assert controller._session.results == []

        assert controller.advance()
        await controller.scheduler.join()

        assert len(controller._session.results) == 1
        assert controller.awaiting_advance
        assert kinds(events).count(PlaybackEvent.AWAITING_ADVANCE) == 2

    async def test_turning_off_step_by_step_releases(self, make_controller, store):
        """Test disabling step-by-step while waiting continues playback."""
        flow = await save(store, [click("#submit"), click("#terms", "input")])
        controller = make_controller(step_by_step=True)
        await controller.start(flow.id)

        controller.set_options(step_by_step=False)
        await controller.wait_until_idle(timeout=2)

        assert controller.last_session.outcome == PlaybackEvent.COMPLETED
        assert len(controller.last_session.results) == 2

    async def test_advance_without_waiting(self, make_controller):
        """Test advance is refused when nothing is waiting."""
        assert not make_controller().advance()

    async def test_restart_supersedes_running_playback(self, make_controller, store, events):
        """Test starting again stops the previous playback."""
        first = await save(store, [click("#submit")], name="First")
        second = await save(store, [click("#submit")], name="Second")
        controller = make_controller(step_by_step=True)

        await controller.start(first.id)
        await controller.start(second.id)

        stopped = [data for event, data in events if event == PlaybackEvent.STOPPED]
        assert [d["flow_id"] for d in stopped] == [first.id]
        assert controller.state.current_flow_id == second.id
        controller.stop()

    async def test_set_options_applies_to_running_session(self, make_controller, store):
        """Test option changes reach the session in progress."""
        flow = await save(store, [click("#submit")])
        controller = make_controller(step_by_step=True)
        await controller.start(flow.id)

        controller.set_options(speed=2.0, stop_on_error=False)

        assert controller.state.options.speed == 2.0
        assert controller.state.options.stop_on_error is False
        assert controller.state.options.step_by_step is True
        controller.stop()


class TestComputeDelay:
    """Test pacing between steps."""

    @pytest.fixture
    def controller(self, surface, store):
        settings = PlaybackSettings(
            default_step_delay_ms=500,
            min_step_delay_ms=300,
            min_navigation_delay_ms=1000,
        )
        return PlaybackController(surface, store, settings=settings)

    @pytest.mark.parametrize("delay, speed, expected", [
        (2000, 1.0, 2000),
        (2000, 2.0, 1000),
        (2000, 0.5, 4000),
        (400, 4.0, 300),
        (0, 1.0, 500),
    ])
    def test_scaled_by_speed_with_floor(self, controller, delay, speed, expected):
        """Test recorded delays are divided by speed and floored."""
        assert controller.compute_delay(click("#x", delay=delay), speed) == expected

    def test_no_next_step(self, controller):
        """Test the delay before completion uses the default."""
        assert controller.compute_delay(None, 1.0) == 500

    def test_navigation_floor(self, controller):
        """Test a longer floor applies after navigation steps."""
        assert controller.compute_delay(click("#x", delay=200), 1.0, floor_ms=1000) == 1000


class TestPacing:
    """Test the waits scheduled while a flow plays."""

    async def test_speed_scales_scheduled_waits(self, surface, store, resolver, simulator):
        """Test double speed halves recorded delays above the floors."""
        flow = await save(store, [
            RecordedStep.create(StepType.INPUT, target("#email", "input"), value="ada"),
            click("#terms", "input", delay=2000),
            click("#submit", delay=400),
            RecordedStep.navigation(DONE_URL, delay=1000),
            click("#continue", delay=600),
        ])
        settings = PlaybackSettings(
            start_delay_ms=0,
            default_step_delay_ms=500,
            min_step_delay_ms=300,
            min_navigation_delay_ms=1000,
            ready_timeout_ms=100,
            ready_poll_ms=10,
        )
        controller = PlaybackController(
            surface,
            store,
            dispatcher=LocalAgentDispatcher(surface, resolver, simulator, visibility_timeout_ms=0),
            settings=settings,
            options=PlaybackOptions(speed=2.0, highlight_elements=False),
        )
        controller.scheduler = InstantScheduler()

        await controller.start(flow.id)
        await controller.wait_until_idle(timeout=2)

        assert controller.last_session.outcome == PlaybackEvent.COMPLETED
        # start, 2000/2, 400/2 floored to 300, 1000/2, navigation floor, default 500/2 floored
        assert controller.scheduler.delays == [0, 1000, 300, 500, 1000, 300]
        stored = await store.get_flow(flow.id)
        assert [step.delay for step in stored.steps] == [0, 2000, 400, 1000, 600]


def loading_document(url):
    document = MemoryDocument.blank(url)
    document.set_ready_state("loading")
    return document
