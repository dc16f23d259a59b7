"""
Tests for the recording capturer.
"""

import asyncio

import pytest
from flow_replay.browsers.memory import parse_html
from flow_replay.interfaces.document import DomEvent
from flow_replay.locator.element_resolver import ResolutionStrategy
from flow_replay.models.flow import Point, StepType
from flow_replay.recorder.capturer import RecordingCapturer
from flow_replay.simulation.event_factory import mouse_event


class FakeClock:
    def __init__(self, start=1_000):
        self.now = start

    def __call__(self):
        return self.now


async def type_text(element, text):
    """Dispatch one input event per character, as a user typing."""
    for end in range(1, len(text) + 1):
        await element.set_native_value(text[:end])
        await element.dispatch_event(DomEvent("input", "InputEvent"))


def keydown(key):
    return DomEvent("keydown", "KeyboardEvent", cancelable=True, init={"key": key})


RADIO_GROUP = """
<form>
  <label><input type="radio" name="plan" value="free"> Free</label>
  <label><input type="radio" name="plan" value="pro"> Pro</label>
</form>
"""

REPEATED_LABELS = """
<div><button aria-label="Delete">x</button></div>
<div><button aria-label="Delete">x</button></div>
"""

REPEATED_PLACEHOLDERS = """
<section><input placeholder="Search"></section>
<section><input placeholder="Search"></section>
"""


@pytest.fixture
def steps():
    return []


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def capturer(steps, clock, document):
    capturer = RecordingCapturer(
        on_step=steps.append,
        input_debounce_ms=20,
        scroll_debounce_ms=5,
        scroll_threshold_px=50,
        clock=clock,
    )
    await capturer.start(document)
    yield capturer
    await capturer.discard()


class TestClicks:
    """Test click capture."""

    async def test_click_is_recorded(self, capturer, steps, document):
        """Test a click becomes a click step with its coordinates."""
        button = await document.query_selector("#submit")

        await button.dispatch_event(mouse_event("click", 12, 34))

        assert len(steps) == 1
        step = steps[0]
        assert step.type == StepType.CLICK
        assert step.target.css == "#submit"
        assert step.target.text == "Create account"
        assert step.position == Point(12.0, 34.0)
        assert step.delay == 0

    async def test_click_on_text_field_is_ignored(self, capturer, steps, document):
        """Test focusing clicks on text fields are not recorded."""
        await (await document.query_selector("#email")).click()
        await (await document.query_selector("textarea")).click()
        assert steps == []

    async def test_own_ui_is_ignored(self, steps):
        """Test clicks inside the recorder's own UI are skipped."""
        document = parse_html(
            "<div data-flow-recorder='panel'><button id='stop'>Stop</button></div>"
            "<button id='page'>Page</button>"
        )
        capturer = RecordingCapturer(on_step=steps.append)
        await capturer.start(document)

        await (await document.query_selector("#stop")).click()
        await (await document.query_selector("#page")).click()
        await capturer.discard()

        assert [s.target.css for s in steps] == ["#page"]

    async def test_checkbox_records_only_the_click(self, capturer, steps, document):
        """Test the change event of a checkbox adds no extra step."""
        await (await document.query_selector("#terms")).click()

        assert [s.type for s in steps] == [StepType.CLICK]

    async def test_delay_since_previous_step(self, capturer, steps, document, clock):
        """Test delays measure the time between captured steps."""
        button = await document.query_selector("#submit")

        await button.click()
        clock.now += 750
        await button.click()

        assert [s.delay for s in steps] == [0, 750]
        assert steps[1].timestamp == clock.now


class TestTextInput:
    """Test debounced text capture."""

    async def test_typing_burst_is_one_step(self, capturer, steps, document):
        """Test a burst of keystrokes yields one input step with the final value."""
        email = await document.query_selector("#email")

        await type_text(email, "ada@example.com")
        assert steps == []
        assert capturer.pending_count == 1

        await asyncio.sleep(0.08)

        assert len(steps) == 1
        assert steps[0].type == StepType.INPUT
        assert steps[0].value == "ada@example.com"
        assert steps[0].target.css == "#email"

    async def test_click_flushes_pending_input(self, capturer, steps, document):
        """Test a click records the pending value first."""
        await type_text(await document.query_selector("#email"), "ada")
        await (await document.query_selector("#submit")).click()

        assert [s.type for s in steps] == [StepType.INPUT, StepType.CLICK]
        assert capturer.pending_count == 0

    async def test_separate_fields_separate_steps(self, capturer, steps, document):
        """Test each field has its own debounce timer."""
        await type_text(await document.query_selector("#email"), "ada")
        await type_text(await document.query_selector("textarea"), "Hi")
        await capturer.flush()

        assert [s.value for s in steps] == ["ada", "Hi"]

    async def test_content_editable_records_text(self, steps):
        """Test contenteditable fields record their text content."""
        document = parse_html("<div id='notes' contenteditable='true'></div>")
        capturer = RecordingCapturer(on_step=steps.append, input_debounce_ms=1000)
        await capturer.start(document)
        editor = await document.query_selector("#notes")

        await editor.set_text_content("Remember milk")
        await editor.dispatch_event(DomEvent("input", "InputEvent"))
        await capturer.stop()

        assert steps[0].type == StepType.INPUT
        assert steps[0].value == "Remember milk"

    async def test_change_after_typing_adds_no_step(self, capturer, steps, document):
        """Test the change fired on blur does not repeat a recorded value."""
        email = await document.query_selector("#email")
        await type_text(email, "ada")
        await asyncio.sleep(0.08)

        await email.dispatch_event(DomEvent("change"))
        await (await document.query_selector("#submit")).click()

        assert [(s.type, s.value) for s in steps] == [
            (StepType.INPUT, "ada"),
            (StepType.CLICK, None),
        ]
        assert capturer.pending_count == 0

    async def test_change_with_new_value_is_recorded(self, capturer, steps, document):
        """Test a change carrying a different value, e.g. autofill, is recorded."""
        email = await document.query_selector("#email")
        await type_text(email, "ada")
        await asyncio.sleep(0.08)

        await email.set_native_value("ada@example.com")
        await email.dispatch_event(DomEvent("change"))
        await capturer.flush()

        assert [s.value for s in steps] == ["ada", "ada@example.com"]


class TestSelect:
    """Test selection capture."""

    async def test_select_recorded_on_change(self, capturer, steps, document):
        """Test a selection is recorded once, on change."""
        plan = await document.query_selector("#plan")

        await plan.set_property("value", "pro")
        await plan.dispatch_event(DomEvent("input"))
        await plan.dispatch_event(DomEvent("change"))

        assert len(steps) == 1
        assert steps[0].type == StepType.SELECT
        assert steps[0].value == "pro"
        assert steps[0].target.css == "#plan"


class TestKeys:
    """Test keypress capture."""

    async def test_enter_in_text_field(self, capturer, steps, document):
        """Test Enter is recorded from a text field, after its pending value."""
        email = await document.query_selector("#email")
        await type_text(email, "ada")

        await email.dispatch_event(keydown("Enter"))

        assert [(s.type, s.value) for s in steps] == [
            (StepType.INPUT, "ada"),
            (StepType.KEYPRESS, "Enter"),
        ]

    async def test_printable_keys_are_ignored(self, capturer, steps, document):
        """Test ordinary characters are left to the input step."""
        await (await document.query_selector("#email")).dispatch_event(keydown("a"))
        assert steps == []

    async def test_navigation_keys_only_outside_text_fields(self, capturer, steps, document):
        """Test arrow keys are recorded on controls but not in text fields."""
        await (await document.query_selector("#email")).dispatch_event(keydown("ArrowDown"))
        await (await document.query_selector("#plan")).dispatch_event(keydown("ArrowDown"))

        assert len(steps) == 1
        assert steps[0].type == StepType.KEYPRESS
        assert steps[0].target.css == "#plan"


class TestScroll:
    """Test scroll capture."""

    async def test_small_scrolls_are_ignored(self, capturer, steps, document):
        """Test displacement at or below the threshold is not recorded."""
        await document.scroll_to(0, 50)
        await asyncio.sleep(0.03)
        assert steps == []

    async def test_scroll_past_threshold(self, capturer, steps, document):
        """Test a large scroll is recorded once it settles."""
        await document.scroll_to(0, 200)
        await document.scroll_to(0, 400)
        await asyncio.sleep(0.03)

        assert len(steps) == 1
        assert steps[0].type == StepType.SCROLL
        assert steps[0].scroll_position == Point(0.0, 400.0)
        assert steps[0].target.tag_name == "html"

    async def test_threshold_is_relative_to_last_scroll(self, capturer, steps, document):
        """Test the next scroll is measured from the last recorded one."""
        await document.scroll_to(0, 400)
        await asyncio.sleep(0.03)
        await document.scroll_to(0, 430)
        await asyncio.sleep(0.03)

        assert len(steps) == 1


class TestLifecycle:
    """Test starting, stopping and moving between documents."""

    async def test_stop_flushes_and_detaches(self, capturer, steps, document):
        """Test stop records pending values and removes listeners."""
        await type_text(await document.query_selector("#email"), "ada")

        await capturer.stop()
        await (await document.query_selector("#submit")).click()

        assert [s.type for s in steps] == [StepType.INPUT]
        assert not capturer.is_recording
        assert capturer.document is None

    async def test_stop_drops_pending_scroll(self, capturer, steps, document):
        """Test a scroll still settling when recording stops is not recorded."""
        await type_text(await document.query_selector("#email"), "ada")
        await document.scroll_to(0, 400)

        await capturer.stop()
        await asyncio.sleep(0.03)

        assert [s.type for s in steps] == [StepType.INPUT]

    async def test_discard_drops_pending(self, capturer, steps, document):
        """Test discard loses pending debounced values."""
        await type_text(await document.query_selector("#email"), "ada")

        await capturer.discard()
        await asyncio.sleep(0.05)

        assert steps == []

    async def test_attach_moves_listeners(self, capturer, steps, document):
        """Test only the attached document is captured."""
        other = parse_html("<button id='next'>Next</button>")

        await capturer.attach(other)
        await (await document.query_selector("#submit")).click()
        await (await other.query_selector("#next")).click()

        assert [s.target.css for s in steps] == ["#next"]
        assert capturer.document is other

    async def test_note_external_step(self, capturer, steps, document, clock):
        """Test an externally recorded step resets the delay baseline."""
        capturer.note_external_step(clock.now - 200)
        await (await document.query_selector("#submit")).click()
        assert steps[0].delay == 200

    async def test_async_callback(self, document):
        """Test on_step may be a coroutine function."""
        seen = []

        async def on_step(step):
            await asyncio.sleep(0)
            seen.append(step.type)

        capturer = RecordingCapturer(on_step=on_step)
        await capturer.start(document)
        await (await document.query_selector("#submit")).click()
        await capturer.stop()

        assert seen == [StepType.CLICK]


class TestRecordedTargets:
    """Test recorded steps resolve back to the element that was used."""

    async def record(self, document, steps, action):
        capturer = RecordingCapturer(on_step=steps.append, input_debounce_ms=1000)
        await capturer.start(document)
        await action()
        await capturer.stop()
        return steps[-1]

    async def test_radio_in_group(self, steps, resolver):
        """Test a click on one radio of a group replays on that radio."""
        document = parse_html(RADIO_GROUP)
        pro = await document.query_selector('input[value="pro"]')

        step = await self.record(document, steps, pro.click)
        result = await resolver.resolve(document, step.target)

        assert step.target.css == 'input[name="plan"][value="pro"]'
        assert result.strategy == ResolutionStrategy.CSS
        assert result.element is pro

    async def test_repeated_aria_label(self, steps, resolver):
        """Test a shared aria-label is not used as the locator."""
        document = parse_html(REPEATED_LABELS)
        second = (await document.query_selector_all("button"))[1]

        step = await self.record(document, steps, second.click)
        result = await resolver.resolve(document, step.target)

        assert step.target.css == "body > div:nth-of-type(2) > button"
        assert result.element is second

    async def test_repeated_placeholder(self, steps, resolver):
        """Test typing into one of two fields sharing a placeholder."""
        document = parse_html(REPEATED_PLACEHOLDERS)
        second = (await document.query_selector_all("input"))[1]

        step = await self.record(document, steps, lambda: type_text(second, "shoes"))
        result = await resolver.resolve(document, step.target)

        assert step.type == StepType.INPUT
        assert step.value == "shoes"
        assert result.element is second
