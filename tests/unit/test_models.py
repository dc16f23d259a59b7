"""
Tests for the flow and session state models.
"""

import pytest
from flow_replay.models.flow import (
    SHADOW_PATH_KEY,
    ElementSelector,
    Flow,
    Point,
    RecordedStep,
    StepType,
)
from flow_replay.models.state import (
    PlaybackOptions,
    PlaybackState,
    PlaybackStatus,
    RecordingState,
)


def make_click(text="Save", tag="button", css="#save", delay=0):
    target = ElementSelector(css=css, xpath=f'//*[@id="{css[1:]}"]', tag_name=tag, text=text)
    return RecordedStep.create(StepType.CLICK, target, delay=delay, position=Point(10, 20))


class TestElementSelector:
    """Test the ElementSelector model."""

    def test_shadow_path_parsing(self):
        """Test the host chain is split outermost first."""
        selector = ElementSelector(
            css="button",
            xpath="/button",
            tag_name="button",
            attributes={SHADOW_PATH_KEY: "app-shell >>> #panel"},
        )
        assert selector.shadow_path == ["app-shell", "#panel"]

    def test_no_shadow_path(self):
        """Test selectors outside shadow roots have an empty chain."""
        selector = ElementSelector(css="#a", xpath="", tag_name="div")
        assert selector.shadow_path == []

    def test_without_shadow_path(self):
        """Test stripping the chain keeps the other attributes."""
        selector = ElementSelector(
            css="button",
            xpath="",
            tag_name="button",
            attributes={SHADOW_PATH_KEY: "app-shell", "role": "tab"},
        )
        stripped = selector.without_shadow_path()
        assert stripped.attributes == {"role": "tab"}
        assert selector.attributes[SHADOW_PATH_KEY] == "app-shell"

    def test_to_dict_omits_missing_text(self):
        """Test text is only serialized when present."""
        selector = ElementSelector(css="#a", xpath="//a", tag_name="a")
        assert "text" not in selector.to_dict()
        assert selector.to_dict()["tagName"] == "a"

    def test_describe_fallbacks(self):
        """Test describe prefers css, then xpath, then the tag."""
        assert ElementSelector("#a", "//a", "a").describe() == "#a"
        assert ElementSelector("", "//a", "a").describe() == "//a"
        assert ElementSelector.sentinel("window").describe() == "window"


class TestRecordedStep:
    """Test the RecordedStep model."""

    def test_create_assigns_id_and_timestamp(self):
        """Test new steps get a fresh id and a timestamp."""
        first = make_click()
        second = make_click()
        assert first.id != second.id
        assert first.timestamp > 0

    def test_navigation_step(self):
        """Test navigation steps carry the URL and a sentinel target."""
        step = RecordedStep.navigation("https://app.test/next", delay=1200, timestamp=5)
        assert step.type == StepType.NAVIGATION
        assert step.url == "https://app.test/next"
        assert step.target.css == ""
        assert step.timestamp == 5
        assert not step.requires_element

    def test_wait_step(self):
        """Test authored wait steps keep their duration in delay."""
        step = RecordedStep.wait(1500)
        assert step.type == StepType.WAIT
        assert step.delay == 1500
        assert step.describe() == "Wait 1500ms"

    @pytest.mark.parametrize("delay", [0, -10])
    def test_wait_step_must_be_positive(self, delay):
        """Test zero or negative waits are rejected."""
        with pytest.raises(ValueError):
            RecordedStep.wait(delay)

    def test_with_changes_keeps_id(self):
        """Test editing produces a new value with the same id."""
        step = make_click()
        edited = step.with_changes(id="other", delay=300, description="Press save")
        assert edited.id == step.id
        assert edited.delay == 300
        assert step.delay == 0

    def test_steps_are_immutable(self):
        """Test steps cannot be mutated in place."""
        step = make_click()
        with pytest.raises(Exception):
            step.delay = 10

    def test_describe(self):
        """Test human-readable descriptions."""
        target = ElementSelector("#q", "", "input")
        assert make_click().describe() == 'Click on button "Save"'
        assert RecordedStep.create(StepType.INPUT, target, value="hello").describe() == (
            'Type "hello" into input'
        )
        assert RecordedStep.create(
            StepType.SELECT, ElementSelector("#p", "", "select"), value="pro"
        ).describe() == 'Select "pro" in select'
        assert RecordedStep.create(StepType.KEYPRESS, target, value="Enter").describe() == (
            "Press Enter key"
        )
        assert RecordedStep.create(
            StepType.SCROLL, ElementSelector.sentinel("html"), scroll_position=Point(0, 640)
        ).describe() == "Scroll to position (0, 640)"

    def test_description_overrides_describe(self):
        """Test a user label wins over the generated text."""
        step = make_click().with_changes(description="Submit the form")
        assert step.describe() == "Submit the form"

    def test_dict_round_trip(self):
        """Test camelCase wire keys survive a round trip."""
        step = RecordedStep.create(
            StepType.SCROLL,
            ElementSelector.sentinel("html"),
            delay=250,
            scroll_position=Point(0, 400),
        )
        data = step.to_dict()
        assert data["scrollPosition"] == {"x": 0, "y": 400}
        assert "value" not in data
        assert RecordedStep.from_dict(data) == step


class TestFlow:
    """Test flow editing and serialization."""

    def test_create(self):
        """Test creating a flow."""
        flow = Flow.create("Sign up", start_url="https://app.test/")
        assert flow.name == "Sign up"
        assert flow.created_at == flow.updated_at
        assert flow.steps == []

    def test_add_and_remove_steps(self):
        """Test appending and removing steps by id."""
        flow = Flow.create("f")
        step = make_click()
        flow.add_step(step)
        wait = flow.add_wait_step(1000)

        assert [s.id for s in flow.steps] == [step.id, wait.id]
        assert flow.remove_step(step.id) is step
        assert flow.steps == [wait]

    def test_unknown_step_raises(self):
        """Test unknown step ids raise KeyError."""
        flow = Flow.create("f")
        with pytest.raises(KeyError):
            flow.remove_step("missing")

    def test_move_step_clamps(self):
        """Test moving a step past the end places it last."""
        a, b, c = make_click(), make_click(), make_click()
        flow = Flow.create("f", steps=[a, b, c])

        flow.move_step(a.id, 99)
        assert [s.id for s in flow.steps] == [b.id, c.id, a.id]

        flow.move_step(a.id, -5)
        assert [s.id for s in flow.steps] == [a.id, b.id, c.id]

    def test_replace_step(self):
        """Test explicit edits replace the step in place."""
        step = make_click()
        flow = Flow.create("f", steps=[step])

        updated = flow.replace_step(step.id, delay=900)

        assert flow.steps[0] is updated
        assert updated.id == step.id
        assert updated.delay == 900

    def test_copy_with_new_ids(self):
        """Test copies get fresh flow and step ids."""
        flow = Flow.create("f", start_url="https://app.test/", steps=[make_click()])
        copy = flow.copy_with_new_ids(name="f (Copy)")

        assert copy.id != flow.id
        assert copy.name == "f (Copy)"
        assert copy.start_url == flow.start_url
        assert copy.steps[0].id != flow.steps[0].id
        assert copy.steps[0].target == flow.steps[0].target

    def test_dict_round_trip(self):
        """Test flows serialize with camelCase keys."""
        flow = Flow.create("f", start_url="https://app.test/", steps=[make_click()])
        data = flow.to_dict()

        assert set(data) == {"id", "name", "steps", "createdAt", "updatedAt", "startUrl"}
        assert Flow.from_dict(data) == flow


class TestPlaybackOptions:
    """Test PlaybackOptions."""

    def test_defaults(self):
        """Test default option values."""
        options = PlaybackOptions()
        assert options.speed == 1.0
        assert options.step_by_step is False
        assert options.stop_on_error is True
        assert options.highlight_elements is True

    @pytest.mark.parametrize("speed", [0, -1.5])
    def test_speed_must_be_positive(self, speed):
        """Test non-positive speeds are rejected."""
        with pytest.raises(ValueError):
            PlaybackOptions(speed=speed)

    def test_merged_ignores_none(self):
        """Test None values leave options unchanged."""
        options = PlaybackOptions().merged(speed=2.0, stop_on_error=None)
        assert options.speed == 2.0
        assert options.stop_on_error is True

    def test_wire_round_trip(self):
        """Test the camelCase wire form."""
        options = PlaybackOptions(speed=0.5, step_by_step=True)
        assert options.to_dict()["stepByStep"] is True
        assert PlaybackOptions.from_dict(options.to_dict()) == options


class TestSessionState:
    """Test the recording and playback state snapshots."""

    def test_playback_status(self):
        """Test the derived state-machine status."""
        assert PlaybackState().status == PlaybackStatus.IDLE
        assert PlaybackState(is_playing=True).status == PlaybackStatus.PLAYING
        assert PlaybackState(is_playing=True, is_navigating=True).status == PlaybackStatus.NAVIGATING
        assert PlaybackState(is_playing=True, is_paused=True).status == PlaybackStatus.PAUSED

    def test_recording_state_to_dict(self):
        """Test the recording snapshot wire form."""
        state = RecordingState(is_recording=True, current_flow_id="f1", steps=[make_click()])
        data = state.to_dict()
        assert data["isRecording"] is True
        assert data["currentFlowId"] == "f1"
        assert len(data["steps"]) == 1
