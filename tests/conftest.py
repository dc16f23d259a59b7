"""
Pytest configuration and fixtures.
"""

import pytest


SIGNUP_URL = "https://app.test/signup"
DONE_URL = "https://app.test/done"

SIGNUP_PAGE = """
<html>
  <body>
    <form id="signup" action="/done">
      <label for="email">Email</label>
      <input id="email" name="email" type="email" placeholder="you@example.com">
      <textarea name="bio"></textarea>
      <select id="plan" name="plan">
        <option value="free">Free</option>
        <option value="pro">Pro</option>
      </select>
      <input id="terms" type="checkbox">
      <button id="submit" type="submit">Create account</button>
    </form>
    <nav>
      <a href="/help">Help</a>
      <button data-testid="menu">Menu</button>
    </nav>
  </body>
</html>
"""

DONE_PAGE = "<h1>Welcome</h1><button id='continue'>Continue</button>"


@pytest.fixture(autouse=True)
def _reset_global_settings():
    """Drop the settings singleton between tests."""
    from flow_replay.config import reset_settings

    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    """Provide settings with fast timings for tests."""
    from flow_replay.config import (
        PlaybackSettings,
        RecorderSettings,
        ResolverSettings,
        Settings,
        SimulatorSettings,
        StorageSettings,
        TransportSettings,
    )

    return Settings(
        recorder=RecorderSettings(input_debounce_ms=30, scroll_debounce_ms=10, scroll_threshold_px=50),
        resolver=ResolverSettings(max_attempts=1, interval_ms=0),
        simulator=SimulatorSettings(settle_delay_ms=0, highlight_duration_ms=0),
        playback=PlaybackSettings(
            start_delay_ms=0,
            default_step_delay_ms=0,
            min_step_delay_ms=0,
            min_navigation_delay_ms=0,
            ready_timeout_ms=100,
            ready_poll_ms=10,
        ),
        transport=TransportSettings(max_attempts=3, initial_delay_ms=0, max_delay_ms=0),
        storage=StorageSettings(backend="memory"),
    )


@pytest.fixture
def pages():
    """URL to markup map served by the memory surface."""
    return {SIGNUP_URL: SIGNUP_PAGE, DONE_URL: DONE_PAGE}


@pytest.fixture
def surface(pages):
    """Provide an in-memory surface with the test pages."""
    from flow_replay.browsers import MemorySurface

    return MemorySurface(pages)


@pytest.fixture
def store():
    """Provide an empty in-memory flow store."""
    from flow_replay.storage import MemoryFlowStore

    return MemoryFlowStore()


@pytest.fixture
def document():
    """Provide the parsed signup page."""
    from flow_replay.browsers.memory import parse_html

    return parse_html(SIGNUP_PAGE, url=SIGNUP_URL)


@pytest.fixture
def resolver():
    """Provide a resolver that tries once without waiting."""
    from flow_replay.locator.element_resolver import ElementResolver

    return ElementResolver(max_attempts=1, interval_ms=0)


@pytest.fixture
def simulator():
    """Provide a simulator without settle or highlight delays."""
    from flow_replay.simulation.event_simulator import EventSimulator

    return EventSimulator(settle_delay_ms=0, highlight_duration_ms=0)
