"""
Recording Controller - Owns the single recording session.

A session is created by ``start`` and discarded by ``stop``. While it is
active, the capturer appends steps to it, completed navigations are
recorded as navigation steps, and the capturer follows the surface to
each new document. ``stop`` builds the Flow and hands it to the store.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from flow_replay.config.settings import RecorderSettings
from flow_replay.exceptions import SessionError
from flow_replay.interfaces.storage import IFlowStore
from flow_replay.interfaces.surface import ISurface
from flow_replay.locator.selector_generator import SelectorGenerator
from flow_replay.models.flow import Flow, RecordedStep
from flow_replay.models.state import RecordingState
from flow_replay.recorder.capturer import RecordingCapturer
from flow_replay.utils.ids import generate_id, now_ms

logger = logging.getLogger(__name__)


@dataclass
class RecordingSession:
    """Mutable state of one recording, discarded when it ends."""
    state: RecordingState
    capturer: RecordingCapturer
    unsubscribe: Callable[[], None]
    last_url: str = ""


class RecordingController:
    """
    Starts and stops recordings on a surface.

    Args:
        surface: Surface whose documents are captured
        store: Store receiving finished flows
        generator: Selector generator for captured targets
        settings: Recorder timing settings
        clock: Millisecond clock, replaceable in tests

    Example:
        >>> controller = RecordingController(surface, store)
        >>> await controller.start()
        >>> # user interacts with the page...
        >>> flow = await controller.stop()
    """

    def __init__(
        self,
        surface: ISurface,
        store: IFlowStore,
        generator: Optional[SelectorGenerator] = None,
        settings: Optional[RecorderSettings] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.surface = surface
        self.store = store
        self.generator = generator or SelectorGenerator()
        self.settings = settings or RecorderSettings()
        self._clock = clock
        self._session: Optional[RecordingSession] = None

    @property
    def is_recording(self) -> bool:
        return self._session is not None

    @property
    def state(self) -> RecordingState:
        """Snapshot of the current recording state."""
        if self._session is None:
            return RecordingState()
        state = self._session.state
        return RecordingState(
            is_recording=state.is_recording,
            current_flow_id=state.current_flow_id,
            steps=list(state.steps),
            start_url=state.start_url,
        )

    async def start(self) -> RecordingState:
        """
        Begin recording on the surface's current document.

        A recording already in progress is discarded without saving.
        """
        if self._session is not None:
            logger.warning("Recording already in progress, starting over")
            await self.discard()

        document = await self.surface.get_active_surface()
        state = RecordingState(
            is_recording=True,
            current_flow_id=generate_id(),
            steps=[],
            start_url=self.surface.url,
        )
        capturer = RecordingCapturer(
            on_step=lambda step: self._append(session, step),
            generator=self.generator,
            input_debounce_ms=self.settings.input_debounce_ms,
            scroll_debounce_ms=self.settings.scroll_debounce_ms,
            scroll_threshold_px=self.settings.scroll_threshold_px,
            ui_marker_attribute=self.settings.ui_marker_attribute,
            clock=self._clock,
        )
        session = RecordingSession(
            state=state,
            capturer=capturer,
            unsubscribe=lambda: None,
            last_url=self.surface.url,
        )
        session.unsubscribe = self.surface.on_navigation_complete(
            lambda url: self._on_navigation(session, url)
        )
        self._session = session

        await capturer.start(document)
        logger.info(f"Recording started on {state.start_url}")
        return self.state

    async def stop(self, name: Optional[str] = None) -> Flow:
        """
        Finish the recording and save it.

        Args:
            name: Flow name; defaults to 'Recording <date time>'

        Returns:
            The saved Flow

        Raises:
            SessionError: If no recording is in progress
        """
        session = self._session
        if session is None:
            raise SessionError("No recording in progress")

        session.unsubscribe()
        await session.capturer.stop()
        self._session = None

        stamp = now_ms()
        flow = Flow(
            id=session.state.current_flow_id or generate_id(),
            name=name or f"Recording {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            steps=list(session.state.steps),
            created_at=stamp,
            updated_at=stamp,
            start_url=session.state.start_url or "",
        )
        await self.store.save_flow(flow)
        logger.info(f"Recording stopped: '{flow.name}' with {len(flow.steps)} steps")
        return flow

    def add_step(self, step: RecordedStep) -> bool:
        """Append a step reported from outside the capturer."""
        if self._session is None:
            return False
        self._append(self._session, step)
        return True

    def _append(self, session: RecordingSession, step: RecordedStep) -> None:
        if session is not self._session:
            logger.debug("Dropping step from a finished recording")
            return
        session.state.steps.append(step)
        logger.info(f"Recorded step {len(session.state.steps)}: {step.describe()}")

    async def _on_navigation(self, session: RecordingSession, url: str) -> None:
        if session is not self._session or url == session.last_url:
            return
        session.last_url = url
        await session.capturer.flush()

        steps = session.state.steps
        now = self._clock()
        delay = max(0, now - steps[-1].timestamp) if steps else 0
        step = RecordedStep.navigation(url, delay=delay, timestamp=now)
        self._append(session, step)
        session.capturer.note_external_step(now)

        document = await self.surface.get_active_surface()
        await session.capturer.attach(document)

    async def discard(self) -> None:
        """Drop the recording in progress without saving it."""
        session, self._session = self._session, None
        if session is None:
            return
        session.unsubscribe()
        await session.capturer.discard()
