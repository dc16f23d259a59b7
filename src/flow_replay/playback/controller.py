"""
Playback Controller - Replays a flow step by step.

The controller is a state machine over one explicit PlaybackSession:

    Idle -> Playing -> (Paused <-> Playing) -> Idle
    Playing -> Navigating -> Playing (while a page loads)

Every step is driven by the single StepScheduler. A step runs to
completion before the next one is scheduled; ``stop`` and ``pause``
take effect at the next scheduling boundary and never interrupt a step
that is already running.

Example:
    >>> controller = PlaybackController(surface, store)
    >>> await controller.start(flow.id)
    >>> await controller.wait_until_idle()
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from flow_replay.config.settings import PlaybackSettings, TransportSettings
from flow_replay.exceptions import (
    DestinationClosedError,
    FlowNotFoundError,
    NavigationTimeoutError,
    PlaybackError,
    TransportError,
)
from flow_replay.interfaces.agent import AgentRequest, IAgentDispatcher, MessageType
from flow_replay.interfaces.storage import IFlowStore
from flow_replay.interfaces.surface import ISurface
from flow_replay.models.flow import Flow, RecordedStep, StepType
from flow_replay.models.state import PlaybackOptions, PlaybackState
from flow_replay.playback.channel import (
    LocalAgentDispatcher,
    retry_config_from_settings,
    send_with_retry,
)
from flow_replay.playback.scheduler import StepScheduler

logger = logging.getLogger(__name__)


class PlaybackEvent(str, Enum):
    """Notifications emitted to playback listeners."""
    STARTED = "started"
    STEP_STARTED = "step_started"
    STEP_SUCCEEDED = "step_succeeded"
    STEP_FAILED = "step_failed"
    AWAITING_ADVANCE = "awaiting_advance"
    PAUSED = "paused"
    RESUMED = "resumed"
    COMPLETED = "completed"
    STOPPED = "stopped"
    ABORTED = "aborted"


PlaybackListener = Callable[[PlaybackEvent, Dict[str, Any]], Any]


@dataclass
class StepResult:
    """Outcome of one executed step."""
    index: int
    step: RecordedStep
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "stepId": self.step.id,
            "type": self.step.type.value,
            "success": self.success,
            "error": self.error,
        }


@dataclass
class PlaybackSession:
    """Mutable state of one playback, discarded when it ends."""
    flow: Flow
    state: PlaybackState
    results: List[StepResult] = field(default_factory=list)
    awaiting_advance: bool = False
    busy: bool = False
    outcome: Optional[PlaybackEvent] = None
    error: Optional[str] = None


class PlaybackController:
    """
    Replays flows against a surface.

    Args:
        surface: Surface to navigate and act on
        store: Store the flows are read from
        dispatcher: Delivers requests to the page agent; defaults to a
            LocalAgentDispatcher on the surface
        settings: Pacing and default options
        transport: Retry policy for agent requests
        options: Initial playback options; defaults from settings
    """

    def __init__(
        self,
        surface: ISurface,
        store: IFlowStore,
        dispatcher: Optional[IAgentDispatcher] = None,
        settings: Optional[PlaybackSettings] = None,
        transport: Optional[TransportSettings] = None,
        options: Optional[PlaybackOptions] = None,
    ):
        self.surface = surface
        self.store = store
        self.dispatcher = dispatcher or LocalAgentDispatcher(surface)
        self.settings = settings or PlaybackSettings()
        self.retry_config = retry_config_from_settings(transport)
        self.scheduler = StepScheduler()

        self._options = options or PlaybackOptions.from_settings(self.settings)
        self._session: Optional[PlaybackSession] = None
        self._last_session: Optional[PlaybackSession] = None
        self._listeners: List[PlaybackListener] = []
        self._idle = asyncio.Event()
        self._idle.set()

    # ==================== State ====================

    @property
    def options(self) -> PlaybackOptions:
        return self._options

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def state(self) -> PlaybackState:
        """Snapshot of the current playback state."""
        session = self._session
        if session is None:
            return PlaybackState(options=self._options)
        state = session.state
        return PlaybackState(
            is_playing=state.is_playing,
            is_paused=state.is_paused,
            is_navigating=state.is_navigating,
            current_flow_id=state.current_flow_id,
            current_step_index=state.current_step_index,
            options=state.options,
        )

    @property
    def awaiting_advance(self) -> bool:
        return self._session is not None and self._session.awaiting_advance

    @property
    def last_session(self) -> Optional[PlaybackSession]:
        """The most recently finished session, with its step results."""
        return self._last_session

    def on_event(self, listener: PlaybackListener) -> None:
        """Register a callback for playback events."""
        self._listeners.append(listener)

    async def wait_until_idle(self, timeout: Optional[float] = None) -> None:
        """Wait for the current playback to end."""
        await asyncio.wait_for(self._idle.wait(), timeout)

    def set_options(self, **changes: Any) -> PlaybackOptions:
        """
        Update options; the running session picks them up immediately.

        Args:
            **changes: speed, step_by_step, stop_on_error, highlight_elements

        Returns:
            The updated options
        """
        self._options = self._options.merged(**changes)
        session = self._session
        if session is not None:
            session.state.options = self._options
            if session.awaiting_advance and not self._options.step_by_step:
                session.awaiting_advance = False
                self.scheduler.schedule(0, self.execute_next)
        logger.debug(f"Playback options: {self._options.to_dict()}")
        return self._options

    # ==================== Transitions ====================

    async def start(self, flow_id: str) -> PlaybackState:
        """
        Start replaying a flow from its first step.

        The surface is navigated to the flow's start URL and the first
        step is scheduled once the page answers.

        Raises:
            FlowNotFoundError: If the store has no flow with this id
        """
        flow = await self.store.get_flow(flow_id)
        if flow is None:
            raise FlowNotFoundError(f"Flow not found: {flow_id}", flow_id=flow_id)

        if self._session is not None:
            logger.warning("Playback already running, starting over")
            self._finish(self._session, PlaybackEvent.STOPPED)

        session = PlaybackSession(
            flow=flow,
            state=PlaybackState(
                is_playing=True,
                current_flow_id=flow.id,
                current_step_index=0,
                options=self._options,
            ),
        )
        self._session = session
        self._idle.clear()
        logger.info(f"Starting playback of '{flow.name}' ({len(flow.steps)} steps)")
        self._emit(PlaybackEvent.STARTED, flow_id=flow.id, total=len(flow.steps))

        try:
            await self._navigate(session, flow.start_url)
        except (PlaybackError, TransportError) as e:
            self._abort(session, e)
            return self.state

        if session is self._session:
            self._schedule_next(session, self.settings.start_delay_ms)
        return self.state

    async def execute_next(self) -> None:
        """Run the step at the current index, then schedule the next one."""
        session = self._session
        if session is None or session.busy:
            return
        state = session.state
        if not state.is_playing or state.is_paused:
            return

        steps = session.flow.steps
        index = state.current_step_index
        if index >= len(steps):
            logger.info("Playback complete")
            self._finish(session, PlaybackEvent.COMPLETED)
            return

        step = steps[index]
        logger.info(f"Executing step {index + 1}/{len(steps)}: {step.describe()}")
        self._emit(PlaybackEvent.STEP_STARTED, index=index, step=step)

        session.busy = True
        try:
            if step.type == StepType.NAVIGATION and step.url:
                await self._navigate(session, step.url)
                success, error = True, None
                floor_ms = self.settings.min_navigation_delay_ms
            else:
                success, error = await self._execute_step(step, state.options)
                floor_ms = self.settings.min_step_delay_ms
        except (PlaybackError, TransportError) as e:
            self._abort(session, e)
            return
        finally:
            session.busy = False

        if session is not self._session:
            # Stopped or replaced while the step was running
            return

        session.results.append(StepResult(index=index, step=step, success=success, error=error))
        if success:
            self._emit(PlaybackEvent.STEP_SUCCEEDED, index=index, step=step)
        else:
            logger.error(f"Step {index + 1} failed: {error}")
            self._emit(PlaybackEvent.STEP_FAILED, index=index, step=step, error=error)
            if state.options.stop_on_error:
                session.error = error
                self._finish(session, PlaybackEvent.STOPPED)
                return

        state.current_step_index += 1
        next_step = steps[state.current_step_index] if state.current_step_index < len(steps) else None
        self._schedule_next(session, self.compute_delay(next_step, state.options.speed, floor_ms))

    def pause(self) -> bool:
        session = self._session
        if session is None or session.state.is_paused:
            return False
        session.state.is_paused = True
        self.scheduler.cancel()
        logger.info("Playback paused")
        self._emit(PlaybackEvent.PAUSED, index=session.state.current_step_index)
        return True

    def resume(self) -> bool:
        session = self._session
        if session is None or not session.state.is_paused:
            return False
        session.state.is_paused = False
        logger.info("Playback resumed")
        self._emit(PlaybackEvent.RESUMED, index=session.state.current_step_index)
        if not session.state.is_navigating:
            self._schedule_next(session, 0)
        return True

    def advance(self) -> bool:
        """Release the next step when playing step by step."""
        session = self._session
        if session is None or not session.awaiting_advance:
            return False
        session.awaiting_advance = False
        self.scheduler.schedule(0, self.execute_next)
        return True

    def stop(self) -> bool:
        """Force the Idle state, discarding the remaining steps."""
        session = self._session
        if session is None:
            return False
        logger.info("Playback stopped")
        self._finish(session, PlaybackEvent.STOPPED)
        return True

    # ==================== Pacing ====================

    def compute_delay(
        self,
        next_step: Optional[RecordedStep],
        speed: float,
        floor_ms: Optional[int] = None,
    ) -> float:
        """
        Delay before the next step: its recorded delay scaled by speed.

        A step recorded without a delay uses the default step delay. The
        result never drops below the floor.
        """
        recorded = next_step.delay if next_step is not None and next_step.delay else 0
        if not recorded:
            recorded = self.settings.default_step_delay_ms
        floor = self.settings.min_step_delay_ms if floor_ms is None else floor_ms
        return max(recorded / speed, floor)

    def _schedule_next(self, session: PlaybackSession, delay_ms: float) -> None:
        if session is not self._session:
            return
        if session.state.options.step_by_step:
            session.awaiting_advance = True
            self._emit(PlaybackEvent.AWAITING_ADVANCE, index=session.state.current_step_index)
            return
        self.scheduler.schedule(delay_ms, self.execute_next)

    # ==================== Page interaction ====================

    async def _execute_step(self, step: RecordedStep, options: PlaybackOptions):
        request = AgentRequest(
            MessageType.EXECUTE_STEP,
            {"step": step.to_dict(), "highlight": options.highlight_elements},
        )
        try:
            response = await send_with_retry(self.dispatcher, request, self.retry_config)
        except DestinationClosedError:
            raise
        except TransportError as e:
            raise TransportError(
                f"Could not deliver step after {self.retry_config.max_attempts} attempts",
                request_type=request.type.value,
                details={"cause": str(e)},
            ) from e
        return response.success, response.error

    async def _navigate(self, session: PlaybackSession, url: str) -> None:
        session.state.is_navigating = True
        try:
            if url:
                logger.info(f"Navigating to {url}")
                await self.surface.navigate(url)
            await self.wait_for_ready()
        finally:
            session.state.is_navigating = False

    async def wait_for_ready(self) -> None:
        """
        Poll the page agent until it answers.

        Raises:
            NavigationTimeoutError: If the page is not ready within ready_timeout_ms
            DestinationClosedError: If the surface was closed
        """
        loop = asyncio.get_running_loop()
        timeout_ms = self.settings.ready_timeout_ms
        deadline = loop.time() + timeout_ms / 1000

        while True:
            try:
                response = await self.dispatcher.send(AgentRequest(MessageType.PING))
                if response.success:
                    return
            except DestinationClosedError:
                raise
            except TransportError as e:
                logger.debug(f"Waiting for page ready: {e}")

            if loop.time() >= deadline:
                raise NavigationTimeoutError(
                    f"Page not ready after {timeout_ms}ms",
                    url=self.surface.url,
                    timeout_ms=timeout_ms,
                )
            await asyncio.sleep(self.settings.ready_poll_ms / 1000)

    # ==================== Session end ====================

    def _abort(self, session: PlaybackSession, error: Exception) -> None:
        if session is not self._session:
            return
        logger.error(f"Playback aborted: {error}")
        session.error = str(error)
        self._finish(session, PlaybackEvent.ABORTED)

    def _finish(self, session: PlaybackSession, outcome: PlaybackEvent) -> None:
        if session is not self._session:
            return
        self.scheduler.cancel()
        session.state.is_playing = False
        session.state.is_paused = False
        session.awaiting_advance = False
        session.outcome = outcome
        self._session = None
        self._last_session = session
        self._idle.set()
        self._emit(
            outcome,
            flow_id=session.flow.id,
            executed=len(session.results),
            failed=sum(1 for r in session.results if not r.success),
            error=session.error,
        )

    def _emit(self, event: PlaybackEvent, **data: Any) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event, data)
                if inspect.isawaitable(result):
                    asyncio.ensure_future(result)
            except Exception as e:
                logger.error(f"Playback listener failed on {event.value}: {e}")
