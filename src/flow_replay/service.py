"""
Flow Replay Service - Message routing between the UI layer and the engine.

Wires one surface and one store to a RecordingController and a
PlaybackController, and answers ``{type, payload}`` messages with
``{success, data, error}`` responses.

Example:
    >>> service = FlowReplayService(surface, store)
    >>> await service.handle_message({"type": "START_RECORDING"})
    {'success': True, 'data': {...}}
"""

import logging
from typing import Any, Dict, Optional

from flow_replay.config import Settings, get_settings
from flow_replay.exceptions import FlowReplayError
from flow_replay.interfaces.agent import AgentRequest, AgentResponse, IAgentDispatcher, MessageType
from flow_replay.interfaces.storage import IFlowStore
from flow_replay.interfaces.surface import ISurface
from flow_replay.locator.element_resolver import ElementResolver
from flow_replay.locator.selector_generator import SelectorGenerator
from flow_replay.models.flow import RecordedStep
from flow_replay.playback.channel import LocalAgentDispatcher, send_with_retry
from flow_replay.playback.controller import PlaybackController
from flow_replay.recorder.session import RecordingController
from flow_replay.simulation.event_simulator import EventSimulator

logger = logging.getLogger(__name__)

# Wire keys of SET_PLAYBACK_OPTIONS payloads
_OPTION_KEYS = {
    "speed": "speed",
    "stepByStep": "step_by_step",
    "stopOnError": "stop_on_error",
    "highlightElements": "highlight_elements",
}


def _flow_id(payload: Any) -> str:
    """START_PLAYBACK carries the id bare or as ``{"flowId": ...}``."""
    if isinstance(payload, str):
        return payload
    return payload["flowId"]


class FlowReplayService:
    """
    Owns the recording and playback controllers of one surface.

    Args:
        surface: Surface recorded on and replayed against
        store: Flow store
        settings: Settings; defaults to the global settings
        dispatcher: Page agent dispatcher; defaults to a LocalAgentDispatcher
    """

    def __init__(
        self,
        surface: ISurface,
        store: IFlowStore,
        settings: Optional[Settings] = None,
        dispatcher: Optional[IAgentDispatcher] = None,
    ):
        self.surface = surface
        self.store = store
        self.settings = settings or get_settings()

        self.generator = SelectorGenerator(
            max_depth=self.settings.resolver.max_depth,
            max_text_length=self.settings.resolver.max_text_length,
        )
        self.resolver = ElementResolver(
            max_attempts=self.settings.resolver.max_attempts,
            interval_ms=self.settings.resolver.interval_ms,
        )
        self.simulator = EventSimulator(
            settle_delay_ms=self.settings.simulator.settle_delay_ms,
            highlight_duration_ms=self.settings.simulator.highlight_duration_ms,
            highlight_outline=self.settings.simulator.highlight_outline,
        )
        self.dispatcher = dispatcher or LocalAgentDispatcher(
            surface, resolver=self.resolver, simulator=self.simulator
        )

        self.recording = RecordingController(
            surface, store, generator=self.generator, settings=self.settings.recorder
        )
        self.playback = PlaybackController(
            surface,
            store,
            dispatcher=self.dispatcher,
            settings=self.settings.playback,
            transport=self.settings.transport,
        )

    async def handle_message(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """Answer a raw message dictionary."""
        try:
            request = AgentRequest.from_dict(message)
        except (KeyError, ValueError, TypeError):
            logger.warning(f"Unknown message: {message!r}")
            return AgentResponse(success=False, error="Unknown message type").to_dict()
        response = await self.handle(request)
        return response.to_dict()

    async def handle(self, request: AgentRequest) -> AgentResponse:
        """Route one request; library errors become failed responses."""
        logger.debug(f"Handling {request.type.value}")
        try:
            return await self._route(request)
        except FlowReplayError as e:
            logger.error(f"{request.type.value} failed: {e}")
            return AgentResponse(success=False, error=e.message)
        except (KeyError, ValueError, TypeError) as e:
            logger.error(f"{request.type.value} has an invalid payload: {e}")
            return AgentResponse(success=False, error=f"Invalid payload: {e}")

    async def _route(self, request: AgentRequest) -> AgentResponse:
        payload = request.payload
        kind = request.type
        if kind != MessageType.START_PLAYBACK and not isinstance(payload, dict):
            raise ValueError(f"expected an object, got {type(payload).__name__}")

        if kind == MessageType.PING:
            return AgentResponse(success=True, data={"loaded": True})

        if kind == MessageType.START_RECORDING:
            state = await self.recording.start()
            return AgentResponse(success=True, data=state.to_dict())

        if kind == MessageType.STOP_RECORDING:
            flow = await self.recording.stop(payload.get("name"))
            return AgentResponse(success=True, data={"flow": flow.to_dict()})

        if kind == MessageType.RECORD_STEP:
            added = self.recording.add_step(RecordedStep.from_dict(payload))
            return AgentResponse(success=added, error=None if added else "No recording in progress")

        if kind == MessageType.GET_STATE:
            return AgentResponse(
                success=True,
                data={
                    "recording": self.recording.state.to_dict(),
                    "playback": self.playback.state.to_dict(),
                },
            )

        if kind == MessageType.START_PLAYBACK:
            state = await self.playback.start(_flow_id(payload))
            return AgentResponse(success=True, data=state.to_dict())

        if kind == MessageType.STOP_PLAYBACK:
            self.playback.stop()
            return AgentResponse(success=True)

        if kind == MessageType.PAUSE_PLAYBACK:
            return AgentResponse(success=self.playback.pause())

        if kind == MessageType.RESUME_PLAYBACK:
            return AgentResponse(success=self.playback.resume())

        if kind == MessageType.ADVANCE_PLAYBACK:
            return AgentResponse(success=self.playback.advance())

        if kind == MessageType.SET_PLAYBACK_OPTIONS:
            changes = {
                _OPTION_KEYS[key]: value for key, value in payload.items() if key in _OPTION_KEYS
            }
            options = self.playback.set_options(**changes)
            return AgentResponse(success=True, data={"options": options.to_dict()})

        if kind in (MessageType.EXECUTE_STEP, MessageType.HIGHLIGHT):
            return await send_with_retry(self.dispatcher, request, self.playback.retry_config)

        return AgentResponse(success=False, error="Unknown message type")

    async def aclose(self) -> None:
        """Stop any playback, drop any recording and clear highlights."""
        self.playback.stop()
        await self.playback.scheduler.join()
        if self.recording.is_recording:
            await self.recording.discard()
        await self.simulator.aclose()
