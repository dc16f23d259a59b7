"""
Agent Channel - Delivering requests to the agent of the active page.

The LocalAgentDispatcher injects a PageAgent into whatever document the
surface currently shows, replacing it after every navigation. A page
that is still loading has no agent yet, which is reported as a transient
AgentUnavailableError; ``send_with_retry`` retries those with backoff
and fails fast once the destination is known to be closed.
"""

import logging
from typing import Optional

from flow_replay.config.settings import TransportSettings
from flow_replay.exceptions import AgentUnavailableError, DestinationClosedError, TransportError
from flow_replay.interfaces.agent import AgentRequest, AgentResponse, IAgentDispatcher
from flow_replay.interfaces.surface import ISurface
from flow_replay.locator.element_resolver import ElementResolver
from flow_replay.playback.agent import PageAgent
from flow_replay.simulation.event_simulator import EventSimulator
from flow_replay.utils.retry import RetryConfig, retry_async

logger = logging.getLogger(__name__)


class LocalAgentDispatcher(IAgentDispatcher):
    """
    Dispatcher running the page agent in-process against the surface.

    Args:
        surface: Surface whose current document receives requests
        resolver: Resolver shared by injected agents
        simulator: Simulator shared by injected agents
        visibility_timeout_ms: Passed to injected agents
    """

    def __init__(
        self,
        surface: ISurface,
        resolver: Optional[ElementResolver] = None,
        simulator: Optional[EventSimulator] = None,
        visibility_timeout_ms: int = 2000,
    ):
        self.surface = surface
        self.resolver = resolver or ElementResolver()
        self.simulator = simulator or EventSimulator()
        self.visibility_timeout_ms = visibility_timeout_ms
        self._agent: Optional[PageAgent] = None

    @property
    def agent(self) -> Optional[PageAgent]:
        return self._agent

    async def send(self, request: AgentRequest) -> AgentResponse:
        if self.surface.is_closed:
            raise DestinationClosedError(
                "Surface is closed",
                request_type=request.type.value,
            )

        document = await self.surface.get_active_surface()
        state = await document.ready_state()
        if state == "loading":
            raise AgentUnavailableError(
                "Page agent is not ready",
                request_type=request.type.value,
                details={"url": document.url, "readyState": state},
            )

        if self._agent is None or self._agent.document is not document:
            self._agent = PageAgent(
                document,
                resolver=self.resolver,
                simulator=self.simulator,
                visibility_timeout_ms=self.visibility_timeout_ms,
            )
            logger.debug(f"Injected page agent into {document.url}")

        return await self._agent.handle(request)


def retry_config_from_settings(settings: Optional[TransportSettings] = None) -> RetryConfig:
    settings = settings or TransportSettings()
    return RetryConfig(
        max_attempts=settings.max_attempts,
        initial_delay_ms=settings.initial_delay_ms,
        max_delay_ms=settings.max_delay_ms,
        backoff_multiplier=settings.backoff_multiplier,
        retry_on=(TransportError,),
        give_up_on=(DestinationClosedError,),
    )


async def send_with_retry(
    dispatcher: IAgentDispatcher,
    request: AgentRequest,
    config: Optional[RetryConfig] = None,
) -> AgentResponse:
    """
    Send a request, retrying transient transport failures.

    Args:
        dispatcher: Dispatcher to send through
        request: The request
        config: Retry policy; defaults to 3 attempts from 1000 ms

    Returns:
        The agent's response

    Raises:
        DestinationClosedError: Immediately, when the destination is closed
        TransportError: When every attempt failed
    """
    return await retry_async(dispatcher.send, config or retry_config_from_settings(), request)
