"""
Page Agent - Executes requests inside one document.

The agent is what gets injected into a page: it answers PING, runs one
recorded step (EXECUTE_STEP) and highlights elements (HIGHLIGHT).
Locator and simulation failures never escape it; they come back as an
unsuccessful response.
"""

import asyncio
import logging
from typing import Optional

from flow_replay.interfaces.agent import AgentRequest, AgentResponse, MessageType
from flow_replay.interfaces.document import IDocument, IElement
from flow_replay.locator.element_resolver import ElementResolver, is_visible
from flow_replay.models.flow import ElementSelector, RecordedStep, StepType
from flow_replay.simulation.event_simulator import EventSimulator

logger = logging.getLogger(__name__)


class PageAgent:
    """
    Request handler bound to a single document.

    Args:
        document: The document this agent lives in
        resolver: Element resolver
        simulator: Event simulator
        visibility_timeout_ms: How long to wait for a resolved element to
            become visible before acting on it anyway
        visibility_poll_ms: Poll interval while waiting for visibility

    Example:
        >>> agent = PageAgent(document)
        >>> response = await agent.handle(
        ...     AgentRequest(MessageType.EXECUTE_STEP, {"step": step.to_dict()})
        ... )
    """

    def __init__(
        self,
        document: IDocument,
        resolver: Optional[ElementResolver] = None,
        simulator: Optional[EventSimulator] = None,
        visibility_timeout_ms: int = 2000,
        visibility_poll_ms: int = 100,
    ):
        self.document = document
        self.resolver = resolver or ElementResolver()
        self.simulator = simulator or EventSimulator()
        self.visibility_timeout_ms = visibility_timeout_ms
        self.visibility_poll_ms = visibility_poll_ms

    async def handle(self, request: AgentRequest) -> AgentResponse:
        """Answer one request; unexpected errors become failed responses."""
        try:
            if request.type == MessageType.PING:
                return AgentResponse(
                    success=True,
                    data={
                        "loaded": True,
                        "url": self.document.url,
                        "readyState": await self.document.ready_state(),
                    },
                )

            if request.type == MessageType.EXECUTE_STEP:
                step = RecordedStep.from_dict(request.payload["step"])
                highlight = bool(request.payload.get("highlight", True))
                success = await self.execute_step(step, highlight=highlight)
                return AgentResponse(
                    success=success,
                    error=None if success else f"Step failed: {step.describe()}",
                )

            if request.type == MessageType.HIGHLIGHT:
                selector = ElementSelector.from_dict(request.payload["target"])
                result = await self.resolver.resolve_once(self.document, selector)
                if not result.is_resolved:
                    return AgentResponse(success=False, error="Element not found")
                await self.simulator.highlight(result.element)
                return AgentResponse(success=True)

            logger.warning(f"Page agent received unknown message type: {request.type}")
            return AgentResponse(success=False, error="Unknown message type")

        except Exception as e:
            logger.error(f"Error handling {request.type}: {e}")
            return AgentResponse(success=False, error=str(e))

    async def execute_step(self, step: RecordedStep, highlight: bool = True) -> bool:
        """
        Run a single step against the document.

        Args:
            step: The step to run
            highlight: Outline the target element before acting

        Returns:
            True on success, False when the element was not found or the
            simulation failed
        """
        if step.type == StepType.WAIT:
            return await self.simulator.wait(step.delay)

        if step.type == StepType.SCROLL:
            return await self.simulator.scroll(self.document, step.scroll_position)

        if step.type == StepType.NAVIGATION:
            logger.error("Navigation steps are carried out by the playback controller")
            return False

        result = await self.resolver.resolve(self.document, step.target)
        if not result.is_resolved:
            logger.error(f"Element not found for step: {step.describe()}")
            return False

        logger.debug(
            f"Resolved target of '{step.describe()}' via {result.strategy.value} "
            f"after {result.attempts} attempt(s)"
        )
        await self._wait_until_visible(result.element)
        return await self.simulator.perform(self.document, result.element, step, highlight=highlight)

    async def _wait_until_visible(self, element: IElement) -> bool:
        waited = 0
        while True:
            if await is_visible(element):
                return True
            if waited >= self.visibility_timeout_ms:
                logger.warning("Element may not be visible, acting on it anyway")
                return False
            await asyncio.sleep(self.visibility_poll_ms / 1000)
            waited += self.visibility_poll_ms
