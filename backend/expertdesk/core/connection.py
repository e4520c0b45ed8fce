"""
Connection Sequence - The timed handoff animation that gates binding a specialist.

Phases run in strict order with fixed dwell times:
    analyzing -> found -> connecting -> connected -> completion

The whole sequence is one asyncio task. Cancelling it is total: no phase
callback and no completion callback runs afterwards.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple

from ..models.agent import SpecialistAgent

logger = logging.getLogger(__name__)


class ConnectingPhase(str, Enum):
    ANALYZING = "analyzing"
    FOUND = "found"
    CONNECTING = "connecting"
    CONNECTED = "connected"


DEFAULT_DWELL = (1.2, 1.2, 1.2, 0.6)

PhaseCallback = Callable[[ConnectingPhase], None]
CompletionCallback = Callable[[SpecialistAgent], Awaitable[Any]]


class ConnectionSequence:
    """Runs the four connecting phases for one pending specialist."""

    def __init__(
        self,
        dwell_seconds: Tuple[float, float, float, float] = DEFAULT_DWELL,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if len(dwell_seconds) != len(ConnectingPhase):
            raise ValueError("dwell_seconds needs one entry per phase")
        self.dwell_seconds = tuple(dwell_seconds)
        self._sleep = sleep
        self.phase = ConnectingPhase.ANALYZING
        self.agent: Optional[SpecialistAgent] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(
        self,
        agent: Optional[SpecialistAgent],
        on_phase: Optional[PhaseCallback] = None,
        on_complete: Optional[CompletionCallback] = None,
    ) -> bool:
        """
        Begin the sequence for agent.

        Returns:
            False (and no side effects) when there is no agent to connect
        """
        self.cancel()
        if not agent:
            return False
        self.agent = agent
        self._task = asyncio.get_running_loop().create_task(
            self._run(agent, on_phase, on_complete)
        )
        return True

    def cancel(self) -> None:
        """Abort the running sequence and reset to analyzing."""
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            logger.info(f"Connecting sequence aborted for {self.agent.name if self.agent else 'unknown'}")
        self.phase = ConnectingPhase.ANALYZING
        self.agent = None

    async def wait(self) -> None:
        """Wait for the running sequence (including its completion callback)."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def _run(
        self,
        agent: SpecialistAgent,
        on_phase: Optional[PhaseCallback],
        on_complete: Optional[CompletionCallback],
    ) -> None:
        phases = list(ConnectingPhase)
        self.phase = phases[0]
        if on_phase:
            on_phase(self.phase)

        for index, dwell in enumerate(self.dwell_seconds):
            await self._sleep(dwell)
            if index + 1 < len(phases):
                self.phase = phases[index + 1]
                logger.debug(f"Connecting to {agent.name}: {self.phase.value}")
                if on_phase:
                    on_phase(self.phase)

        logger.info(f"Connecting sequence completed for {agent.name}")
        if on_complete:
            await on_complete(agent)
