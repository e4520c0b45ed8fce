"""
Idle Supervisor - Tracks user inactivity for the live specialist conversation.

States:
    inactive -> running -> warning -> expired

The supervisor polls on an asyncio task. Each poll calls tick(), which
compares the time since the last recorded activity against the warning
and timeout thresholds. The warning callback fires once per cycle; the
timeout callback fires once and stops polling until reset_timer() or a
fresh enable().
"""

import asyncio
import logging
import math
import time
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class IdleState(str, Enum):
    INACTIVE = "inactive"
    RUNNING = "running"
    WARNING = "warning"
    EXPIRED = "expired"


class IdleSupervisor:
    """Warns, then times out, a conversation nobody is typing in."""

    def __init__(
        self,
        warning_seconds: float = 180.0,
        timeout_seconds: float = 300.0,
        poll_interval: float = 1.0,
        on_warning: Optional[Callable[[], None]] = None,
        on_timeout: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if warning_seconds > timeout_seconds:
            raise ValueError("warning_seconds must not exceed timeout_seconds")
        self.warning_seconds = warning_seconds
        self.timeout_seconds = timeout_seconds
        self.poll_interval = poll_interval
        self.on_warning = on_warning
        self.on_timeout = on_timeout
        self._clock = clock

        self.state = IdleState.INACTIVE
        self._last_activity = clock()
        self._warning_shown = False
        self._time_remaining = timeout_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self.state != IdleState.INACTIVE

    @property
    def show_warning(self) -> bool:
        return self.state == IdleState.WARNING

    @property
    def time_remaining(self) -> float:
        """Seconds left at the last evaluation."""
        return self._time_remaining

    def enable(self) -> None:
        """Start a fresh cycle. No-op when already enabled."""
        if self.enabled:
            return
        self._reset_fields()
        self.state = IdleState.RUNNING
        self._start_polling()
        logger.debug("Idle supervisor enabled")

    def disable(self) -> None:
        """Stop polling without firing the timeout callback."""
        if not self.enabled:
            return
        self.state = IdleState.INACTIVE
        self._stop_polling()
        logger.debug("Idle supervisor disabled")

    def set_enabled(self, enabled: bool) -> None:
        if enabled:
            self.enable()
        else:
            self.disable()

    def reset_timer(self) -> None:
        """Record activity: zero elapsed time and clear the warning."""
        self._reset_fields()
        if self.state in (IdleState.WARNING, IdleState.EXPIRED):
            restart = self.state == IdleState.EXPIRED
            self.state = IdleState.RUNNING
            if restart:
                self._start_polling()

    def tick(self) -> None:
        """Evaluate elapsed inactivity once."""
        if self.state not in (IdleState.RUNNING, IdleState.WARNING):
            return

        elapsed = self._clock() - self._last_activity
        self._time_remaining = max(0.0, self.timeout_seconds - elapsed)

        if elapsed >= self.warning_seconds and not self._warning_shown:
            self._warning_shown = True
            self.state = IdleState.WARNING
            logger.info(f"Idle warning: {self.format_time_remaining()} remaining")
            if self.on_warning:
                self.on_warning()

        if elapsed >= self.timeout_seconds and self.state != IdleState.EXPIRED:
            self.state = IdleState.EXPIRED
            logger.info(f"Idle timeout after {elapsed:.0f}s of inactivity")
            if self.on_timeout:
                self.on_timeout()

    def format_time_remaining(self) -> str:
        """Countdown as M:SS, seconds rounded up."""
        seconds = math.ceil(self._time_remaining)
        return f"{seconds // 60}:{seconds % 60:02d}"

    def _reset_fields(self) -> None:
        self._last_activity = self._clock()
        self._warning_shown = False
        self._time_remaining = self.timeout_seconds

    def _start_polling(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._poll())

    def _stop_polling(self) -> None:
        task, self._task = self._task, None
        # A callback fired from inside the poller may disable us; the loop exits on its own
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _poll(self) -> None:
        while self.state in (IdleState.RUNNING, IdleState.WARNING):
            await asyncio.sleep(self.poll_interval)
            self.tick()
