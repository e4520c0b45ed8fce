"""
Tests for the connecting sequence that gates specialist binding.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock

from expertdesk.agents.roster import SPECIALIST_AGENTS
from expertdesk.core.connection import ConnectionSequence, ConnectingPhase

NINA = SPECIALIST_AGENTS[0]


class TestConnectionSequence:

    @pytest.mark.asyncio
    async def test_phases_in_order_then_completion(self):
        slept = []

        async def fake_sleep(seconds):
            slept.append(seconds)

        phases = []
        on_complete = AsyncMock()
        sequence = ConnectionSequence(sleep=fake_sleep)

        assert sequence.start(NINA, on_phase=phases.append, on_complete=on_complete)
        assert sequence.is_running
        await sequence.wait()

        assert phases == [
            ConnectingPhase.ANALYZING,
            ConnectingPhase.FOUND,
            ConnectingPhase.CONNECTING,
            ConnectingPhase.CONNECTED,
        ]
        assert slept == [1.2, 1.2, 1.2, 0.6]
        assert sum(slept) == pytest.approx(4.2)
        on_complete.assert_awaited_once_with(NINA)
        assert not sequence.is_running

    @pytest.mark.asyncio
    async def test_cancel_suppresses_completion(self):
        phases = []
        on_complete = AsyncMock()
        sequence = ConnectionSequence(dwell_seconds=(0.01, 0.5, 0.5, 0.5))

        sequence.start(NINA, on_phase=phases.append, on_complete=on_complete)
        await asyncio.sleep(0.1)
        assert sequence.phase == ConnectingPhase.FOUND

        sequence.cancel()
        await asyncio.sleep(0.01)

        on_complete.assert_not_called()
        assert ConnectingPhase.CONNECTED not in phases
        assert sequence.phase == ConnectingPhase.ANALYZING
        assert sequence.agent is None
        assert not sequence.is_running

    @pytest.mark.asyncio
    async def test_start_without_agent(self):
        sequence = ConnectionSequence()
        assert sequence.start(None) is False
        assert not sequence.is_running
        assert sequence.phase == ConnectingPhase.ANALYZING
        await sequence.wait()

    @pytest.mark.asyncio
    async def test_restart_cancels_previous_run(self):
        on_complete = AsyncMock()
        sequence = ConnectionSequence(dwell_seconds=(0.01, 0.01, 0.01, 0.01))

        sequence.start(NINA, on_complete=on_complete)
        sequence.start(SPECIALIST_AGENTS[1], on_complete=on_complete)
        await sequence.wait()

        on_complete.assert_awaited_once_with(SPECIALIST_AGENTS[1])

    def test_dwell_needs_four_entries(self):
        with pytest.raises(ValueError):
            ConnectionSequence(dwell_seconds=(1.0, 1.0))
