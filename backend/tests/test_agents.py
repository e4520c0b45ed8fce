"""
Unit tests for the agent system.
Tests the roster, triage decision parsing, and SupportBackend.
"""

import pytest
from pydantic import TypeAdapter
from unittest.mock import AsyncMock, MagicMock

from expertdesk.agents.backend import SupportBackend, SEARCH_REMINDER
from expertdesk.agents.roster import (
    SPECIALIST_AGENTS,
    TRIAGE_AGENT,
    all_agents,
    resolve_specialist,
)
from expertdesk.agents.triage import (
    FALLBACK_CLARIFICATION,
    build_triage_prompt,
    parse_handoff_decision,
)
from expertdesk.core.rate_limit import RateLimitClassifier, RateLimitError
from expertdesk.llm.base import LLMProvider, LLMResponse, LLMError
from expertdesk.models import Agent, Attachment, Message
from expertdesk.models.rate_limit import LimitType


def _provider(content="", sources=None):
    provider = MagicMock(spec=LLMProvider)
    provider.chat_completion = AsyncMock(
        return_value=LLMResponse(content=content, sources=sources or [])
    )
    return provider


class TestRoster:

    def test_team(self):
        assert [a.id for a in SPECIALIST_AGENTS] == ["agent-1", "agent-2", "agent-3"]
        assert [a.name for a in SPECIALIST_AGENTS] == ["Nina", "Jake", "Alex"]
        assert TRIAGE_AGENT.is_triage
        assert not any(a.is_triage for a in SPECIALIST_AGENTS)
        assert all_agents()[-1] is TRIAGE_AGENT

    def test_resolve_specialist(self):
        assert resolve_specialist("agent-2").name == "Jake"
        assert resolve_specialist("agent-9") is None
        assert resolve_specialist(None) is None
        assert resolve_specialist("triage") is None

    def test_agent_union_discriminates_on_kind(self):
        adapter = TypeAdapter(Agent)
        agent = adapter.validate_python(TRIAGE_AGENT.model_dump())
        assert agent.is_triage
        agent = adapter.validate_python(SPECIALIST_AGENTS[0].model_dump())
        assert agent.kind == "specialist"


class TestTriageParsing:

    def test_handoff_decision(self):
        decision = parse_handoff_decision(
            '{"handoff": true, "agentId": "agent-1", "reason": "billing", "message": "Connecting you to Nina"}'
        )
        assert decision.handoff
        assert decision.agent_id == "agent-1"
        assert decision.reason == "billing"
        assert decision.message == "Connecting you to Nina"

    def test_direct_answer(self):
        decision = parse_handoff_decision('{"handoff": false, "message": "Hi! How can I help?"}')
        assert not decision.handoff
        assert decision.message == "Hi! How can I help?"

    def test_code_fenced_json(self):
        decision = parse_handoff_decision('```json\n{"handoff": false, "message": "Hello"}\n```')
        assert decision.message == "Hello"

    @pytest.mark.parametrize("raw", ["Invalid JSON", "", "[1, 2]", '{"handoff": "maybe"}'])
    def test_malformed_output_falls_back(self, raw):
        decision = parse_handoff_decision(raw)
        assert not decision.handoff
        assert decision.message == FALLBACK_CLARIFICATION

    def test_prompt_lists_team(self):
        prompt = build_triage_prompt(TRIAGE_AGENT.persona, SPECIALIST_AGENTS)
        assert prompt.startswith(TRIAGE_AGENT.persona)
        for agent in SPECIALIST_AGENTS:
            assert f"**{agent.name}** (ID: {agent.id})" in prompt
        assert '"agentId": "agent-1"' in prompt


class TestSupportBackend:

    @pytest.mark.asyncio
    async def test_no_provider_placeholder(self):
        backend = SupportBackend()
        reply = await backend.send_message("Hello", agent=TRIAGE_AGENT)
        assert reply.text.startswith("[LLM not configured for Devin")
        assert reply.handoff is None

    @pytest.mark.asyncio
    async def test_triage_call(self):
        provider = _provider('{"handoff": true, "agentId": "agent-3", "message": "Connecting you to Alex"}')
        backend = SupportBackend(provider)

        reply = await backend.send_message("My token leaked", agent=TRIAGE_AGENT)

        assert reply.handoff.handoff
        assert reply.handoff.agent_id == "agent-3"
        assert reply.text == "Connecting you to Alex"
        kwargs = provider.chat_completion.call_args[1]
        assert kwargs["json_mode"] is True
        assert kwargs["temperature"] == 0.1
        messages = provider.chat_completion.call_args[0][0]
        assert messages[0].role == "system"
        assert "Your Team of Specialists" in messages[0].content
        assert messages[-1].content == "My token leaked"

    @pytest.mark.asyncio
    async def test_triage_malformed_reply(self):
        backend = SupportBackend(_provider("Invalid JSON"))
        reply = await backend.send_message("hm", agent=TRIAGE_AGENT)
        assert not reply.handoff.handoff
        assert reply.text == FALLBACK_CLARIFICATION

    @pytest.mark.asyncio
    async def test_history_capped_to_window(self):
        provider = _provider("Sure.")
        backend = SupportBackend(provider)
        history = [
            Message(role="user" if i % 2 == 0 else "model", content=f"turn {i}")
            for i in range(10)
        ]

        await backend.send_message("next", history, agent=SPECIALIST_AGENTS[1])

        messages = provider.chat_completion.call_args[0][0]
        assert len(messages) == 1 + 6 + 1
        assert [m.content for m in messages[1:7]] == [f"turn {i}" for i in range(4, 10)]
        assert messages[1].role == "user"
        assert messages[2].role == "assistant"

    @pytest.mark.asyncio
    async def test_specialist_call(self):
        provider = _provider("Use Settings > Billing.", sources=[
            {"title": "Billing", "uri": "https://docs.github.com/billing"},
            {"title": "Billing again", "uri": "https://docs.github.com/billing"},
            {"title": "", "uri": ""},
        ])
        backend = SupportBackend(provider)
        nina = SPECIALIST_AGENTS[0]

        reply = await backend.send_message("Where is billing?", agent=nina)

        assert reply.text == "Use Settings > Billing."
        assert reply.handoff is None
        assert [s.uri for s in reply.sources] == ["https://docs.github.com/billing"]
        kwargs = provider.chat_completion.call_args[1]
        assert kwargs["web_search"] is True
        messages = provider.chat_completion.call_args[0][0]
        assert "## CURRENT AGENT PERSONA: Nina" in messages[0].content
        assert messages[-1].content == "Where is billing?" + SEARCH_REMINDER

    @pytest.mark.asyncio
    async def test_attachments_sent_inline(self):
        provider = _provider("That is a 404 page.")
        backend = SupportBackend(provider)

        await backend.send_message(
            "What is this?",
            attachments=[Attachment(mime_type="image/png", data="aGVsbG8=")],
            agent=SPECIALIST_AGENTS[1],
        )

        last = provider.chat_completion.call_args[0][0][-1]
        assert last.content[0] == {"type": "inline_data", "media_type": "image/png", "data": "aGVsbG8="}
        assert last.content[-1]["type"] == "text"

    @pytest.mark.asyncio
    async def test_rate_limit_classified_on_free_tier(self):
        provider = _provider()
        provider.chat_completion.side_effect = LLMError(
            "Quota exceeded for requests per minute", status_code=429
        )
        backend = SupportBackend(provider, RateLimitClassifier(free_tier=True))

        with pytest.raises(RateLimitError) as exc_info:
            await backend.send_message("hi", agent=SPECIALIST_AGENTS[0])
        assert exc_info.value.state.limit_type == LimitType.PER_MINUTE_REQUESTS

    @pytest.mark.asyncio
    async def test_paid_key_failure_propagates_unclassified(self):
        provider = _provider()
        provider.chat_completion.side_effect = LLMError(
            "Quota exceeded for requests per minute", status_code=429
        )
        backend = SupportBackend(provider, RateLimitClassifier(free_tier=False))

        with pytest.raises(LLMError) as exc_info:
            await backend.send_message("hi", agent=SPECIALIST_AGENTS[0])
        assert not isinstance(exc_info.value, RateLimitError)
