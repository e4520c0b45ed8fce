"""
Support Backend - The LLM collaborator behind the conversation orchestrator.

Builds the triage or specialist prompt, sends the capped history plus the
current query, and turns the provider's reply into a BackendReply.
"""

import logging
from typing import List, Optional, Sequence

from ..core.rate_limit import RateLimitClassifier, RateLimitError
from ..llm.base import LLMProvider, LLMMessage, LLMError
from ..models.agent import AgentProfile
from ..models.message import Attachment, BackendReply, Message, Source
from .roster import SPECIALIST_AGENTS
from .triage import build_triage_prompt, parse_handoff_decision

logger = logging.getLogger(__name__)

BASE_SYSTEM_INSTRUCTION = """## System Persona and Role Definition
**Role:** GitHub Expert Support Bot
**Goal:** Answer user queries about GitHub features, workflows, and APIs using official documentation.
**Directive:** Act as a retrieval-augmented agent. Search docs.github.com for answers.

## Instructions
1. **Mandatory Web Search:** Search 'site:docs.github.com <query>' first.
2. **Citation:** Include inline citations [Source: url].
3. **No Guessing:** If the answer is not in the docs, say so clearly.
4. **Image Analysis:** Analyze provided screenshots for errors or code.
5. **Efficiency:** Do NOT ask follow-up questions unless the request is completely ambiguous or missing critical information. If you can make a reasonable assumption or give a general guide, do so immediately.

## Formatting
Use Markdown. Code blocks must have language tags.
"""

SEARCH_REMINDER = "\n\n(System: Remember to search docs.github.com)"
TRIAGE_PLACEHOLDER = "Processing..."


class SupportBackend:
    """
    Backend collaborator: send_message(query, history, attachments, agent).
    Works without an LLM provider by returning a placeholder reply.
    """

    def __init__(
        self,
        llm_provider: Optional[LLMProvider] = None,
        classifier: Optional[RateLimitClassifier] = None,
        history_window: int = 6,
    ):
        """
        Initialize backend.

        Args:
            llm_provider: Configured provider, or None when no API key is set
            classifier: Rate limit classifier applied to provider failures
            history_window: Number of most recent messages sent as history
        """
        self._llm_provider = llm_provider
        self.classifier = classifier or RateLimitClassifier()
        self.history_window = history_window

    def _build_messages(
        self,
        system_prompt: str,
        query: str,
        history: Sequence[Message],
        attachments: Sequence[Attachment],
    ) -> List[LLMMessage]:
        recent = list(history)[-self.history_window:] if self.history_window > 0 else []
        llm_messages = [LLMMessage.text("system", system_prompt)]
        for msg in recent:
            role = "assistant" if msg.role == "model" else "user"
            llm_messages.append(LLMMessage.text(role, msg.content))

        if attachments:
            llm_messages.append(LLMMessage.multimodal(
                "user", query,
                inline_files=[{"data": a.data, "media_type": a.mime_type} for a in attachments],
            ))
        else:
            llm_messages.append(LLMMessage.text("user", query))
        return llm_messages

    async def send_message(
        self,
        query: str,
        history: Sequence[Message] = (),
        attachments: Sequence[Attachment] = (),
        agent: Optional[AgentProfile] = None,
    ) -> BackendReply:
        """
        Send one user turn to the backend.

        Returns:
            BackendReply; for the triage agent it carries the parsed handoff decision

        Raises:
            RateLimitError: the failure was classified as a rate limit
            LLMError: any other provider failure
        """
        if self._llm_provider is None:
            name = agent.name if agent else "assistant"
            return BackendReply(
                text=(
                    f"[LLM not configured for {name}. "
                    f"Set LLM_API_KEY and LLM_PROVIDER in environment to enable AI responses.]"
                )
            )

        is_triage = agent is not None and agent.is_triage
        try:
            if is_triage:
                return await self._send_triage(query, history, attachments, agent)
            return await self._send_specialist(query, history, attachments, agent)
        except LLMError as e:
            state = self.classifier.classify(e)
            if state is not None:
                raise RateLimitError(state, cause=e) from e
            raise

    async def _send_triage(self, query, history, attachments, agent) -> BackendReply:
        system_prompt = build_triage_prompt(agent.persona, SPECIALIST_AGENTS)
        response = await self._llm_provider.chat_completion(
            self._build_messages(system_prompt, query, history, attachments),
            temperature=0.1,
            json_mode=True,
        )
        decision = parse_handoff_decision(response.content)
        return BackendReply(
            text=decision.message or TRIAGE_PLACEHOLDER,
            sources=[],
            handoff=decision,
        )

    async def _send_specialist(self, query, history, attachments, agent) -> BackendReply:
        system_prompt = BASE_SYSTEM_INSTRUCTION
        if agent is not None:
            system_prompt += f"\n\n## CURRENT AGENT PERSONA: {agent.name}\n{agent.persona}"

        response = await self._llm_provider.chat_completion(
            self._build_messages(system_prompt, query + SEARCH_REMINDER, history, attachments),
            web_search=True,
        )

        sources = {}
        for item in response.sources:
            if item.get("uri"):
                sources[item["uri"]] = Source(title=item.get("title", ""), uri=item["uri"])

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Specialist {agent.name if agent else 'default'} replied: "
                f"length={len(response.content)} chars, sources={len(sources)}"
            )
        return BackendReply(text=response.content, sources=list(sources.values()))
