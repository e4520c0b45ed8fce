"""
Triage Agent - Prompt contract and decision parsing for the routing persona.
"""

import json
import logging
from typing import List

from pydantic import ValidationError

from ..models.agent import SpecialistAgent
from ..models.handoff import HandoffDecision

logger = logging.getLogger(__name__)

FALLBACK_CLARIFICATION = "Could you please rephrase your request?"


def build_triage_prompt(persona: str, specialists: List[SpecialistAgent]) -> str:
    """System prompt for the triage agent, including the team and the JSON contract."""
    team = "\n".join(
        f"{i}. **{agent.name}** (ID: {agent.id}): {agent.role} - {agent.description}."
        for i, agent in enumerate(specialists, 1)
    )
    example_id = specialists[0].id if specialists else "agent-1"
    return f"""{persona}

## Your Team of Specialists:
{team}

## Your Behavior:
1. **First Contact**: If this is the user's first message and it's a greeting or vague query, introduce yourself warmly and ask how you can help. Never introduce yourself again after that.
2. **Platform Questions**: If the user asks about the platform, the available services, or who the experts are, answer directly without handing off.
3. **Technical GitHub Questions**: If the user has a specific GitHub-related technical question, decide which specialist can best help and hand off.
4. **Unclear Intent**: If you're unsure what the user needs, ask a clarifying question.

## JSON Response Format:
You must ALWAYS respond with a valid JSON object. Do not wrap it in markdown code blocks.

Answer it yourself:
{{"handoff": false, "message": "<your reply>"}}

Hand off to a specialist:
{{"handoff": true, "agentId": "{example_id}", "reason": "<why>", "message": "<tell the user who you are connecting them with>"}}
"""


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_handoff_decision(raw: str) -> HandoffDecision:
    """
    Parse the triage model output.

    Malformed output never raises: it becomes a non-handoff decision
    asking the user to rephrase.
    """
    try:
        payload = json.loads(_strip_code_fence(raw or ""))
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        decision = HandoffDecision.model_validate(payload)
    except (json.JSONDecodeError, ValueError, ValidationError) as e:
        logger.warning(f"Failed to parse triage decision: {str(e)}, asking for clarification")
        return HandoffDecision(handoff=False, message=FALLBACK_CLARIFICATION)

    logger.debug(
        f"Triage decision: handoff={decision.handoff}, agent_id={decision.agent_id}, "
        f"reason={decision.reason or 'N/A'}"
    )
    return decision
