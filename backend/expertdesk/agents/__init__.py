"""Agents module - triage routing, specialist backend and conversation orchestration."""

from .backend import SupportBackend
from .orchestrator import ConversationOrchestrator, ConversationEvent, ConversationPhase
from .roster import TRIAGE_AGENT, SPECIALIST_AGENTS, resolve_specialist
from .triage import parse_handoff_decision

__all__ = [
    'SupportBackend',
    'ConversationOrchestrator',
    'ConversationEvent',
    'ConversationPhase',
    'TRIAGE_AGENT',
    'SPECIALIST_AGENTS',
    'resolve_specialist',
    'parse_handoff_decision'
]
