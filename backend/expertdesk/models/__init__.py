"""Models module."""

from .agent import Agent, AgentProfile, TriageAgent, SpecialistAgent
from .handoff import HandoffDecision
from .message import Message, Source, Attachment, BackendReply
from .rate_limit import LimitType, RateLimitState
from .session import Session

__all__ = [
    'Agent', 'AgentProfile', 'TriageAgent', 'SpecialistAgent',
    'HandoffDecision',
    'Message', 'Source', 'Attachment', 'BackendReply',
    'LimitType', 'RateLimitState',
    'Session'
]
