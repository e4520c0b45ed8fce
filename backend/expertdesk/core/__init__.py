"""Core module - timers, session bookkeeping and rate limit classification."""

from .connection import ConnectionSequence, ConnectingPhase
from .idle_supervisor import IdleSupervisor, IdleState
from .rate_limit import RateLimitClassifier, RateLimitError
from .session_registry import SessionRegistry, derive_title

__all__ = [
    'ConnectionSequence', 'ConnectingPhase',
    'IdleSupervisor', 'IdleState',
    'RateLimitClassifier', 'RateLimitError',
    'SessionRegistry', 'derive_title'
]
