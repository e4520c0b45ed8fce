"""
API dependencies.
"""

from fastapi import Request

from ..agents.orchestrator import ConversationOrchestrator


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    """The process-wide conversation, created in the application lifespan."""
    return request.app.state.orchestrator
