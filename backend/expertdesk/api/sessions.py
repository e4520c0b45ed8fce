"""
Session API endpoints - Active and past specialist sessions.
"""

from typing import List, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..agents.orchestrator import ConversationOrchestrator
from ..agents.roster import all_agents
from ..models import Session
from .deps import get_orchestrator

router = APIRouter(tags=["sessions"])


@router.get("/agents")
async def list_agents():
    """Support guide and specialist team."""
    return [agent.model_dump(exclude={"persona"}) for agent in all_agents()]


@router.get("/sessions", response_model=List[Session])
async def list_sessions(
    view: Literal["all", "active", "history"] = Query("all"),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """Sessions, most recent first."""
    if view == "active":
        return orchestrator.sessions.active_sessions()
    if view == "history":
        return orchestrator.sessions.history()
    return orchestrator.sessions.sessions


@router.post("/sessions/{session_id}/select")
async def select_session(
    session_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """Switch the conversation to a session's agent."""
    session = orchestrator.select_session(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session not found: {session_id}"
        )
    return orchestrator.snapshot()
