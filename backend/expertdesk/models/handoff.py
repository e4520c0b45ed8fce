"""
Handoff Models - Routing decisions returned by the triage agent.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class HandoffDecision(BaseModel):
    """Triage decision. Transient: it only drives a state transition."""
    model_config = ConfigDict(populate_by_name=True)

    handoff: bool = False
    agent_id: Optional[str] = Field(default=None, alias="agentId")
    message: Optional[str] = None
    reason: Optional[str] = None
