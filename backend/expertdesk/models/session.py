"""
Session Models - Defines structures for specialist sessions.
"""

from datetime import datetime, timezone
from pydantic import BaseModel, Field


class Session(BaseModel):
    """Record of one specialist assignment."""
    id: str
    agent_id: str
    title: str  # derived from the first user query
    last_message: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_active: bool = True
