"""
Message Models - Conversation turns, sources and attachments.
"""

from datetime import datetime, timezone
from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field

from .handoff import HandoffDecision


class Source(BaseModel):
    """A cited web source attached to a model reply."""
    model_config = ConfigDict(frozen=True)

    title: str = ""
    uri: str


class Attachment(BaseModel):
    """A file sent with a user message, already base64-encoded."""
    model_config = ConfigDict(frozen=True)

    mime_type: str
    data: str  # base64


class Message(BaseModel):
    """One conversation turn. Messages are never edited once appended."""
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "model"]
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sources: List[Source] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)
    is_system_message: bool = False


class BackendReply(BaseModel):
    """What the backend collaborator returns for one call."""
    text: str
    sources: List[Source] = Field(default_factory=list)
    handoff: Optional[HandoffDecision] = None
