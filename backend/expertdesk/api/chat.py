"""
Chat API endpoints - Drive the live support conversation.
Supports text messages and file attachments for multimodal analysis.
"""

import base64
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from ..agents.orchestrator import ConversationOrchestrator
from ..models import Attachment
from .deps import get_orchestrator

router = APIRouter(prefix="/chat", tags=["chat"])

ALLOWED_FILE_TYPES = {"application/pdf"}


def _is_allowed(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    return content_type.startswith("image/") or content_type in ALLOWED_FILE_TYPES


class ChatRequest(BaseModel):
    """User message with optional base64 attachments."""
    content: str = ""
    attachments: List[Attachment] = Field(default_factory=list)


def _state_response(orchestrator: ConversationOrchestrator, accepted: bool) -> Dict[str, Any]:
    return {"accepted": accepted, "state": orchestrator.snapshot()}


@router.post("/message")
async def send_message(
    request: ChatRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """
    Send a chat message.

    Returns:
        Whether the message was accepted, plus the conversation snapshot
    """
    accepted = await orchestrator.submit_user_message(request.content, request.attachments)
    return _state_response(orchestrator, accepted)


@router.post("/message-with-files")
async def send_message_with_files(
    content: str = Form(""),
    files: Optional[List[UploadFile]] = File(None),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """
    Send a chat message with file attachments.
    Files are base64-encoded here; the conversation only sees encoded data.
    """
    attachments: List[Attachment] = []
    for upload in files or []:
        if not _is_allowed(upload.content_type):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported file type: {upload.content_type}"
            )
        data = await upload.read()
        attachments.append(Attachment(
            mime_type=upload.content_type,
            data=base64.b64encode(data).decode("utf-8"),
        ))

    accepted = await orchestrator.submit_user_message(content, attachments)
    return _state_response(orchestrator, accepted)


@router.get("/state")
async def get_state(orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    """Current conversation snapshot."""
    return orchestrator.snapshot()


@router.post("/idle/continue")
async def continue_session(orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    """The user is still there: dismiss the idle warning."""
    orchestrator.dismiss_idle_warning()
    return orchestrator.snapshot()


@router.post("/end")
async def end_session(orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    """End the specialist conversation and return to the support guide."""
    ended = orchestrator.end_session()
    return {"ended": ended, "state": orchestrator.snapshot()}
