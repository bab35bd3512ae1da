from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    message: str = Field(..., description="User message for this turn")
    session_id: str = Field(..., description="Conversation key (e.g. phone number)")
    message_id: Optional[str] = Field(None, description="Transport message id, used to detect re-delivery")


class ChatResponse(BaseModel):
    reply: str
    session_id: str
    flow_state: Optional[str] = None
    command: Optional[str] = None
    replayed: bool = False


class ErrorEnvelope(BaseModel):
    code: str
    message: str
    details: Optional[dict] = None
