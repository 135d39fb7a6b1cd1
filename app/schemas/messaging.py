"""
Request/response contracts for sending messages and marking conversations read.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.constants.messaging import (
    MEDIA_MESSAGE_TYPES,
    OUTBOUND_MESSAGE_TYPES,
    MessageType,
    SenderType,
)


class SendMessageRequest(BaseModel):
    """Outbound message from a CRM collaborator (agent UI, automation, AI)."""

    conversation_id: UUID
    content: Optional[str] = None
    message_type: MessageType = MessageType.TEXT
    sender_id: Optional[UUID] = None
    sender_type: SenderType = SenderType.AGENT
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    workspace_id: Optional[UUID] = None  # must match the conversation's workspace
    evolution_instance: Optional[str] = None  # lowest-priority instance hint

    @model_validator(mode="after")
    def check_payload(self) -> "SendMessageRequest":
        if self.sender_type == SenderType.CONTACT:
            raise ValueError("sender_type 'contact' is reserved for inbound messages")
        if self.message_type not in OUTBOUND_MESSAGE_TYPES:
            raise ValueError(
                f"message_type '{self.message_type.value}' cannot be sent"
            )
        if self.message_type in MEDIA_MESSAGE_TYPES:
            if not self.file_url:
                raise ValueError(f"file_url is required for {self.message_type.value} messages")
        elif not (self.content or "").strip():
            raise ValueError("content is required")
        return self


class SentMessage(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conversation_id: UUID
    content: Optional[str] = None
    message_type: str
    status: str
    external_id: Optional[str] = None
    created_at: datetime


class SendMessageResponse(BaseModel):
    success: bool = True
    message: SentMessage
    request_id: str


class ErrorBody(BaseModel):
    code: str
    message: str
    details: dict = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorBody
    request_id: Optional[str] = None


class MarkReadResponse(BaseModel):
    conversation_id: UUID
    unread_before: int
    unread_count: int
    notified: bool = False
