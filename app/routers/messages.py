"""
Outbound messaging API.

CRM collaborators POST a message for a conversation; it is persisted,
routed to the right WhatsApp line and settled as sent or failed.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.commands.outbound.send_message_command import SendMessageCommand
from app.core.context import RequestContext
from app.db import get_db
from app.routers.utils.dependencies import get_request_context
from app.schemas.messaging import (
    ErrorResponse,
    SendMessageRequest,
    SendMessageResponse,
    SentMessage,
)

router = APIRouter(
    prefix="/messages",
    tags=["messages"],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)


@router.post("/send", response_model=SendMessageResponse, status_code=201)
def send_message(
    body: SendMessageRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> SendMessageResponse:
    """Send a message. Errors are rendered as {"success": false, "error": {code, ...}}."""
    message = SendMessageCommand(db).execute(ctx, body)
    return SendMessageResponse(
        message=SentMessage.model_validate(message),
        request_id=ctx.correlation_id,
    )
