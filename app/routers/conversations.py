from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.commands.mark_read_command import MarkConversationReadCommand
from app.core.context import RequestContext
from app.db import get_db
from app.routers.utils.dependencies import get_request_context
from app.schemas.messaging import ErrorResponse, MarkReadResponse

router = APIRouter(
    prefix="/conversations",
    tags=["conversations"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)


@router.post("/{conversation_id}/read", response_model=MarkReadResponse)
def mark_conversation_read(
    conversation_id: UUID,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> MarkReadResponse:
    """Mark all contact messages of a conversation as read."""
    return MarkConversationReadCommand(db).execute(ctx, conversation_id)
