"""Command to mark a conversation's contact messages as read."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.context import RequestContext
from app.exceptions import NotFoundError, WorkspaceMismatchError
from app.schemas.messaging import MarkReadResponse
from app.services.conversation_service import ConversationService
from app.services.forwarding_relay import ForwardingRelay


class MarkConversationReadCommand:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.logger = logging.getLogger(__name__)
        self.conversation_service = ConversationService(db)
        self.relay = ForwardingRelay(db)

    def execute(self, ctx: RequestContext, conversation_id: UUID) -> MarkReadResponse:
        """
        Stamp read_at on unread contact messages, reset the unread counter and
        notify the automation engine when a read webhook is configured.
        """
        conversation = self.conversation_service.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(
                "Conversation not found",
                details={"conversation_id": str(conversation_id)},
            )
        if ctx.workspace_id is not None and ctx.workspace_id != conversation.workspace_id:
            raise WorkspaceMismatchError(
                "Conversation does not belong to this workspace",
                details={"conversation_id": str(conversation_id)},
            )
        unread_before = self.conversation_service.mark_as_read(conversation)
        self.logger.info(
            "[%s] Conversation %s marked read (%s unread)",
            ctx.correlation_id,
            conversation.id,
            unread_before,
        )
        notified = False
        if unread_before:
            notified = self.relay.notify_read(
                ctx, conversation.id, conversation.workspace_id, unread_before
            ).forwarded
        return MarkReadResponse(
            conversation_id=conversation.id,
            unread_before=unread_before,
            unread_count=conversation.unread_count,
            notified=notified,
        )
