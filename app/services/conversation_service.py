"""Conversation upsert, recency and unread bookkeeping."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.constants.messaging import ConversationStatus, SenderType
from app.models.conversation import Conversation
from app.models.message import Message
from app.utils.db.upsert import insert_if_absent


class ConversationService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_conversation(self, conversation_id: UUID) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(Conversation.id == conversation_id)
            .first()
        )

    def upsert(
        self,
        workspace_id: UUID,
        contact_id: UUID,
        connection_id: Optional[UUID] = None,
        evolution_instance: Optional[str] = None,
    ) -> Tuple[Conversation, bool]:
        """
        Get or create the contact's conversation. Returns (conversation, created).

        An existing conversation is reopened if closed and re-linked to the
        connection/instance the contact just wrote on.
        """
        conversation, created = insert_if_absent(
            self.db,
            Conversation,
            ("workspace_id", "contact_id"),
            {
                "workspace_id": workspace_id,
                "contact_id": contact_id,
                "connection_id": connection_id,
                "evolution_instance": evolution_instance,
                "status": ConversationStatus.OPEN.value,
                "unread_count": 0,
            },
        )
        if not created:
            if conversation.status == ConversationStatus.CLOSED.value:
                conversation.status = ConversationStatus.OPEN.value
            if connection_id is not None:
                conversation.connection_id = connection_id
            if evolution_instance:
                conversation.evolution_instance = evolution_instance
            self.db.flush()
        return conversation, created

    def touch(
        self, conversation: Conversation, at: Optional[datetime] = None
    ) -> Conversation:
        """Bump updated_at, last_activity_at and last_message_at."""
        at = at or datetime.now(timezone.utc)
        conversation.last_activity_at = at
        conversation.last_message_at = at
        conversation.updated_at = at
        self.db.flush()
        return conversation

    def count_unread(self, conversation_id: UUID) -> int:
        return (
            self.db.query(func.count(Message.id))
            .filter(
                Message.conversation_id == conversation_id,
                Message.sender_type == SenderType.CONTACT.value,
                Message.read_at.is_(None),
            )
            .scalar()
            or 0
        )

    def refresh_unread_count(self, conversation: Conversation) -> int:
        """Recompute the unread counter from the messages themselves."""
        self.db.flush()
        conversation.unread_count = max(self.count_unread(conversation.id), 0)
        self.db.flush()
        return conversation.unread_count

    def mark_as_read(
        self, conversation: Conversation, at: Optional[datetime] = None
    ) -> int:
        """
        Stamp read_at on every unread contact message. Returns how many were
        unread before; the counter is 0 afterwards.
        """
        at = at or datetime.now(timezone.utc)
        previous = self.count_unread(conversation.id)
        (
            self.db.query(Message)
            .filter(
                Message.conversation_id == conversation.id,
                Message.sender_type == SenderType.CONTACT.value,
                Message.read_at.is_(None),
            )
            .update({Message.read_at: at}, synchronize_session="fetch")
        )
        conversation.unread_count = 0
        self.db.commit()
        self.db.refresh(conversation)
        return previous
