"""Message persistence and status transitions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from app.constants.messaging import (
    MESSAGE_STATUS_RANK,
    MessageStatus,
    SenderType,
)
from app.models.message import Message
from app.utils.db.upsert import insert_if_absent

FILE_FIELDS = ("file_url", "file_name", "mime_type")


class MessageService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_message(self, message_id: UUID) -> Optional[Message]:
        return self.db.query(Message).filter(Message.id == message_id).first()

    def get_by_external_id(
        self, workspace_id: UUID, external_id: str
    ) -> Optional[Message]:
        return (
            self.db.query(Message)
            .filter(
                Message.workspace_id == workspace_id,
                Message.external_id == external_id,
            )
            .first()
        )

    def latest_contact_message(self, conversation_id: UUID) -> Optional[Message]:
        return (
            self.db.query(Message)
            .filter(
                Message.conversation_id == conversation_id,
                Message.sender_type == SenderType.CONTACT.value,
            )
            .order_by(Message.created_at.desc())
            .first()
        )

    def insert_if_absent(self, values: dict[str, Any]) -> Tuple[Message, bool]:
        """Insert keyed on (workspace_id, external_id). Returns (message, created)."""
        return insert_if_absent(
            self.db, Message, ("workspace_id", "external_id"), values
        )

    def patch_file_fields(self, message: Message, **fields: Optional[str]) -> bool:
        """Fill file fields that are still empty. Returns True if anything changed."""
        changed = False
        for name in FILE_FIELDS:
            value = fields.get(name)
            if value and not getattr(message, name):
                setattr(message, name, value)
                changed = True
        if changed:
            self.db.flush()
        return changed

    def create_inbound(self, values: dict[str, Any]) -> Message:
        """Insert an inbound message that carries no gateway id."""
        message = Message(**values)
        self.db.add(message)
        self.db.flush()
        return message

    def create_outbound(self, values: dict[str, Any]) -> Message:
        """Add an outbound message as sending. The caller commits."""
        message = Message(status=MessageStatus.SENDING.value, **values)
        self.db.add(message)
        self.db.flush()
        return message

    def merge_metadata(self, message: Message, extra: dict[str, Any]) -> None:
        metadata = dict(message.metadata_ or {})
        metadata.update({k: v for k, v in extra.items() if v is not None})
        message.metadata_ = metadata

    def mark_sent(
        self,
        message: Message,
        external_id: Optional[str] = None,
        extra_metadata: Optional[dict[str, Any]] = None,
    ) -> Message:
        message.status = MessageStatus.SENT.value
        if external_id:
            message.external_id = external_id
        if extra_metadata:
            self.merge_metadata(message, extra_metadata)
        self.db.commit()
        self.db.refresh(message)
        return message

    def mark_failed(self, message: Message, error: str, error_stack: str) -> Message:
        message.status = MessageStatus.FAILED.value
        self.merge_metadata(message, {"error": error, "error_stack": error_stack})
        self.db.commit()
        self.db.refresh(message)
        return message

    def apply_status(
        self,
        workspace_id: UUID,
        external_id: str,
        status: MessageStatus,
        at: Optional[datetime] = None,
    ) -> Optional[Message]:
        """
        Reconcile a gateway acknowledgement. Status only moves forward along
        sending -> sent -> delivered -> read; failed and received rows are left alone.
        """
        message = self.get_by_external_id(workspace_id, external_id)
        if message is None:
            return None
        current_rank = MESSAGE_STATUS_RANK.get(MessageStatus(message.status))
        new_rank = MESSAGE_STATUS_RANK.get(status)
        if current_rank is None or new_rank is None or new_rank <= current_rank:
            return message
        at = at or datetime.now(timezone.utc)
        message.status = status.value
        if status == MessageStatus.DELIVERED and message.delivered_at is None:
            message.delivered_at = at
        if status == MessageStatus.READ:
            if message.delivered_at is None:
                message.delivered_at = at
            if message.read_at is None:
                message.read_at = at
        self.db.flush()
        return message
