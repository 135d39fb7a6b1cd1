"""
Message model.

external_id is the gateway message id; it is unique per workspace so a
redelivered webhook never inserts a second row.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)

from app.constants.messaging import MessageStatus, MessageType
from app.db import Base
from app.models.mixins import JSONBType, TimestampMixin


class Message(Base, TimestampMixin):
    __tablename__ = "messages"

    __table_args__ = (
        UniqueConstraint(
            "workspace_id", "external_id", name="uq_messages_workspace_external_id"
        ),
        Index(
            "ix_messages_conversation_created", "conversation_id", "created_at"
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
    )
    conversation_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    content = Column(Text, nullable=True)
    message_type = Column(String(32), nullable=False, default=MessageType.TEXT.value)
    sender_type = Column(String(32), nullable=False)
    sender_id = Column(Uuid(as_uuid=True), nullable=True)
    status = Column(String(32), nullable=False, default=MessageStatus.SENDING.value)
    external_id = Column(String(255), nullable=True)
    file_url = Column(Text, nullable=True)
    file_name = Column(String(512), nullable=True)
    mime_type = Column(String(255), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    metadata_ = Column("metadata", JSONBType, nullable=True, default=dict)
