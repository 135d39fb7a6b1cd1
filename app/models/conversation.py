"""
Conversation model.

A contact has at most one conversation per workspace; it is reopened rather
than duplicated. connection_id points at the line the contact last wrote on.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.constants.messaging import ConversationStatus
from app.db import Base
from app.models.mixins import TimestampMixin


class Conversation(Base, TimestampMixin):
    __tablename__ = "conversations"

    __table_args__ = (
        UniqueConstraint(
            "workspace_id", "contact_id", name="uq_conversations_workspace_contact"
        ),
        CheckConstraint("unread_count >= 0", name="ck_conversations_unread_count"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    contact_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
    )
    connection_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("connections.id", ondelete="SET NULL"),
        nullable=True,
    )
    status = Column(String(32), nullable=False, default=ConversationStatus.OPEN.value)
    unread_count = Column(Integer, nullable=False, default=0)
    assigned_user_id = Column(Uuid(as_uuid=True), nullable=True)
    evolution_instance = Column(String(255), nullable=True)
    last_activity_at = Column(DateTime(timezone=True), nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)

    contact = relationship("Contact")
    connection = relationship("Connection")
