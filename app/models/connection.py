"""
WhatsApp gateway connections.

A Connection is one gateway instance (one WhatsApp line) owned by a
workspace. Its API token lives in ConnectionSecret, encrypted with Fernet.
LegacyInstanceToken is the older instance registry that only maps an
instance name to a workspace.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    ForeignKey,
    LargeBinary,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.constants.messaging import ConnectionStatus
from app.db import Base
from app.models.mixins import TimestampMixin


class Connection(Base, TimestampMixin):
    __tablename__ = "connections"

    __table_args__ = (
        UniqueConstraint(
            "workspace_id", "instance_name", name="uq_connections_workspace_instance"
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    instance_name = Column(String(255), nullable=False, index=True)
    # Only changed by gateway connection/qrcode events
    status = Column(String(32), nullable=False, default=ConnectionStatus.CREATING.value)
    phone_number = Column(String(32), nullable=True)

    secret = relationship(
        "ConnectionSecret",
        back_populates="connection",
        uselist=False,
        cascade="all, delete-orphan",
    )


class ConnectionSecret(Base, TimestampMixin):
    __tablename__ = "connection_secrets"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    connection_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("connections.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    token = Column(LargeBinary, nullable=False)  # Fernet ciphertext
    evolution_url = Column(String(1024), nullable=True)

    connection = relationship("Connection", back_populates="secret")


class LegacyInstanceToken(Base, TimestampMixin):
    __tablename__ = "evolution_instance_tokens"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
    )
    instance_name = Column(String(255), nullable=False, index=True)
    evolution_url = Column(String(1024), nullable=True)
    token = Column(String(512), nullable=True)
