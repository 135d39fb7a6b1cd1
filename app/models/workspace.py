"""
Workspace (tenant) and its messaging settings.

Every contact, conversation, message and connection belongs to exactly one
workspace.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.mixins import TimestampMixin


class Workspace(Base, TimestampMixin):
    __tablename__ = "workspaces"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    connection_limit = Column(Integer, nullable=False, default=1)

    settings = relationship(
        "WorkspaceSettings", back_populates="workspace", uselist=False
    )


class WorkspaceSettings(Base, TimestampMixin):
    """
    Per-workspace automation engine webhook and outbound defaults.

    webhook_url / webhook_secret override the global N8N inbound webhook.
    default_instance is the workspace-wide fallback gateway instance.
    """

    __tablename__ = "workspace_settings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    webhook_url = Column(String(1024), nullable=True)
    webhook_secret = Column(String(512), nullable=True)
    default_instance = Column(String(255), nullable=True)

    workspace = relationship("Workspace", back_populates="settings")
