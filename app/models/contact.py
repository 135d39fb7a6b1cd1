"""Contact model: one row per phone number per workspace."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint, Uuid

from app.db import Base
from app.models.mixins import JSONBType, TimestampMixin


class Contact(Base, TimestampMixin):
    __tablename__ = "contacts"

    __table_args__ = (
        UniqueConstraint("workspace_id", "phone", name="uq_contacts_workspace_phone"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    phone = Column(String(32), nullable=False)
    name = Column(String(255), nullable=True)
    extra = Column("metadata", JSONBType, nullable=True, default=dict)
