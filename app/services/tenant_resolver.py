"""
Map a gateway instance name to a workspace and connection.

The connections table is the primary source. Instances registered before
connections existed only live in the legacy instance-token table, which
knows the workspace but has no connection id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.connection import Connection, LegacyInstanceToken


@dataclass(frozen=True)
class TenantResolution:
    workspace_id: Optional[UUID] = None
    connection_id: Optional[UUID] = None

    @property
    def resolved(self) -> bool:
        return self.workspace_id is not None


class TenantResolver:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_connection(self, instance_name: str) -> Optional[Connection]:
        return (
            self.db.query(Connection)
            .filter(Connection.instance_name == instance_name)
            .order_by(Connection.created_at.asc())
            .first()
        )

    def resolve(self, instance_name: Optional[str]) -> TenantResolution:
        """Return the workspace/connection for an instance, or an empty resolution."""
        if not instance_name:
            return TenantResolution()
        connection = self.get_connection(instance_name)
        if connection is not None:
            return TenantResolution(
                workspace_id=connection.workspace_id, connection_id=connection.id
            )
        legacy = (
            self.db.query(LegacyInstanceToken)
            .filter(LegacyInstanceToken.instance_name == instance_name)
            .order_by(LegacyInstanceToken.created_at.asc())
            .first()
        )
        if legacy is not None:
            return TenantResolution(workspace_id=legacy.workspace_id)
        return TenantResolution()
