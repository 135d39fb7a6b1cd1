"""Connection status updates driven by gateway events, and gateway credentials."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.constants.messaging import ConnectionStatus
from app.core.credentials import decrypt_token
from app.models.connection import Connection, LegacyInstanceToken
from app.utils.phone import phone_from_jid

logger = logging.getLogger(__name__)

GATEWAY_STATES: dict[str, ConnectionStatus] = {
    "open": ConnectionStatus.CONNECTED,
    "connecting": ConnectionStatus.CONNECTING,
}


def status_for_state(state: Optional[str]) -> ConnectionStatus:
    """open -> connected, connecting -> connecting, anything else -> disconnected."""
    return GATEWAY_STATES.get((state or "").lower(), ConnectionStatus.DISCONNECTED)


class ConnectionService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_connection(self, connection_id: UUID) -> Optional[Connection]:
        return self.db.query(Connection).filter(Connection.id == connection_id).first()

    def set_status(
        self,
        connection_id: UUID,
        status: ConnectionStatus,
        owner_jid: Optional[str] = None,
    ) -> Optional[Connection]:
        connection = self.get_connection(connection_id)
        if connection is None:
            return None
        if connection.status != status.value:
            logger.info(
                "Connection %s status %s -> %s",
                connection.instance_name,
                connection.status,
                status.value,
            )
            connection.status = status.value
        phone = phone_from_jid(owner_jid)
        if status == ConnectionStatus.CONNECTED and phone:
            connection.phone_number = phone
        self.db.commit()
        return connection

    def gateway_credentials(
        self, connection: Connection
    ) -> tuple[Optional[str], Optional[str]]:
        """(evolution_url, token) for a connection, decrypted."""
        secret = connection.secret
        if secret is None:
            return None, None
        return secret.evolution_url, decrypt_token(secret.token)

    def credentials_for_instance(
        self, workspace_id: UUID, instance_name: str
    ) -> tuple[Optional[str], Optional[str]]:
        """
        Gateway URL and token for an instance of a workspace.

        The connection's encrypted secret wins; instances only known to the
        legacy token table fall back to its plain token. (None, None) when
        neither knows the instance.
        """
        connection = (
            self.db.query(Connection)
            .filter(
                Connection.workspace_id == workspace_id,
                Connection.instance_name == instance_name,
            )
            .first()
        )
        if connection is not None and connection.secret is not None:
            return self.gateway_credentials(connection)
        legacy = (
            self.db.query(LegacyInstanceToken)
            .filter(
                LegacyInstanceToken.workspace_id == workspace_id,
                LegacyInstanceToken.instance_name == instance_name,
            )
            .first()
        )
        if legacy is not None:
            return legacy.evolution_url, legacy.token
        return None, None
