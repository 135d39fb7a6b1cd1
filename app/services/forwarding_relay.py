"""
Relay sanitized gateway events to the automation engine.

The workspace's own webhook wins over the global fallback. Relay failures are
reported through RelayResult and never raised, so the gateway always gets its
acknowledgement.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.adapters.n8n import N8NClient
from app.config import get_settings
from app.core.context import RequestContext
from app.core.metadata import EventMetadata
from app.infra.logging_config import get_logger
from app.models.workspace import WorkspaceSettings
from app.services.tenant_resolver import TenantResolution

logger = get_logger("forwarding_relay")

RELAY_SOURCE = "evolution-webhook"


@dataclass
class RelayTarget:
    url: str
    token: Optional[str]
    scope: str  # "workspace" | "global"


@dataclass
class RelayResult:
    forwarded: bool
    target: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None


class ForwardingRelay:
    def __init__(self, db: Session, client: Optional[N8NClient] = None) -> None:
        self.db = db
        self.settings = get_settings()
        self.client = client or N8NClient(timeout=self.settings.http_timeout_seconds)

    def target_for(self, workspace_id) -> Optional[RelayTarget]:
        if workspace_id is not None:
            ws_settings = (
                self.db.query(WorkspaceSettings)
                .filter(WorkspaceSettings.workspace_id == workspace_id)
                .first()
            )
            if ws_settings is not None and ws_settings.webhook_url:
                return RelayTarget(
                    url=ws_settings.webhook_url,
                    token=ws_settings.webhook_secret,
                    scope="workspace",
                )
        if self.settings.n8n_inbound_webhook_url:
            return RelayTarget(
                url=self.settings.n8n_inbound_webhook_url,
                token=self.settings.n8n_webhook_token,
                scope="global",
            )
        return None

    @staticmethod
    def build_payload(
        ctx: RequestContext,
        sanitized_event: Any,
        metadata: EventMetadata,
        tenant: TenantResolution,
    ) -> dict[str, Any]:
        return {
            "source": RELAY_SOURCE,
            "metadata": metadata.log_view(),
            "data": sanitized_event,
            "timestamp": metadata.timestamp or datetime.now(timezone.utc).isoformat(),
            "workspaceId": str(tenant.workspace_id) if tenant.workspace_id else None,
            "connectionId": str(tenant.connection_id) if tenant.connection_id else None,
            "requestId": ctx.correlation_id,
        }

    def relay(
        self,
        ctx: RequestContext,
        sanitized_event: Any,
        metadata: EventMetadata,
        tenant: TenantResolution,
    ) -> RelayResult:
        try:
            target = self.target_for(tenant.workspace_id)
        except Exception as e:
            logger.warning("[%s] Could not load relay target: %s", ctx.correlation_id, e)
            self.db.rollback()
            return RelayResult(forwarded=False, error=str(e))
        if target is None:
            logger.info("[%s] No webhook configured, event not relayed", ctx.correlation_id)
            return RelayResult(forwarded=False)

        payload = self.build_payload(ctx, sanitized_event, metadata, tenant)
        result = self.client.post(target.url, payload, token=target.token)
        if not result.ok:
            logger.warning(
                "[%s] Relay to %s webhook failed: %s",
                ctx.correlation_id,
                target.scope,
                result.error,
            )
        else:
            logger.info(
                "[%s] Relayed %s to %s webhook (%s)",
                ctx.correlation_id,
                metadata.event,
                target.scope,
                result.status_code,
            )
        return RelayResult(
            forwarded=result.ok,
            target=target.scope,
            status_code=result.status_code,
            error=result.error,
        )

    def notify_read(
        self, ctx: RequestContext, conversation_id, workspace_id, unread_before: int
    ) -> RelayResult:
        """Tell the automation engine a conversation was read, if configured."""
        url = self.settings.n8n_message_read_webhook_url
        if not url:
            return RelayResult(forwarded=False)
        payload = {
            "event": "message_read",
            "conversationId": str(conversation_id),
            "workspaceId": str(workspace_id),
            "userId": str(ctx.user_id) if ctx.user_id else None,
            "unreadBefore": unread_before,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "requestId": ctx.correlation_id,
        }
        result = self.client.post(url, payload, token=self.settings.n8n_webhook_token)
        if not result.ok:
            logger.warning(
                "[%s] message_read notification failed: %s",
                ctx.correlation_id,
                result.error,
            )
        return RelayResult(
            forwarded=result.ok,
            target="global",
            status_code=result.status_code,
            error=result.error,
        )
