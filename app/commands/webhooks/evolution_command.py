"""
Command to handle Evolution API (WhatsApp gateway) webhooks.

Authenticates the delivery, summarises and sanitizes the event, resolves the
workspace from the instance name, processes the event, and relays the
sanitized event to the automation engine. Internal outcomes are reported in
the acknowledgement body; once authenticated, the gateway always gets 200.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.adapters.evolution import WebhookAuth, verify_webhook
from app.config import get_settings
from app.constants.messaging import EvolutionEvent, MessageStatus, ConnectionStatus
from app.core.context import RequestContext
from app.core.metadata import EventMetadata, extract_metadata
from app.core.sanitizer import sanitize_webhook_payload
from app.schemas.evolution import WebhookAck
from app.services.connection_service import ConnectionService, status_for_state
from app.services.forwarding_relay import ForwardingRelay
from app.services.inbound_message_service import InboundMessageService
from app.services.message_service import MessageService
from app.services.tenant_resolver import TenantResolution, TenantResolver

ACK_STATUSES: dict[Any, MessageStatus] = {
    1: MessageStatus.SENT,
    2: MessageStatus.DELIVERED,
    3: MessageStatus.READ,
    4: MessageStatus.READ,
    "SERVER_ACK": MessageStatus.SENT,
    "DELIVERY_ACK": MessageStatus.DELIVERED,
    "READ": MessageStatus.READ,
    "PLAYED": MessageStatus.READ,
    "SENT": MessageStatus.SENT,
    "DELIVERED": MessageStatus.DELIVERED,
}


def normalize_event(event: Optional[str]) -> str:
    """MESSAGES_UPSERT / messages.upsert / Messages-Upsert -> messages.upsert"""
    return (event or "").strip().lower().replace("_", ".").replace("-", ".")


def message_units(data: Any) -> list[dict[str, Any]]:
    """Units of a single (data) or batch (data.messages / list) event."""
    if isinstance(data, list):
        return [unit for unit in data if isinstance(unit, dict)]
    if not isinstance(data, dict):
        return []
    messages = data.get("messages")
    if isinstance(messages, list):
        return [unit for unit in messages if isinstance(unit, dict)]
    return [data]


def ack_status(unit: dict[str, Any]) -> Optional[MessageStatus]:
    update = unit.get("update") if isinstance(unit.get("update"), dict) else {}
    for raw in (unit.get("status"), update.get("status"), unit.get("ack")):
        if not isinstance(raw, (str, int)) or isinstance(raw, bool):
            continue
        key = raw.upper() if isinstance(raw, str) else raw
        if isinstance(key, str) and key.isdigit():
            key = int(key)
        if key in ACK_STATUSES:
            return ACK_STATUSES[key]
    return None


def ack_external_id(unit: dict[str, Any]) -> Optional[str]:
    key = unit.get("key") if isinstance(unit.get("key"), dict) else {}
    value = key.get("id") or unit.get("keyId") or unit.get("messageId")
    return str(value) if value else None


class EvolutionWebhookCommand:
    """
    Handle one gateway webhook delivery.

    messages.upsert      -> inbound message processing (single or batch)
    messages.update      -> delivery/read acknowledgements by external id
    connection.update    -> connection status
    qrcode.updated       -> connection status "qr"
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self.settings = get_settings()
        self.logger = logging.getLogger(__name__)
        self.tenant_resolver = TenantResolver(db)
        self.inbound_service = InboundMessageService(db)
        self.message_service = MessageService(db)
        self.connection_service = ConnectionService(db)
        self.relay = ForwardingRelay(db)

    def authorize(
        self,
        headers: Optional[Mapping[str, str]],
        query: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Raises:
            HTTPException: 401 when a secret is configured but none was sent,
                403 when the presented secret is wrong.
        """
        outcome = verify_webhook(self.settings.evolution_webhook_secret, headers, query)
        if outcome == WebhookAuth.MISSING:
            raise HTTPException(status_code=401, detail="Missing webhook token")
        if outcome == WebhookAuth.INVALID:
            raise HTTPException(status_code=403, detail="Invalid webhook token")

    def reject(self, ctx: RequestContext, reason: str) -> WebhookAck:
        """Acknowledge an authenticated delivery whose body could not be used."""
        self.logger.warning(
            "[%s] Evolution webhook body rejected: %s", ctx.correlation_id, reason
        )
        return WebhookAck(ok=False, request_id=ctx.correlation_id, error=reason)

    def execute(self, ctx: RequestContext, payload: Any) -> WebhookAck:
        metadata = extract_metadata(payload)
        sanitized = sanitize_webhook_payload(
            payload, max_length=self.settings.thumbnail_max_length
        )
        self.logger.info(
            "[%s] Evolution webhook received: %s", ctx.correlation_id, metadata.log_view()
        )

        tenant = self._resolve_tenant(ctx, metadata)
        ctx = ctx.with_workspace(tenant.workspace_id)

        processed = False
        results: list[dict[str, Any]] = []
        error: Optional[str] = None
        if tenant.resolved:
            try:
                processed, results = self._process(ctx, payload, metadata, tenant)
            except Exception as e:
                self.db.rollback()
                error = str(e)
                self.logger.exception(
                    "[%s] Webhook processing failed: %s", ctx.correlation_id, e
                )
        else:
            self.logger.warning(
                "[%s] Unknown instance %s, event not processed",
                ctx.correlation_id,
                metadata.instance,
            )

        relay = self.relay.relay(ctx, sanitized, metadata, tenant)
        return WebhookAck(
            ok=True,
            processed=processed,
            forwarded=relay.forwarded,
            request_id=ctx.correlation_id,
            metadata=metadata.log_view(),
            results=results,
            error=error,
        )

    def _resolve_tenant(
        self, ctx: RequestContext, metadata: EventMetadata
    ) -> TenantResolution:
        try:
            return self.tenant_resolver.resolve(metadata.instance)
        except Exception as e:
            self.db.rollback()
            self.logger.warning(
                "[%s] Tenant lookup failed for %s: %s",
                ctx.correlation_id,
                metadata.instance,
                e,
            )
            return TenantResolution()

    def _process(
        self,
        ctx: RequestContext,
        payload: Any,
        metadata: EventMetadata,
        tenant: TenantResolution,
    ) -> tuple[bool, list[dict[str, Any]]]:
        data = payload.get("data") if isinstance(payload, dict) else None
        event = normalize_event(metadata.event)

        if event == EvolutionEvent.MESSAGES_UPSERT:
            results = [
                self.inbound_service.process(
                    ctx,
                    unit,
                    connection_id=tenant.connection_id,
                    instance_name=metadata.instance,
                )
                for unit in message_units(data)
            ]
            return any(r.ok for r in results), [r.to_dict() for r in results]

        if event == EvolutionEvent.MESSAGES_UPDATE:
            return self._apply_acks(ctx, data)

        if event == EvolutionEvent.CONNECTION_UPDATE:
            state = data.get("state") if isinstance(data, dict) else None
            owner = data.get("wuid") if isinstance(data, dict) else None
            return self._set_connection_status(
                tenant, status_for_state(state), owner
            ), []

        if event == EvolutionEvent.QRCODE_UPDATED:
            return self._set_connection_status(tenant, ConnectionStatus.QR), []

        self.logger.info("[%s] Ignoring event %s", ctx.correlation_id, metadata.event)
        return False, []

    def _apply_acks(
        self, ctx: RequestContext, data: Any
    ) -> tuple[bool, list[dict[str, Any]]]:
        results: list[dict[str, Any]] = []
        for unit in message_units(data):
            external_id = ack_external_id(unit)
            status = ack_status(unit)
            if not external_id or status is None:
                results.append({"status": "skipped", "external_id": external_id})
                continue
            message = self.message_service.apply_status(
                ctx.workspace_id, external_id, status
            )
            results.append(
                {
                    "status": "processed" if message is not None else "not_found",
                    "external_id": external_id,
                    "message_status": message.status if message is not None else None,
                }
            )
        self.db.commit()
        return any(r["status"] == "processed" for r in results), results

    def _set_connection_status(
        self,
        tenant: TenantResolution,
        status: ConnectionStatus,
        owner_jid: Optional[str] = None,
    ) -> bool:
        if tenant.connection_id is None:
            return False
        return (
            self.connection_service.set_status(tenant.connection_id, status, owner_jid)
            is not None
        )
