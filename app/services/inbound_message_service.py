"""
Inbound message processing.

Turns one decoded gateway message unit into contact -> conversation ->
message rows for a workspace. Every step is idempotent so gateway
redeliveries converge on the same rows, and process() never raises: a
broken unit is logged and reported, and the rest of a batch carries on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.constants.messaging import MessageStatus, SenderType
from app.core.classifier import classify_message
from app.core.context import RequestContext
from app.services.contact_service import ContactService
from app.services.conversation_service import ConversationService
from app.services.message_service import MessageService
from app.utils.phone import mask_phone, phone_from_jid

logger = logging.getLogger(__name__)

INBOUND_SOURCE = "evolution-webhook"
MESSAGE_FLOW = "inbound_original"


class InboundStatus(StrEnum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class InboundResult:
    status: InboundStatus
    external_id: Optional[str] = None
    message_id: Optional[UUID] = None
    conversation_id: Optional[UUID] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (InboundStatus.PROCESSED, InboundStatus.DUPLICATE)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "external_id": self.external_id,
            "message_id": str(self.message_id) if self.message_id else None,
            "reason": self.reason,
        }


class InboundMessageService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.contact_service = ContactService(db)
        self.conversation_service = ConversationService(db)
        self.message_service = MessageService(db)

    def process(
        self,
        ctx: RequestContext,
        unit: dict[str, Any],
        connection_id: Optional[UUID] = None,
        instance_name: Optional[str] = None,
    ) -> InboundResult:
        """Persist one message unit for ctx.workspace_id. Never raises."""
        key = unit.get("key") if isinstance(unit, dict) else None
        key = key if isinstance(key, dict) else {}
        external_id = key.get("id")
        external_id = str(external_id) if external_id else None

        if ctx.workspace_id is None:
            return InboundResult(InboundStatus.SKIPPED, external_id, reason="no_workspace")
        remote_jid = key.get("remoteJid")
        if not remote_jid:
            logger.info("[%s] Skipping message without remoteJid", ctx.correlation_id)
            return InboundResult(InboundStatus.SKIPPED, external_id, reason="missing_remote_jid")
        if key.get("fromMe"):
            logger.info(
                "[%s] Skipping fromMe message %s", ctx.correlation_id, external_id
            )
            return InboundResult(InboundStatus.SKIPPED, external_id, reason="from_me")

        try:
            return self._process(ctx, unit, key, external_id, connection_id, instance_name)
        except Exception as e:
            self.db.rollback()
            logger.exception(
                "[%s] Failed to process inbound message %s for workspace %s: %s",
                ctx.correlation_id,
                external_id,
                ctx.workspace_id,
                e,
            )
            return InboundResult(InboundStatus.FAILED, external_id, reason=str(e))

    def _process(
        self,
        ctx: RequestContext,
        unit: dict[str, Any],
        key: dict[str, Any],
        external_id: Optional[str],
        connection_id: Optional[UUID],
        instance_name: Optional[str],
    ) -> InboundResult:
        remote_jid = key["remoteJid"]
        # The sender is the remote party, never the instance's own number.
        phone = phone_from_jid(remote_jid)
        if phone is None:
            return InboundResult(InboundStatus.SKIPPED, external_id, reason="invalid_remote_jid")

        classified = classify_message(
            unit.get("message"), external_id=external_id, media_url=unit.get("mediaUrl")
        )
        if classified is None:
            logger.info(
                "[%s] Skipping unsupported message %s", ctx.correlation_id, external_id
            )
            return InboundResult(InboundStatus.SKIPPED, external_id, reason="unsupported_message")

        if external_id:
            existing = self.message_service.get_by_external_id(ctx.workspace_id, external_id)
            if existing is not None:
                return self._duplicate(ctx, existing, classified)

        push_name = unit.get("pushName")
        contact, contact_created = self.contact_service.upsert(
            ctx.workspace_id, phone, push_name
        )
        conversation, _ = self.conversation_service.upsert(
            ctx.workspace_id,
            contact.id,
            connection_id=connection_id,
            evolution_instance=instance_name,
        )

        values = {
            "workspace_id": ctx.workspace_id,
            "conversation_id": conversation.id,
            "external_id": external_id,
            "content": classified.content,
            "message_type": classified.message_type.value,
            "sender_type": SenderType.CONTACT.value,
            "status": MessageStatus.RECEIVED.value,
            "file_url": classified.file_url,
            "file_name": classified.file_name,
            "mime_type": classified.mime_type,
            "metadata_": {
                "source": INBOUND_SOURCE,
                "request_id": ctx.correlation_id,
                "message_flow": MESSAGE_FLOW,
                "remote_jid": remote_jid,
                "participant": key.get("participant") or unit.get("participant"),
                "message_timestamp": unit.get("messageTimestamp"),
                "push_name": push_name,
                "evolution_instance": instance_name,
            },
        }
        if external_id:
            message, created = self.message_service.insert_if_absent(values)
            if not created:
                # Lost a race with a concurrent delivery of the same message.
                self.db.commit()
                return InboundResult(
                    InboundStatus.DUPLICATE,
                    external_id,
                    message_id=message.id,
                    conversation_id=conversation.id,
                )
        else:
            message = self.message_service.create_inbound(values)

        self.conversation_service.touch(conversation)
        self.conversation_service.refresh_unread_count(conversation)
        self.db.commit()
        logger.info(
            "[%s] Stored inbound %s message %s from %s (new contact: %s)",
            ctx.correlation_id,
            classified.message_type.value,
            external_id,
            mask_phone(phone),
            contact_created,
        )
        return InboundResult(
            InboundStatus.PROCESSED,
            external_id,
            message_id=message.id,
            conversation_id=conversation.id,
        )

    def _duplicate(self, ctx: RequestContext, existing, classified) -> InboundResult:
        patched = self.message_service.patch_file_fields(
            existing,
            file_url=classified.file_url,
            file_name=classified.file_name,
            mime_type=classified.mime_type,
        )
        self.db.commit()
        logger.info(
            "[%s] Duplicate message %s ignored (patched: %s)",
            ctx.correlation_id,
            existing.external_id,
            patched,
        )
        return InboundResult(
            InboundStatus.DUPLICATE,
            existing.external_id,
            message_id=existing.id,
            conversation_id=existing.conversation_id,
        )
