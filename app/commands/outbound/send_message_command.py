"""
Command to send an outbound WhatsApp message.

Validates the conversation, persists the message as "sending" before any
network call, resolves the gateway instance, encodes and dispatches the
message through the automation engine or the gateway, and settles the
message as "sent" or "failed". A failed dispatch always leaves the message
marked failed with the error in its metadata.
"""

from __future__ import annotations

import logging
import traceback
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.adapters.base import BaseDispatcher, DispatchResult, OutboundDelivery
from app.adapters.evolution import EvolutionAdapter
from app.adapters.n8n import N8NClient, N8NDispatcher
from app.config import get_settings
from app.constants.messaging import DispatchMode
from app.core.context import RequestContext
from app.core.encoder import OutboundContent
from app.exceptions import (
    DatabaseError,
    DeliveryError,
    NotFoundError,
    RoutingError,
    ValidationError,
    WorkspaceMismatchError,
)
from app.models.conversation import Conversation
from app.models.message import Message
from app.schemas.messaging import SendMessageRequest
from app.services.connection_service import ConnectionService
from app.services.conversation_service import ConversationService
from app.services.instance_resolver import InstanceLookup, OutboundInstanceResolver
from app.services.message_service import MessageService
from app.utils.phone import jid_from_phone

OUTBOUND_SOURCE = "crm"


class SendMessageCommand:
    """
    Send one outbound message.
    State machine: sending -> sent | failed.
    """

    def __init__(self, db: Session, dispatcher: Optional[BaseDispatcher] = None) -> None:
        self.db = db
        self.settings = get_settings()
        self.logger = logging.getLogger(__name__)
        self.conversation_service = ConversationService(db)
        self.message_service = MessageService(db)
        self.connection_service = ConnectionService(db)
        self.instance_resolver = OutboundInstanceResolver(db)
        self._dispatcher = dispatcher

    def execute(self, ctx: RequestContext, body: SendMessageRequest) -> Message:
        """
        Args:
            ctx: Request context; workspace_id, when set, must own the conversation.
            body: Validated outbound message.

        Returns:
            Message: the persisted message, status "sent".

        Raises:
            DeliveryError: structured error with a code. Once the message row
                exists it is marked failed before the error propagates.
        """
        conversation = self._validate(ctx, body)
        ctx = ctx.with_workspace(conversation.workspace_id)
        message = self._persist(ctx, body, conversation)

        try:
            result = self._dispatch(ctx, body, conversation, message)
        except DeliveryError as e:
            self._mark_failed(ctx, message, e)
            raise
        except Exception as e:
            self._mark_failed(ctx, message, e)
            raise DeliveryError(f"Unexpected error while sending: {e}") from e

        self._settle(ctx, message, result)
        self.logger.info(
            "[%s] Message %s sent via %s (external id %s)",
            ctx.correlation_id,
            message.id,
            result.via,
            result.external_id,
        )
        return message

    def _validate(self, ctx: RequestContext, body: SendMessageRequest) -> Conversation:
        conversation = self.conversation_service.get_conversation(body.conversation_id)
        if conversation is None:
            raise NotFoundError(
                "Conversation not found",
                details={"conversation_id": str(body.conversation_id)},
            )
        for claimed in (body.workspace_id, ctx.workspace_id):
            if claimed is not None and claimed != conversation.workspace_id:
                raise WorkspaceMismatchError(
                    "Conversation does not belong to this workspace",
                    details={"conversation_id": str(conversation.id)},
                )
        if conversation.connection is not None and (
            conversation.connection.workspace_id != conversation.workspace_id
        ):
            raise WorkspaceMismatchError(
                "Conversation connection belongs to another workspace",
                details={"connection_id": str(conversation.connection_id)},
            )
        if conversation.contact is None or not conversation.contact.phone:
            raise ValidationError(
                "Conversation contact has no phone number",
                details={"conversation_id": str(conversation.id)},
            )
        return conversation

    def _persist(
        self, ctx: RequestContext, body: SendMessageRequest, conversation: Conversation
    ) -> Message:
        try:
            message = self.message_service.create_outbound(
                {
                    "workspace_id": conversation.workspace_id,
                    "conversation_id": conversation.id,
                    "content": body.content,
                    "message_type": body.message_type.value,
                    "sender_type": body.sender_type.value,
                    "sender_id": body.sender_id or ctx.user_id,
                    "file_url": body.file_url,
                    "file_name": body.file_name,
                    "mime_type": body.mime_type,
                    "metadata_": {
                        "source": OUTBOUND_SOURCE,
                        "request_id": ctx.correlation_id,
                    },
                }
            )
            self.conversation_service.touch(conversation)
            self.db.commit()
            self.db.refresh(message)
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error(
                "[%s] Could not persist outbound message: %s", ctx.correlation_id, e
            )
            raise DatabaseError("Failed to save message") from e
        return message

    def _dispatch(
        self,
        ctx: RequestContext,
        body: SendMessageRequest,
        conversation: Conversation,
        message: Message,
    ) -> DispatchResult:
        resolved = self.instance_resolver.resolve(
            ctx,
            InstanceLookup(
                conversation=conversation,
                user_id=ctx.user_id,
                requested_instance=body.evolution_instance,
            ),
        )
        contact = conversation.contact
        gateway_url, gateway_token = self.connection_service.credentials_for_instance(
            conversation.workspace_id, resolved.instance
        )
        delivery = OutboundDelivery(
            content=OutboundContent(
                message_type=body.message_type,
                content=body.content,
                file_url=body.file_url,
                file_name=body.file_name,
                mime_type=body.mime_type,
            ),
            instance=resolved.instance,
            remote_jid=jid_from_phone(contact.phone),
            number=contact.phone,
            message_id=str(message.id),
            push_name=contact.name,
            conversation_id=str(conversation.id),
            gateway_url=gateway_url,
            gateway_token=gateway_token,
        )
        result = self._select_dispatcher().dispatch(delivery)
        result.extra.update(
            {"evolution_instance": resolved.instance, "resolved_from": resolved.tier}
        )
        return result

    def _select_dispatcher(self) -> BaseDispatcher:
        if self._dispatcher is not None:
            return self._dispatcher
        mode = DispatchMode(self.settings.outbound_dispatch_mode.lower())
        n8n_url = self.settings.n8n_outbound_webhook_url
        if mode == DispatchMode.N8N and not n8n_url:
            raise RoutingError("N8N outbound webhook is not configured")
        if mode == DispatchMode.N8N or (mode == DispatchMode.AUTO and n8n_url):
            return N8NDispatcher(
                n8n_url,
                client=N8NClient(timeout=self.settings.http_timeout_seconds),
                token=self.settings.n8n_webhook_token,
                server_url=self.settings.evolution_api_url,
            )
        return EvolutionAdapter(
            base_url=self.settings.evolution_api_url,
            api_key=self.settings.evolution_api_key,
            timeout=self.settings.http_timeout_seconds,
        )

    def _settle(
        self, ctx: RequestContext, message: Message, result: DispatchResult
    ) -> None:
        """
        Mark the message sent. If the downstream id clashes with another row in
        the workspace, the message is still sent and the id is kept in metadata.

        Raises:
            DatabaseError: the sent status could not be stored; the message is
                marked failed.
        """
        extra = {
            "dispatched_via": result.via,
            "evolution_instance": result.extra.get("evolution_instance"),
            "resolved_from": result.extra.get("resolved_from"),
        }
        try:
            self.message_service.mark_sent(
                message, external_id=result.external_id, extra_metadata=extra
            )
            return
        except IntegrityError as e:
            self.db.rollback()
            self.logger.warning(
                "[%s] External id %s already used in workspace, kept in metadata: %s",
                ctx.correlation_id,
                result.external_id,
                e,
            )
            extra["conflicting_external_id"] = result.external_id
        except SQLAlchemyError as e:
            self.db.rollback()
            self._mark_failed(ctx, message, e)
            raise DatabaseError("Failed to update message status") from e

        try:
            self.message_service.mark_sent(message, extra_metadata=extra)
        except SQLAlchemyError as e:
            self.db.rollback()
            self._mark_failed(ctx, message, e)
            raise DatabaseError("Failed to update message status") from e

    def _mark_failed(self, ctx: RequestContext, message: Message, error: Exception) -> None:
        self.logger.error(
            "[%s] Sending message %s failed: %s", ctx.correlation_id, message.id, error
        )
        try:
            self.db.rollback()
            self.message_service.mark_failed(
                message,
                error=str(error),
                error_stack="".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                ),
            )
        except SQLAlchemyError as db_error:
            self.db.rollback()
            self.logger.exception(
                "[%s] Could not mark message %s as failed: %s",
                ctx.correlation_id,
                message.id,
                db_error,
            )
