"""
Decide which gateway instance sends an outbound message.

Resolution is an ordered list of tiers; the first tier that yields a value
wins. The line the contact last wrote on is authoritative, so replies leave
through the same WhatsApp number the conversation is happening on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.context import RequestContext
from app.exceptions import InstanceNotResolvedError
from app.models.conversation import Conversation
from app.models.workspace import WorkspaceSettings
from app.services.message_service import MessageService

logger = logging.getLogger(__name__)


@dataclass
class InstanceLookup:
    conversation: Conversation
    user_id: Optional[UUID] = None
    requested_instance: Optional[str] = None


@dataclass(frozen=True)
class ResolvedInstance:
    instance: str
    tier: str


Tier = Tuple[str, Callable[[InstanceLookup], Optional[str]]]


def _clean(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def first_resolved(
    tiers: Iterable[Tier], lookup: InstanceLookup
) -> Optional[ResolvedInstance]:
    """Run tiers in order and return the first non-empty value."""
    for name, tier in tiers:
        value = _clean(tier(lookup))
        if value:
            return ResolvedInstance(instance=value, tier=name)
    return None


class OutboundInstanceResolver:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.message_service = MessageService(db)

    @property
    def tiers(self) -> Sequence[Tier]:
        return (
            ("last_inbound", self.from_last_inbound),
            ("conversation", self.from_conversation),
            ("user_default", self.from_user_default),
            ("workspace_default", self.from_workspace_default),
            ("request", self.from_request),
        )

    def from_last_inbound(self, lookup: InstanceLookup) -> Optional[str]:
        message = self.message_service.latest_contact_message(lookup.conversation.id)
        if message is None:
            return None
        return (message.metadata_ or {}).get("evolution_instance")

    def from_conversation(self, lookup: InstanceLookup) -> Optional[str]:
        return lookup.conversation.evolution_instance

    def from_user_default(self, lookup: InstanceLookup) -> Optional[str]:
        """Per-user default instance. No assignment store exists yet."""
        return None

    def from_workspace_default(self, lookup: InstanceLookup) -> Optional[str]:
        settings = (
            self.db.query(WorkspaceSettings)
            .filter(WorkspaceSettings.workspace_id == lookup.conversation.workspace_id)
            .first()
        )
        return settings.default_instance if settings else None

    def from_request(self, lookup: InstanceLookup) -> Optional[str]:
        return lookup.requested_instance

    def resolve(self, ctx: RequestContext, lookup: InstanceLookup) -> ResolvedInstance:
        """
        Resolve the instance and store it on the conversation when it changed.

        Raises:
            InstanceNotResolvedError: no tier produced an instance.
        """
        resolved = first_resolved(self.tiers, lookup)
        conversation = lookup.conversation
        if resolved is None:
            logger.warning(
                "[%s] No gateway instance resolved for conversation %s",
                ctx.correlation_id,
                conversation.id,
            )
            raise InstanceNotResolvedError(
                "No WhatsApp instance could be resolved for this conversation",
                details={"conversation_id": str(conversation.id)},
            )
        if conversation.evolution_instance != resolved.instance:
            logger.info(
                "[%s] Conversation %s instance %s -> %s (%s)",
                ctx.correlation_id,
                conversation.id,
                conversation.evolution_instance,
                resolved.instance,
                resolved.tier,
            )
            conversation.evolution_instance = resolved.instance
            self.db.commit()
        return resolved
