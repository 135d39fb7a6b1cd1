from app.services.connection_service import ConnectionService
from app.services.contact_service import ContactService
from app.services.conversation_service import ConversationService
from app.services.forwarding_relay import ForwardingRelay
from app.services.inbound_message_service import InboundMessageService
from app.services.instance_resolver import OutboundInstanceResolver
from app.services.message_service import MessageService
from app.services.tenant_resolver import TenantResolver

__all__ = [
    "ConnectionService",
    "ContactService",
    "ConversationService",
    "ForwardingRelay",
    "InboundMessageService",
    "MessageService",
    "OutboundInstanceResolver",
    "TenantResolver",
]
