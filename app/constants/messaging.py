"""Enumerations shared by the messaging models, services and schemas."""

from enum import StrEnum


class MessageType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    STICKER = "sticker"
    LOCATION = "location"
    CONTACT = "contact"


MEDIA_MESSAGE_TYPES = frozenset(
    {
        MessageType.IMAGE,
        MessageType.VIDEO,
        MessageType.AUDIO,
        MessageType.DOCUMENT,
        MessageType.STICKER,
    }
)

# Types the gateway can be asked to send; location and contact are inbound only.
OUTBOUND_MESSAGE_TYPES = MEDIA_MESSAGE_TYPES | {MessageType.TEXT}


class SenderType(StrEnum):
    CONTACT = "contact"
    AGENT = "agent"
    SYSTEM = "system"
    IA = "ia"


class MessageStatus(StrEnum):
    """Delivery lifecycle. Outbound: sending -> sent -> delivered -> read, or failed."""

    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"
    RECEIVED = "received"


# Ordering used when reconciling gateway acknowledgements; status never moves backwards.
MESSAGE_STATUS_RANK = {
    MessageStatus.SENDING: 0,
    MessageStatus.SENT: 1,
    MessageStatus.DELIVERED: 2,
    MessageStatus.READ: 3,
}


class ConnectionStatus(StrEnum):
    CREATING = "creating"
    QR = "qr"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class ConversationStatus(StrEnum):
    OPEN = "open"
    PENDING = "pending"
    CLOSED = "closed"


class DispatchMode(StrEnum):
    """Where outbound messages are handed off."""

    AUTO = "auto"
    N8N = "n8n"
    GATEWAY = "gateway"


class EvolutionEvent(StrEnum):
    """Gateway webhook event names, normalized to dotted lower case."""

    MESSAGES_UPSERT = "messages.upsert"
    MESSAGES_UPDATE = "messages.update"
    CONNECTION_UPDATE = "connection.update"
    QRCODE_UPDATED = "qrcode.updated"
