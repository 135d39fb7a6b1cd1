"""
Encode outbound CRM messages into gateway wire shapes.

Two shapes are produced:

- encode_envelope: the gateway-shaped "send.message" event handed to the
  automation engine, whose data.message has exactly one populated key for
  the message type.
- encode_gateway_request: the REST path and body for sending straight
  through the gateway's message endpoints.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from app.constants.messaging import MessageType
from app.core.classifier import PLACEHOLDER_TOKENS
from app.utils.mime import infer_mime_type

ENVELOPE_EVENT = "send.message"
ENVELOPE_SOURCE = "crm"
PENDING_STATUS = "PENDING"

WIRE_KEYS: dict[MessageType, str] = {
    MessageType.TEXT: "conversation",
    MessageType.IMAGE: "imageMessage",
    MessageType.VIDEO: "videoMessage",
    MessageType.AUDIO: "audioMessage",
    MessageType.DOCUMENT: "documentMessage",
    MessageType.STICKER: "stickerMessage",
}

# Media kinds whose wire object accepts a caption.
CAPTIONED_TYPES = frozenset({MessageType.IMAGE, MessageType.VIDEO, MessageType.DOCUMENT})


@dataclass
class OutboundContent:
    """Generic outbound message as the CRM describes it."""

    message_type: MessageType
    content: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None


@dataclass
class GatewayRequest:
    path: str
    body: dict[str, Any] = field(default_factory=dict)


def caption_for(content: Optional[str]) -> Optional[str]:
    """Caption to send, or None when content is empty or a placeholder token."""
    if content is None:
        return None
    stripped = content.strip()
    if not stripped or stripped in PLACEHOLDER_TOKENS:
        return None
    return content


def resolve_mime_type(content: OutboundContent) -> Optional[str]:
    return content.mime_type or infer_mime_type(content.file_name, content.file_url)


def _drop_none(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def encode_message(content: OutboundContent) -> tuple[dict[str, Any], str]:
    """Return (message object, wire message type) for the envelope."""
    message_type = MessageType(content.message_type)
    wire_key = WIRE_KEYS.get(message_type)
    if wire_key is None or message_type == MessageType.TEXT:
        return {"conversation": content.content or ""}, "conversation"

    media: dict[str, Any] = {
        "url": content.file_url,
        "mimetype": resolve_mime_type(content),
        "fileName": content.file_name,
    }
    if message_type in CAPTIONED_TYPES:
        media["caption"] = caption_for(content.content)
    return {wire_key: _drop_none(media)}, wire_key


def encode_envelope(
    content: OutboundContent,
    remote_jid: str,
    instance: str,
    message_id: Optional[str] = None,
    push_name: Optional[str] = None,
    conversation_id: Optional[str] = None,
    server_url: Optional[str] = None,
) -> dict[str, Any]:
    message, wire_type = encode_message(content)
    envelope: dict[str, Any] = {
        "event": ENVELOPE_EVENT,
        "instance": instance,
        "data": {
            "key": {"remoteJid": remote_jid, "fromMe": True, "id": message_id},
            "pushName": push_name or "",
            "status": PENDING_STATUS,
            "message": message,
            "contextInfo": None,
            "messageType": wire_type,
            "messageTimestamp": int(time.time()),
            "instanceId": instance,
            "source": ENVELOPE_SOURCE,
        },
        "date_time": datetime.now(timezone.utc).isoformat(),
        "sender": remote_jid,
        "meta": _drop_none(
            {"conversationId": conversation_id, "evolution_instance": instance}
        ),
    }
    if server_url:
        envelope["server_url"] = server_url
    return envelope


def decode_envelope(envelope: dict[str, Any]) -> tuple[Optional[MessageType], Optional[str]]:
    """Recover (message type, caption or text) from an envelope's populated key."""
    message = (envelope.get("data") or {}).get("message") or {}
    for message_type, wire_key in WIRE_KEYS.items():
        if wire_key not in message:
            continue
        value = message[wire_key]
        if message_type == MessageType.TEXT:
            return message_type, value
        return message_type, (value or {}).get("caption")
    return None, None


def encode_gateway_request(
    content: OutboundContent, number: str, instance: str
) -> GatewayRequest:
    """Path (relative to the gateway base URL) and JSON body for a direct send."""
    message_type = MessageType(content.message_type)
    media = content.file_url or content.content

    if message_type == MessageType.TEXT:
        return GatewayRequest(
            path=f"/message/sendText/{instance}",
            body={"number": number, "text": content.content or ""},
        )
    if message_type == MessageType.AUDIO:
        return GatewayRequest(
            path=f"/message/sendWhatsAppAudio/{instance}",
            body={"number": number, "audioMessage": {"audio": media}},
        )
    if message_type == MessageType.STICKER:
        return GatewayRequest(
            path=f"/message/sendSticker/{instance}",
            body={"number": number, "stickerMessage": {"image": media}},
        )
    if message_type in (MessageType.IMAGE, MessageType.VIDEO, MessageType.DOCUMENT):
        media_message = _drop_none(
            {
                "mediatype": message_type.value,
                "media": media,
                "caption": caption_for(content.content),
                "mimetype": resolve_mime_type(content),
                "fileName": content.file_name
                or ("document" if message_type == MessageType.DOCUMENT else None),
            }
        )
        return GatewayRequest(
            path=f"/message/sendMedia/{instance}",
            body={"number": number, "mediaMessage": media_message},
        )
    raise ValueError(f"Message type '{message_type.value}' is not supported")
