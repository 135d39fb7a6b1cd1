"""
Classify the content of an inbound gateway message.

Maps the nested gateway message object onto the CRM's message type, content
and file fields. Media without a caption gets a bracketed placeholder as
content, and a filename is synthesized when the gateway does not send one.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from app.constants.messaging import MessageType
from app.utils.mime import extension_for

PLACEHOLDERS: dict[MessageType, str] = {
    MessageType.IMAGE: "[IMAGE]",
    MessageType.VIDEO: "[VIDEO]",
    MessageType.AUDIO: "[AUDIO]",
    MessageType.DOCUMENT: "[DOCUMENT]",
    MessageType.STICKER: "[STICKER]",
    MessageType.LOCATION: "[LOCATION]",
    MessageType.CONTACT: "[CONTACT]",
}

# Captions that only mark "no caption" and must not be sent to the gateway.
PLACEHOLDER_TOKENS = frozenset(PLACEHOLDERS.values())

WRAPPER_KEYS = (
    "ephemeralMessage",
    "viewOnceMessage",
    "viewOnceMessageV2",
    "documentWithCaptionMessage",
)

MEDIA_KEYS: tuple[tuple[str, MessageType], ...] = (
    ("imageMessage", MessageType.IMAGE),
    ("videoMessage", MessageType.VIDEO),
    ("audioMessage", MessageType.AUDIO),
    ("documentMessage", MessageType.DOCUMENT),
    ("stickerMessage", MessageType.STICKER),
)


@dataclass
class ClassifiedContent:
    message_type: MessageType
    content: Optional[str]
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None


def unwrap_message(message: Any) -> dict[str, Any]:
    """Peel ephemeral / view-once / document-with-caption wrappers."""
    current = message if isinstance(message, dict) else {}
    for _ in range(len(WRAPPER_KEYS) + 1):
        for key in WRAPPER_KEYS:
            wrapper = current.get(key)
            if isinstance(wrapper, dict) and isinstance(wrapper.get("message"), dict):
                current = wrapper["message"]
                break
        else:
            return current
    return current


def _str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _classify_media(
    media: dict[str, Any],
    kind: MessageType,
    external_id: Optional[str],
    fallback_url: Optional[str],
) -> ClassifiedContent:
    mime_type = _str(media.get("mimetype"))
    file_name = _str(media.get("fileName"))
    if file_name is None:
        file_name = f"{kind.value}_{external_id or 'file'}.{extension_for(mime_type, kind.value)}"
    caption = _str(media.get("caption"))
    return ClassifiedContent(
        message_type=kind,
        content=caption or PLACEHOLDERS[kind],
        file_url=_str(media.get("url")) or fallback_url,
        file_name=file_name,
        mime_type=mime_type,
    )


def classify_message(
    message: Any,
    external_id: Optional[str] = None,
    media_url: Optional[str] = None,
) -> Optional[ClassifiedContent]:
    """
    Return the classified content, or None when the message carries nothing
    the CRM stores (reactions, protocol messages, empty payloads).

    media_url is the externally hosted copy the gateway may attach next to
    the message when media storage is enabled.
    """
    message = unwrap_message(message)
    if not message:
        return None

    text = _str(message.get("conversation"))
    if text is not None:
        return ClassifiedContent(message_type=MessageType.TEXT, content=text)

    extended = message.get("extendedTextMessage")
    if isinstance(extended, dict) and _str(extended.get("text")) is not None:
        return ClassifiedContent(message_type=MessageType.TEXT, content=extended["text"])

    fallback_url = _str(media_url) or _str(message.get("mediaUrl"))
    for key, kind in MEDIA_KEYS:
        media = message.get(key)
        if isinstance(media, dict):
            return _classify_media(media, kind, external_id, fallback_url)

    location = message.get("locationMessage")
    if isinstance(location, dict):
        lat = location.get("degreesLatitude")
        lng = location.get("degreesLongitude")
        label = _str(location.get("name")) or _str(location.get("address"))
        content = PLACEHOLDERS[MessageType.LOCATION]
        if lat is not None and lng is not None:
            content = f"{content} {lat},{lng}"
        if label:
            content = f"{content} {label}"
        return ClassifiedContent(message_type=MessageType.LOCATION, content=content)

    contact = message.get("contactMessage")
    if isinstance(contact, dict):
        name = _str(contact.get("displayName"))
        content = PLACEHOLDERS[MessageType.CONTACT]
        return ClassifiedContent(
            message_type=MessageType.CONTACT,
            content=f"{content} {name}" if name else content,
        )

    return None
