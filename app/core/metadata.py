"""
Compact, log-safe summary of a raw gateway webhook event.

extract_metadata never raises: anything missing or malformed degrades to
None / "unknown" / False.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.utils.phone import mask_phone, phone_from_jid

UNKNOWN_MESSAGE_TYPE = "unknown"

# Checked in order; a gateway message carries exactly one of these keys.
MESSAGE_TYPE_KEYS: tuple[tuple[str, str], ...] = (
    ("conversation", "text"),
    ("extendedTextMessage", "text"),
    ("imageMessage", "image"),
    ("videoMessage", "video"),
    ("audioMessage", "audio"),
    ("documentMessage", "document"),
    ("stickerMessage", "sticker"),
    ("locationMessage", "location"),
    ("contactMessage", "contact"),
)

MEDIA_KINDS = frozenset({"image", "video", "audio", "document", "sticker"})


class EventMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event: Optional[str] = None
    instance: Optional[str] = None
    timestamp: str
    message_type: str = Field(default=UNKNOWN_MESSAGE_TYPE, alias="messageType")
    has_media: bool = Field(default=False, alias="hasMedia")
    contact_phone: Optional[str] = Field(default=None, alias="contactPhone")
    message_id: Optional[str] = Field(default=None, alias="messageId")
    from_me: bool = Field(default=False, alias="fromMe")
    # Internal only; excluded from log_view()
    remote_jid: Optional[str] = Field(default=None, alias="remoteJid")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")

    def log_view(self) -> dict[str, Any]:
        """camelCase dict without the unmasked phone and JID."""
        return self.model_dump(
            by_alias=True, exclude={"remote_jid", "phone_number"}
        )


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def detect_message_type(message: Any) -> str:
    message = _as_dict(message)
    for key, kind in MESSAGE_TYPE_KEYS:
        if message.get(key):
            return kind
    return UNKNOWN_MESSAGE_TYPE


def _first_unit(data: dict[str, Any]) -> dict[str, Any]:
    """Single event: data itself. Batch event: first entry of data.messages."""
    if isinstance(data.get("key"), dict) or "message" in data:
        return data
    messages = data.get("messages")
    if isinstance(messages, list) and messages:
        return _as_dict(messages[0])
    return data


def extract_metadata(raw: Any) -> EventMetadata:
    raw = _as_dict(raw)
    now = datetime.now(timezone.utc).isoformat()
    try:
        data = _as_dict(raw.get("data"))
        unit = _first_unit(data)
        key = _as_dict(unit.get("key"))
        instance = raw.get("instance") or raw.get("instanceName")
        remote_jid = key.get("remoteJid")
        remote_jid = remote_jid if isinstance(remote_jid, str) else None
        phone = phone_from_jid(remote_jid)
        message_type = detect_message_type(unit.get("message"))
        message_id = key.get("id")
        return EventMetadata(
            event=raw.get("event") if isinstance(raw.get("event"), str) else None,
            instance=instance if isinstance(instance, str) else None,
            timestamp=now,
            message_type=message_type,
            has_media=message_type in MEDIA_KINDS,
            contact_phone=mask_phone(phone),
            message_id=str(message_id) if message_id is not None else None,
            from_me=bool(key.get("fromMe", False)),
            remote_jid=remote_jid,
            phone_number=phone,
        )
    except Exception:
        return EventMetadata(timestamp=now)
