"""
Strip embedded binaries from gateway webhook payloads.

Gateway events can embed whole media files as base64; those must never be
logged, stored or forwarded. The sanitizer builds a new structure and skips
base64 values while copying, so the blobs are never duplicated in memory and
the caller's object is left untouched.
"""

from __future__ import annotations

from typing import Any

MEDIA_MESSAGE_KEYS = frozenset(
    {
        "imageMessage",
        "videoMessage",
        "audioMessage",
        "documentMessage",
        "stickerMessage",
    }
)
THUMBNAIL_KEYS = frozenset({"jpegThumbnail", "thumbnail"})
THUMBNAIL_MAX_LENGTH = 1000
REMOVED_THUMBNAIL_PLACEHOLDER = "[REMOVED_LARGE_THUMBNAIL]"
BASE64_KEY = "base64"


def _copy(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _copy(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy(v) for v in value]
    return value


def _sanitize_media(media: Any, max_length: int) -> Any:
    if not isinstance(media, dict):
        return _copy(media)
    cleaned: dict[str, Any] = {}
    for key, value in media.items():
        if key == BASE64_KEY:
            continue
        if key in THUMBNAIL_KEYS and isinstance(value, str) and len(value) > max_length:
            cleaned[key] = REMOVED_THUMBNAIL_PLACEHOLDER
            continue
        cleaned[key] = _copy(value)
    return cleaned


def _sanitize_message(message: Any, max_length: int) -> Any:
    if not isinstance(message, dict):
        return _copy(message)
    cleaned: dict[str, Any] = {}
    for key, value in message.items():
        if key == BASE64_KEY:
            continue
        if key in MEDIA_MESSAGE_KEYS:
            cleaned[key] = _sanitize_media(value, max_length)
        else:
            cleaned[key] = _copy(value)
    return cleaned


def _sanitize_unit(unit: Any, max_length: int) -> Any:
    if not isinstance(unit, dict):
        return _copy(unit)
    cleaned: dict[str, Any] = {}
    for key, value in unit.items():
        if key == "message":
            cleaned[key] = _sanitize_message(value, max_length)
        elif key == "messages" and isinstance(value, list):
            cleaned[key] = [_sanitize_unit(item, max_length) for item in value]
        elif key == BASE64_KEY:
            continue
        else:
            cleaned[key] = _copy(value)
    return cleaned


def sanitize_webhook_payload(
    raw: Any, max_length: int = THUMBNAIL_MAX_LENGTH
) -> Any:
    """
    Return a sanitized copy of a webhook payload.

    Handles single events (data.message), batch events (data.messages[*]) and
    payloads that carry the message at the top level.
    """
    if not isinstance(raw, dict):
        return _copy(raw)
    cleaned: dict[str, Any] = {}
    for key, value in raw.items():
        if key == "data":
            cleaned[key] = _sanitize_unit(value, max_length)
        elif key == "message":
            cleaned[key] = _sanitize_message(value, max_length)
        else:
            cleaned[key] = _copy(value)
    return cleaned
