"""WhatsApp JID and phone number helpers."""

from __future__ import annotations

import re
from typing import Optional

WHATSAPP_USER_SUFFIX = "@s.whatsapp.net"

_JID_SUFFIX_RE = re.compile(r"@(s\.whatsapp\.net|lid|g\.us|broadcast|c\.us)$")
_NON_DIGITS_RE = re.compile(r"\D")

PHONE_MASK_PREFIX = 8


def phone_from_jid(jid: Optional[str]) -> Optional[str]:
    """
    Extract the digits of a phone number from a JID.

    "5511999998888@s.whatsapp.net" -> "5511999998888". Device suffixes
    ("5511999998888:12@s.whatsapp.net") are dropped. Returns None when no
    digits remain.
    """
    if not jid or not isinstance(jid, str):
        return None
    local = _JID_SUFFIX_RE.sub("", jid.strip())
    local = local.split("@", 1)[0].split(":", 1)[0]
    digits = _NON_DIGITS_RE.sub("", local)
    return digits or None


def jid_from_phone(phone: str) -> str:
    return f"{_NON_DIGITS_RE.sub('', phone)}{WHATSAPP_USER_SUFFIX}"


def mask_phone(phone: Optional[str]) -> Optional[str]:
    """Keep only a short prefix of a phone number for logs."""
    if not phone:
        return None
    return f"{phone[:PHONE_MASK_PREFIX]}***"
