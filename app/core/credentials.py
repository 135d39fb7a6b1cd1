"""Encryption of gateway connection tokens at rest."""

from __future__ import annotations

from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from app.config import get_settings


def _get_fernet() -> Fernet:
    """Get a Fernet instance with the credential master key."""
    settings = get_settings()
    key = settings.credential_master_key or settings.fernet_key
    if not key:
        raise ValueError(
            "CREDENTIAL_MASTER_KEY or FERNET_KEY must be set for connection secret encryption"
        )
    return Fernet(key.encode() if isinstance(key, str) else key)


def encrypt_token(token: str) -> bytes:
    """Encrypt a gateway API token."""
    return _get_fernet().encrypt(token.encode())


def decrypt_token(encrypted: Optional[bytes]) -> Optional[str]:
    """Decrypt a gateway API token. Raises ValueError if the ciphertext is invalid."""
    if not encrypted:
        return None
    try:
        return _get_fernet().decrypt(bytes(encrypted)).decode()
    except InvalidToken as e:
        raise ValueError("Connection secret could not be decrypted") from e
