"""Extension <-> MIME type lookups for media messages."""

from __future__ import annotations

import posixpath
from typing import Optional
from urllib.parse import urlparse

MIME_TYPES_BY_EXTENSION: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "mp4": "video/mp4",
    "mp3": "audio/mpeg",
    "ogg": "audio/ogg",
    "pdf": "application/pdf",
}

# Preferred extension when synthesizing a filename from a MIME type.
EXTENSIONS_BY_MIME_TYPE: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "video/mp4": "mp4",
    "audio/mpeg": "mp3",
    "audio/ogg": "ogg",
    "application/pdf": "pdf",
}

DEFAULT_EXTENSIONS: dict[str, str] = {
    "image": "jpg",
    "video": "mp4",
    "audio": "ogg",
    "document": "pdf",
    "sticker": "webp",
}


def _extension(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    name = posixpath.basename(urlparse(path).path or path)
    if "." not in name:
        return None
    return name.rsplit(".", 1)[-1].lower() or None


def infer_mime_type(
    file_name: Optional[str] = None, file_url: Optional[str] = None
) -> Optional[str]:
    """MIME from the file name, then the URL path. None when unknown."""
    for candidate in (file_name, file_url):
        ext = _extension(candidate)
        if ext and ext in MIME_TYPES_BY_EXTENSION:
            return MIME_TYPES_BY_EXTENSION[ext]
    return None


def extension_for(mime_type: Optional[str], kind: str) -> str:
    if mime_type:
        base = mime_type.split(";", 1)[0].strip().lower()
        if base in EXTENSIONS_BY_MIME_TYPE:
            return EXTENSIONS_BY_MIME_TYPE[base]
    return DEFAULT_EXTENSIONS.get(kind, "bin")
