"""AES-GCM sealing for opaque client tokens (pagination cursors).

Token format: ``v1.<nonce>.<tag>.<ciphertext>``, each part URL-safe base64
without padding, so tokens travel unescaped in query strings. ``scope`` is
bound as associated data: a token only opens under the scope it was sealed
with.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..settings import settings

_VERSION = "v1"
_NONCE_BYTES = 12
_TAG_BYTES = 16

# Local/dev only; production refuses to start without CURSOR_SECRET.
_DEV_CURSOR_SECRET = "catalog-dev-cursor-secret"


def _key() -> bytes:
    secret = settings.cursor_secret or _DEV_CURSOR_SECRET
    return hashlib.sha256(str(secret).encode("utf-8")).digest()


def _b64e(b: bytes) -> str:
    return base64.urlsafe_b64encode(b).decode("ascii").rstrip("=")


def _b64d(s: str) -> bytes:
    return base64.urlsafe_b64decode(s + "=" * (-len(s) % 4))


def encrypt_string(plain_text: str, *, scope: str = "") -> str:
    nonce = os.urandom(_NONCE_BYTES)
    sealed = AESGCM(_key()).encrypt(nonce, plain_text.encode("utf-8"), scope.encode("utf-8"))
    ciphertext, tag = sealed[:-_TAG_BYTES], sealed[-_TAG_BYTES:]
    return ".".join([_VERSION, _b64e(nonce), _b64e(tag), _b64e(ciphertext)])


def decrypt_string(token: str | None, *, scope: str = "") -> str | None:
    """Return the plain text, or None for anything that does not open under ``scope``."""
    parts = str(token or "").split(".")
    if len(parts) != 4 or parts[0] != _VERSION:
        return None

    try:
        nonce, tag, ciphertext = (_b64d(p) for p in parts[1:])
    except (binascii.Error, ValueError):
        return None
    if len(nonce) != _NONCE_BYTES or len(tag) != _TAG_BYTES:
        return None

    try:
        plain = AESGCM(_key()).decrypt(nonce, ciphertext + tag, scope.encode("utf-8"))
        return plain.decode("utf-8")
    except (InvalidTag, UnicodeDecodeError):
        return None
