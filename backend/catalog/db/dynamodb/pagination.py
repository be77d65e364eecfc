"""Opaque pagination cursors.

A cursor is the sealed JSON envelope ``{"v": 1, "lek": <LastEvaluatedKey>}``.
Callers pass a ``scope`` naming the listing (table and index) so a cursor
taken from one listing is rejected by another instead of reaching DynamoDB as
a mismatched ExclusiveStartKey.
"""

from __future__ import annotations

import json
from typing import Any

from ...errors import ValidationError
from ...services.token_crypto import decrypt_string, encrypt_string
from .numbers import from_dynamo, to_dynamo

CURSOR_VERSION = 1


def encode_cursor(last_evaluated_key: dict[str, Any] | None, *, scope: str = "") -> str | None:
    if not last_evaluated_key:
        return None
    envelope = {"v": CURSOR_VERSION, "lek": from_dynamo(last_evaluated_key)}
    return encrypt_string(json.dumps(envelope, separators=(",", ":"), ensure_ascii=False), scope=scope)


def decode_cursor(cursor: str | None, *, scope: str = "") -> dict[str, Any] | None:
    """Return the ExclusiveStartKey for ``cursor``; anything unreadable is a ValidationError."""
    if not cursor:
        return None

    raw = decrypt_string(cursor, scope=scope)
    try:
        envelope = json.loads(raw) if raw else None
    except ValueError:
        envelope = None

    lek = envelope.get("lek") if isinstance(envelope, dict) else None
    if not isinstance(envelope, dict) or envelope.get("v") != CURSOR_VERSION or not isinstance(lek, dict):
        raise ValidationError("Invalid cursor")
    return to_dynamo(lek)
