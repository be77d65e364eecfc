"""Product image storage (S3).

Keys live under ``products/<itemId>/`` with a fresh uuid per upload. Every
S3 call is retried on transient failures and runs behind a per-process
circuit breaker.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, TypeVar

from botocore.exceptions import BotoCoreError, ClientError

from ...constants import (
    IMAGE_ALLOWED_EXTENSIONS,
    IMAGE_ALLOWED_TYPES,
    IMAGE_MAX_SIZE_BYTES,
    IMAGE_MAX_SIZE_MB,
    IMAGES_PREFIX,
)
from ...errors import AppError, ValidationError, classify_store_error
from ...observability.logging import get_logger
from ...resilience.circuit_breaker import CircuitBreaker
from ...resilience.retry import with_retry
from ...settings import settings
from ..aws_clients import s3_client
from ..aws_errors import StoreSignal, signal_for, to_store_error

log = get_logger("images")

T = TypeVar("T")

_KEY_FROM_URL = re.compile(r"amazonaws\.com/(.+)$")

_breaker = CircuitBreaker(
    "images",
    failure_threshold=settings.circuit_failure_threshold,
    reset_timeout_s=settings.circuit_reset_timeout_s,
)


def images_breaker() -> CircuitBreaker:
    return _breaker


def get_images_bucket_name() -> str:
    name = (settings.images_bucket_name or "").strip()
    if not name:
        raise RuntimeError("IMAGES_BUCKET is not set")
    return name


def _safe_item_id(item_id: str | None) -> str:
    safe = (item_id or "unassigned").strip() or "unassigned"
    safe = re.sub(r"[^a-zA-Z0-9_-]", "_", safe)[:80]
    return safe


def _extension(file_name: str) -> str:
    m = re.search(r"\.([a-zA-Z0-9]{1,10})$", (file_name or "").strip())
    return f".{m.group(1).lower()}" if m else ""


def make_image_key(item_id: str | None, file_name: str = "") -> str:
    return f"{IMAGES_PREFIX}/{_safe_item_id(item_id)}/{uuid.uuid4()}{_extension(file_name)}"


def build_public_url(key: str) -> str:
    return f"https://{get_images_bucket_name()}.s3.{settings.aws_region}.amazonaws.com/{key}"


def extract_key_from_url(url: Any) -> str | None:
    if not isinstance(url, str):
        return None
    m = _KEY_FROM_URL.search(url.strip())
    return m.group(1) if m else None


def validate_image_file(file_name: str, content_type: str, size: int | None) -> None:
    """Raise ValidationError unless the file is an allowed image within the size cap."""
    if content_type not in IMAGE_ALLOWED_TYPES:
        raise ValidationError(
            f"Invalid file type. Allowed types: {', '.join(IMAGE_ALLOWED_TYPES)}",
            details={"fileName": file_name, "fileType": content_type},
        )
    if size is not None and int(size) > IMAGE_MAX_SIZE_BYTES:
        raise ValidationError(
            f"File size exceeds maximum allowed ({IMAGE_MAX_SIZE_MB}MB)",
            details={"fileName": file_name, "fileSize": size, "maxSize": IMAGE_MAX_SIZE_BYTES},
        )
    ext = _extension(file_name)
    if ext not in IMAGE_ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"Invalid file extension. Allowed extensions: {', '.join(IMAGE_ALLOWED_EXTENSIONS)}",
            details={"fileName": file_name, "fileExtension": ext},
        )


def _s3_call(operation: str, fn: Callable[[], T], *, key: str | None = None) -> T:
    def _op() -> T:
        try:
            return fn()
        except (ClientError, BotoCoreError) as e:
            err = to_store_error(
                e,
                operation=operation,
                resource=settings.images_bucket_name,
                key={"key": key} if key else None,
            )
            raise classify_store_error(err) from e

    retried = with_retry(_op, context={"operation": operation, "key": key})
    return _breaker.call(retried)


def presign_image_upload(file_name: str, content_type: str, item_id: str | None = None) -> dict[str, Any]:
    validate_image_file(file_name, content_type, None)
    bucket = get_images_bucket_name()
    key = make_image_key(item_id, file_name)
    expires_in = int(settings.presigned_url_expiration_seconds)
    params: dict[str, Any] = {
        "Bucket": bucket,
        "Key": key,
        "ContentType": str(content_type),
        "Metadata": {
            "originalName": str(file_name),
            "uploadedAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        },
    }

    url = _s3_call(
        "PresignPutObject",
        lambda: s3_client().generate_presigned_url(
            ClientMethod="put_object", Params=params, ExpiresIn=expires_in
        ),
        key=key,
    )
    log.info("image_upload_presigned", key=key, item_id=item_id, content_type=content_type)
    return {
        "uploadUrl": url,
        "fileKey": key,
        "publicUrl": build_public_url(key),
        "expiresIn": expires_in,
    }


def put_image_bytes(
    key: str,
    data: bytes,
    content_type: str | None = None,
    metadata: dict[str, str] | None = None,
) -> str:
    """Upload bytes and return the public URL."""
    kwargs: dict[str, Any] = {"Bucket": get_images_bucket_name(), "Key": str(key), "Body": data or b""}
    if content_type:
        kwargs["ContentType"] = str(content_type)
    if metadata:
        kwargs["Metadata"] = {str(k): str(v) for k, v in metadata.items()}

    _s3_call("PutObject", lambda: s3_client().put_object(**kwargs), key=key)
    return build_public_url(key)


def delete_image(key: str) -> None:
    bucket = get_images_bucket_name()
    _s3_call("DeleteObject", lambda: s3_client().delete_object(Bucket=bucket, Key=str(key)), key=key)
    log.info("image_deleted", key=key)


def image_exists(key: str) -> bool:
    bucket = get_images_bucket_name()

    def _head() -> bool:
        try:
            s3_client().head_object(Bucket=bucket, Key=str(key))
        except ClientError as e:
            if signal_for(e) is StoreSignal.NO_SUCH_KEY:
                return False
            raise
        return True

    return _s3_call("HeadObject", _head, key=key)


def delete_images_best_effort(urls: Iterable[Any]) -> int:
    """
    Delete the objects behind ``urls``; failures are logged, never raised.

    Returns how many objects were deleted.
    """
    deleted = 0
    for url in urls or []:
        key = extract_key_from_url(url)
        if not key:
            log.warning("image_url_unrecognized", url=str(url)[:300])
            continue
        try:
            delete_image(key)
            deleted += 1
        except AppError as e:
            log.warning(
                "image_delete_failed",
                key=key,
                error_type=type(e).__name__,
                error=e.message,
            )
        except Exception as e:  # noqa: BLE001
            log.error("image_delete_failed", key=key, error_type=type(e).__name__, error=str(e))
    return deleted
